"""
Exceptions raised by the EDF/BDF reader, writer and record pipeline.
"""

from typing import Optional


class EdfError(Exception):
    """
    Base exception for EDF/BDF errors.

    Attributes:
        cause: Original exception that caused this error (if any)
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        msg = super().__str__()
        if self.cause:
            msg = f"{msg} (caused by: {self.cause})"
        return msg


class ConfigValidationError(EdfError, ValueError):
    """Raised when recording or signal configuration values are invalid."""

    pass


class HeaderParsingError(EdfError):
    """
    Raised when a file header is not a valid EDF/BDF header.

    Attributes:
        field: Name of the header field that failed to parse (if any)
        raw: Raw text of that field
    """

    def __init__(
        self,
        message: str,
        field: str = "",
        raw: str = "",
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.field = field
        self.raw = raw


class EdfIOError(EdfError):
    """
    Raised when the underlying file fails to read or write.

    The reader or writer stays closeable after this error.
    """

    pass


class UsageError(EdfError, RuntimeError):
    """
    Raised on API misuse, such as writing to a closed writer or seeking
    out of range.
    """

    pass
