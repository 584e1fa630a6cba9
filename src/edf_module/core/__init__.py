"""
Core module - Header codec, file reader and writer.
"""

from .config import RecordingConfig, RecordLayout, SignalConfig
from .errors import (
    ConfigValidationError,
    EdfError,
    EdfIOError,
    HeaderParsingError,
    UsageError,
)
from .header import FileType, decode_header, encode_header, read_header
from .reader import EdfReader, load_edf_file
from .writer import EdfFileWriter, RecordSink, WriterState, save_edf_file

__all__ = [
    "RecordingConfig",
    "RecordLayout",
    "SignalConfig",
    "EdfError",
    "ConfigValidationError",
    "HeaderParsingError",
    "EdfIOError",
    "UsageError",
    "FileType",
    "encode_header",
    "decode_header",
    "read_header",
    "EdfReader",
    "load_edf_file",
    "EdfFileWriter",
    "RecordSink",
    "WriterState",
    "save_edf_file",
]
