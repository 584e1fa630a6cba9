"""
Little-endian sample packing for EDF/BDF data records.

EDF stores every sample as a 2-byte and BDF as a 3-byte little-endian
two's-complement integer. Values are handled as 32-bit signed integers;
packing keeps only the low ``width`` bytes, so anything outside the
representable range wraps silently.
"""

import struct
from typing import Sequence, Union

import numpy as np

# Supported sample widths in bytes (EDF, BDF)
SAMPLE_WIDTHS = (2, 3)

IntArrayLike = Union[Sequence[int], np.ndarray]


def _check_width(width: int) -> None:
    if width not in SAMPLE_WIDTHS:
        raise ValueError(f"Unsupported sample width: {width}. Expected 2 or 3")


def int_to_le_bytes(value: int, width: int) -> bytes:
    """
    Pack one integer into ``width`` little-endian bytes.

    Args:
        value: 32-bit signed integer
        width: Number of bytes to keep (2 or 3)

    Returns:
        The ``width`` least significant bytes, least significant first
    """
    _check_width(width)
    return struct.pack("<I", value & 0xFFFFFFFF)[:width]


def le_bytes_to_int(data: bytes, width: int = 0) -> int:
    """
    Unpack ``width`` little-endian bytes into a signed integer.

    The sign is taken from bit 7 of the last (most significant) byte.

    Args:
        data: Packed bytes
        width: Number of bytes (defaults to ``len(data)``)

    Returns:
        Sign-extended 32-bit integer
    """
    width = width or len(data)
    _check_width(width)
    b = bytes(data[:width])
    if len(b) < width:
        raise ValueError(f"Expected {width} bytes, got {len(b)}")
    pad = b"\xff" if b[-1] & 0x80 else b"\x00"
    return struct.unpack("<i", b + pad * (4 - width))[0]


def ints_to_le_bytes(values: IntArrayLike, width: int) -> bytes:
    """
    Pack an array of integers with a fixed stride of ``width`` bytes.

    Args:
        values: Integer samples
        width: Bytes per sample (2 or 3)

    Returns:
        ``len(values) * width`` bytes
    """
    _check_width(width)
    words = (np.asarray(values, dtype=np.int64) & 0xFFFFFFFF).astype("<u4")
    raw = words.view(np.uint8).reshape(-1, 4)
    return raw[:, :width].tobytes()


def le_bytes_to_ints(data: bytes, width: int) -> np.ndarray:
    """
    Unpack a byte string of ``width``-byte samples.

    Trailing bytes that do not form a whole sample are ignored.

    Args:
        data: Packed samples
        width: Bytes per sample (2 or 3)

    Returns:
        int32 numpy array
    """
    _check_width(width)
    n_samples = len(data) // width
    raw = np.frombuffer(data, dtype=np.uint8, count=n_samples * width)
    raw = raw.reshape(n_samples, width)

    # Sign-extend into 4-byte words
    words = np.empty((n_samples, 4), dtype=np.uint8)
    words[:, :width] = raw
    words[:, width:] = np.where(raw[:, -1:] & 0x80, 0xFF, 0x00)
    return words.view("<i4").reshape(-1).astype(np.int32)
