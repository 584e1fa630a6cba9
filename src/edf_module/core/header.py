"""
EDF/BDF header record encoding and decoding.

HEADER RECORD (ASCII, each field space padded on the right):
    8   version (first byte '0' for EDF or 0xFF for BDF, then 7 chars)
    80  local patient identification
    80  local recording identification
    8   start date of recording (dd.mm.yy)
    8   start time of recording (hh.mm.ss)
    8   number of bytes in header record (256 + ns * 256)
    44  reserved ("" for EDF, "24BIT" for BDF)
    8   number of data records (-1 if unknown)
    8   duration of a data record, in seconds
    4   number of signals (ns) in data record
  then, for each field kind, one entry per signal:
    ns * 16 label
    ns * 80 transducer type
    ns * 8  physical dimension
    ns * 8  physical minimum
    ns * 8  physical maximum
    ns * 8  digital minimum
    ns * 8  digital maximum
    ns * 80 prefiltering
    ns * 8  number of samples in each data record
    ns * 32 reserved
"""

import logging
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Callable, List, Tuple

from .config import RecordingConfig, SignalConfig
from .errors import ConfigValidationError, HeaderParsingError

logger = logging.getLogger(__name__)

ENCODING = "ascii"
DATE_FORMAT = "%d.%m.%y"
TIME_FORMAT = "%H.%M.%S"

# Bytes per signal in the header, and of the fixed part
HEADER_BLOCK_SIZE = 256

VERSION_LENGTH = 8
PATIENT_LENGTH = 80
RECORDING_LENGTH = 80
START_DATE_LENGTH = 8
START_TIME_LENGTH = 8
HEADER_BYTES_LENGTH = 8
RESERVED_LENGTH = 44
NUM_RECORDS_LENGTH = 8
RECORD_DURATION_LENGTH = 8
NUM_SIGNALS_LENGTH = 4

# Per-signal fields in file order: (name, width)
SIGNAL_FIELDS: Tuple[Tuple[str, int], ...] = (
    ("label", 16),
    ("transducer", 80),
    ("physical_dimension", 8),
    ("physical_min", 8),
    ("physical_max", 8),
    ("digital_min", 8),
    ("digital_max", 8),
    ("prefiltering", 80),
    ("samples_per_record", 8),
    ("reserved", 32),
)


class FileType(Enum):
    """On-disk format variant."""

    EDF_16BIT = "edf"
    BDF_24BIT = "bdf"

    @property
    def bytes_per_sample(self) -> int:
        """Sample width in bytes."""
        return 3 if self is FileType.BDF_24BIT else 2

    @property
    def first_byte(self) -> int:
        """First byte of the header."""
        return 0xFF if self is FileType.BDF_24BIT else ord("0")

    @property
    def version(self) -> str:
        """Text after the first byte of the version field."""
        return "BIOSEMI" if self is FileType.BDF_24BIT else ""

    @property
    def reserved(self) -> str:
        """Content of the 44-byte reserved field."""
        return "24BIT" if self is FileType.BDF_24BIT else ""

    @property
    def digital_min(self) -> int:
        """Smallest sample value the format can store."""
        return -(1 << (8 * self.bytes_per_sample - 1))

    @property
    def digital_max(self) -> int:
        """Largest sample value the format can store."""
        return (1 << (8 * self.bytes_per_sample - 1)) - 1


def header_size(num_signals: int) -> int:
    """Size of the header record in bytes."""
    return HEADER_BLOCK_SIZE * (1 + num_signals)


def _fit(text: str, length: int) -> str:
    """Cut or right-pad text with spaces to exactly ``length`` chars."""
    return text[:length].ljust(length)


def _format_float(value: float) -> str:
    return f"{value:.6f}"


def _format_start(start_time_ms: int) -> Tuple[str, str]:
    start = datetime.fromtimestamp(max(start_time_ms, 0) / 1000)
    return start.strftime(DATE_FORMAT), start.strftime(TIME_FORMAT)


def encode_header(config: RecordingConfig, file_type: FileType) -> bytes:
    """
    Create the header record for a recording.

    Text fields longer than their width are truncated; the header byte
    count is always recomputed from the number of signals.

    Args:
        config: Recording configuration
        file_type: EDF or BDF

    Returns:
        ``256 * (1 + num_signals)`` bytes
    """
    start_date, start_time = _format_start(config.start_time_ms)
    signals = config.signals

    parts = [
        _fit(file_type.version, VERSION_LENGTH - 1),
        _fit(config.patient_id, PATIENT_LENGTH),
        _fit(config.recording_id, RECORDING_LENGTH),
        _fit(start_date, START_DATE_LENGTH),
        _fit(start_time, START_TIME_LENGTH),
        _fit(str(header_size(len(signals))), HEADER_BYTES_LENGTH),
        _fit(file_type.reserved, RESERVED_LENGTH),
        _fit(str(config.num_records), NUM_RECORDS_LENGTH),
        _fit(_format_float(config.record_duration), RECORD_DURATION_LENGTH),
        _fit(str(len(signals)), NUM_SIGNALS_LENGTH),
    ]

    formatters = {
        "physical_min": _format_float,
        "physical_max": _format_float,
        "reserved": lambda _: "",
    }
    for name, width in SIGNAL_FIELDS:
        fmt = formatters.get(name, str)
        for signal in signals:
            value = getattr(signal, name, "")
            parts.append(_fit(fmt(value), width))

    text = "".join(parts).encode(ENCODING, errors="replace")
    return bytes([file_type.first_byte]) + text


def detect_file_type(data: bytes) -> FileType:
    """
    Identify the format from the first header byte.

    Raises:
        HeaderParsingError: If the first byte is neither '0' nor 0xFF
    """
    if not data:
        raise HeaderParsingError("Empty header", field="version")
    first = data[0]
    for file_type in FileType:
        if first == file_type.first_byte:
            return file_type
    raise HeaderParsingError(
        f"Invalid EDF/BDF header: first byte should be '0' or 255, got {first}",
        field="version",
        raw=repr(data[:VERSION_LENGTH]),
    )


class _FieldCursor:
    """Sequential reader over the header text."""

    def __init__(self, text: str):
        self._text = text
        self._position = 0

    def take(self, length: int) -> str:
        value = self._text[self._position : self._position + length]
        self._position += length
        return value


def _parse_number(text: str, name: str, parse: Callable):
    stripped = text.strip()
    try:
        return parse(stripped)
    except ValueError as e:
        raise HeaderParsingError(
            f"Invalid EDF/BDF header: error while parsing {name}: {stripped!r}",
            field=name,
            raw=text,
            cause=e,
        ) from e


def _parse_start(date_text: str, time_text: str) -> int:
    raw = f"{date_text.strip()} {time_text.strip()}"
    try:
        start = datetime.strptime(raw, f"{DATE_FORMAT} {TIME_FORMAT}")
    except ValueError as e:
        raise HeaderParsingError(
            f"Invalid EDF/BDF header: error while parsing start date-time: {raw!r}",
            field="start_time",
            raw=raw,
            cause=e,
        ) from e
    return int(round(start.timestamp() * 1000))


def decode_header(data: bytes) -> RecordingConfig:
    """
    Parse a header record.

    Args:
        data: At least the full header record (extra bytes are ignored)

    Returns:
        Recording configuration described by the header

    Raises:
        HeaderParsingError: If the header is malformed
    """
    detect_file_type(data)
    if len(data) < HEADER_BLOCK_SIZE:
        raise HeaderParsingError(
            f"Invalid EDF/BDF header: expected at least {HEADER_BLOCK_SIZE} bytes, "
            f"got {len(data)}"
        )

    text = data[1:].decode(ENCODING, errors="replace")
    cursor = _FieldCursor(text)

    cursor.take(VERSION_LENGTH - 1)
    patient_id = cursor.take(PATIENT_LENGTH).strip()
    recording_id = cursor.take(RECORDING_LENGTH).strip()
    start_date = cursor.take(START_DATE_LENGTH)
    start_time = cursor.take(START_TIME_LENGTH)
    start_time_ms = _parse_start(start_date, start_time)
    header_bytes = _parse_number(
        cursor.take(HEADER_BYTES_LENGTH), "header_bytes", int
    )
    cursor.take(RESERVED_LENGTH)
    num_records = _parse_number(cursor.take(NUM_RECORDS_LENGTH), "num_records", int)
    record_duration = _parse_number(
        cursor.take(RECORD_DURATION_LENGTH), "record_duration", float
    )
    num_signals = _parse_number(cursor.take(NUM_SIGNALS_LENGTH), "num_signals", int)

    if num_signals < 0:
        raise HeaderParsingError(
            f"Invalid EDF/BDF header: negative number of signals {num_signals}",
            field="num_signals",
            raw=str(num_signals),
        )
    expected_bytes = header_size(num_signals)
    if header_bytes != expected_bytes:
        raise HeaderParsingError(
            f"Invalid EDF/BDF header: header size {header_bytes} does not match "
            f"{expected_bytes} expected for {num_signals} signals",
            field="header_bytes",
            raw=str(header_bytes),
        )
    if len(data) < expected_bytes:
        raise HeaderParsingError(
            f"Invalid EDF/BDF header: expected {expected_bytes} bytes, got {len(data)}"
        )

    parsers = {
        "physical_min": float,
        "physical_max": float,
        "digital_min": int,
        "digital_max": int,
        "samples_per_record": int,
    }
    values: List[dict] = [{} for _ in range(num_signals)]
    for name, width in SIGNAL_FIELDS:
        for i in range(num_signals):
            raw = cursor.take(width)
            if name == "reserved":
                continue
            if name in parsers:
                values[i][name] = _parse_number(raw, name, parsers[name])
            else:
                values[i][name] = raw.strip()

    try:
        return RecordingConfig(
            patient_id=patient_id,
            recording_id=recording_id,
            start_time_ms=start_time_ms,
            record_duration=record_duration,
            num_records=num_records,
            signals=[SignalConfig(**v) for v in values],
        )
    except ConfigValidationError as e:
        raise HeaderParsingError(
            f"Invalid EDF/BDF header: {e}", cause=e
        ) from e


def read_header(f: BinaryIO) -> Tuple[RecordingConfig, FileType]:
    """
    Read and parse the header record from the start of an open file.

    Leaves the file positioned right after the header.

    Args:
        f: File opened in binary mode

    Returns:
        Tuple of (config, file_type)
    """
    f.seek(0)
    fixed = f.read(HEADER_BLOCK_SIZE)
    file_type = detect_file_type(fixed)
    if len(fixed) < HEADER_BLOCK_SIZE:
        raise HeaderParsingError(
            f"Invalid EDF/BDF header: file too short ({len(fixed)} bytes)"
        )
    start = HEADER_BLOCK_SIZE - NUM_SIGNALS_LENGTH
    raw_count = fixed[start : start + NUM_SIGNALS_LENGTH].decode(
        ENCODING, errors="replace"
    )
    num_signals = _parse_number(raw_count, "num_signals", int)
    rest = f.read(max(num_signals, 0) * HEADER_BLOCK_SIZE)
    config = decode_header(fixed + rest)
    logger.debug(
        f"Read {file_type.name} header: {config.num_signals} signals, "
        f"{config.num_records} records"
    )
    return config, file_type


def header_to_string(config: RecordingConfig, file_type: FileType) -> str:
    """Short multi-line description of a header."""
    start = config.start_datetime
    lines = [
        f"file type = {file_type.name}",
        "Start date and time = "
        + (start.strftime("%d:%m:%Y %H:%M:%S") if start else "unknown"),
        f"Duration of data records = {config.record_duration}",
        f"Number of signals = {config.num_signals}",
    ]
    for i, signal in enumerate(config.signals):
        lines.append(
            f" {i}: label = {signal.label}"
            f"; number of samples in data records = {signal.samples_per_record}"
            f"; frequency = {round(config.sample_frequency(i))}"
            f"; prefiltering = {signal.prefiltering}"
        )
    return "\n".join(lines) + "\n"
