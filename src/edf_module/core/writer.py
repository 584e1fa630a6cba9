"""
Writing EDF/BDF data records.

``RecordSink`` is the writer-facing contract shared by the file writer and
by every pipeline stage: ``open(config)``, ``write_record`` /
``write_samples``, ``close()``. Samples written channel by channel are
collected into a record buffer and only complete records reach the file.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pathlib import Path
from threading import RLock
from typing import BinaryIO, Optional, Sequence, Union

import numpy as np

from ..utils.conversions import PhysicalDigitalConverter
from ..utils.endian import ints_to_le_bytes
from .config import RecordingConfig, RecordLayout
from .errors import ConfigValidationError, EdfIOError, UsageError
from .header import FileType, encode_header

logger = logging.getLogger(__name__)


class WriterState(Enum):
    """Writer lifecycle states."""

    CLOSED = "closed"
    OPEN = "open"
    CLOSING = "closing"


class RecordSink(ABC):
    """
    Base class for everything that consumes data records.

    Subclasses implement ``_write_record`` (called with one complete int32
    record) and ``_close``. All writes and ``close`` are serialized by one
    lock per instance, so a sink may be fed from several threads.
    """

    def __init__(self):
        self._config: Optional[RecordingConfig] = None
        self._layout: Optional[RecordLayout] = None
        self._converter: Optional[PhysicalDigitalConverter] = None
        self._state = WriterState.CLOSED
        self._lock = RLock()

        # Record buffer for channel-by-channel writes
        self._buffer = np.array([], dtype=np.int32)
        self._buffer_offset = 0
        self._records_written = 0

    @property
    def state(self) -> WriterState:
        """Current lifecycle state."""
        return self._state

    @property
    def config(self) -> Optional[RecordingConfig]:
        """Copy of the configuration this sink was opened with."""
        with self._lock:
            return self._config.copy() if self._config is not None else None

    @property
    def num_written_records(self) -> int:
        """Number of complete records accepted so far."""
        return self._records_written

    def open(self, config: RecordingConfig) -> None:
        """
        Open the sink for a recording.

        The configuration is copied. It may be replaced by calling ``open``
        again until the first record is written.

        Args:
            config: Recording configuration

        Raises:
            ConfigValidationError: If the configuration is invalid
            UsageError: If records were already written
        """
        layout = self._check_config(config)

        with self._lock:
            if self._state is WriterState.CLOSING:
                raise UsageError("Sink is closing")
            if self._records_written > 0:
                raise UsageError(
                    "Recording configuration can not change after the first record"
                )
            self._config = config.copy()
            self._layout = layout
            self._converter = PhysicalDigitalConverter(self._config)
            self._buffer = np.zeros(layout.record_length, dtype=np.int32)
            self._buffer_offset = 0
            self._state = WriterState.OPEN

    @staticmethod
    def _check_config(config: RecordingConfig) -> RecordLayout:
        """Validate a configuration and return its record layout."""
        config.validate()
        layout = RecordLayout.from_config(config)
        if layout.record_length == 0:
            raise ConfigValidationError("Data record must contain at least one sample")
        return layout

    def write_record(self, record: Union[Sequence[int], np.ndarray]) -> None:
        """
        Write one complete digital record.

        Args:
            record: ``record_length`` digital samples in signal order

        Raises:
            UsageError: If the sink is not open, the length is wrong or a
                channel-by-channel record is half filled
        """
        with self._lock:
            self._check_open()
            if self._buffer_offset != 0:
                raise UsageError(
                    "Can not write a whole record while a partial record is buffered"
                )
            self._write_checked(record)

    def write_physical_record(self, record: Union[Sequence[float], np.ndarray]) -> None:
        """Write one complete record given in physical units."""
        with self._lock:
            self._check_open()
            self.write_record(self._converter.record_to_digital(record))

    def write_samples(
        self, signal: int, samples: Union[Sequence[int], np.ndarray]
    ) -> None:
        """
        Write digital samples of one signal.

        Signals must be supplied in declared order, each one filling its
        slot of the current record before the next signal starts. A record
        is written as soon as its last slot is full.

        Args:
            signal: Signal number expected next
            samples: Digital samples of that signal

        Raises:
            UsageError: If the signal is out of order or the samples
                overflow the signal's slot
        """
        with self._lock:
            self._check_open()
            samples = np.asarray(samples)
            if len(samples) == 0:
                return
            self._check_next_signal(signal)
            slot_end = self._layout.offsets[signal] + self._layout.sizes[signal]
            end = self._buffer_offset + len(samples)
            if end > slot_end:
                raise UsageError(
                    f"Signal {signal} takes {slot_end - self._buffer_offset} more "
                    f"samples in this record, got {len(samples)}"
                )
            self._buffer[self._buffer_offset : end] = samples
            self._buffer_offset = end
            if self._buffer_offset == self._layout.record_length:
                self._buffer_offset = 0
                self._write_checked(self._buffer.copy())

    def write_physical_samples(
        self, signal: int, samples: Union[Sequence[float], np.ndarray]
    ) -> None:
        """Write samples of one signal given in physical units."""
        with self._lock:
            self._check_open()
            self._check_next_signal(signal)
            digital = self._converter.signal_to_digital(
                signal, np.asarray(samples, dtype=np.float64)
            )
            self.write_samples(signal, digital)

    def close(self) -> None:
        """
        Finish the recording. Calling close again does nothing.

        A partially filled channel-by-channel record is dropped.
        """
        with self._lock:
            if self._state is not WriterState.OPEN:
                return
            self._state = WriterState.CLOSING
            try:
                if self._buffer_offset:
                    logger.warning(
                        f"Dropping {self._buffer_offset} samples of an incomplete record"
                    )
                    self._buffer_offset = 0
                self._close()
            finally:
                self._state = WriterState.CLOSED

    def _check_open(self) -> None:
        if self._state is not WriterState.OPEN:
            raise UsageError(f"Sink is not open (state: {self._state.value})")

    def _check_next_signal(self, signal: int) -> None:
        expected = self._layout.signal_at(self._buffer_offset)
        if signal != expected:
            raise UsageError(f"Expected samples of signal {expected}, got {signal}")

    def _write_checked(self, record) -> None:
        record = np.asarray(record)
        if record.ndim != 1 or len(record) != self._layout.record_length:
            raise UsageError(
                f"Record length must be {self._layout.record_length}, got {len(record)}"
            )
        self._write_record(record.astype(np.int32))
        self._records_written += 1

    @abstractmethod
    def _write_record(self, record: np.ndarray) -> None:
        """Consume one complete int32 record."""
        pass

    @abstractmethod
    def _close(self) -> None:
        """Release resources; called once, with the lock held."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _now_ms() -> int:
    return int(time.time() * 1000)


class EdfFileWriter(RecordSink):
    """
    Writes data records to an EDF or BDF file.

    The header is written with the first record (record count unknown) and
    rewritten with final values on close.

    Example:
        writer = EdfFileWriter("recording.edf", FileType.EDF_16BIT, config)
        writer.write_samples(0, samples_channel_0)
        writer.write_samples(1, samples_channel_1)
        writer.close()
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        file_type: FileType = FileType.EDF_16BIT,
        config: Optional[RecordingConfig] = None,
        adjust_record_duration: bool = False,
    ):
        """
        Create the output file.

        Args:
            filepath: Output file path (parent directories are created)
            file_type: EDF (16-bit) or BDF (24-bit)
            config: Recording configuration; may instead be passed to open()
            adjust_record_duration: On close, replace the record duration
                with the one measured from wall-clock time

        Raises:
            ConfigValidationError: If the configuration is invalid; the
                file is not touched
            EdfIOError: If the file can not be created
        """
        super().__init__()
        self._filepath = Path(filepath)
        self._file_type = file_type
        self._adjust_record_duration = adjust_record_duration
        self._header_written = False
        self._start_time_ms = 0
        self._stop_time_ms = 0

        if config is not None:
            self._check_config(config)

        try:
            self._filepath.parent.mkdir(parents=True, exist_ok=True)
            self._file: Optional[BinaryIO] = open(self._filepath, "wb")
        except OSError as e:
            raise EdfIOError(f"File {self._filepath} can not be created", cause=e) from e

        if config is not None:
            try:
                self.open(config)
            except Exception:
                self._file.close()
                self._file = None
                raise

    @property
    def filepath(self) -> Path:
        """Output file path."""
        return self._filepath

    @property
    def file_type(self) -> FileType:
        """EDF or BDF."""
        return self._file_type

    @property
    def actual_record_duration(self) -> float:
        """Record duration measured from wall-clock time (0 if unknown)."""
        if self._records_written == 0 or self._stop_time_ms <= self._start_time_ms:
            return 0.0
        return (self._stop_time_ms - self._start_time_ms) * 0.001 / self._records_written

    def open(self, config: RecordingConfig) -> None:
        with self._lock:
            if self._file is None:
                raise UsageError(f"Writer for {self._filepath} is closed")
            super().open(config)
            for i, signal in enumerate(config.signals):
                if (
                    signal.digital_min < self._file_type.digital_min
                    or signal.digital_max > self._file_type.digital_max
                ):
                    logger.warning(
                        f"Digital range of signal {i} ({signal.digital_min}, "
                        f"{signal.digital_max}) exceeds the {self._file_type.name} "
                        "sample range; samples will wrap"
                    )

    def _start(self) -> None:
        """Resolve unknown header fields and write the provisional header."""
        duration_ms = int(self._config.record_duration * 1000)
        self._start_time_ms = _now_ms() - duration_ms
        if self._config.start_time_ms < 0:
            self._config.start_time_ms = self._start_time_ms
        self._config.num_records = -1
        self._file.write(encode_header(self._config, self._file_type))
        self._header_written = True
        logger.info(
            f"Started writing {self._file_type.name} file {self._filepath}: "
            f"{self._config.num_signals} signals, "
            f"{self._layout.record_length} samples per record"
        )

    def _write_record(self, record: np.ndarray) -> None:
        try:
            if not self._header_written:
                self._start()
            self._file.write(ints_to_le_bytes(record, self._file_type.bytes_per_sample))
        except OSError as e:
            logger.error(f"Failed to write data to {self._filepath}: {e}")
            raise EdfIOError(
                f"Error while writing data to the file {self._filepath}. "
                "Check available disk space.",
                cause=e,
            ) from e
        self._stop_time_ms = _now_ms()

    def _close(self) -> None:
        try:
            if not self._header_written:
                if self._config.start_time_ms < 0:
                    self._config.start_time_ms = _now_ms()
            self._config.num_records = self._records_written
            actual_duration = self.actual_record_duration
            if self._adjust_record_duration and actual_duration > 0:
                self._config.record_duration = actual_duration
            self._file.seek(0)
            self._file.write(encode_header(self._config, self._file_type))
        except OSError as e:
            logger.error(f"Failed to rewrite header of {self._filepath}: {e}")
            raise EdfIOError(
                f"Error while closing the file {self._filepath}", cause=e
            ) from e
        finally:
            self._file.close()
            self._file = None
        logger.info(self.writing_info())

    def close(self) -> None:
        with self._lock:
            if self._state is WriterState.CLOSED and self._file is not None:
                # Never opened: nothing to finalize
                logger.warning(
                    f"Writer for {self._filepath} closed without a recording configuration"
                )
                self._file.close()
                self._file = None
                return
            super().close()

    def writing_info(self) -> str:
        """Summary of the writing session."""

        def fmt(ms: int) -> str:
            return datetime.fromtimestamp(ms / 1000).strftime("%H:%M:%S")

        return (
            f"Finished writing {self._filepath}\n"
            f"Start recording time = {self._start_time_ms} ({fmt(self._start_time_ms)})\n"
            f"Stop recording time = {self._stop_time_ms} ({fmt(self._stop_time_ms)})\n"
            f"Number of data records = {self._records_written}\n"
            f"Actual duration of a data record = {self.actual_record_duration}"
        )


def save_edf_file(
    filepath: Union[str, Path],
    config: RecordingConfig,
    records: np.ndarray,
    file_type: FileType = FileType.EDF_16BIT,
) -> RecordingConfig:
    """
    Save digital records to a new file.

    Args:
        filepath: Output file path
        config: Recording configuration
        records: Array of shape (num_records, record_length)
        file_type: EDF or BDF

    Returns:
        Final recording configuration as written to the header
    """
    with EdfFileWriter(filepath, file_type, config) as writer:
        for record in records:
            writer.write_record(record)
    return writer.config
