"""
Sequential and random access reading of EDF/BDF files.

A reader keeps one data record cursor plus an independent sample cursor
per signal. Reading whole records never moves the sample cursors, and
reading samples of one signal never moves the cursors of other signals.
"""

import logging
import os
from pathlib import Path
from threading import RLock
from typing import BinaryIO, List, Optional, Tuple, Union

import numpy as np

from ..utils.conversions import PhysicalDigitalConverter
from ..utils.endian import le_bytes_to_ints
from .config import RecordingConfig, RecordLayout
from .errors import EdfIOError, UsageError
from .header import FileType, encode_header, header_size, read_header

logger = logging.getLogger(__name__)


class EdfReader:
    """
    Reader for EDF (16-bit) and BDF (24-bit) files.

    A short trailing record (not enough bytes for a full record) is never
    counted nor returned.

    Example:
        with EdfReader("recording.bdf") as reader:
            record = reader.read_record()
            alpha = reader.read_physical_samples(0, 512)
    """

    def __init__(self, filepath: Union[str, Path]):
        """
        Open a file and parse its header.

        Args:
            filepath: Path to the EDF/BDF file

        Raises:
            EdfIOError: If the file can not be opened
            HeaderParsingError: If the header is invalid
        """
        self._filepath = Path(filepath)
        self._file: Optional[BinaryIO] = None
        self._lock = RLock()

        try:
            self._file = open(self._filepath, "rb")
        except OSError as e:
            raise EdfIOError(
                f"File {self._filepath} can not be opened for reading", cause=e
            ) from e

        try:
            config, file_type = read_header(self._file)
        except OSError as e:
            self._file.close()
            raise EdfIOError(
                f"Error while reading header of {self._filepath}", cause=e
            ) from e
        except Exception:
            self._file.close()
            raise

        self._set_config(config, file_type)
        self._record_position = 0
        self._sample_positions: List[int] = [0] * self._layout.num_signals

        logger.info(
            f"Opened {file_type.name} file {self._filepath}: "
            f"{config.num_signals} signals, {self.num_records()} records"
        )

    def _set_config(self, config: RecordingConfig, file_type: FileType) -> None:
        self._config = config.copy()
        self._file_type = file_type
        self._layout = RecordLayout.from_config(self._config)
        self._converter = PhysicalDigitalConverter(self._config)
        self._header_size = header_size(self._config.num_signals)
        self._record_bytes = self._layout.record_length * file_type.bytes_per_sample

    @property
    def filepath(self) -> Path:
        """Path of the open file."""
        return self._filepath

    @property
    def config(self) -> RecordingConfig:
        """Copy of the recording configuration from the header."""
        return self._config.copy()

    @property
    def file_type(self) -> FileType:
        """EDF or BDF."""
        return self._file_type

    @property
    def num_signals(self) -> int:
        """Number of signals."""
        return self._layout.num_signals

    @property
    def record_position(self) -> int:
        """Index of the next record returned by ``read_record``."""
        return self._record_position

    @property
    def closed(self) -> bool:
        """Check if the reader is closed."""
        return self._file is None

    def sample_position(self, signal: int) -> int:
        """Index of the next sample of ``signal`` returned by ``read_samples``."""
        self._check_signal(signal)
        return self._sample_positions[signal]

    def num_records(self) -> int:
        """Number of complete records in the file."""
        if self._record_bytes == 0:
            return 0
        try:
            size = os.fstat(self._ensure_open().fileno()).st_size
        except OSError as e:
            raise EdfIOError(f"Error while reading size of {self._filepath}", cause=e) from e
        return max(0, size - self._header_size) // self._record_bytes

    def num_samples(self, signal: int) -> int:
        """Total number of samples of ``signal`` in the file."""
        self._check_signal(signal)
        return self.num_records() * self._layout.sizes[signal]

    def available_records(self) -> int:
        """Records left from the current record position."""
        return max(0, self.num_records() - self._record_position)

    def available_samples(self, signal: int) -> int:
        """Samples of ``signal`` left from its current position."""
        return max(0, self.num_samples(signal) - self._sample_positions[signal])

    def seek_record(self, index: int) -> None:
        """
        Move the record cursor.

        Args:
            index: Record index, 0 <= index <= num_records()

        Raises:
            UsageError: If the index is out of range
        """
        with self._lock:
            total = self.num_records()
            if not 0 <= index <= total:
                raise UsageError(f"Record index {index} out of range [0, {total}]")
            self._record_position = index

    def seek_sample(self, signal: int, index: int) -> None:
        """
        Move the sample cursor of one signal.

        Args:
            signal: Signal number
            index: Sample index, 0 <= index <= num_samples(signal)

        Raises:
            UsageError: If the index is out of range
        """
        with self._lock:
            total = self.num_samples(signal)
            if not 0 <= index <= total:
                raise UsageError(
                    f"Sample index {index} of signal {signal} out of range [0, {total}]"
                )
            self._sample_positions[signal] = index

    def reset(self) -> None:
        """Put the record cursor and every sample cursor back to 0."""
        with self._lock:
            self._record_position = 0
            self._sample_positions = [0] * self._layout.num_signals

    def read_record(self) -> Optional[np.ndarray]:
        """
        Read the record at the record cursor and advance it by one.

        Returns:
            int32 array of ``record_length`` samples, or None at end of file

        Raises:
            EdfIOError: If the file can not be read
        """
        with self._lock:
            if self._record_bytes == 0:
                return None
            offset = self._header_size + self._record_position * self._record_bytes
            data = self._read_at(offset, self._record_bytes)
            if len(data) < self._record_bytes:
                return None
            self._record_position += 1
            return le_bytes_to_ints(data, self._file_type.bytes_per_sample)

    def read_physical_record(self) -> Optional[np.ndarray]:
        """Like ``read_record`` but returns physical float64 values."""
        record = self.read_record()
        if record is None:
            return None
        return self._converter.record_to_physical(record)

    def read_samples(self, signal: int, count: int) -> Optional[np.ndarray]:
        """
        Read samples of one signal from its own cursor.

        Only the cursor of ``signal`` moves.

        Args:
            signal: Signal number
            count: Number of samples wanted

        Returns:
            int32 array (shorter than ``count`` if the file ends first),
            or None if no sample is left
        """
        self._check_signal(signal)
        if count < 0:
            raise UsageError(f"Sample count must be non-negative, got {count}")

        with self._lock:
            per_record = self._layout.sizes[signal]
            if per_record == 0:
                return None
            width = self._file_type.bytes_per_sample
            position = self._sample_positions[signal]
            record_index, in_record = divmod(position, per_record)

            chunks = []
            read_total = 0
            while read_total < count:
                data = self._read_signal_block(signal, record_index)
                if len(data) < per_record * width:
                    break
                n = min(count - read_total, per_record - in_record)
                block = le_bytes_to_ints(data, width)
                chunks.append(block[in_record : in_record + n])
                read_total += n
                record_index += 1
                in_record = 0

            if count > 0 and read_total == 0:
                return None
            self._sample_positions[signal] = position + read_total
            if not chunks:
                return np.array([], dtype=np.int32)
            return np.concatenate(chunks)

    def read_physical_samples(self, signal: int, count: int) -> Optional[np.ndarray]:
        """Like ``read_samples`` but returns physical float64 values."""
        samples = self.read_samples(signal, count)
        if samples is None:
            return None
        return self._converter.signal_to_physical(signal, samples)

    def rewrite_header(self, config: RecordingConfig) -> None:
        """
        Replace the header of the file in place.

        The number of signals and their samples per record must stay the
        same, since the data records are not touched.

        Args:
            config: New recording configuration

        Raises:
            UsageError: If the record layout would change
            EdfIOError: If the header can not be written
        """
        config.validate()
        with self._lock:
            self._ensure_open()
            if RecordLayout.from_config(config).sizes != self._layout.sizes:
                raise UsageError(
                    "Signal layout can not be changed when rewriting the header: "
                    f"{self._layout.sizes} != "
                    f"{tuple(s.samples_per_record for s in config.signals)}"
                )
            header = encode_header(config, self._file_type)
            try:
                with open(self._filepath, "r+b") as f:
                    f.write(header)
            except OSError as e:
                logger.error(f"Failed to rewrite header of {self._filepath}: {e}")
                raise EdfIOError(
                    f"Error while rewriting header of {self._filepath}", cause=e
                ) from e
            self._set_config(config, self._file_type)
            logger.info(f"Header of {self._filepath} rewritten")

    def close(self) -> None:
        """Close the file. Calling close again does nothing."""
        with self._lock:
            if self._file is None:
                return
            try:
                self._file.close()
            finally:
                self._file = None
            logger.info(f"Closed {self._filepath}")

    def _check_signal(self, signal: int) -> None:
        if not 0 <= signal < self._layout.num_signals:
            raise UsageError(
                f"Signal number {signal} out of range [0, {self._layout.num_signals})"
            )

    def _ensure_open(self) -> BinaryIO:
        if self._file is None:
            raise UsageError(f"Reader for {self._filepath} is closed")
        return self._file

    def _read_signal_block(self, signal: int, record_index: int) -> bytes:
        width = self._file_type.bytes_per_sample
        offset = (
            self._header_size
            + record_index * self._record_bytes
            + self._layout.offsets[signal] * width
        )
        return self._read_at(offset, self._layout.sizes[signal] * width)

    def _read_at(self, offset: int, length: int) -> bytes:
        f = self._ensure_open()
        try:
            f.seek(offset)
            return f.read(length)
        except OSError as e:
            logger.error(f"Error while reading {self._filepath} at byte {offset}: {e}")
            raise EdfIOError(
                f"Error while reading data from the file {self._filepath}", cause=e
            ) from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def load_edf_file(
    filepath: Union[str, Path], max_records: Optional[int] = None
) -> Tuple[RecordingConfig, np.ndarray]:
    """
    Load all data records of a file into memory.

    Args:
        filepath: Path to the EDF/BDF file
        max_records: Maximum records to load

    Returns:
        Tuple of (config, records) where records has shape
        (num_records, record_length)
    """
    with EdfReader(filepath) as reader:
        config = reader.config
        n_records = reader.num_records()
        if max_records is not None:
            n_records = min(n_records, max_records)

        records = np.zeros((n_records, config.record_length), dtype=np.int32)
        for i in range(n_records):
            records[i] = reader.read_record()

    return config, records
