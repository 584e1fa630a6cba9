"""
Record transformation pipeline.

Stages are record sinks that transform every incoming data record and
forward the result to a downstream sink, so they can be chained in front
of a file writer:

    writer = EdfFileWriter("out.bdf", FileType.BDF_24BIT)
    pipeline = RecordsJoiner(5, SignalsSelector(writer, mask=[True, False]))
    pipeline.open(config)

Provides:
- Joining consecutive records into longer ones
- Dropping signals
- Per-signal sample filtering
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..core.config import RecordingConfig
from ..core.errors import ConfigValidationError, UsageError
from ..core.writer import RecordSink, WriterState
from .filters import SignalFilter

logger = logging.getLogger(__name__)


class RecordFilter(RecordSink):
    """
    Base class for pipeline stages.

    Opening a stage opens the downstream sink with the transformed
    configuration; closing a stage closes it. The default stage forwards
    records unchanged.
    """

    def __init__(self, out: RecordSink):
        """
        Initialize stage.

        Args:
            out: Downstream sink receiving transformed records
        """
        super().__init__()
        self._out = out

    @property
    def out(self) -> RecordSink:
        """Get downstream sink."""
        return self._out

    def _output_config(self) -> RecordingConfig:
        """Configuration of the records this stage emits."""
        return self._config.copy()

    def open(self, config: RecordingConfig) -> None:
        with self._lock:
            super().open(config)
            try:
                self._out.open(self._output_config())
            except Exception:
                self._state = WriterState.CLOSED
                raise

    def _write_record(self, record: np.ndarray) -> None:
        self._out.write_record(record)

    def _close(self) -> None:
        self._out.close()


class RecordsJoiner(RecordFilter):
    """
    Joins every ``num_records`` consecutive records into one.

    Output samples per record and record duration are ``num_records``
    times the input ones. Within an output record, the samples of each
    signal are the concatenation of that signal's samples from the joined
    input records, in input order.

    An incomplete trailing group is never emitted implicitly. It can be
    flushed with ``flush_pending`` (padding the missing records) or
    dropped with ``discard_pending``; ``close`` drops it with a warning.
    """

    def __init__(self, num_records: int, out: RecordSink):
        """
        Initialize joiner.

        Args:
            num_records: Input records per output record (>= 1)
            out: Downstream sink
        """
        if num_records < 1:
            raise ConfigValidationError(
                f"Number of records to join must be >= 1, got {num_records}"
            )
        super().__init__(out)
        self._num_records = num_records
        self._joined = np.array([], dtype=np.int32)
        self._pending = 0

    @property
    def num_records(self) -> int:
        """Get number of input records per output record."""
        return self._num_records

    @property
    def pending_records(self) -> int:
        """Input records buffered towards the next output record."""
        return self._pending

    def _output_config(self) -> RecordingConfig:
        config = self._config.copy()
        config.record_duration *= self._num_records
        if config.num_records >= 0:
            config.num_records //= self._num_records
        for signal in config.signals:
            signal.samples_per_record *= self._num_records
        return config

    def open(self, config: RecordingConfig) -> None:
        with self._lock:
            super().open(config)
            self._joined = np.zeros(
                self._layout.record_length * self._num_records, dtype=np.int32
            )
            self._pending = 0

    def _write_record(self, record: np.ndarray) -> None:
        for signal in range(self._layout.num_signals):
            size = self._layout.sizes[signal]
            start = self._layout.offsets[signal] * self._num_records + self._pending * size
            self._joined[start : start + size] = record[self._layout.signal_slice(signal)]
        self._pending += 1
        if self._pending == self._num_records:
            self._pending = 0
            self._out.write_record(self._joined.copy())

    def flush_pending(self, fill_value: int = 0) -> bool:
        """
        Emit the incomplete group, filling missing records with a constant.

        Args:
            fill_value: Digital value for the missing samples

        Returns:
            True if a record was emitted
        """
        with self._lock:
            self._check_open()
            if self._pending == 0:
                return False
            for signal in range(self._layout.num_signals):
                size = self._layout.sizes[signal]
                base = self._layout.offsets[signal] * self._num_records
                self._joined[
                    base + self._pending * size : base + self._num_records * size
                ] = fill_value
            logger.debug(
                f"Flushing {self._pending} of {self._num_records} joined records"
            )
            self._pending = 0
            self._out.write_record(self._joined.copy())
            return True

    def discard_pending(self) -> int:
        """Drop the incomplete group and return how many records it held."""
        with self._lock:
            dropped = self._pending
            self._pending = 0
            return dropped

    def _close(self) -> None:
        if self._pending:
            logger.warning(
                f"Discarding {self._pending} records of an incomplete group "
                f"of {self._num_records}"
            )
            self._pending = 0
        super()._close()


class SignalsSelector(RecordFilter):
    """
    Drops signals from every record.

    ``mask[i]`` tells whether signal ``i`` is kept. Signals beyond the end
    of the mask are kept.
    """

    def __init__(self, out: RecordSink, mask: Optional[Sequence[bool]] = None):
        """
        Initialize selector.

        Args:
            out: Downstream sink
            mask: Keep flag per signal (default: keep all)
        """
        super().__init__(out)
        self._mask: List[bool] = [bool(m) for m in mask] if mask is not None else []
        self._selected: List[int] = []

    @property
    def selected_signals(self) -> List[int]:
        """Input signal numbers forwarded downstream (valid once open)."""
        return list(self._selected)

    def remove_signal(self, signal: int) -> None:
        """Drop one more signal. Only allowed before open."""
        if signal < 0:
            raise ValueError(f"Signal number must be non-negative, got {signal}")
        with self._lock:
            if self._state is not WriterState.CLOSED or self._records_written:
                raise UsageError("Signals can not be removed once the selector is open")
            if signal >= len(self._mask):
                self._mask.extend([True] * (signal + 1 - len(self._mask)))
            self._mask[signal] = False

    def is_selected(self, signal: int) -> bool:
        """Check whether a signal is kept."""
        return signal >= len(self._mask) or self._mask[signal]

    def open(self, config: RecordingConfig) -> None:
        with self._lock:
            self._selected = [
                i for i in range(config.num_signals) if self.is_selected(i)
            ]
            super().open(config)

    def _output_config(self) -> RecordingConfig:
        config = self._config.copy()
        config.signals = [config.signals[i] for i in self._selected]
        return config

    def _write_record(self, record: np.ndarray) -> None:
        parts = [record[self._layout.signal_slice(i)] for i in self._selected]
        self._out.write_record(np.concatenate(parts))


class SignalsFilter(RecordFilter):
    """
    Applies a chain of per-sample filters to selected signals.

    Filters of one signal run in the order they were added. Their names
    are appended to the signal's prefiltering field of the output header.
    """

    def __init__(self, out: RecordSink):
        super().__init__(out)
        self._filters: Dict[int, List[SignalFilter]] = {}

    def add_signal_filter(self, signal: int, signal_filter: SignalFilter) -> None:
        """Append a filter to the chain of one signal. Only allowed before open."""
        if signal < 0:
            raise ValueError(f"Signal number must be non-negative, got {signal}")
        with self._lock:
            if self._state is not WriterState.CLOSED or self._records_written:
                raise UsageError("Filters can not be added once the stage is open")
            self._filters.setdefault(signal, []).append(signal_filter)

    def signal_filters(self, signal: int) -> List[SignalFilter]:
        """Get the filter chain of one signal."""
        return list(self._filters.get(signal, []))

    def open(self, config: RecordingConfig) -> None:
        for signal in self._filters:
            if signal >= config.num_signals:
                raise ConfigValidationError(
                    f"Filter assigned to signal {signal}, "
                    f"but the recording has {config.num_signals} signals"
                )
        super().open(config)

    def _output_config(self) -> RecordingConfig:
        config = self._config.copy()
        for signal, filters in self._filters.items():
            names = " ".join(f.name for f in filters)
            prefiltering = config.signals[signal].prefiltering
            config.signals[signal].prefiltering = f"{prefiltering} {names}".strip()
        return config

    def _write_record(self, record: np.ndarray) -> None:
        filtered = record.copy()
        for signal, filters in self._filters.items():
            block = self._layout.signal_slice(signal)
            samples = filtered[block]
            for signal_filter in filters:
                samples = signal_filter.process(samples)
            filtered[block] = samples
        self._out.write_record(filtered)
