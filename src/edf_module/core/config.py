"""
Recording configuration for EDF/BDF files.

Describes the global recording metadata and the per-signal layout of data
records, and handles persistence of configuration templates.
"""

import copy
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..utils import conversions
from .errors import ConfigValidationError

logger = logging.getLogger(__name__)


@dataclass
class SignalConfig:
    """Configuration for a single signal (channel)."""

    label: str = ""
    transducer: str = ""  # e.g. "AgAgCl electrode"
    physical_dimension: str = ""  # e.g. "uV", "BPM"
    physical_min: float = -32768.0
    physical_max: float = 32767.0
    digital_min: int = -32768
    digital_max: int = 32767
    prefiltering: str = ""  # e.g. "HP:0.1Hz LP:75Hz"
    samples_per_record: int = 0

    def __post_init__(self) -> None:
        """Validate configuration values after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate all configuration fields."""
        if self.digital_max == self.digital_min:
            raise ConfigValidationError(
                f"digital_max must differ from digital_min, got {self.digital_min}"
            )
        if self.physical_max == self.physical_min:
            raise ConfigValidationError(
                f"physical_max must differ from physical_min, got {self.physical_min}"
            )
        if self.samples_per_record < 0:
            raise ConfigValidationError(
                f"samples_per_record must be non-negative, got {self.samples_per_record}"
            )

    @property
    def gain(self) -> float:
        """Physical units per digital step."""
        return conversions.gain(
            self.physical_min, self.physical_max, self.digital_min, self.digital_max
        )

    @property
    def offset(self) -> float:
        """Physical value of digital zero."""
        return conversions.offset(
            self.physical_min, self.physical_max, self.digital_min, self.digital_max
        )


@dataclass
class RecordingConfig:
    """
    Global recording metadata plus the ordered list of signals.

    The order of ``signals`` fixes the layout of every data record.
    """

    patient_id: str = ""
    recording_id: str = ""
    start_time_ms: int = -1  # epoch milliseconds, -1 = unknown
    record_duration: float = 1.0  # seconds
    num_records: int = -1  # -1 = unknown
    signals: List[SignalConfig] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate configuration values after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate global fields and every signal."""
        if not self.record_duration > 0:
            raise ConfigValidationError(
                f"record_duration must be positive, got {self.record_duration}"
            )
        if self.num_records < -1:
            raise ConfigValidationError(
                f"num_records must be -1 (unknown) or non-negative, got {self.num_records}"
            )
        for signal in self.signals:
            signal.validate()

    @property
    def num_signals(self) -> int:
        """Number of signals."""
        return len(self.signals)

    @property
    def record_length(self) -> int:
        """Total number of samples in one data record."""
        return sum(s.samples_per_record for s in self.signals)

    @property
    def start_datetime(self) -> Optional[datetime]:
        """Recording start as local datetime, or None if unknown."""
        if self.start_time_ms < 0:
            return None
        return datetime.fromtimestamp(self.start_time_ms / 1000)

    def copy(self) -> "RecordingConfig":
        """Return a deep copy."""
        return copy.deepcopy(self)

    def add_signal(self, signal: Optional[SignalConfig] = None) -> SignalConfig:
        """Append a signal and return it."""
        signal = signal if signal is not None else SignalConfig()
        self.signals.append(signal)
        return signal

    def remove_signal(self, signal_number: int) -> SignalConfig:
        """Remove and return the signal at the given position."""
        return self.signals.pop(signal_number)

    def sample_frequency(self, signal_number: int) -> float:
        """Samples per second of the given signal."""
        return self.signals[signal_number].samples_per_record / self.record_duration

    def set_sample_frequency(self, signal_number: int, frequency: float) -> None:
        """
        Set samples per record from a sample frequency.

        Args:
            signal_number: Signal index
            frequency: Samples per second (must be > 0)
        """
        if frequency <= 0:
            raise ConfigValidationError(
                f"Sample frequency of signal {signal_number} must be positive, got {frequency}"
            )
        self.signals[signal_number].samples_per_record = int(
            round(frequency * self.record_duration)
        )

    def signal_number(self, sample_index: int) -> int:
        """Signal that owns the given index of a flat data record."""
        return RecordLayout.from_config(self).signal_at(sample_index)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordingConfig":
        """Create configuration from dictionary."""
        data = dict(data)
        signals = [SignalConfig(**s) for s in data.pop("signals", [])]
        return cls(signals=signals, **data)

    def save(self, path: str) -> bool:
        """Save configuration to JSON file.

        Args:
            path: File path to save configuration to

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            with open(path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
            logger.info(f"Recording configuration saved to {path}")
            return True
        except OSError as e:
            logger.error(f"Failed to save recording configuration to {path}: {e}")
            return False

    @classmethod
    def load(cls, path: str) -> Optional["RecordingConfig"]:
        """Load configuration from JSON file.

        Args:
            path: File path to load configuration from

        Returns:
            RecordingConfig instance or None if loading failed
        """
        try:
            with open(path, "r") as f:
                data = json.load(f)
            config = cls.from_dict(data)
            logger.info(f"Recording configuration loaded from {path}")
            return config
        except FileNotFoundError:
            logger.warning(f"Recording configuration file not found: {path}")
            return None
        except OSError as e:
            logger.error(f"Failed to read recording configuration from {path}: {e}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in recording configuration file {path}: {e}")
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid recording configuration format in {path}: {e}")
            return None

    def __str__(self) -> str:
        start = self.start_datetime
        lines = [
            f"Patient identification = {self.patient_id}",
            f"Recording identification = {self.recording_id}",
            "Start date and time = "
            + (start.strftime("%d:%m:%Y %H:%M:%S") if start else "unknown"),
            f"Duration of data records = {self.record_duration}",
            f"Number of data records = {self.num_records}",
            f"Number of signals = {self.num_signals}",
        ]
        for i, s in enumerate(self.signals):
            lines.append(
                f"  {i} label: {s.label}; number of samples: {s.samples_per_record}"
                f"; frequency: {round(self.sample_frequency(i))}"
                f"; dig min: {s.digital_min}; dig max: {s.digital_max}"
                f"; phys min: {s.physical_min}; phys max: {s.physical_max}"
                f"; prefiltering: {s.prefiltering}"
                f"; transducer: {s.transducer}"
                f"; dimension: {s.physical_dimension}"
            )
        return "\n".join(lines)


@dataclass(frozen=True)
class RecordLayout:
    """
    Position of every signal inside a flat data record.

    Built once when a reader, writer or pipeline stage is opened.
    """

    offsets: Tuple[int, ...]
    sizes: Tuple[int, ...]
    record_length: int

    @classmethod
    def from_config(cls, config: RecordingConfig) -> "RecordLayout":
        """Compute the layout of a configuration."""
        sizes = tuple(s.samples_per_record for s in config.signals)
        offsets = []
        position = 0
        for size in sizes:
            offsets.append(position)
            position += size
        return cls(offsets=tuple(offsets), sizes=sizes, record_length=position)

    @property
    def num_signals(self) -> int:
        """Number of signals."""
        return len(self.sizes)

    def signal_slice(self, signal: int) -> slice:
        """Slice of the flat record holding the given signal."""
        start = self.offsets[signal]
        return slice(start, start + self.sizes[signal])

    def signal_at(self, index: int) -> int:
        """
        Signal that owns a flat record index.

        Indices beyond one record wrap around, so a running sample counter
        can be passed directly.
        """
        if index < 0:
            raise ValueError(f"Sample index must be non-negative, got {index}")
        if self.record_length == 0:
            raise ValueError("Record layout has no samples")
        index %= self.record_length
        for signal, (start, size) in enumerate(zip(self.offsets, self.sizes)):
            if index < start + size:
                return signal
        return self.num_signals - 1
