"""
Physical <-> digital scaling for EDF/BDF signals.

Every signal maps its digital range [digital_min, digital_max] linearly
onto its physical range [physical_min, physical_max]:

    physical = digital * gain + offset
    digital = int((physical - offset) / gain)
"""

from typing import TYPE_CHECKING, Union

import numpy as np

if TYPE_CHECKING:
    from ..core.config import RecordingConfig

# Type alias for numeric types
Numeric = Union[float, int, np.ndarray]


def gain(
    physical_min: float, physical_max: float, digital_min: int, digital_max: int
) -> float:
    """
    Calculate the gain (physical units per digital step).

    Args:
        physical_min: Physical minimum
        physical_max: Physical maximum
        digital_min: Digital minimum
        digital_max: Digital maximum

    Returns:
        Gain factor
    """
    return (physical_max - physical_min) / (digital_max - digital_min)


def offset(
    physical_min: float, physical_max: float, digital_min: int, digital_max: int
) -> float:
    """
    Calculate the offset (physical value of digital zero).

    Args:
        physical_min: Physical minimum
        physical_max: Physical maximum
        digital_min: Digital minimum
        digital_max: Digital maximum

    Returns:
        Offset
    """
    return physical_min - digital_min * gain(
        physical_min, physical_max, digital_min, digital_max
    )


def digital_to_physical(digital: Numeric, gain: float, offset: float) -> Numeric:
    """
    Convert digital values to physical values.

    Args:
        digital: Digital value(s)
        gain: Signal gain
        offset: Signal offset

    Returns:
        Physical value(s)
    """
    if isinstance(digital, np.ndarray):
        return digital.astype(np.float64) * gain + offset
    return digital * gain + offset


def physical_to_digital(physical: Numeric, gain: float, offset: float) -> Numeric:
    """
    Convert physical values to digital values.

    The result is truncated toward zero, like an integer cast.

    Args:
        physical: Physical value(s)
        gain: Signal gain
        offset: Signal offset

    Returns:
        Digital value(s)
    """
    if isinstance(physical, np.ndarray):
        scaled = (physical.astype(np.float64) - offset) / gain
        return np.trunc(scaled).astype(np.int32)
    return int((physical - offset) / gain)


class PhysicalDigitalConverter:
    """
    Record-level scaling for one recording configuration.

    Gains and offsets are captured when the converter is created, so later
    changes to the configuration object do not affect it.
    """

    def __init__(self, config: "RecordingConfig"):
        """
        Initialize converter.

        Args:
            config: Recording configuration
        """
        signals = config.signals
        self._gains = np.array([s.gain for s in signals], dtype=np.float64)
        self._offsets = np.array([s.offset for s in signals], dtype=np.float64)
        sizes = [s.samples_per_record for s in signals]
        self._record_length = int(sum(sizes))

        # Per-sample coefficients for a flat record
        self._record_gains = np.repeat(self._gains, sizes)
        self._record_offsets = np.repeat(self._offsets, sizes)

    @property
    def record_length(self) -> int:
        """Number of samples in one record."""
        return self._record_length

    def signal_to_physical(self, signal: int, digital: Numeric) -> Numeric:
        """Convert digital samples of one signal to physical values."""
        return digital_to_physical(
            digital, float(self._gains[signal]), float(self._offsets[signal])
        )

    def signal_to_digital(self, signal: int, physical: Numeric) -> Numeric:
        """Convert physical samples of one signal to digital values."""
        return physical_to_digital(
            physical, float(self._gains[signal]), float(self._offsets[signal])
        )

    def record_to_physical(self, record: np.ndarray) -> np.ndarray:
        """
        Convert a digital record to physical values.

        Args:
            record: Flat digital record

        Returns:
            float64 array of the same length
        """
        record = self._check_length(record)
        return record.astype(np.float64) * self._record_gains + self._record_offsets

    def record_to_digital(self, record: np.ndarray) -> np.ndarray:
        """
        Convert a physical record to digital values.

        Args:
            record: Flat physical record

        Returns:
            int32 array of the same length
        """
        record = self._check_length(record)
        scaled = (record.astype(np.float64) - self._record_offsets) / self._record_gains
        return np.trunc(scaled).astype(np.int32)

    def _check_length(self, record) -> np.ndarray:
        record = np.asarray(record)
        if len(record) != self._record_length:
            raise ValueError(
                f"Record length must be {self._record_length}, got {len(record)}"
            )
        return record
