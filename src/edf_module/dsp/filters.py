"""
Per-sample digital filters for integer signal samples.

Provides stateful causal filters that are fed one sample at a time:
- Moving average over a fixed window
- Single-pole high-pass
"""

import math
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Optional, Sequence, Union

import numpy as np


class SignalFilter(ABC):
    """
    Base class for stateful per-sample filters.

    One instance belongs to one signal; its state carries across records.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short description appended to the prefiltering header field."""
        pass

    @abstractmethod
    def filter(self, value: int) -> int:
        """
        Filter one sample.

        Args:
            value: Digital input sample

        Returns:
            Digital output sample
        """
        pass

    def reset(self) -> None:
        """Reset filter state."""
        pass

    def process(self, samples: Union[Sequence[int], np.ndarray]) -> np.ndarray:
        """Filter a block of samples in order."""
        return np.array([self.filter(int(s)) for s in samples], dtype=np.int32)


def _trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // denominator
    return quotient if numerator >= 0 else -quotient


class MovingAverageFilter(SignalFilter):
    """
    Moving average over the last ``window`` samples.

    Outputs 0 until the window is full, then the integer mean of the
    window (truncated toward zero).
    """

    def __init__(self, window: int):
        """
        Initialize moving average.

        Args:
            window: Number of samples to average (>= 1)
        """
        if window < 1:
            raise ValueError(f"Window size must be >= 1, got {window}")
        self._window = window
        self._buffer: Deque[int] = deque(maxlen=window)
        self._sum = 0

    @property
    def window(self) -> int:
        """Get window size."""
        return self._window

    @property
    def name(self) -> str:
        return f"MovAvg:{self._window}"

    def filter(self, value: int) -> int:
        if len(self._buffer) == self._window:
            self._sum -= self._buffer[0]
        self._buffer.append(value)
        self._sum += value
        if len(self._buffer) < self._window:
            return 0
        return _trunc_div(self._sum, self._window)

    def reset(self) -> None:
        self._buffer.clear()
        self._sum = 0


class HighPassFilter(SignalFilter):
    """
    Single-pole RC high-pass filter.

    y[n] = a * (y[n-1] + x[n] - x[n-1]) with a = RC / (RC + dt),
    RC = 1 / (2 * pi * cutoff) and dt = 1 / sample_rate. The state is
    kept in floating point and each output is truncated to an integer.
    """

    def __init__(self, cutoff_hz: float, sample_rate: float):
        """
        Initialize high-pass filter.

        Args:
            cutoff_hz: -3 dB cutoff frequency in Hz
            sample_rate: Sample rate of the filtered signal in Hz
        """
        if cutoff_hz <= 0:
            raise ValueError(f"Cutoff frequency must be positive, got {cutoff_hz}")
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")

        self._cutoff = cutoff_hz
        self._sample_rate = sample_rate
        rc = 1.0 / (2 * math.pi * cutoff_hz)
        dt = 1.0 / sample_rate
        self._alpha = rc / (rc + dt)

        self._prev_input: Optional[int] = None
        self._prev_output = 0.0

    @property
    def cutoff(self) -> float:
        """Get cutoff frequency in Hz."""
        return self._cutoff

    @property
    def sample_rate(self) -> float:
        """Get sample rate in Hz."""
        return self._sample_rate

    @property
    def alpha(self) -> float:
        """Get filter coefficient."""
        return self._alpha

    @property
    def name(self) -> str:
        return f"HP:{self._cutoff:g}Hz"

    def filter(self, value: int) -> int:
        if self._prev_input is None:
            self._prev_input = value
        output = self._alpha * (self._prev_output + value - self._prev_input)
        self._prev_input = value
        self._prev_output = output
        return int(output)

    def reset(self) -> None:
        self._prev_input = None
        self._prev_output = 0.0
