"""
DSP module - Record pipeline stages and per-sample filters.
"""

from .filters import HighPassFilter, MovingAverageFilter, SignalFilter
from .pipeline import RecordFilter, RecordsJoiner, SignalsFilter, SignalsSelector

__all__ = [
    "SignalFilter",
    "MovingAverageFilter",
    "HighPassFilter",
    "RecordFilter",
    "RecordsJoiner",
    "SignalsSelector",
    "SignalsFilter",
]
