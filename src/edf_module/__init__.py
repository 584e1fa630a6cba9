"""
EDF Module - EDF/BDF Multichannel Recording Library

Reads and writes multichannel time-series recordings in the European Data
Format (16-bit samples) and its BioSemi 24-bit variant (BDF).

Core:
    - EdfReader: record and per-signal sample access with independent cursors
    - EdfFileWriter: streaming writer that finalizes the header on close
    - RecordingConfig / SignalConfig: header contents and record layout

Pipeline:
    Stages wrap a downstream sink and transform every record before
    forwarding it. See edf_module.dsp for the available stages and filters.
"""

__version__ = "0.1.0"
__author__ = "EDF Module Team"

from .core.config import RecordingConfig, RecordLayout, SignalConfig
from .core.errors import (
    ConfigValidationError,
    EdfError,
    EdfIOError,
    HeaderParsingError,
    UsageError,
)
from .core.header import FileType
from .core.reader import EdfReader, load_edf_file
from .core.writer import EdfFileWriter, RecordSink, WriterState, save_edf_file

# Record pipeline
from .dsp import (
    HighPassFilter,
    MovingAverageFilter,
    RecordFilter,
    RecordsJoiner,
    SignalFilter,
    SignalsFilter,
    SignalsSelector,
)

__all__ = [
    # Core
    "RecordingConfig",
    "RecordLayout",
    "SignalConfig",
    "FileType",
    "EdfReader",
    "EdfFileWriter",
    "RecordSink",
    "WriterState",
    "load_edf_file",
    "save_edf_file",
    # Errors
    "EdfError",
    "ConfigValidationError",
    "HeaderParsingError",
    "EdfIOError",
    "UsageError",
    # Record pipeline
    "RecordFilter",
    "RecordsJoiner",
    "SignalsSelector",
    "SignalsFilter",
    "SignalFilter",
    "MovingAverageFilter",
    "HighPassFilter",
]
