"""
Utility functions and helpers.
"""

from .conversions import PhysicalDigitalConverter, digital_to_physical, physical_to_digital
from .endian import int_to_le_bytes, ints_to_le_bytes, le_bytes_to_int, le_bytes_to_ints

__all__ = [
    "digital_to_physical",
    "physical_to_digital",
    "PhysicalDigitalConverter",
    "int_to_le_bytes",
    "le_bytes_to_int",
    "ints_to_le_bytes",
    "le_bytes_to_ints",
]
