"""Tests for physical/digital scaling."""

import numpy as np
import pytest

from edf_module.core.config import RecordingConfig, SignalConfig
from edf_module.utils.conversions import (
    PhysicalDigitalConverter,
    digital_to_physical,
    gain,
    offset,
    physical_to_digital,
)


def make_config():
    return RecordingConfig(
        signals=[
            SignalConfig(
                label="EEG",
                physical_min=-3200.0,
                physical_max=3200.0,
                digital_min=-32768,
                digital_max=32767,
                samples_per_record=4,
            ),
            SignalConfig(
                label="Temp",
                physical_min=0.0,
                physical_max=64.0,
                digital_min=0,
                digital_max=256,
                samples_per_record=2,
            ),
        ]
    )


class TestScaling:
    """Test gain and offset arithmetic."""

    def test_gain(self):
        """Test gain is physical span over digital span."""
        assert gain(0.0, 50.0, 0, 500) == pytest.approx(0.1)
        assert gain(-1.0, 1.0, -1, 1) == pytest.approx(1.0)

    def test_offset(self):
        """Test offset maps digital_min onto physical_min."""
        assert offset(0.0, 50.0, 0, 500) == pytest.approx(0.0)
        assert offset(10.0, 20.0, 0, 10) == pytest.approx(10.0)

    def test_range_endpoints(self):
        """Test digital extremes map onto physical extremes."""
        g = gain(-3200.0, 3200.0, -32768, 32767)
        o = offset(-3200.0, 3200.0, -32768, 32767)
        assert digital_to_physical(-32768, g, o) == pytest.approx(-3200.0)
        assert digital_to_physical(32767, g, o) == pytest.approx(3200.0)

    def test_digital_zero_near_physical_zero(self):
        """Test symmetric ranges put digital zero within half a step of zero."""
        g = gain(-3200.0, 3200.0, -32768, 32767)
        o = offset(-3200.0, 3200.0, -32768, 32767)
        assert abs(digital_to_physical(0, g, o)) <= g / 2 + 1e-9

    def test_physical_to_digital_truncates(self):
        """Test conversion truncates toward zero."""
        assert physical_to_digital(2.9, 1.0, 0.0) == 2
        assert physical_to_digital(-2.9, 1.0, 0.0) == -2
        result = physical_to_digital(np.array([2.9, -2.9]), 1.0, 0.0)
        np.testing.assert_array_equal(result, [2, -2])
        assert result.dtype == np.int32

    def test_roundtrip_within_one_step(self):
        """Test digital -> physical -> digital stays within one step."""
        g = gain(-3200.0, 3200.0, -32768, 32767)
        o = offset(-3200.0, 3200.0, -32768, 32767)
        digital = np.arange(-32768, 32768, 97)
        back = physical_to_digital(digital_to_physical(digital, g, o), g, o)
        assert np.max(np.abs(back - digital)) <= 1


class TestPhysicalDigitalConverter:
    """Test record-level conversion."""

    def test_record_length(self):
        """Test converter knows the record length."""
        converter = PhysicalDigitalConverter(make_config())
        assert converter.record_length == 6

    def test_record_to_physical(self):
        """Test each slot uses its own signal scaling."""
        converter = PhysicalDigitalConverter(make_config())
        record = np.array([-32768, 32767, -32768, 32767, 0, 256])
        physical = converter.record_to_physical(record)
        np.testing.assert_allclose(
            physical, [-3200.0, 3200.0, -3200.0, 3200.0, 0.0, 64.0]
        )

    def test_record_to_digital(self):
        """Test physical record conversion."""
        converter = PhysicalDigitalConverter(make_config())
        physical = np.array([-3200.0, 3200.0, -3200.0, 3200.0, 25.0, 64.0])
        digital = converter.record_to_digital(physical)
        assert digital.dtype == np.int32
        assert abs(digital[0] + 32768) <= 1
        assert abs(digital[1] - 32767) <= 1
        assert digital[4] == 100
        assert digital[5] == 256

    def test_signal_conversion(self):
        """Test per-signal conversion."""
        converter = PhysicalDigitalConverter(make_config())
        assert converter.signal_to_physical(1, 100) == pytest.approx(25.0)
        assert converter.signal_to_digital(1, 25.0) == 100

    def test_wrong_record_length(self):
        """Test records of the wrong length are rejected."""
        converter = PhysicalDigitalConverter(make_config())
        with pytest.raises(ValueError):
            converter.record_to_physical(np.zeros(5))

    def test_config_changes_ignored(self):
        """Test converter captures scaling at construction."""
        config = make_config()
        converter = PhysicalDigitalConverter(config)
        config.signals[1].physical_max = 100.0
        assert converter.signal_to_physical(1, 256) == pytest.approx(64.0)

    def test_16bit_full_scale_100(self):
        """Test +/-100 over the 16-bit range stays within one step."""
        g = gain(-100.0, 100.0, -32768, 32767)
        o = offset(-100.0, 100.0, -32768, 32767)
        assert abs(digital_to_physical(32767, g, o) - 100.0) <= g
        assert abs(digital_to_physical(0, g, o)) <= g / 2 + 1e-9
