"""Tests for per-sample signal filters."""

import math

import numpy as np
import pytest

from edf_module.dsp.filters import HighPassFilter, MovingAverageFilter


class TestMovingAverageFilter:
    """Test moving average filter."""

    def test_warm_up(self):
        """Test output is zero until the window is full."""
        ma = MovingAverageFilter(10)
        outputs = [ma.filter(100) for _ in range(10)]
        assert outputs[:9] == [0] * 9
        assert outputs[9] == 100

    def test_ramp(self):
        """Test mean over a sliding window truncates toward zero."""
        ma = MovingAverageFilter(10)
        outputs = [ma.filter(v) for v in range(20)]
        assert outputs[9] == 4  # mean(0..9) = 4.5
        assert outputs[10] == 5  # mean(1..10) = 5.5
        assert outputs[19] == 14  # mean(10..19) = 14.5

    def test_negative_truncation(self):
        """Test negative means truncate toward zero."""
        ma = MovingAverageFilter(2)
        ma.filter(-1)
        assert ma.filter(-2) == -1

    def test_window_one(self):
        """Test window of one passes samples through."""
        ma = MovingAverageFilter(1)
        assert [ma.filter(v) for v in [3, -7, 11]] == [3, -7, 11]

    def test_reset(self):
        """Test reset restarts the warm-up."""
        ma = MovingAverageFilter(3)
        for v in [9, 9, 9]:
            ma.filter(v)
        ma.reset()
        assert ma.filter(9) == 0

    def test_name(self):
        """Test filter description."""
        assert MovingAverageFilter(10).name == "MovAvg:10"

    def test_invalid_window(self):
        """Test non-positive window is rejected."""
        with pytest.raises(ValueError):
            MovingAverageFilter(0)

    def test_process_block(self):
        """Test block processing matches per-sample filtering."""
        samples = np.arange(-20, 20, 3)
        reference = MovingAverageFilter(4)
        per_sample = [reference.filter(int(s)) for s in samples]
        block = MovingAverageFilter(4).process(samples)
        assert block.dtype == np.int32
        np.testing.assert_array_equal(block, per_sample)


class TestHighPassFilter:
    """Test single-pole high-pass filter."""

    def test_coefficient(self):
        """Test coefficient from cutoff and sample rate."""
        hp = HighPassFilter(1.0, 100.0)
        rc = 1 / (2 * math.pi)
        assert hp.alpha == pytest.approx(rc / (rc + 0.01))

    def test_constant_input_removed(self):
        """Test DC input produces zero output."""
        hp = HighPassFilter(0.5, 256.0)
        assert [hp.filter(1000) for _ in range(50)] == [0] * 50

    def test_step_decays(self):
        """Test step response jumps then decays towards zero."""
        hp = HighPassFilter(5.0, 100.0)
        hp.filter(0)
        outputs = [hp.filter(10000) for _ in range(200)]
        assert outputs[0] == int(hp.alpha * 10000)
        assert all(a >= b for a, b in zip(outputs, outputs[1:]))
        assert outputs[-1] == 0

    def test_state_across_blocks(self):
        """Test state carries over between blocks."""
        samples = np.array([0, 500, 1000, 400, -300, 0, 200, 800])
        whole = HighPassFilter(2.0, 50.0).process(samples)
        split = HighPassFilter(2.0, 50.0)
        parts = np.concatenate([split.process(samples[:3]), split.process(samples[3:])])
        np.testing.assert_array_equal(whole, parts)

    def test_reset(self):
        """Test reset forgets previous input."""
        hp = HighPassFilter(1.0, 100.0)
        hp.filter(0)
        hp.reset()
        assert hp.filter(5000) == 0

    def test_name(self):
        """Test filter description."""
        assert HighPassFilter(0.5, 256).name == "HP:0.5Hz"
        assert HighPassFilter(1.0, 256).name == "HP:1Hz"

    def test_invalid_parameters(self):
        """Test non-positive cutoff or rate is rejected."""
        with pytest.raises(ValueError):
            HighPassFilter(0, 100)
        with pytest.raises(ValueError):
            HighPassFilter(1, 0)
