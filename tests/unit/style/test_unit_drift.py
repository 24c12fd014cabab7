# tests/unit/style/test_unit_drift.py - v1
"""Tests for style/drift.py - golden-sample anchored drift detection."""

from __future__ import annotations

import numpy as np
import pytest

from draftsmith.core.models import StyleParameters
from draftsmith.style.drift import check_drift, normalized_vector


class TestNormalizedVector:
    def test_range_normalized(self):
        vector = normalized_vector(StyleParameters(tone=10.0, bullet_ratio=0.0))
        assert vector.dtype == np.float64
        assert vector[0] == 1.0
        assert vector[3] == 0.0
        assert np.all((vector >= 0) & (vector <= 1))


class TestCheckDrift:
    def test_no_golden_samples_means_no_check(self):
        result = check_drift(StyleParameters(), [])
        assert result.distance is None
        assert result.recalibration_needed is False

    def test_identical_profile_has_zero_distance(self):
        golden = [StyleParameters(tone=6.0), StyleParameters(tone=6.0)]
        result = check_drift(StyleParameters(tone=6.0), golden)
        assert result.distance == pytest.approx(0.0)
        assert not result.recalibration_needed

    def test_far_profile_is_flagged(self):
        golden = [StyleParameters(tone=9.0, technical_depth=9.0)] * 3
        learned = StyleParameters(tone=1.0, technical_depth=1.0)
        result = check_drift(learned, golden)
        assert result.distance > 2.0
        assert result.recalibration_needed
        assert result.z_scores["tone"] < 0

    def test_std_floor_prevents_division_by_zero(self):
        golden = [StyleParameters()] * 2
        result = check_drift(StyleParameters(tone=5.45), golden)
        # 0.45 / 9 range = 0.05 normalized, floor 0.05 -> z = 1 on one of six dimensions
        assert result.z_scores["tone"] == pytest.approx(1.0)
        assert result.distance == pytest.approx((1 / 6) ** 0.5)

    def test_golden_mean_in_natural_units(self):
        golden = [StyleParameters(tone=4.0), StyleParameters(tone=8.0)]
        assert check_drift(StyleParameters(), golden).golden_mean["tone"] == pytest.approx(6.0)

    def test_custom_sigma(self):
        golden = [StyleParameters()] * 2
        result = check_drift(StyleParameters(tone=5.45), golden, sigma=0.1)
        assert result.recalibration_needed
