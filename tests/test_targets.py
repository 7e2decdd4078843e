"""
Tests for mourne_metrics/domain/targets.py
"""

import pytest

from mourne_metrics.domain.models import MetricStatus
from mourne_metrics.domain.targets import (
    DEFAULT_TARGETS,
    FALLBACK_TARGETS,
    status_abs_lower_better,
    status_higher_better,
    status_lower_better,
    targets_for_store,
)


class TestStoreTargets:

    def test_every_store_has_targets(self):
        assert set(DEFAULT_TARGETS) == {"Downpatrick", "Kilkeel", "Newcastle", "Ballynahinch"}

    def test_downpatrick_is_stricter(self):
        t = targets_for_store("Downpatrick")
        assert t.dot_min == pytest.approx(0.82)
        assert t.extremes_max == pytest.approx(0.03)

    def test_unknown_store_falls_back(self):
        assert targets_for_store("Belfast") == FALLBACK_TARGETS

    def test_extremes_override(self):
        t = targets_for_store("Kilkeel", extremes_override=0.05)
        assert t.extremes_max == pytest.approx(0.05)
        assert t.rnl_max_minutes == DEFAULT_TARGETS["Kilkeel"].rnl_max_minutes


class TestStatus:

    def test_higher_better(self):
        assert status_higher_better(0.85, 0.80) is MetricStatus.GOOD
        assert status_higher_better(0.801, 0.80) is MetricStatus.OK
        assert status_higher_better(0.799, 0.80) is MetricStatus.OK
        assert status_higher_better(0.75, 0.80) is MetricStatus.BAD

    def test_lower_better(self):
        assert status_lower_better(0.22, 0.25) is MetricStatus.GOOD
        assert status_lower_better(0.251, 0.25) is MetricStatus.OK
        assert status_lower_better(0.30, 0.25) is MetricStatus.BAD

    def test_abs_lower_better(self):
        assert status_abs_lower_better(-0.0025, 0.003) is MetricStatus.OK
        assert status_abs_lower_better(-0.0005, 0.003) is MetricStatus.GOOD
        assert status_abs_lower_better(-0.01, 0.003) is MetricStatus.BAD

    def test_missing_is_na(self):
        assert status_higher_better(None, 0.8) is MetricStatus.NA
        assert status_lower_better(None, 0.25) is MetricStatus.NA
        assert status_abs_lower_better(None, 0.003) is MetricStatus.NA
