"""
Tests for exposure labeling, model governance and the explainability diff.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import UnknownModelVersionError
from risk_index import (
    CURRENT_MODEL_VERSION,
    ExposureBucket,
    RiskBand,
    RiskIndexEngine,
    RiskModelConfig,
    check_band_consistency,
    compute_explainability_diff,
    get_model_config,
    get_risk_model_metadata,
    label_exposure,
    purchase_price_percentile,
    register_model_config,
    registered_versions,
)
from risk_index.exposure import HIGH_IMPACT_RISK, is_stale


NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# EXPOSURE
# ============================================================

class TestExposure:
    """Portfolio-relative size labels never change score or band."""

    def test_percentile_nearest_rank(self):
        assert purchase_price_percentile([10, 20, 30, 40, 50], 0.8) == 40
        assert purchase_price_percentile([50, 10, None, 0, 30], 0.5) == 30

    def test_percentile_of_empty_portfolio(self):
        assert purchase_price_percentile([]) is None
        assert purchase_price_percentile([None, 0, -5]) is None

    def test_large_elevated_deal_gets_alert(self):
        result = RiskIndexEngine().score([], macro_linked_count=0)
        labeled = label_exposure(result.breakdown, RiskBand.ELEVATED, 60_000_000, 40_000_000)

        assert labeled.exposure_bucket == ExposureBucket.HIGH
        assert labeled.alert_tags == [HIGH_IMPACT_RISK]
        assert labeled.to_dict()["exposure_bucket"] == "High"
        assert labeled.structural_weight == result.breakdown.structural_weight

    def test_large_low_risk_deal_has_no_alert(self):
        breakdown = RiskIndexEngine().score([]).breakdown
        labeled = label_exposure(breakdown, RiskBand.MODERATE, 60_000_000, 40_000_000)

        assert labeled.exposure_bucket == ExposureBucket.HIGH
        assert labeled.alert_tags == []

    def test_missing_price_is_normal(self):
        breakdown = RiskIndexEngine().score([]).breakdown
        labeled = label_exposure(breakdown, RiskBand.HIGH, None, 40_000_000)

        assert labeled.exposure_bucket == ExposureBucket.NORMAL

    def test_relabeling_does_not_duplicate_alert(self):
        breakdown = RiskIndexEngine().score([]).breakdown
        once = label_exposure(breakdown, RiskBand.HIGH, 5, 1)
        twice = label_exposure(once, RiskBand.HIGH, 5, 1)

        assert twice.alert_tags == [HIGH_IMPACT_RISK]

    def test_stale_scan(self):
        assert is_stale(NOW - timedelta(days=31), 30, NOW)
        assert not is_stale(NOW - timedelta(days=29), 30, NOW)
        assert not is_stale(None, 30, NOW)
        # Naive timestamps are read as UTC
        assert is_stale(datetime(2025, 1, 1), 30, NOW)


# ============================================================
# GOVERNANCE
# ============================================================

class TestGovernance:
    """Registry, metadata and band consistency."""

    def test_current_version_is_registered(self):
        assert CURRENT_MODEL_VERSION in registered_versions()
        assert get_model_config().model_version == CURRENT_MODEL_VERSION

    def test_unknown_version_raises(self):
        with pytest.raises(UnknownModelVersionError):
            get_model_config("0.1")

    def test_registered_version_is_immutable(self):
        changed = RiskModelConfig(locked_at="2030-01-01")
        with pytest.raises(ValueError):
            register_model_config(changed)

    def test_reregistering_identical_config_is_noop(self):
        assert register_model_config(RiskModelConfig()) is get_model_config()

    def test_metadata_reflects_config(self):
        meta = get_risk_model_metadata()

        assert meta["version"] == "2.0"
        assert meta["macro_cap"] == 3.0
        assert meta["stabilizer_cap"] == 20.0
        assert meta["bands"]["Moderate"] == [35, 54]
        assert "RefiRisk" in meta["structural_risk_types"]

    def test_band_consistency(self):
        assert not check_band_consistency(58, "Elevated", "2.0").mismatch

        result = check_band_consistency(58, "Moderate", "2.0")
        assert result.mismatch
        assert result.expected_band == RiskBand.ELEVATED

    def test_band_consistency_skips_unregistered_version(self):
        assert not check_band_consistency(58, "Low", "1.9").mismatch
        assert not check_band_consistency(None, "Low", "2.0").mismatch


# ============================================================
# EXPLAINABILITY DIFF
# ============================================================

class TestExplainabilityDiff:

    LATEST = {
        "delta_comparable": True,
        "contributions": [
            {"driver": "leverage", "points": 16.67},
            {"driver": "macro", "points": 2.0},
        ],
    }
    PREVIOUS = {
        "contributions": [
            {"driver": "leverage", "points": 8.0},
            {"driver": "stabilizers", "points": -4.0},
        ],
    }

    def test_diff_sorted_by_absolute_change(self):
        deltas = compute_explainability_diff(self.LATEST, self.PREVIOUS)

        assert [d.driver for d in deltas] == ["leverage", "stabilizers", "macro"]
        assert deltas[0].delta_points == pytest.approx(8.67)
        assert deltas[1].delta_points == pytest.approx(4.0)

    def test_not_comparable_yields_empty(self):
        latest = dict(self.LATEST, delta_comparable=False)
        assert compute_explainability_diff(latest, self.PREVIOUS) == []

    def test_explicit_flag_wins_over_stored_flag(self):
        assert compute_explainability_diff(self.LATEST, self.PREVIOUS, delta_comparable=False) == []

    def test_missing_contributions_yield_empty(self):
        assert compute_explainability_diff(self.LATEST, {}) == []
        assert compute_explainability_diff(None, self.PREVIOUS, delta_comparable=True) == []
