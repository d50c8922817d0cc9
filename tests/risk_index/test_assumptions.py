"""
Tests for assumption normalization, validation and severity overrides.
"""

import pytest

from risk_index import (
    Assumptions,
    RiskFinding,
    RiskSeverity,
    RiskType,
    apply_severity_overrides,
    compute_assumption_completeness,
    has_missing_critical_inputs,
    normalize_assumptions,
    override_severity,
    validate_assumption_ranges,
)
from risk_index.assumptions import normalize_percent_value


# ============================================================
# NORMALIZATION
# ============================================================

class TestNormalization:
    """Percent-like keys are scored on a 0-100 scale."""

    def test_fraction_without_unit_is_inferred(self):
        assert normalize_percent_value("ltv", 0.72) == (pytest.approx(72.0), True)

    def test_fraction_with_percent_unit_is_scaled_not_inferred(self):
        assert normalize_percent_value("vacancy", 0.05, "percent") == (pytest.approx(5.0), False)

    def test_percent_value_is_kept(self):
        assert normalize_percent_value("ltv", 72, "%") == (72, False)

    def test_non_percent_key_is_untouched(self):
        assert normalize_percent_value("noi_year1", 0.5) == (0.5, False)

    def test_none_passes_through(self):
        assert normalize_percent_value("ltv", None) == (None, False)

    def test_normalize_is_idempotent(self):
        raw = Assumptions.from_dict({
            "ltv": {"value": 0.65},
            "vacancy": {"value": 8, "unit": "percent"},
        })
        once = normalize_assumptions(raw)
        twice = normalize_assumptions(once)

        assert once.unit_inferred is True
        assert once.value("ltv") == pytest.approx(65.0)
        assert once.cells["ltv"].unit == "percent"
        assert twice is once

    def test_from_dict_ignores_malformed_cells(self):
        assumptions = Assumptions.from_dict({
            "ltv": "70",
            "vacancy": {"value": "high"},
            "exit_cap": {"value": True},
            "debt_rate": {"value": 6.5, "confidence": "medium"},
        })

        assert "ltv" not in assumptions.cells
        assert assumptions.value("vacancy") is None
        assert assumptions.value("exit_cap") is None
        assert assumptions.value("debt_rate") == 6.5
        assert assumptions.cells["debt_rate"].confidence.value == "Medium"


# ============================================================
# VALIDATION
# ============================================================

class TestValidation:
    """Out-of-range values are dropped and reported, never raised."""

    def test_out_of_range_value_is_dropped(self):
        assumptions = normalize_assumptions(Assumptions.from_dict({
            "ltv": {"value": 140, "unit": "percent"},
            "vacancy": {"value": 10, "unit": "percent"},
        }))
        result = validate_assumption_ranges(assumptions)

        assert not result.valid
        assert not result.severe
        assert result.assumptions.value("ltv") is None
        assert result.assumptions.value("vacancy") == 10
        assert result.error_messages == ["ltv=140 outside [0, 100]"]

    def test_two_errors_are_severe(self):
        assumptions = Assumptions.from_dict({
            "ltv": {"value": 140, "unit": "percent"},
            "rent_growth": {"value": -25, "unit": "percent"},
        })
        result = validate_assumption_ranges(normalize_assumptions(assumptions))

        assert result.severe

    def test_valid_assumptions_returned_unchanged(self):
        assumptions = Assumptions.from_dict({"ltv": {"value": 60, "unit": "percent"}})
        result = validate_assumption_ranges(assumptions)

        assert result.valid
        assert result.assumptions is assumptions


class TestCompleteness:

    def test_completeness_percentage(self):
        assumptions = Assumptions.from_dict({
            "cap_rate_in": {"value": 5.5},
            "exit_cap": {"value": 6.0},
            "ltv": {"value": 65},
            "vacancy": {"value": None},
        })
        completeness = compute_assumption_completeness(assumptions)

        assert completeness.pct == 38
        assert "vacancy" in completeness.missing
        assert completeness.present == ["cap_rate_in", "exit_cap", "ltv"]

    def test_missing_critical_inputs(self):
        partial = Assumptions.from_dict({"expense_growth": {"value": 3}})
        full = Assumptions.from_dict({"expense_growth": {"value": 3}, "debt_rate": {"value": 6}})

        assert has_missing_critical_inputs(partial)
        assert not has_missing_critical_inputs(full)


# ============================================================
# SEVERITY OVERRIDES
# ============================================================

class TestSeverityOverrides:
    """Numeric inputs decide severity when present."""

    @pytest.mark.parametrize("ltv,expected", [
        (80, RiskSeverity.HIGH),
        (75, RiskSeverity.HIGH),
        (70, RiskSeverity.MEDIUM),
        (50, RiskSeverity.LOW),
    ])
    def test_refi_risk_by_ltv(self, ltv, expected):
        assumptions = Assumptions.from_dict({"ltv": {"value": ltv, "unit": "percent"}})
        assert override_severity(RiskType.REFI_RISK, RiskSeverity.LOW, assumptions) == expected

    def test_vacancy_understated_by_vacancy(self):
        assumptions = Assumptions.from_dict({"vacancy": {"value": 12, "unit": "percent"}})
        assert override_severity(
            RiskType.VACANCY_UNDERSTATED, RiskSeverity.HIGH, assumptions
        ) == RiskSeverity.MEDIUM

    def test_exit_cap_spread(self):
        assumptions = Assumptions.from_dict({
            "cap_rate_in": {"value": 6.0, "unit": "percent"},
            "exit_cap": {"value": 5.7, "unit": "percent"},
        })
        assert override_severity(
            RiskType.EXIT_CAP_COMPRESSION, RiskSeverity.LOW, assumptions
        ) == RiskSeverity.MEDIUM

    def test_missing_input_keeps_extracted_severity(self):
        assert override_severity(
            RiskType.REFI_RISK, RiskSeverity.MEDIUM, Assumptions()
        ) == RiskSeverity.MEDIUM

    def test_unruled_type_keeps_extracted_severity(self):
        assumptions = Assumptions.from_dict({"ltv": {"value": 90}})
        assert override_severity(
            RiskType.INSURANCE_RISK, RiskSeverity.LOW, assumptions
        ) == RiskSeverity.LOW

    def test_fractional_ltv_is_normalized_before_override(self):
        findings = [RiskFinding.create(RiskType.DEBT_COST_RISK, RiskSeverity.LOW)]
        assumptions = Assumptions.from_dict({"ltv": {"value": 0.8}})

        out = apply_severity_overrides(findings, assumptions)

        assert out[0].severity_current == RiskSeverity.HIGH
        assert out[0].severity_original == RiskSeverity.LOW

    def test_overrides_are_idempotent(self):
        findings = [
            RiskFinding.create(RiskType.REFI_RISK, RiskSeverity.LOW),
            RiskFinding.create(RiskType.MARKET_LIQUIDITY_RISK, RiskSeverity.MEDIUM),
        ]
        assumptions = Assumptions.from_dict({"ltv": {"value": 78, "unit": "percent"}})

        once = apply_severity_overrides(findings, assumptions)
        twice = apply_severity_overrides(once, assumptions)

        assert once == twice
        assert [f.severity_current for f in once] == [RiskSeverity.HIGH, RiskSeverity.MEDIUM]

    def test_none_assumptions_accepted(self):
        findings = [RiskFinding.create(RiskType.REFI_RISK, RiskSeverity.MEDIUM)]
        assert apply_severity_overrides(findings, None) == findings
