"""
Risk Index Engine - Penalty and Stabilizer Assessors.

============================================================
PURPOSE
============================================================
Each function here evaluates ONE scoring input against the
model configuration and returns points (plus any band floor
it imposes). The engine combines them; nothing here knows
about the final score.

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions of (input, config)
- Missing assumption values mean "does not apply"
- Never raise for out-of-range numbers

============================================================
"""

from dataclasses import dataclass
from typing import List, Optional

from .config import RiskModelConfig
from .types import Assumptions, PointItem, RiskBand, RiskFinding, RiskType


# ============================================================
# RESULT TYPES
# ============================================================


@dataclass(frozen=True)
class RampResult:
    """Points from an assumption-driven ramp and the band floor it forces."""

    points: float = 0.0
    floor: Optional[RiskBand] = None
    tier_driver: Optional[str] = None
    metric: Optional[float] = None


# ============================================================
# FINDINGS
# ============================================================


def driver_for(risk_type: RiskType) -> str:
    """Explainability driver a finding's points are reported under."""
    if risk_type in (RiskType.DEBT_COST_RISK, RiskType.REFI_RISK):
        return "leverage"
    if risk_type == RiskType.VACANCY_UNDERSTATED:
        return "vacancy"
    if risk_type == RiskType.EXIT_CAP_COMPRESSION:
        return "compression"
    if risk_type in (RiskType.DATA_MISSING, RiskType.EXPENSE_UNDERSTATED):
        return "missing"
    return "market"


def finding_points(
    finding: RiskFinding,
    assumptions: Assumptions,
    config: RiskModelConfig,
) -> float:
    """
    Raw points for one finding: severity points x confidence
    factor, capped per type.
    """
    rules = config.finding_rules
    conf = config.confidence_factors.factor_for(finding.confidence)
    sev_points = config.severity_points.points_for(finding.severity_current)
    weighted = sev_points * conf

    if finding.risk_type == RiskType.DATA_MISSING:
        return min(weighted, rules.data_missing_cap)

    if finding.risk_type == RiskType.EXPENSE_UNDERSTATED:
        if assumptions.value("expense_growth") is None:
            return min(weighted, rules.expense_understated_cap)
        return 0.0

    if finding.risk_type == RiskType.DEBT_COST_RISK:
        ltv = assumptions.value("ltv")
        if (
            assumptions.value("debt_rate") is None
            and ltv is not None
            and ltv > rules.debt_cost_missing_rate_min_ltv
        ):
            points = rules.debt_cost_missing_rate_points
            return min(points * conf, points)
        return min(weighted, rules.default_cap)

    if finding.risk_type == RiskType.EXIT_CAP_COMPRESSION:
        exit_cap = assumptions.value("exit_cap")
        cap_rate_in = assumptions.value("cap_rate_in")
        if (
            exit_cap is not None
            and cap_rate_in is not None
            and cap_rate_in - exit_cap > rules.exit_cap_compression_min_spread
        ):
            return min(weighted, rules.exit_cap_compression_cap)
        return 0.0

    return min(weighted, rules.default_cap)


# ============================================================
# STABILIZERS
# ============================================================


def compute_stabilizers(assumptions: Assumptions, config: RiskModelConfig) -> List[PointItem]:
    """
    Stabilizers that apply, as negative point items.

    Total benefit is capped; items past the cap are trimmed.
    """
    cfg = config.stabilizers
    items: List[PointItem] = []

    ltv = assumptions.value("ltv")
    if ltv is not None:
        if ltv <= cfg.low_ltv_max:
            items.append(PointItem("low_ltv", -cfg.low_ltv_points))
        elif ltv <= cfg.moderate_ltv_max:
            items.append(PointItem("moderate_ltv", -cfg.moderate_ltv_points))

    exit_cap = assumptions.value("exit_cap")
    cap_rate_in = assumptions.value("cap_rate_in")
    if exit_cap is not None and cap_rate_in is not None and exit_cap >= cap_rate_in:
        items.append(PointItem("exit_cap_at_or_above_entry", -cfg.exit_cap_at_or_above_entry_points))

    capped: List[PointItem] = []
    remaining = cfg.total_cap
    for item in items:
        benefit = min(-item.points, remaining)
        if benefit <= 0:
            break
        capped.append(PointItem(item.name, -benefit))
        remaining -= benefit
    return capped


# ============================================================
# ASSUMPTION RAMPS
# ============================================================


def exit_cap_compression(assumptions: Assumptions, config: RiskModelConfig) -> RampResult:
    """Compression = cap_rate_in - exit_cap when the exit cap is lower."""
    ramps = config.ramps
    exit_cap = assumptions.value("exit_cap")
    cap_rate_in = assumptions.value("cap_rate_in")
    if exit_cap is None or cap_rate_in is None or exit_cap >= cap_rate_in:
        return RampResult()

    compression = cap_rate_in - exit_cap
    if compression < ramps.compression_start:
        points = 0.0
    elif compression >= ramps.compression_full:
        points = ramps.compression_max_points
    else:
        span = ramps.compression_full - ramps.compression_start
        points = ramps.compression_min_points + (
            (compression - ramps.compression_start) / span
        ) * (ramps.compression_max_points - ramps.compression_min_points)

    if compression >= ramps.compression_floor_elevated:
        return RampResult(points, RiskBand.ELEVATED, "FORCED_ELEVATED_EXIT_CAP_COMPRESSION", compression)
    return RampResult(points, metric=compression)


def ltv_vacancy_interaction(assumptions: Assumptions, config: RiskModelConfig) -> RampResult:
    ramps = config.ramps
    ltv = assumptions.value("ltv")
    vacancy = assumptions.value("vacancy")
    if ltv is None or vacancy is None:
        return RampResult()

    if ltv >= ramps.ltv_vacancy_high_ltv and vacancy >= ramps.ltv_vacancy_high_vacancy:
        return RampResult(ramps.ltv_vacancy_high_points, RiskBand.HIGH, "FORCED_HIGH_LTV_VACANCY")
    if ltv >= ramps.ltv_vacancy_elevated_ltv and vacancy >= ramps.ltv_vacancy_elevated_vacancy:
        return RampResult(ramps.ltv_vacancy_elevated_points, RiskBand.ELEVATED, "FORCED_ELEVATED_LTV_VACANCY")
    if ltv >= ramps.ltv_vacancy_mild_ltv and vacancy >= ramps.ltv_vacancy_mild_vacancy:
        # Distance into the zone, averaged over both axes
        ltv_span = ramps.ltv_vacancy_high_ltv - ramps.ltv_vacancy_mild_ltv
        vacancy_span = ramps.ltv_vacancy_high_vacancy - ramps.ltv_vacancy_mild_vacancy
        dist = min(1.0, (
            (ltv - ramps.ltv_vacancy_mild_ltv) / ltv_span
            + (vacancy - ramps.ltv_vacancy_mild_vacancy) / vacancy_span
        ) / 2)
        extra = int(dist * ramps.ltv_vacancy_mild_extra_points + 0.5)
        return RampResult(ramps.ltv_vacancy_mild_base_points + extra)
    return RampResult()


def compute_dscr(assumptions: Assumptions) -> Optional[float]:
    """NOI over interest-only debt service; None when any input is missing."""
    purchase_price = assumptions.value("purchase_price")
    noi = assumptions.value("noi_year1")
    ltv = assumptions.value("ltv")
    debt_rate = assumptions.value("debt_rate")
    if purchase_price is None or purchase_price <= 0 or noi is None or ltv is None or debt_rate is None:
        return None
    debt_service = (ltv / 100) * purchase_price * (debt_rate / 100)
    if debt_service <= 0:
        return None
    return noi / debt_service


def dscr_penalty(assumptions: Assumptions, config: RiskModelConfig) -> RampResult:
    ramps = config.ramps
    dscr = compute_dscr(assumptions)
    if dscr is None:
        return RampResult()

    if dscr >= ramps.dscr_safe:
        points = 0.0
    elif dscr <= ramps.dscr_distressed:
        points = ramps.dscr_max_points
    else:
        points = (ramps.dscr_safe - dscr) / (ramps.dscr_safe - ramps.dscr_distressed) * ramps.dscr_max_points

    if dscr < ramps.dscr_floor_elevated:
        return RampResult(points, RiskBand.ELEVATED, "FORCED_ELEVATED_DSCR", dscr)
    return RampResult(points, metric=dscr)


def macro_penalty(
    macro_linked_count: int,
    macro_decayed_weight: Optional[float],
    config: RiskModelConfig,
) -> float:
    """
    Capped macro adjustment.

    The decayed weight replaces the category count when supplied.
    """
    if macro_decayed_weight is not None:
        raw = macro_decayed_weight
    else:
        raw = max(0, macro_linked_count) * config.macro.points_per_category
    return min(config.macro.penalty_cap, max(0.0, raw))
