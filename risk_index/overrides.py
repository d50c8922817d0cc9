"""
Deterministic severity overrides.

Applied after extraction and before relevance matching: when the
numeric input a rule needs is present, the rule decides the
severity; otherwise the extracted severity is kept. This removes
run-to-run drift in extracted severities.
"""

import logging
from typing import List, Optional, Sequence

from .assumptions import normalize_assumptions
from .types import Assumptions, RiskFinding, RiskSeverity, RiskType


logger = logging.getLogger(__name__)


def _tiered(value: float, high_at: float, medium_at: float) -> RiskSeverity:
    if value >= high_at:
        return RiskSeverity.HIGH
    if value >= medium_at:
        return RiskSeverity.MEDIUM
    return RiskSeverity.LOW


def override_severity(
    risk_type: RiskType,
    extracted: RiskSeverity,
    assumptions: Assumptions,
) -> RiskSeverity:
    """Severity dictated by the assumptions, or `extracted` when no rule applies."""
    if risk_type == RiskType.RENT_GROWTH_AGGRESSIVE:
        rent_growth = assumptions.value("rent_growth")
        if rent_growth is not None:
            return _tiered(rent_growth, 4.0, 3.0)

    elif risk_type == RiskType.VACANCY_UNDERSTATED:
        vacancy = assumptions.value("vacancy")
        if vacancy is not None:
            return _tiered(vacancy, 20.0, 10.0)

    elif risk_type in (RiskType.DEBT_COST_RISK, RiskType.REFI_RISK):
        ltv = assumptions.value("ltv")
        if ltv is not None:
            return _tiered(ltv, 75.0, 65.0)

    elif risk_type == RiskType.EXIT_CAP_COMPRESSION:
        exit_cap = assumptions.value("exit_cap")
        cap_rate_in = assumptions.value("cap_rate_in")
        if exit_cap is not None and cap_rate_in is not None:
            spread = cap_rate_in - exit_cap
            if spread > 0.5:
                return RiskSeverity.HIGH
            if spread > 0.25:
                return RiskSeverity.MEDIUM
            return RiskSeverity.LOW

    return extracted


def apply_severity_overrides(
    findings: Sequence[RiskFinding],
    assumptions: Optional[Assumptions],
) -> List[RiskFinding]:
    """
    Return findings with severity_current set by the override rules.

    The rules read severity_original, so applying them twice gives
    the same result.
    """
    assumptions = normalize_assumptions(assumptions or Assumptions())
    out = []
    for finding in findings:
        severity = override_severity(finding.risk_type, finding.severity_original, assumptions)
        if severity != finding.severity_current:
            logger.debug(
                f"Severity override {finding.risk_type.value}: "
                f"{finding.severity_current.value} -> {severity.value}"
            )
            finding = finding.with_severity(severity)
        out.append(finding)
    return out
