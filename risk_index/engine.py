"""
Risk Index Engine - Main Scorer.

============================================================
PURPOSE
============================================================
The RiskIndexEngine turns a scan's findings, assumptions and
macro exposure into a 0-100 score, a band and a breakdown.

It orchestrates:
1. Assumption normalization and range validation
2. Finding points, split structural vs market
3. Weighting, sub-scores and confidence factor
4. Macro, ramp and validation penalties; stabilizers
5. Clamping, rounding, band floors
6. Explainability and version-gated deltas

============================================================
DESIGN PRINCIPLES
============================================================
- Deterministic: same inputs, same model version, same score
- Never raises for documented input shapes; clamps instead
- Band is always a pure function of the final score
- Deltas are never computed across model versions

============================================================
USAGE
============================================================
    from risk_index import RiskIndexEngine

    engine = RiskIndexEngine()
    result = engine.score(
        findings,
        assumptions,
        macro_linked_count=2,
        previous_score=48,
        previous_model_version="2.0",
    )

    print(result.score, result.band.value)
    print(result.breakdown.to_dict())

============================================================
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from .assumptions import normalize_assumptions, validate_assumption_ranges
from .config import RiskModelConfig, get_model_config
from .penalties import (
    RampResult,
    compute_stabilizers,
    driver_for,
    dscr_penalty,
    exit_cap_compression,
    finding_points,
    ltv_vacancy_interaction,
    macro_penalty,
)
from .types import (
    Assumptions,
    PointItem,
    RiskBand,
    RiskFinding,
    RiskIndexBreakdown,
    RiskIndexResult,
)


logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RiskIndexEngine:
    """
    Scorer bound to one model configuration.

    The engine is stateless between calls; construct one per
    model version (or use score_risk_index for the current one).
    """

    def __init__(self, config: Optional[RiskModelConfig] = None):
        self.config = config or get_model_config()

    @property
    def model_version(self) -> str:
        return self.config.model_version

    # ============================================================
    # PUBLIC API
    # ============================================================

    def score(
        self,
        findings: Sequence[RiskFinding],
        assumptions: Optional[Assumptions] = None,
        macro_linked_count: int = 0,
        macro_decayed_weight: Optional[float] = None,
        previous_score: Optional[float] = None,
        previous_model_version: Optional[str] = None,
        edge_flags: Sequence[str] = (),
    ) -> RiskIndexResult:
        """
        Score one scan.

        Args:
            findings: Findings with their final severity_current
            assumptions: Raw or normalized assumptions
            macro_linked_count: Distinct linked macro categories
            macro_decayed_weight: Time-decayed macro weight, replaces
                the count when given
            previous_score: Score of the previous completed scan
            previous_model_version: Model version of that scan; None
                is treated as the current version
            edge_flags: Extra flags raised upstream (e.g. by macro
                exposure), copied into the breakdown

        Returns:
            RiskIndexResult
        """
        cfg = self.config
        blend = cfg.blend

        # --------------------------------------------------
        # Inputs
        # --------------------------------------------------
        normalized = normalize_assumptions(assumptions or Assumptions())
        validation = validate_assumption_ranges(
            normalized, severe_threshold=blend.severe_validation_error_count
        )
        values = validation.assumptions

        flags: List[str] = list(dict.fromkeys(edge_flags))
        tier_drivers: List[str] = []
        review_flag = bool(validation.errors)
        if normalized.unit_inferred:
            flags.append("EDGE_UNIT_INFERRED")
            review_flag = True

        # --------------------------------------------------
        # Findings
        # --------------------------------------------------
        scored: List[Tuple[RiskFinding, float, bool]] = []
        for finding in findings:
            points = finding_points(finding, values, cfg)
            scored.append((finding, points, cfg.finding_rules.is_structural(finding.risk_type)))

        structural_points = sum(p for _, p, s in scored if s)
        market_points = sum(p for _, p, s in scored if not s)
        structural_count = sum(1 for _, _, s in scored if s)

        # More structural findings shift weight toward the structural side;
        # one pseudo-finding per side keeps an empty scan at 50/50.
        structural_weight = (structural_count + 1) / (len(scored) + 2)
        market_weight = 1.0 - structural_weight

        structural_subscore = 100.0 * min(1.0, structural_points / blend.structural_saturation)
        market_subscore = 100.0 * min(1.0, market_points / blend.market_saturation)

        confidence_factor = self._confidence_factor(findings, values)
        if confidence_factor < blend.review_confidence_threshold:
            review_flag = True

        scale = blend.risk_component_scale * confidence_factor
        structural_component = structural_weight * structural_subscore * scale
        market_component = market_weight * market_subscore * scale

        # --------------------------------------------------
        # Penalties and stabilizers
        # --------------------------------------------------
        macro = macro_penalty(macro_linked_count, macro_decayed_weight, cfg)
        compression = exit_cap_compression(values, cfg)
        ltv_vacancy = ltv_vacancy_interaction(values, cfg)
        dscr = dscr_penalty(values, cfg)

        extreme_vacancy = 0.0
        vacancy = values.value("vacancy")
        if vacancy is not None and vacancy > cfg.ramps.vacancy_extreme:
            flags.append("EDGE_VACANCY_EXTREME")
            extreme_vacancy = cfg.ramps.vacancy_extreme_points

        validation_points = blend.validation_penalty if validation.errors else 0.0

        candidates = [
            ("structural_risk", structural_component),
            ("market_risk", market_component),
            ("macro_exposure", macro),
            ("exit_cap_compression", compression.points),
            ("ltv_vacancy_interaction", ltv_vacancy.points),
            ("dscr", dscr.points),
            ("extreme_vacancy", extreme_vacancy),
            ("input_validation", validation_points),
        ]
        penalties = [PointItem(name, round(points, 2)) for name, points in candidates if points > 0]
        stabilizers = compute_stabilizers(values, cfg)

        penalty_total = sum(points for _, points in candidates)
        stabilizer_benefit = -sum(s.points for s in stabilizers)

        raw = blend.base_score + penalty_total - stabilizer_benefit

        if self._missing_data_only(scored) and raw > blend.missing_data_score_cap:
            raw = blend.missing_data_score_cap
            tier_drivers.append("MISSING_DATA_CAP_APPLIED")

        # --------------------------------------------------
        # Clamp, round, floors
        # --------------------------------------------------
        score = round_half_up(min(100.0, max(0.0, raw)))

        floors: List[Tuple[RiskBand, str]] = []
        ltv = values.value("ltv")
        if ltv is not None and ltv > cfg.ramps.ltv_floor_high:
            floors.append((RiskBand.HIGH, "FORCED_HIGH_LTV_90"))
        for ramp in (compression, ltv_vacancy, dscr):
            if ramp.floor is not None:
                floors.append((ramp.floor, ramp.tier_driver))
        if validation.severe:
            floors.append((RiskBand.MODERATE, "FORCED_MODERATE_SEVERE_VALIDATION"))

        for floor_band, driver in floors:
            tier_drivers.append(driver)
            score = max(score, cfg.bands.lower_bound(floor_band))

        band = cfg.bands.band_for(score)

        # --------------------------------------------------
        # Edge flags that only affect review
        # --------------------------------------------------
        exit_cap = values.value("exit_cap")
        if exit_cap is not None and not (
            cfg.ramps.exit_cap_min_plausible <= exit_cap <= cfg.ramps.exit_cap_max_plausible
        ):
            flags.append("EDGE_EXIT_CAP_EXTREME")
            review_flag = True
        rent_growth = values.value("rent_growth")
        if (
            rent_growth is not None
            and rent_growth > cfg.ramps.rent_growth_aggressive
            and confidence_factor < cfg.ramps.rent_growth_aggressive_max_confidence
        ):
            flags.append("EDGE_PRO_FORMA_AGGRESSIVE")
            review_flag = True

        # --------------------------------------------------
        # Explainability
        # --------------------------------------------------
        contributions, multipliers = self._contributions(
            scored,
            structural_points,
            market_points,
            structural_component,
            market_component,
            macro=macro,
            compression=compression,
            ltv_vacancy=ltv_vacancy,
            dscr=dscr,
            extreme_vacancy=extreme_vacancy,
            validation_points=validation_points,
            stabilizer_benefit=stabilizer_benefit,
        )

        total_abs = sum(abs(c.points) for c in contributions)
        contribution_pct = {
            c.name: round_half_up(abs(c.points) / total_abs * 100) for c in contributions
        } if total_abs > 0 else {}
        top_drivers = [
            c.name for c in sorted(contributions, key=lambda c: abs(c.points), reverse=True)[:3]
        ]

        # --------------------------------------------------
        # History
        # --------------------------------------------------
        history = self._history(score, band, previous_score, previous_model_version)

        breakdown = RiskIndexBreakdown(
            model_version=cfg.model_version,
            structural_weight=structural_weight,
            market_weight=market_weight,
            confidence_factor=round(confidence_factor, 4),
            structural_subscore=round(structural_subscore, 2),
            market_subscore=round(market_subscore, 2),
            penalties=penalties,
            stabilizers=stabilizers,
            penalty_total=round(penalty_total, 2),
            stabilizer_benefit=round(stabilizer_benefit, 2),
            macro_linked_count=max(0, macro_linked_count),
            macro_decayed_weight=macro_decayed_weight,
            macro_penalty=round(macro, 4),
            contributions=contributions,
            contribution_pct=contribution_pct,
            top_drivers=top_drivers,
            driver_confidence_multipliers=multipliers,
            review_flag=review_flag,
            tier_drivers=tier_drivers,
            validation_errors=validation.error_messages,
            edge_flags=list(dict.fromkeys(flags)),
            **history,
        )

        logger.debug(
            f"Scored {len(scored)} findings under model {cfg.model_version}: "
            f"raw={raw:.2f} score={score} band={band.value}"
        )
        return RiskIndexResult(score=score, band=band, breakdown=breakdown)

    # ============================================================
    # HELPERS
    # ============================================================

    def _confidence_factor(self, findings: Sequence[RiskFinding], assumptions: Assumptions) -> float:
        """
        Mean confidence factor over findings and over assumption
        cells that carry both a value and a confidence. 1.0 when
        there is nothing to judge.
        """
        factors = self.config.confidence_factors
        values = [factors.factor_for(f.confidence) for f in findings]
        for cell in assumptions.cells.values():
            if cell.numeric_value is not None and cell.confidence is not None:
                values.append(factors.factor_for(cell.confidence))
        if not values:
            return 1.0
        return min(1.0, max(0.0, sum(values) / len(values)))

    def _missing_data_only(self, scored: Sequence[Tuple[RiskFinding, float, bool]]) -> bool:
        """True when every finding is a missing-data finding."""
        rules = self.config.finding_rules
        return bool(scored) and all(
            f.risk_type in rules.missing_data_risk_types for f, _, _ in scored
        )

    def _contributions(
        self,
        scored: Sequence[Tuple[RiskFinding, float, bool]],
        structural_points: float,
        market_points: float,
        structural_component: float,
        market_component: float,
        macro: float,
        compression: RampResult,
        ltv_vacancy: RampResult,
        dscr: RampResult,
        extreme_vacancy: float,
        validation_points: float,
        stabilizer_benefit: float,
    ) -> Tuple[List[PointItem], Dict[str, float]]:
        """
        Score points per driver.

        Each side's component is shared among its findings in
        proportion to their raw points.
        """
        factors = self.config.confidence_factors
        drivers: Dict[str, float] = {}
        conf_sum: Dict[str, float] = {}
        conf_n: Dict[str, int] = {}

        for finding, points, structural in scored:
            if points <= 0:
                continue
            side_points = structural_points if structural else market_points
            side_component = structural_component if structural else market_component
            share = side_component * points / side_points
            label = driver_for(finding.risk_type)
            drivers[label] = drivers.get(label, 0.0) + share
            conf_sum[label] = conf_sum.get(label, 0.0) + factors.factor_for(finding.confidence)
            conf_n[label] = conf_n.get(label, 0) + 1

        for label, points in (
            ("compression", compression.points),
            ("leverage", ltv_vacancy.points + dscr.points),
            ("vacancy", extreme_vacancy),
            ("macro", macro),
            ("validation", validation_points),
        ):
            if points > 0:
                drivers[label] = drivers.get(label, 0.0) + points

        if stabilizer_benefit > 0:
            drivers["stabilizers"] = -stabilizer_benefit

        contributions = [
            PointItem(label, round(points, 2)) for label, points in drivers.items() if points != 0
        ]
        multipliers = {
            c.name: round(conf_sum[c.name] / conf_n[c.name], 2) if c.name in conf_n else 1.0
            for c in contributions
        }
        return contributions, multipliers

    def _history(
        self,
        score: int,
        band: RiskBand,
        previous_score: Optional[float],
        previous_model_version: Optional[str],
    ) -> Dict[str, object]:
        if previous_score is None or not math.isfinite(previous_score):
            return {}
        previous = round_half_up(previous_score)
        comparable = (
            previous_model_version is None
            or previous_model_version == self.config.model_version
        )
        if not comparable:
            logger.info(
                f"Previous score under model {previous_model_version} is not "
                f"comparable with {self.config.model_version}; delta withheld"
            )
            return {"previous_score": previous, "delta_comparable": False}

        delta = score - previous
        previous_band = self.config.bands.band_for(previous)
        return {
            "previous_score": previous,
            "delta_comparable": True,
            "delta_score": delta,
            "delta_band": f"{previous_band.value} → {band.value}",
            "deterioration_flag": delta >= self.config.blend.deterioration_delta,
        }


# ============================================================
# MODULE-LEVEL HELPERS
# ============================================================


def score_risk_index(
    findings: Sequence[RiskFinding],
    assumptions: Optional[Assumptions] = None,
    macro_linked_count: int = 0,
    macro_decayed_weight: Optional[float] = None,
    previous_score: Optional[float] = None,
    previous_model_version: Optional[str] = None,
) -> RiskIndexResult:
    """Score under the current model version."""
    return RiskIndexEngine().score(
        findings,
        assumptions,
        macro_linked_count=macro_linked_count,
        macro_decayed_weight=macro_decayed_weight,
        previous_score=previous_score,
        previous_model_version=previous_model_version,
    )


def score_to_band(score: float, model_version: Optional[str] = None) -> RiskBand:
    """Band for a score under a model version's cutpoints."""
    return get_model_config(model_version).bands.band_for(score)


def get_risk_trend(current_score: Optional[float], previous_score: Optional[float]) -> Optional[str]:
    """increased / decreased / stable, or None when either score is missing."""
    if current_score is None or previous_score is None:
        return None
    delta = current_score - previous_score
    if delta > 0:
        return "increased"
    if delta < 0:
        return "decreased"
    return "stable"
