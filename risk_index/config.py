"""
Risk Index Engine - Versioned Model Configuration.

============================================================
PURPOSE
============================================================
All point values, caps, ramps and band cutpoints used by the
Risk Index Engine, consolidated into one immutable config
object per model version.

Introducing a new model version is ADDITIVE: register a new
RiskModelConfig. A registered version is never mutated, which
is what makes scores under the same version comparable.

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable configurations (frozen dataclasses)
- One registry, keyed by model_version
- Unknown versions fail loudly

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from core.exceptions import UnknownModelVersionError

from .types import Confidence, RiskBand, RiskSeverity, RiskType


logger = logging.getLogger(__name__)


CURRENT_MODEL_VERSION = "2.0"


# ============================================================
# FINDING POINTS
# ============================================================


@dataclass(frozen=True)
class SeverityPointsConfig:
    """Raw points per finding, before confidence and per-type caps."""

    high: float = 8.0
    medium: float = 4.0
    low: float = 2.0

    def points_for(self, severity: RiskSeverity) -> float:
        if severity == RiskSeverity.HIGH:
            return self.high
        if severity == RiskSeverity.MEDIUM:
            return self.medium
        return self.low

    def to_dict(self) -> Dict[str, Any]:
        return {"High": self.high, "Medium": self.medium, "Low": self.low}


@dataclass(frozen=True)
class ConfidenceFactorConfig:
    """
    Multipliers applied to a finding's points by its confidence.

    A finding or assumption without a confidence uses `missing`.
    """

    high: float = 1.0
    medium: float = 0.7
    low: float = 0.4
    missing: float = 0.4

    def factor_for(self, confidence: Optional[Confidence]) -> float:
        if confidence == Confidence.HIGH:
            return self.high
        if confidence == Confidence.MEDIUM:
            return self.medium
        if confidence == Confidence.LOW:
            return self.low
        return self.missing

    def to_dict(self) -> Dict[str, Any]:
        return {
            "High": self.high,
            "Medium": self.medium,
            "Low": self.low,
            "missing": self.missing,
        }


@dataclass(frozen=True)
class FindingRulesConfig:
    """
    Per-type handling of findings.

    ============================================================
    RULES
    ============================================================
    - structural_risk_types feed the structural sub-score,
      everything else feeds the market sub-score
    - DataMissing is capped low: missing data is a review
      trigger, not a risk in itself
    - ExpenseUnderstated only counts when expense growth is
      absent from the underwriting
    - ExitCapCompression only counts when the modeled spread
      actually compresses
    - DebtCostRisk with no debt rate on a levered deal gets a
      fixed point value
    ============================================================
    """

    structural_risk_types: FrozenSet[RiskType] = frozenset({
        RiskType.REFI_RISK,
        RiskType.DEBT_COST_RISK,
        RiskType.EXPENSE_UNDERSTATED,
        RiskType.VACANCY_UNDERSTATED,
        RiskType.INSURANCE_RISK,
        RiskType.CONSTRUCTION_TIMING_RISK,
    })
    missing_data_risk_types: FrozenSet[RiskType] = frozenset({
        RiskType.DATA_MISSING,
        RiskType.EXPENSE_UNDERSTATED,
    })
    default_cap: float = 6.0
    data_missing_cap: float = 3.0
    expense_understated_cap: float = 3.0
    exit_cap_compression_cap: float = 8.0
    exit_cap_compression_min_spread: float = 0.5
    debt_cost_missing_rate_points: float = 4.0
    debt_cost_missing_rate_min_ltv: float = 65.0

    def is_structural(self, risk_type: RiskType) -> bool:
        return risk_type in self.structural_risk_types

    def to_dict(self) -> Dict[str, Any]:
        return {
            "structural_risk_types": sorted(t.value for t in self.structural_risk_types),
            "missing_data_risk_types": sorted(t.value for t in self.missing_data_risk_types),
            "default_cap": self.default_cap,
            "data_missing_cap": self.data_missing_cap,
            "expense_understated_cap": self.expense_understated_cap,
            "exit_cap_compression_cap": self.exit_cap_compression_cap,
            "exit_cap_compression_min_spread": self.exit_cap_compression_min_spread,
            "debt_cost_missing_rate_points": self.debt_cost_missing_rate_points,
            "debt_cost_missing_rate_min_ltv": self.debt_cost_missing_rate_min_ltv,
        }


# ============================================================
# STABILIZERS AND PENALTY RAMPS
# ============================================================


@dataclass(frozen=True)
class StabilizerConfig:
    """
    Conservative-underwriting credits.

    Only one LTV stabilizer applies (the stronger one wins).
    """

    low_ltv_max: float = 60.0
    low_ltv_points: float = 8.0
    moderate_ltv_max: float = 65.0
    moderate_ltv_points: float = 4.0
    exit_cap_at_or_above_entry_points: float = 6.0
    total_cap: float = 20.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "low_ltv_max": self.low_ltv_max,
            "low_ltv_points": self.low_ltv_points,
            "moderate_ltv_max": self.moderate_ltv_max,
            "moderate_ltv_points": self.moderate_ltv_points,
            "exit_cap_at_or_above_entry_points": self.exit_cap_at_or_above_entry_points,
            "total_cap": self.total_cap,
        }


@dataclass(frozen=True)
class RampConfig:
    """
    Assumption-driven penalties that ramp with severity.

    ============================================================
    RAMPS
    ============================================================
    Exit cap compression (cap_rate_in - exit_cap, in points):
    - below 0.5: nothing
    - 0.5 to 1.5: linear from 3 to 6
    - at or above 1.0: band floor Elevated

    DSCR (NOI / annual interest-only debt service):
    - at or above 1.25: nothing
    - at or below 1.00: 6 points
    - below 1.10: band floor Elevated

    LTV x vacancy interaction:
    - LTV >= 75 and vacancy >= 20: 2-4 points by distance
    - LTV >= 80 and vacancy >= 30: 5 points, floor Elevated
    - LTV >= 85 and vacancy >= 35: 8 points, floor High

    Extreme inputs:
    - LTV above 90: band floor High
    - vacancy above 40: +2 points
    ============================================================
    """

    compression_start: float = 0.5
    compression_full: float = 1.5
    compression_min_points: float = 3.0
    compression_max_points: float = 6.0
    compression_floor_elevated: float = 1.0

    dscr_safe: float = 1.25
    dscr_distressed: float = 1.0
    dscr_max_points: float = 6.0
    dscr_floor_elevated: float = 1.10

    ltv_vacancy_mild_ltv: float = 75.0
    ltv_vacancy_mild_vacancy: float = 20.0
    ltv_vacancy_mild_base_points: float = 2.0
    ltv_vacancy_mild_extra_points: float = 2.0
    ltv_vacancy_elevated_ltv: float = 80.0
    ltv_vacancy_elevated_vacancy: float = 30.0
    ltv_vacancy_elevated_points: float = 5.0
    ltv_vacancy_high_ltv: float = 85.0
    ltv_vacancy_high_vacancy: float = 35.0
    ltv_vacancy_high_points: float = 8.0

    ltv_floor_high: float = 90.0
    vacancy_extreme: float = 40.0
    vacancy_extreme_points: float = 2.0

    exit_cap_min_plausible: float = 2.0
    exit_cap_max_plausible: float = 15.0
    rent_growth_aggressive: float = 8.0
    rent_growth_aggressive_max_confidence: float = 0.9

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compression": {
                "start": self.compression_start,
                "full": self.compression_full,
                "min_points": self.compression_min_points,
                "max_points": self.compression_max_points,
                "floor_elevated": self.compression_floor_elevated,
            },
            "dscr": {
                "safe": self.dscr_safe,
                "distressed": self.dscr_distressed,
                "max_points": self.dscr_max_points,
                "floor_elevated": self.dscr_floor_elevated,
            },
            "ltv_vacancy": {
                "mild": [self.ltv_vacancy_mild_ltv, self.ltv_vacancy_mild_vacancy],
                "elevated": [self.ltv_vacancy_elevated_ltv, self.ltv_vacancy_elevated_vacancy],
                "high": [self.ltv_vacancy_high_ltv, self.ltv_vacancy_high_vacancy],
            },
            "ltv_floor_high": self.ltv_floor_high,
            "vacancy_extreme": self.vacancy_extreme,
            "vacancy_extreme_points": self.vacancy_extreme_points,
        }


@dataclass(frozen=True)
class MacroConfig:
    """Macro penalty: one point per distinct linked category, capped."""

    points_per_category: float = 1.0
    penalty_cap: float = 3.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points_per_category": self.points_per_category,
            "penalty_cap": self.penalty_cap,
        }


# ============================================================
# BLENDING AND BANDS
# ============================================================


@dataclass(frozen=True)
class BlendConfig:
    """
    Sub-score normalization and blending.

    A side's sub-score is 100 * min(1, points / saturation); the
    blended sub-score is scaled by risk_component_scale and the
    overall confidence factor before being added to base_score.
    """

    base_score: float = 40.0
    structural_saturation: float = 12.0
    market_saturation: float = 12.0
    risk_component_scale: float = 0.5
    missing_data_score_cap: float = 49.0
    review_confidence_threshold: float = 0.7
    validation_penalty: float = 3.0
    severe_validation_error_count: int = 2
    deterioration_delta: int = 8

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_score": self.base_score,
            "structural_saturation": self.structural_saturation,
            "market_saturation": self.market_saturation,
            "risk_component_scale": self.risk_component_scale,
            "missing_data_score_cap": self.missing_data_score_cap,
            "review_confidence_threshold": self.review_confidence_threshold,
            "validation_penalty": self.validation_penalty,
            "severe_validation_error_count": self.severe_validation_error_count,
            "deterioration_delta": self.deterioration_delta,
        }


@dataclass(frozen=True)
class BandCutpoints:
    """
    Lower bound (inclusive) of each band above Low.

    Low [0, moderate) | Moderate [moderate, elevated) |
    Elevated [elevated, high) | High [high, 100]
    """

    moderate: int = 35
    elevated: int = 55
    high: int = 70

    def __post_init__(self) -> None:
        if not 0 < self.moderate < self.elevated < self.high <= 100:
            raise ValueError(
                f"Band cutpoints must be strictly increasing in (0, 100]: "
                f"{self.moderate}, {self.elevated}, {self.high}"
            )

    def band_for(self, score: float) -> RiskBand:
        if score >= self.high:
            return RiskBand.HIGH
        if score >= self.elevated:
            return RiskBand.ELEVATED
        if score >= self.moderate:
            return RiskBand.MODERATE
        return RiskBand.LOW

    def lower_bound(self, band: RiskBand) -> int:
        return {
            RiskBand.LOW: 0,
            RiskBand.MODERATE: self.moderate,
            RiskBand.ELEVATED: self.elevated,
            RiskBand.HIGH: self.high,
        }[band]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Low": [0, self.moderate - 1],
            "Moderate": [self.moderate, self.elevated - 1],
            "Elevated": [self.elevated, self.high - 1],
            "High": [self.high, 100],
        }


# ============================================================
# MAIN CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskModelConfig:
    """
    Complete configuration for one risk model version.

    Usage:
        config = get_model_config()            # current version
        config = get_model_config("2.0")
        engine = RiskIndexEngine(config)
    """

    model_version: str = CURRENT_MODEL_VERSION
    locked_at: str = "2025-01-15"
    severity_points: SeverityPointsConfig = field(default_factory=SeverityPointsConfig)
    confidence_factors: ConfidenceFactorConfig = field(default_factory=ConfidenceFactorConfig)
    finding_rules: FindingRulesConfig = field(default_factory=FindingRulesConfig)
    stabilizers: StabilizerConfig = field(default_factory=StabilizerConfig)
    ramps: RampConfig = field(default_factory=RampConfig)
    macro: MacroConfig = field(default_factory=MacroConfig)
    blend: BlendConfig = field(default_factory=BlendConfig)
    bands: BandCutpoints = field(default_factory=BandCutpoints)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_version": self.model_version,
            "locked_at": self.locked_at,
            "severity_points": self.severity_points.to_dict(),
            "confidence_factors": self.confidence_factors.to_dict(),
            "finding_rules": self.finding_rules.to_dict(),
            "stabilizers": self.stabilizers.to_dict(),
            "ramps": self.ramps.to_dict(),
            "macro": self.macro.to_dict(),
            "blend": self.blend.to_dict(),
            "bands": self.bands.to_dict(),
        }


# ============================================================
# REGISTRY
# ============================================================


_MODEL_REGISTRY: Dict[str, RiskModelConfig] = {}


def register_model_config(config: RiskModelConfig) -> RiskModelConfig:
    """
    Register a model version.

    Re-registering an identical config is a no-op; registering a
    different config under an existing version raises ValueError.
    """
    existing = _MODEL_REGISTRY.get(config.model_version)
    if existing is not None:
        if existing != config:
            raise ValueError(
                f"Model version {config.model_version} is already registered "
                f"with a different configuration"
            )
        return existing
    _MODEL_REGISTRY[config.model_version] = config
    logger.debug(f"Registered risk model version {config.model_version}")
    return config


def get_model_config(model_version: Optional[str] = None) -> RiskModelConfig:
    """Get the config for a version (current version when None)."""
    version = model_version or CURRENT_MODEL_VERSION
    try:
        return _MODEL_REGISTRY[version]
    except KeyError:
        raise UnknownModelVersionError(version) from None


def is_registered_version(model_version: Optional[str]) -> bool:
    return model_version is not None and model_version in _MODEL_REGISTRY


def registered_versions() -> List[str]:
    return sorted(_MODEL_REGISTRY)


register_model_config(RiskModelConfig())
