"""
Risk Index Engine - Package.

============================================================
PURPOSE
============================================================
Deterministic 0-100 underwriting risk score for a commercial
real estate deal scan, with a categorical band and a breakdown
that explains every point.

============================================================
SCORING
============================================================
Score = base
      + blended structural/market finding component
      + macro exposure (capped)
      + assumption ramps (compression, LTV x vacancy, DSCR)
      - stabilizers (conservative underwriting)

Bands (model 2.0):
- Low (0-34)
- Moderate (35-54)
- Elevated (55-69)
- High (70-100)

Every breakdown is stamped with its model version; deltas are
only computed between scores of the same version.

============================================================
USAGE
============================================================
    from risk_index import (
        RiskIndexEngine,
        RiskFinding,
        RiskType,
        RiskSeverity,
        Confidence,
        Assumptions,
    )

    findings = [
        RiskFinding.create(RiskType.REFI_RISK, RiskSeverity.HIGH, Confidence.HIGH),
    ]
    assumptions = Assumptions.from_dict({"ltv": {"value": 80, "unit": "percent"}})

    result = RiskIndexEngine().score(findings, assumptions, macro_linked_count=1)
    print(result.score, result.band.value)

============================================================
"""

from .types import (
    ASSUMPTION_KEYS,
    AssumptionCell,
    Assumptions,
    Confidence,
    ExposureBucket,
    PointItem,
    RiskBand,
    RiskFinding,
    RiskIndexBreakdown,
    RiskIndexResult,
    RiskSeverity,
    RiskType,
    findings_from_rows,
)
from .config import (
    CURRENT_MODEL_VERSION,
    BandCutpoints,
    RiskModelConfig,
    get_model_config,
    is_registered_version,
    register_model_config,
    registered_versions,
)
from .assumptions import (
    AssumptionCompleteness,
    ValidationResult,
    compute_assumption_completeness,
    has_missing_critical_inputs,
    normalize_assumptions,
    validate_assumption_ranges,
)
from .overrides import apply_severity_overrides, override_severity
from .engine import RiskIndexEngine, get_risk_trend, score_risk_index, score_to_band
from .exposure import label_exposure, purchase_price_percentile
from .governance import BandConsistencyResult, check_band_consistency, get_risk_model_metadata
from .explainability import DriverDelta, compute_explainability_diff


__all__ = [
    # Types
    "ASSUMPTION_KEYS",
    "AssumptionCell",
    "Assumptions",
    "Confidence",
    "ExposureBucket",
    "PointItem",
    "RiskBand",
    "RiskFinding",
    "RiskIndexBreakdown",
    "RiskIndexResult",
    "RiskSeverity",
    "RiskType",
    "findings_from_rows",
    # Config
    "CURRENT_MODEL_VERSION",
    "BandCutpoints",
    "RiskModelConfig",
    "get_model_config",
    "is_registered_version",
    "register_model_config",
    "registered_versions",
    # Assumptions
    "AssumptionCompleteness",
    "ValidationResult",
    "compute_assumption_completeness",
    "has_missing_critical_inputs",
    "normalize_assumptions",
    "validate_assumption_ranges",
    # Overrides
    "apply_severity_overrides",
    "override_severity",
    # Engine
    "RiskIndexEngine",
    "get_risk_trend",
    "score_risk_index",
    "score_to_band",
    # Labeling and governance
    "label_exposure",
    "purchase_price_percentile",
    "BandConsistencyResult",
    "check_band_consistency",
    "get_risk_model_metadata",
    "DriverDelta",
    "compute_explainability_diff",
]
