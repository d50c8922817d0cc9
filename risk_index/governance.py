"""
Risk Index Engine - Model Governance.

============================================================
PURPOSE
============================================================
Read-only views over the model registry:

- Governance metadata for a model version (what was locked,
  which caps and ramps apply), sourced from the registered
  config so it can never drift from what the engine uses
- Band consistency: does a stored band agree with the band its
  stored score maps to under the scan's own model version

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import get_model_config, is_registered_version
from .types import RiskBand


logger = logging.getLogger(__name__)


def get_risk_model_metadata(model_version: Optional[str] = None) -> Dict[str, Any]:
    """Governance metadata for a registered model version."""
    cfg = get_model_config(model_version)
    ramps = cfg.ramps
    return {
        "version": cfg.model_version,
        "locked_at": cfg.locked_at,
        "structural_risk_types": sorted(t.value for t in cfg.finding_rules.structural_risk_types),
        "base_score": cfg.blend.base_score,
        "macro_cap": cfg.macro.penalty_cap,
        "stabilizer_cap": cfg.stabilizers.total_cap,
        "missing_data_score_cap": cfg.blend.missing_data_score_cap,
        "bands": cfg.bands.to_dict(),
        "ramp_thresholds": {
            "ltv": {
                "low": ramps.ltv_vacancy_mild_ltv,
                "mid": ramps.ltv_vacancy_elevated_ltv,
                "high": ramps.ltv_vacancy_high_ltv,
            },
            "vacancy": {
                "low": ramps.ltv_vacancy_mild_vacancy,
                "mid": ramps.ltv_vacancy_elevated_vacancy,
                "high": ramps.ltv_vacancy_high_vacancy,
            },
            "dscr": {
                "safe": ramps.dscr_safe,
                "floor": ramps.dscr_distressed,
                "tier_override": ramps.dscr_floor_elevated,
            },
            "compression": {
                "start_pct": ramps.compression_start,
                "end_pct": ramps.compression_full,
                "tier_override_pct": ramps.compression_floor_elevated,
            },
        },
    }


@dataclass(frozen=True)
class BandConsistencyResult:
    mismatch: bool
    expected_band: Optional[RiskBand] = None


def check_band_consistency(
    score: Optional[float],
    stored_band: Optional[str],
    model_version: Optional[str],
) -> BandConsistencyResult:
    """
    Compare a stored band with the band its score maps to.

    Only asserts for scans of a registered model version; scans
    with no score, an unknown band label or an unregistered
    version are reported consistent.
    """
    if score is None:
        return BandConsistencyResult(mismatch=False)
    band = RiskBand.from_label(stored_band)
    if band is None:
        return BandConsistencyResult(mismatch=False)
    version = model_version.strip() if model_version else None
    if not is_registered_version(version):
        return BandConsistencyResult(mismatch=False)

    expected = get_model_config(version).bands.band_for(score)
    if expected != band:
        logger.warning(
            f"Band mismatch under model {version}: score {score} stored as "
            f"{band.value}, expected {expected.value}"
        )
        return BandConsistencyResult(mismatch=True, expected_band=expected)
    return BandConsistencyResult(mismatch=False)
