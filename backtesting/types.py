"""
Backtesting - Type Definitions.

============================================================
PURPOSE
============================================================
Inputs and outputs of the backtest analytics engine.

A BacktestRecord is a scored scan annotated with a realized
outcome. Outcome types:
- "default_flag" / "default": value > 0 means defaulted
- anything else (e.g. "loss_rate"): value is a continuous rate

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


DEFAULT_OUTCOME_TYPES = ("default_flag", "default")


class PredictiveStrength(str, Enum):
    WEAK = "Weak"
    MODERATE = "Moderate"
    STRONG = "Strong"


@dataclass(frozen=True)
class BacktestRecord:
    risk_index_score: Optional[float]
    risk_index_band: Optional[str]
    actual_outcome_type: Optional[str]
    actual_outcome_value: Optional[float]

    @classmethod
    def from_scan(cls, scan: Any) -> "BacktestRecord":
        return cls(
            risk_index_score=scan.risk_index_score,
            risk_index_band=scan.risk_index_band,
            actual_outcome_type=scan.actual_outcome_type,
            actual_outcome_value=scan.actual_outcome_value,
        )

    @property
    def has_outcome(self) -> bool:
        return bool(self.actual_outcome_type)

    @property
    def is_default_type(self) -> bool:
        return self.actual_outcome_type in DEFAULT_OUTCOME_TYPES


@dataclass
class BandMetrics:
    count: int = 0
    defaults: int = 0
    default_rate: float = 0.0
    avg_loss_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_rate": self.default_rate,
            "avg_loss_rate": self.avg_loss_rate,
            "count": self.count,
            "defaults": self.defaults,
        }


@dataclass(frozen=True)
class Discrimination:
    pct_high_defaulted: float = 0.0
    pct_low_defaulted: float = 0.0

    @property
    def spread(self) -> float:
        return abs(self.pct_high_defaulted - self.pct_low_defaulted)

    def to_dict(self) -> Dict[str, float]:
        return {
            "pct_high_defaulted": self.pct_high_defaulted,
            "pct_low_defaulted": self.pct_low_defaulted,
        }


@dataclass
class BacktestMetrics:
    """
    Backtest result. Always fully defined: an empty input gives
    sample_size 0, zero rates, correlation None, Weak.
    """

    sample_size: int = 0
    metrics_by_band: Dict[str, BandMetrics] = field(default_factory=dict)
    correlation_score_vs_outcome: Optional[float] = None
    discrimination: Discrimination = field(default_factory=Discrimination)
    predictive_strength: PredictiveStrength = PredictiveStrength.WEAK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample_size": self.sample_size,
            "metrics_by_band": {band: m.to_dict() for band, m in self.metrics_by_band.items()},
            "correlation_score_vs_outcome": self.correlation_score_vs_outcome,
            "discrimination": self.discrimination.to_dict(),
            "predictive_strength": self.predictive_strength.value,
        }
