"""
Backtesting Package.

This package measures the predictive validity of the risk
score against realized outcomes. It never feeds back into
scoring.

Modules:
- types: BacktestRecord, BacktestMetrics
- metrics: per-band rates, correlation, discrimination, verdict
"""

from sqlalchemy.orm import Session

from storage.repositories.deals import DealScanRepository

from .metrics import (
    classify_predictive_strength,
    compute_backtest_metrics,
    is_default,
    numeric_outcome,
    pearson,
)
from .types import (
    BacktestMetrics,
    BacktestRecord,
    BandMetrics,
    Discrimination,
    PredictiveStrength,
)


def run_backtest(session: Session) -> BacktestMetrics:
    """Backtest metrics over every stored scan with an outcome."""
    scans = DealScanRepository(session).list_with_outcomes()
    return compute_backtest_metrics(BacktestRecord.from_scan(s) for s in scans)


__all__ = [
    "BacktestRecord",
    "BacktestMetrics",
    "BandMetrics",
    "Discrimination",
    "PredictiveStrength",
    "compute_backtest_metrics",
    "classify_predictive_strength",
    "is_default",
    "numeric_outcome",
    "pearson",
    "run_backtest",
]
