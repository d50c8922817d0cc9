"""
Backtesting - Metrics.

============================================================
PURPOSE
============================================================
Measures how well the risk score predicted realized outcomes.
Read-only: nothing here feeds back into scoring.

============================================================
METRICS
============================================================
1. sample_size: records with a non-empty outcome type
2. Per band: count, defaults, default_rate, avg_loss_rate
   (mean of numeric outcome values in the band)
3. Pearson correlation of score vs numeric outcome; None for
   fewer than 2 pairs or zero variance, clamped to [-1, 1]
4. Discrimination: High-band vs Low-band default rate
5. Predictive strength:
   - Strong:   |r| >= 0.5 and spread >= 0.2
   - Moderate: |r| >= 0.3 or spread >= 0.1
   - Weak:     otherwise, or n < 2, or r undefined

============================================================
"""

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence

from risk_index.types import RiskBand

from .types import (
    BacktestMetrics,
    BacktestRecord,
    BandMetrics,
    Discrimination,
    PredictiveStrength,
)


logger = logging.getLogger(__name__)


STRONG_CORRELATION = 0.5
STRONG_SPREAD = 0.2
MODERATE_CORRELATION = 0.3
MODERATE_SPREAD = 0.1
MIN_SAMPLE_SIZE = 2


def _numeric(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def is_default(record: BacktestRecord) -> bool:
    if not record.is_default_type:
        return False
    value = _numeric(record.actual_outcome_value)
    return value is not None and value > 0


def numeric_outcome(record: BacktestRecord) -> Optional[float]:
    """Outcome value when numeric, else 0/1 for default-type records, else None."""
    value = _numeric(record.actual_outcome_value)
    if value is not None:
        return value
    if record.is_default_type:
        return 1.0 if is_default(record) else 0.0
    return None


def pearson(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """Pearson r, or None when n < 2, lengths differ, a series is constant, or r overflows."""
    n = len(x)
    if n != len(y) or n < 2:
        return None
    mean_x = sum(x) / n
    mean_y = sum(y) / n
    cov = var_x = var_y = 0.0
    for xi, yi in zip(x, y):
        dx = xi - mean_x
        dy = yi - mean_y
        cov += dx * dy
        var_x += dx * dx
        var_y += dy * dy
    # extreme values overflow the sums to inf/nan, which is not a correlation
    if not all(math.isfinite(v) for v in (cov, var_x, var_y)):
        return None
    if var_x == 0 or var_y == 0:
        return None
    r = cov / (math.sqrt(var_x) * math.sqrt(var_y))
    if not math.isfinite(r):
        return None
    return max(-1.0, min(1.0, r))


def classify_predictive_strength(
    sample_size: int,
    correlation: Optional[float],
    discrimination: Discrimination,
) -> PredictiveStrength:
    if sample_size < MIN_SAMPLE_SIZE or correlation is None:
        return PredictiveStrength.WEAK
    abs_corr = abs(correlation)
    spread = discrimination.spread
    if abs_corr >= STRONG_CORRELATION and spread >= STRONG_SPREAD:
        return PredictiveStrength.STRONG
    if abs_corr >= MODERATE_CORRELATION or spread >= MODERATE_SPREAD:
        return PredictiveStrength.MODERATE
    return PredictiveStrength.WEAK


def compute_backtest_metrics(records: Iterable[BacktestRecord]) -> BacktestMetrics:
    """Backtest metrics over records that carry an outcome."""
    with_outcome = [r for r in records if r.has_outcome]

    by_band: Dict[str, BandMetrics] = {band.value: BandMetrics() for band in RiskBand.all_bands()}
    loss_sums: Dict[str, float] = {band: 0.0 for band in by_band}
    loss_counts: Dict[str, int] = {band: 0 for band in by_band}

    for record in with_outcome:
        band = record.risk_index_band or RiskBand.LOW.value
        if band not in by_band:
            logger.warning(f"Backtest record with unknown band {band!r}, reported separately")
            by_band[band] = BandMetrics()
            loss_sums[band] = 0.0
            loss_counts[band] = 0
        metrics = by_band[band]
        metrics.count += 1
        if is_default(record):
            metrics.defaults += 1
        loss = _numeric(record.actual_outcome_value)
        if loss is not None:
            loss_sums[band] += loss
            loss_counts[band] += 1

    for band, metrics in by_band.items():
        metrics.default_rate = metrics.defaults / metrics.count if metrics.count else 0.0
        metrics.avg_loss_rate = loss_sums[band] / loss_counts[band] if loss_counts[band] else 0.0

    scores: List[float] = []
    outcomes: List[float] = []
    for record in with_outcome:
        score = _numeric(record.risk_index_score)
        outcome = numeric_outcome(record)
        if score is not None and outcome is not None:
            scores.append(score)
            outcomes.append(outcome)
    correlation = pearson(scores, outcomes)

    high = by_band[RiskBand.HIGH.value]
    low = by_band[RiskBand.LOW.value]
    discrimination = Discrimination(
        pct_high_defaulted=high.default_rate if high.count else 0.0,
        pct_low_defaulted=low.default_rate if low.count else 0.0,
    )

    result = BacktestMetrics(
        sample_size=len(with_outcome),
        metrics_by_band=by_band,
        correlation_score_vs_outcome=correlation,
        discrimination=discrimination,
        predictive_strength=classify_predictive_strength(len(with_outcome), correlation, discrimination),
    )
    logger.debug(
        f"Backtest over {result.sample_size} records: r={correlation}, "
        f"strength={result.predictive_strength.value}"
    )
    return result
