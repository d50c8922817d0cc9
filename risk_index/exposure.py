"""
Exposure labeling.

A post-scoring step: tags a breakdown with the deal's size
bucket relative to the portfolio, a HIGH_IMPACT_RISK alert when
a large deal also scores Elevated or High, and whether the scan
is stale. Score and band are never touched.
"""

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from .types import ExposureBucket, RiskBand, RiskIndexBreakdown


HIGH_IMPACT_RISK = "HIGH_IMPACT_RISK"


def purchase_price_percentile(prices: Iterable[Optional[float]], percentile: float = 0.8) -> Optional[float]:
    """
    Nearest-rank percentile of positive purchase prices.

    Returns None when the portfolio has no usable price.
    """
    values = sorted(p for p in prices if p is not None and p > 0)
    if not values:
        return None
    idx = math.ceil(len(values) * percentile) - 1
    return values[max(0, idx)]


def exposure_bucket_for(purchase_price: Optional[float], threshold: Optional[float]) -> ExposureBucket:
    if purchase_price is None or threshold is None or purchase_price <= 0:
        return ExposureBucket.NORMAL
    return ExposureBucket.HIGH if purchase_price >= threshold else ExposureBucket.NORMAL


def is_stale(completed_at: Optional[datetime], stale_days: int, now: Optional[datetime] = None) -> bool:
    if completed_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    if completed_at.tzinfo is None:
        completed_at = completed_at.replace(tzinfo=timezone.utc)
    return now - completed_at > timedelta(days=stale_days)


def label_exposure(
    breakdown: RiskIndexBreakdown,
    band: RiskBand,
    purchase_price: Optional[float],
    portfolio_threshold: Optional[float],
    completed_at: Optional[datetime] = None,
    stale_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> RiskIndexBreakdown:
    """Return a copy of the breakdown with exposure labels set."""
    bucket = exposure_bucket_for(purchase_price, portfolio_threshold)

    alert_tags = [t for t in breakdown.alert_tags if t != HIGH_IMPACT_RISK]
    if bucket == ExposureBucket.HIGH and band.is_elevated_or_higher:
        alert_tags.append(HIGH_IMPACT_RISK)

    stale = breakdown.stale_scan
    if stale_days is not None:
        stale = is_stale(completed_at, stale_days, now)

    return replace(breakdown, exposure_bucket=bucket, alert_tags=alert_tags, stale_scan=stale)
