"""
Macro exposure of a scan.

Turns the signals linked to a scan's findings into the two
scoring inputs: the number of distinct linked categories, and
optionally a time-decayed weight in which recent signals count
more. Several links in one category count once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .types import MacroSignal


logger = logging.getLogger(__name__)


EDGE_MACRO_TIMESTAMP_MISSING = "EDGE_MACRO_TIMESTAMP_MISSING"


@dataclass(frozen=True)
class MacroExposure:
    linked_category_count: int = 0
    linked_signal_count: int = 0
    decayed_weight: Optional[float] = None
    categories: List[str] = field(default_factory=list)
    edge_flags: List[str] = field(default_factory=list)


def _age_days(created_at: datetime, now: datetime) -> float:
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return max(0.0, (now - created_at).total_seconds() / 86400.0)


def compute_macro_exposure(
    linked_signals: Iterable[MacroSignal],
    half_life_days: Optional[float] = None,
    now: Optional[datetime] = None,
) -> MacroExposure:
    """
    Distinct categories and distinct signals among linked signals.

    When half_life_days is given, each category contributes
    0.5 ** (age / half_life) for its most recent signal; a signal
    without a timestamp weighs 1.0 and raises
    EDGE_MACRO_TIMESTAMP_MISSING.
    """
    now = now or datetime.now(timezone.utc)
    signal_ids = set()
    latest_by_category: Dict[str, Optional[datetime]] = {}

    for signal in linked_signals:
        signal_ids.add(str(signal.id))
        category = signal.label
        if signal.created_at is None:
            latest_by_category.setdefault(category, None)
            continue
        current = latest_by_category.get(category)
        if current is None or _age_days(signal.created_at, now) < _age_days(current, now):
            latest_by_category[category] = signal.created_at

    categories = sorted(latest_by_category)
    flags: List[str] = []
    decayed: Optional[float] = None

    if half_life_days is not None and categories:
        decayed = 0.0
        for category in categories:
            created_at = latest_by_category[category]
            if created_at is None:
                decayed += 1.0
            else:
                decayed += 0.5 ** (_age_days(created_at, now) / half_life_days)
        decayed = round(decayed, 4)
        undated = [c for c in categories if latest_by_category[c] is None]
        if undated:
            flags.append(EDGE_MACRO_TIMESTAMP_MISSING)
            logger.debug(f"Macro categories without timestamps: {undated}")

    return MacroExposure(
        linked_category_count=len(categories),
        linked_signal_count=len(signal_ids),
        decayed_weight=decayed,
        categories=categories,
        edge_flags=flags,
    )
