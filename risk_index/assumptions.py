"""
Risk Index Engine - Assumption Normalization and Validation.

============================================================
PURPOSE
============================================================
Bring extracted underwriting assumptions to a common scale
before scoring, and check them against plausible ranges.

Normalization: percent-like keys arrive both as fractions
(0.08) and as percents (8). Everything is scored as percent.

Validation: values outside their plausible range are DROPPED
from scoring (treated as missing) and reported. The engine
never raises on bad assumptions.

============================================================
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from .types import AssumptionCell, Assumptions


# ============================================================
# CONSTANTS
# ============================================================


PERCENT_KEYS = frozenset({
    "ltv",
    "vacancy",
    "cap_rate_in",
    "exit_cap",
    "rent_growth",
    "expense_growth",
    "debt_rate",
})

REQUIRED_ASSUMPTION_KEYS = (
    "cap_rate_in",
    "exit_cap",
    "noi_year1",
    "ltv",
    "vacancy",
    "debt_rate",
    "expense_growth",
    "rent_growth",
)

CRITICAL_ASSUMPTION_KEYS = ("expense_growth", "debt_rate")

NUMERIC_RANGES: Dict[str, Tuple[float, float]] = {
    "vacancy": (0.0, 100.0),
    "cap_rate_in": (0.0, 25.0),
    "exit_cap": (0.0, 25.0),
    "ltv": (0.0, 100.0),
    "debt_rate": (0.0, 25.0),
    "rent_growth": (-10.0, 30.0),
    "expense_growth": (-10.0, 30.0),
    "noi_year1": (0.0, 1e12),
    "hold_period_years": (0.0, 50.0),
    "purchase_price": (0.0, 1e15),
}

_PERCENT_UNITS = ("percent", "%", "pct")


# ============================================================
# NORMALIZATION
# ============================================================


def _unit_is_percent(unit: Optional[str]) -> bool:
    return isinstance(unit, str) and unit.strip().lower() in _PERCENT_UNITS


def _unit_is_missing(unit: Optional[str]) -> bool:
    return unit is None or (isinstance(unit, str) and unit.strip() == "")


def normalize_percent_value(
    key: str,
    value: Optional[float],
    unit: Optional[str] = None,
) -> Tuple[Optional[float], bool]:
    """
    Normalize one value.

    Returns (value, inferred). inferred is True when the unit was
    missing and the value was read as a fraction.
    """
    if value is None or key not in PERCENT_KEYS:
        return value, False
    if _unit_is_percent(unit):
        if 0 < value < 1:
            return value * 100, False
        return value, False
    if _unit_is_missing(unit) and 0 < value <= 1:
        return value * 100, True
    return value, False


def normalize_assumptions(assumptions: Assumptions) -> Assumptions:
    """
    Normalize all percent-like cells.

    Idempotent: already-normalized assumptions are returned as-is.
    Cells converted from a missing unit get unit "percent" so the
    result never re-triggers inference.
    """
    if assumptions.normalized:
        return assumptions

    cells: Dict[str, AssumptionCell] = {}
    unit_inferred = False
    for key, cell in assumptions.cells.items():
        value, inferred = normalize_percent_value(key, cell.numeric_value, cell.unit)
        if inferred:
            unit_inferred = True
            cells[key] = replace(cell, value=value, unit="percent")
        elif value != cell.numeric_value:
            cells[key] = replace(cell, value=value)
        else:
            cells[key] = cell

    return Assumptions(cells=cells, normalized=True, unit_inferred=unit_inferred)


# ============================================================
# VALIDATION
# ============================================================


@dataclass(frozen=True)
class RangeError:
    key: str
    value: float
    low: float
    high: float

    def __str__(self) -> str:
        return f"{self.key}={self.value:g} outside [{self.low:g}, {self.high:g}]"


@dataclass(frozen=True)
class ValidationResult:
    """Sanitized assumptions plus the range errors that were removed."""

    assumptions: Assumptions
    errors: List[RangeError] = field(default_factory=list)
    severe_threshold: int = 2

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def severe(self) -> bool:
        return len(self.errors) >= self.severe_threshold

    @property
    def error_messages(self) -> List[str]:
        return [str(e) for e in self.errors]


def validate_assumption_ranges(
    assumptions: Assumptions,
    severe_threshold: int = 2,
) -> ValidationResult:
    """
    Check every ranged key; out-of-range values are nulled in the
    returned assumptions.
    """
    errors: List[RangeError] = []
    cells = dict(assumptions.cells)
    for key, (low, high) in NUMERIC_RANGES.items():
        value = assumptions.value(key)
        if value is None:
            continue
        if value < low or value > high:
            errors.append(RangeError(key=key, value=value, low=low, high=high))
            cells[key] = replace(cells[key], value=None)

    sanitized = replace(assumptions, cells=cells) if errors else assumptions
    return ValidationResult(
        assumptions=sanitized,
        errors=errors,
        severe_threshold=severe_threshold,
    )


# ============================================================
# COMPLETENESS
# ============================================================


@dataclass(frozen=True)
class AssumptionCompleteness:
    pct: int
    missing: List[str]
    present: List[str]


def compute_assumption_completeness(assumptions: Assumptions) -> AssumptionCompleteness:
    """Percentage of required keys that carry a numeric value."""
    present = [k for k in REQUIRED_ASSUMPTION_KEYS if assumptions.value(k) is not None]
    missing = [k for k in REQUIRED_ASSUMPTION_KEYS if assumptions.value(k) is None]
    pct = int(len(present) / len(REQUIRED_ASSUMPTION_KEYS) * 100 + 0.5)
    return AssumptionCompleteness(pct=pct, missing=missing, present=present)


def has_missing_critical_inputs(assumptions: Assumptions) -> bool:
    return any(assumptions.value(k) is None for k in CRITICAL_ASSUMPTION_KEYS)
