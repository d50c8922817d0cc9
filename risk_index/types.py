"""
Risk Index Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the Risk Index Engine.

This module defines the closed taxonomies (risk types,
severities, confidences, bands) and the dataclasses that flow
between extraction, relevance matching, scoring and export.

============================================================
DESIGN PRINCIPLES
============================================================
- Closed enums with an explicit UNKNOWN variant instead of
  free-text matching at call sites
- Frozen dataclasses: findings and results are never mutated,
  a changed severity produces a new finding
- Clear separation between input and output types

============================================================
"""

import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import UUID


def _label_key(label: str) -> str:
    """Lower-case a label and strip everything but letters and digits."""
    return re.sub(r"[^a-z0-9]", "", label.lower())


# ============================================================
# ENUMS
# ============================================================


class RiskType(str, Enum):
    """
    Structural risk finding taxonomy.

    UNKNOWN is produced for labels outside the taxonomy; it never
    matches a macro signal and scores with default rules.
    """

    EXIT_CAP_COMPRESSION = "ExitCapCompression"
    RENT_GROWTH_AGGRESSIVE = "RentGrowthAggressive"
    EXPENSE_UNDERSTATED = "ExpenseUnderstated"
    VACANCY_UNDERSTATED = "VacancyUnderstated"
    REFI_RISK = "RefiRisk"
    DEBT_COST_RISK = "DebtCostRisk"
    INSURANCE_RISK = "InsuranceRisk"
    CONSTRUCTION_TIMING_RISK = "ConstructionTimingRisk"
    MARKET_LIQUIDITY_RISK = "MarketLiquidityRisk"
    REGULATORY_POLICY_EXPOSURE = "RegulatoryPolicyExposure"
    DATA_MISSING = "DataMissing"
    UNKNOWN = "Unknown"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "RiskType":
        """Parse a label tolerantly ("refi_risk", "Refi Risk" -> REFI_RISK)."""
        if not label:
            return cls.UNKNOWN
        key = _label_key(label)
        for member in cls:
            if _label_key(member.value) == key:
                return member
        return cls.UNKNOWN


class RiskSeverity(str, Enum):
    """Severity tier of a risk finding."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def from_label(cls, label: Optional[str], default: "RiskSeverity" = None) -> "RiskSeverity":
        if label:
            key = label.strip().lower()
            for member in cls:
                if member.value.lower() == key:
                    return member
        return default if default is not None else cls.LOW

    @property
    def order(self) -> int:
        """Numeric ordering for severity comparison."""
        return {"Low": 0, "Medium": 1, "High": 2}[self.value]


class Confidence(str, Enum):
    """Extraction confidence for a finding or assumption."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["Confidence"]:
        if not label:
            return None
        key = label.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


class RiskBand(str, Enum):
    """
    Categorical classification of the 0-100 score.

    Bands partition the score range without overlap; cutpoints
    are owned by the versioned model configuration.
    """

    LOW = "Low"
    MODERATE = "Moderate"
    ELEVATED = "Elevated"
    HIGH = "High"

    @classmethod
    def all_bands(cls) -> List["RiskBand"]:
        """Return all bands in ascending order."""
        return [cls.LOW, cls.MODERATE, cls.ELEVATED, cls.HIGH]

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["RiskBand"]:
        if not label:
            return None
        key = label.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None

    @property
    def order(self) -> int:
        return {"Low": 0, "Moderate": 1, "Elevated": 2, "High": 3}[self.value]

    @property
    def is_elevated_or_higher(self) -> bool:
        return self in (RiskBand.ELEVATED, RiskBand.HIGH)


class ExposureBucket(str, Enum):
    """Portfolio-relative deal size label."""

    NORMAL = "Normal"
    HIGH = "High"


# ============================================================
# INPUT DATA CONTRACTS
# ============================================================


ASSUMPTION_KEYS = (
    "purchase_price",
    "cap_rate_in",
    "noi_year1",
    "rent_growth",
    "expense_growth",
    "vacancy",
    "exit_cap",
    "hold_period_years",
    "debt_rate",
    "ltv",
)


@dataclass(frozen=True)
class AssumptionCell:
    """One extracted underwriting metric. value is None when extraction was unsure."""

    value: Optional[float] = None
    unit: Optional[str] = None
    confidence: Optional[Confidence] = None

    @property
    def numeric_value(self) -> Optional[float]:
        v = self.value
        if v is None or isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        if math.isnan(v) or math.isinf(v):
            return None
        return float(v)


@dataclass(frozen=True)
class Assumptions:
    """
    Sparse mapping of underwriting metrics to cells.

    `normalized` is set once percent-like values have been brought
    to a common scale; `unit_inferred` records that at least one
    unit had to be guessed during normalization.
    """

    cells: Mapping[str, AssumptionCell] = field(default_factory=dict)
    normalized: bool = False
    unit_inferred: bool = False

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "Assumptions":
        """
        Build from an extraction payload:
        {"ltv": {"value": 72, "unit": "percent", "confidence": "High"}, ...}

        Non-mapping cells are ignored rather than rejected.
        """
        cells: Dict[str, AssumptionCell] = {}
        for key, cell in (raw or {}).items():
            if isinstance(cell, AssumptionCell):
                cells[key] = cell
                continue
            if not isinstance(cell, Mapping):
                continue
            value = cell.get("value")
            cells[key] = AssumptionCell(
                value=value if isinstance(value, (int, float)) and not isinstance(value, bool) else None,
                unit=cell.get("unit"),
                confidence=Confidence.from_label(cell.get("confidence")),
            )
        return cls(cells=cells)

    def value(self, key: str) -> Optional[float]:
        """Numeric value for a key, None when absent, null or not a number."""
        cell = self.cells.get(key)
        return cell.numeric_value if cell is not None else None

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            key: {
                "value": cell.value,
                "unit": cell.unit,
                "confidence": cell.confidence.value if cell.confidence else None,
            }
            for key, cell in self.cells.items()
        }


@dataclass(frozen=True)
class RiskFinding:
    """
    A structural risk finding produced by extraction for one scan.

    severity_current starts equal to severity_original and may be
    replaced once by deterministic overrides and once by macro
    corroboration. Use with_severity() to derive the new finding.
    """

    risk_type: RiskType
    severity_original: RiskSeverity
    severity_current: RiskSeverity
    confidence: Optional[Confidence] = None
    id: Optional[UUID] = None
    scan_id: Optional[UUID] = None
    what_changed_or_trigger: str = ""
    why_it_matters: str = ""
    who_this_affects: str = ""
    recommended_action: str = ""
    evidence_snippets: tuple = ()

    @classmethod
    def create(
        cls,
        risk_type: RiskType,
        severity: RiskSeverity,
        confidence: Optional[Confidence] = None,
        **kwargs: Any,
    ) -> "RiskFinding":
        """New finding whose current severity equals the extracted one."""
        return cls(
            risk_type=risk_type,
            severity_original=severity,
            severity_current=severity,
            confidence=confidence,
            **kwargs,
        )

    def with_severity(self, severity: RiskSeverity) -> "RiskFinding":
        return replace(self, severity_current=severity)


# ============================================================
# OUTPUT DATA CONTRACTS
# ============================================================


@dataclass(frozen=True)
class PointItem:
    """A named point contribution (positive penalty, negative stabilizer)."""

    name: str
    points: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "points": self.points}


@dataclass(frozen=True)
class RiskIndexBreakdown:
    """
    Structured explanation attached 1:1 to a scored scan.

    ============================================================
    OUTPUT GUARANTEES
    ============================================================
    - structural_weight + market_weight == 1
    - confidence_factor in [0, 1]
    - delta_score / delta_band / deterioration_flag are populated
      only when delta_comparable is True
    - model_version always set

    ============================================================
    """

    model_version: str
    structural_weight: float
    market_weight: float
    confidence_factor: float
    structural_subscore: float = 0.0
    market_subscore: float = 0.0
    penalties: List[PointItem] = field(default_factory=list)
    stabilizers: List[PointItem] = field(default_factory=list)
    penalty_total: float = 0.0
    stabilizer_benefit: float = 0.0
    macro_linked_count: int = 0
    macro_decayed_weight: Optional[float] = None
    macro_penalty: float = 0.0
    contributions: List[PointItem] = field(default_factory=list)
    contribution_pct: Dict[str, int] = field(default_factory=dict)
    top_drivers: List[str] = field(default_factory=list)
    driver_confidence_multipliers: Dict[str, float] = field(default_factory=dict)
    review_flag: bool = False
    tier_drivers: List[str] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    edge_flags: List[str] = field(default_factory=list)

    # Labeling (set after scoring, never changes score or band)
    exposure_bucket: Optional[ExposureBucket] = None
    alert_tags: List[str] = field(default_factory=list)
    stale_scan: Optional[bool] = None

    # History
    previous_score: Optional[int] = None
    delta_comparable: Optional[bool] = None
    delta_score: Optional[int] = None
    delta_band: Optional[str] = None
    deterioration_flag: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize for persistence and export.

        Optional keys are omitted when unset; delta keys are omitted
        whenever the previous score is not comparable.
        """
        out: Dict[str, Any] = {
            "model_version": self.model_version,
            "structural_weight": self.structural_weight,
            "market_weight": self.market_weight,
            "confidence_factor": self.confidence_factor,
            "structural_subscore": self.structural_subscore,
            "market_subscore": self.market_subscore,
            "penalties": [p.to_dict() for p in self.penalties],
            "stabilizers": [s.to_dict() for s in self.stabilizers],
            "penalty_total": self.penalty_total,
            "stabilizer_benefit": self.stabilizer_benefit,
            "macro_linked_count": self.macro_linked_count,
            "macro_penalty": self.macro_penalty,
            "contributions": [
                {"driver": c.name, "points": c.points} for c in self.contributions
            ],
            "contribution_pct": dict(self.contribution_pct),
            "top_drivers": list(self.top_drivers),
            "driver_confidence_multipliers": dict(self.driver_confidence_multipliers),
            "review_flag": self.review_flag,
        }
        if self.macro_decayed_weight is not None:
            out["macro_decayed_weight"] = self.macro_decayed_weight
        if self.tier_drivers:
            out["tier_drivers"] = list(self.tier_drivers)
        if self.validation_errors:
            out["validation_errors"] = list(self.validation_errors)
        if self.edge_flags:
            out["edge_flags"] = list(self.edge_flags)
        if self.exposure_bucket is not None:
            out["exposure_bucket"] = self.exposure_bucket.value
        if self.alert_tags:
            out["alert_tags"] = list(self.alert_tags)
        if self.stale_scan is not None:
            out["stale_scan"] = self.stale_scan
        if self.previous_score is not None:
            out["previous_score"] = self.previous_score
            out["delta_comparable"] = bool(self.delta_comparable)
            if self.delta_comparable:
                out["delta_score"] = self.delta_score
                out["delta_band"] = self.delta_band
                out["deterioration_flag"] = bool(self.deterioration_flag)
        return out


@dataclass(frozen=True)
class RiskIndexResult:
    """Score, band and breakdown for one scan."""

    score: int
    band: RiskBand
    breakdown: RiskIndexBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "band": self.band.value,
            "breakdown": self.breakdown.to_dict(),
        }


def findings_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[RiskFinding]:
    """Build findings from plain dict rows (e.g. an extraction payload)."""
    findings = []
    for row in rows:
        severity = RiskSeverity.from_label(row.get("severity_original") or row.get("severity"))
        findings.append(
            RiskFinding(
                risk_type=RiskType.from_label(row.get("risk_type")),
                severity_original=severity,
                severity_current=RiskSeverity.from_label(row.get("severity_current"), default=severity),
                confidence=Confidence.from_label(row.get("confidence")),
                id=row.get("id"),
                scan_id=row.get("scan_id"),
                what_changed_or_trigger=row.get("what_changed_or_trigger") or "",
                why_it_matters=row.get("why_it_matters") or "",
                who_this_affects=row.get("who_this_affects") or "",
                recommended_action=row.get("recommended_action") or "",
                evidence_snippets=tuple(row.get("evidence_snippets") or ()),
            )
        )
    return findings
