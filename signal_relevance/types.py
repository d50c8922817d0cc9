"""
Signal Relevance - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for macro signals, deal context and the links
the matcher proposes between risk findings and signals.

The matcher returns a MatchResult (links + severity
escalations) and never mutates findings; the overlay service
applies the diff.

============================================================
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from risk_index.types import RiskFinding, RiskSeverity


# ============================================================
# ENUMS
# ============================================================


class SignalType(str, Enum):
    """Macro signal taxonomy. UNKNOWN covers labels outside it."""

    PRICING = "Pricing"
    CREDIT_AVAILABILITY = "Credit Availability"
    CREDIT_RISK = "Credit Risk"
    LIQUIDITY = "Liquidity"
    SUPPLY_DEMAND = "Supply-Demand"
    POLICY = "Policy"
    DEAL_SPECIFIC = "Deal-Specific"
    UNKNOWN = "Unknown"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "SignalType":
        if not label:
            return cls.UNKNOWN
        key = re.sub(r"[^a-z]", "", label.lower())
        for member in cls:
            if re.sub(r"[^a-z]", "", member.value.lower()) == key:
                return member
        return cls.UNKNOWN


# ============================================================
# INPUTS
# ============================================================


@dataclass(frozen=True)
class MacroSignal:
    """
    A time-stamped market observation, shared by all deals.

    raw_type keeps the label as stored, for signals whose label
    is outside the taxonomy.
    """

    id: Any
    signal_type: SignalType
    what_changed: str = ""
    created_at: Optional[datetime] = None
    raw_type: Optional[str] = None

    @classmethod
    def create(
        cls,
        id: Any,
        signal_type: Optional[str],
        what_changed: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> "MacroSignal":
        return cls(
            id=id,
            signal_type=SignalType.from_label(signal_type),
            what_changed=what_changed or "",
            created_at=created_at,
            raw_type=signal_type,
        )

    @property
    def label(self) -> str:
        """Category label used in link reasons and category counts."""
        if self.signal_type != SignalType.UNKNOWN:
            return self.signal_type.value
        return (self.raw_type or "").strip() or SignalType.UNKNOWN.value


@dataclass(frozen=True)
class DealContext:
    """Deal attributes relevant to signal filtering. market is used when state is unset."""

    asset_type: Optional[str] = None
    market: Optional[str] = None
    state: Optional[str] = None


@dataclass(frozen=True)
class SignalContext:
    """Asset type and state inferred from a signal's type and text."""

    asset_type: Optional[str] = None
    state: Optional[str] = None
    category: Optional[str] = None


# ============================================================
# OUTPUTS
# ============================================================


@dataclass(frozen=True)
class SignalLink:
    risk_finding_id: UUID
    signal_id: Any
    link_reason: str

    @property
    def key(self) -> tuple:
        return (self.risk_finding_id, str(self.signal_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_finding_id": str(self.risk_finding_id),
            "signal_id": str(self.signal_id),
            "link_reason": self.link_reason,
        }


@dataclass(frozen=True)
class SeverityEscalation:
    risk_finding_id: UUID
    previous: RiskSeverity
    escalated: RiskSeverity


@dataclass(frozen=True)
class MatchResult:
    """Proposed links and the severity escalations they imply."""

    links: List[SignalLink] = field(default_factory=list)
    escalations: List[SeverityEscalation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.links

    def apply(self, findings: Sequence[RiskFinding]) -> List[RiskFinding]:
        """Findings with escalations applied (new objects, inputs untouched)."""
        by_id = {e.risk_finding_id: e.escalated for e in self.escalations}
        return [
            f.with_severity(by_id[f.id]) if f.id in by_id else f
            for f in findings
        ]
