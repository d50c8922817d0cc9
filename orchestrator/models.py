"""
Orchestrator - Models.

============================================================
PURPOSE
============================================================
Stage definitions and result records for the scan scoring
pipeline.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from audit_trail.types import AuditLogEntry
from risk_index.types import RiskIndexResult


# ============================================================
# STAGES
# ============================================================


class ScoringStage(Enum):
    """
    Scan scoring stages in strict order.

    All stages run inside one transaction. Failure in any stage
    rolls back the whole scan.
    """

    LOAD_SCAN = (1, "load_scan", "Load scan, deal and findings")
    APPLY_OVERRIDES = (2, "apply_overrides", "Apply deterministic severity overrides")
    MATCH_SIGNALS = (3, "match_signals", "Link relevant macro signals and escalate")
    MACRO_EXPOSURE = (4, "macro_exposure", "Compute macro exposure of linked signals")
    SCORE = (5, "score", "Compute risk index against previous scan")
    LABEL_EXPOSURE = (6, "label_exposure", "Label portfolio exposure")
    PERSIST_SCORE = (7, "persist_score", "Persist score and complete scan")
    RECORD_AUDIT = (8, "record_audit", "Record audit log entry")

    def __init__(self, order: int, stage_id: str, description: str):
        self._order = order
        self._stage_id = stage_id
        self._description = description

    @property
    def order(self) -> int:
        return self._order

    @property
    def stage_id(self) -> str:
        return self._stage_id

    @property
    def description(self) -> str:
        return self._description

    @classmethod
    def get_ordered_stages(cls) -> List["ScoringStage"]:
        return sorted(cls, key=lambda s: s.order)


# ============================================================
# RESULTS
# ============================================================


@dataclass
class StageTiming:
    stage: ScoringStage
    duration_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.stage_id,
            "order": self.stage.order,
            "duration_seconds": round(self.duration_seconds, 4),
        }


@dataclass
class ScanScoringResult:
    """Outcome of scoring one scan."""

    scan_id: UUID
    deal_id: UUID
    result: RiskIndexResult
    previous_scan_id: Optional[UUID] = None
    links_created: int = 0
    findings_escalated: int = 0
    macro_linked_count: int = 0
    audit_entry: Optional[AuditLogEntry] = None
    stages: List[StageTiming] = field(default_factory=list)

    @property
    def score(self) -> int:
        return self.result.score

    @property
    def band(self) -> str:
        return self.result.band.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan_id": str(self.scan_id),
            "deal_id": str(self.deal_id),
            "score": self.score,
            "band": self.band,
            "breakdown": self.result.breakdown.to_dict(),
            "previous_scan_id": str(self.previous_scan_id) if self.previous_scan_id else None,
            "links_created": self.links_created,
            "findings_escalated": self.findings_escalated,
            "macro_linked_count": self.macro_linked_count,
            "audit_entry": self.audit_entry.to_dict() if self.audit_entry else None,
            "stages": [s.to_dict() for s in self.stages],
        }
