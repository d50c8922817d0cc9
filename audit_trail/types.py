"""
Audit Trail - Type Definitions.

Plain data contracts for audit entries and the scan snapshots
they are computed from. No storage dependency.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID


@dataclass(frozen=True)
class ScanSnapshot:
    """The scored state of one scan, as the recorder needs it."""

    scan_id: UUID
    deal_id: UUID
    score: Optional[int]
    band: Optional[str]
    model_version: Optional[str]
    created_at: Optional[datetime] = None

    @classmethod
    def from_scan(cls, scan: Any) -> "ScanSnapshot":
        """Build from any object with DealScan's attribute names."""
        return cls(
            scan_id=scan.id,
            deal_id=scan.deal_id,
            score=scan.risk_index_score,
            band=scan.risk_index_band,
            model_version=scan.risk_index_version,
            created_at=scan.created_at,
        )

    @property
    def sort_key(self) -> tuple:
        created_at = self.created_at or datetime.min
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return (created_at, str(self.scan_id))


@dataclass(frozen=True)
class AuditLogEntry:
    """
    One immutable audit row per scan.

    previous_score, delta and band_change are all None when the
    deal has no prior scored scan.
    """

    deal_id: UUID
    scan_id: UUID
    new_score: int
    model_version: str
    previous_score: Optional[int] = None
    delta: Optional[int] = None
    band_change: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deal_id": str(self.deal_id),
            "scan_id": str(self.scan_id),
            "previous_score": self.previous_score,
            "new_score": self.new_score,
            "delta": self.delta,
            "band_change": self.band_change,
            "model_version": self.model_version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
