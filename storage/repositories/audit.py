"""
Risk Audit Log Repository.

============================================================
PURPOSE
============================================================
Append-only access to the risk audit log. Inserts are
idempotent per scan_id: a replay or backfill never duplicates
an entry and never raises on conflict. There is no update or
delete path.

============================================================
"""

from typing import List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.audit import RiskAuditLog
from storage.repositories.base import BaseRepository


class RiskAuditLogRepository(BaseRepository[RiskAuditLog]):
    """Repository for audit log entries."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, RiskAuditLog, "RiskAuditLogRepository")

    def insert_if_absent(
        self,
        deal_id: UUID,
        scan_id: UUID,
        new_score: int,
        model_version: str,
        previous_score: Optional[int] = None,
        delta: Optional[int] = None,
        band_change: Optional[str] = None,
    ) -> bool:
        """Insert an entry unless one exists for the scan. Returns True when inserted."""
        inserted = self._insert_ignore(
            {
                "deal_id": deal_id,
                "scan_id": scan_id,
                "previous_score": previous_score,
                "new_score": new_score,
                "delta": delta,
                "band_change": band_change,
                "model_version": model_version,
            },
            conflict_columns=("scan_id",),
        )
        if not inserted:
            self._logger.debug(f"Audit entry for scan {scan_id} already exists")
        return inserted

    def get_by_scan_id(self, scan_id: UUID) -> Optional[RiskAuditLog]:
        return self._execute_scalar(
            select(RiskAuditLog).where(RiskAuditLog.scan_id == scan_id), "get_by_scan_id", {"scan_id": scan_id}
        )

    def existing_scan_ids(self) -> Set[UUID]:
        return set(self._execute_query(select(RiskAuditLog.scan_id), "existing_scan_ids"))

    def list_for_deal(self, deal_id: UUID) -> List[RiskAuditLog]:
        """Entries for a deal, newest first."""
        stmt = (
            select(RiskAuditLog)
            .where(RiskAuditLog.deal_id == deal_id)
            .order_by(RiskAuditLog.created_at.desc(), RiskAuditLog.id.desc())
        )
        return self._execute_query(stmt, "list_for_deal", {"deal_id": deal_id})
