"""
Macro Signal Repositories.

============================================================
PURPOSE
============================================================
- MacroSignalRepository: time-windowed candidate signals,
  most recent first, capped
- SignalLinkRepository: idempotent link upsert keyed on
  (deal_risk_id, signal_id); linked signals per scan

============================================================
"""

from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.deals import DealRisk
from storage.models.signals import DealSignalLink, MacroSignalRecord
from storage.repositories.base import BaseRepository


class MacroSignalRepository(BaseRepository[MacroSignalRecord]):
    """Repository for macro signals."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, MacroSignalRecord, "MacroSignalRepository")

    def create(
        self,
        signal_type: Optional[str],
        what_changed: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> MacroSignalRecord:
        record = MacroSignalRecord(signal_type=signal_type, what_changed=what_changed)
        if created_at is not None:
            record.created_at = created_at
        return self._add(record)

    def list_recent(self, since: datetime, limit: int = 200) -> List[MacroSignalRecord]:
        """Signals created at or after `since`, newest first."""
        stmt = (
            select(MacroSignalRecord)
            .where(MacroSignalRecord.created_at >= since)
            .order_by(MacroSignalRecord.created_at.desc(), MacroSignalRecord.id.desc())
            .limit(limit)
        )
        return self._execute_query(stmt, "list_recent")


class SignalLinkRepository(BaseRepository[DealSignalLink]):
    """
    Repository for risk-signal links.

    Links are insert-only. Re-inserting an existing pair is a
    no-op, never an error.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, DealSignalLink, "SignalLinkRepository")

    def upsert(self, deal_risk_id: UUID, signal_id: UUID, link_reason: str) -> bool:
        """Insert a link unless the pair exists. Returns True when inserted."""
        return self._insert_ignore(
            {
                "deal_risk_id": deal_risk_id,
                "signal_id": signal_id,
                "link_reason": link_reason,
            },
            conflict_columns=("deal_risk_id", "signal_id"),
        )

    def upsert_many(self, links: Iterable[tuple]) -> int:
        """Upsert (deal_risk_id, signal_id, link_reason) tuples. Returns rows inserted."""
        inserted = 0
        for deal_risk_id, signal_id, link_reason in links:
            if self.upsert(deal_risk_id, signal_id, link_reason):
                inserted += 1
        return inserted

    def list_for_scan(self, scan_id: UUID) -> List[DealSignalLink]:
        stmt = (
            select(DealSignalLink)
            .join(DealRisk, DealRisk.id == DealSignalLink.deal_risk_id)
            .where(DealRisk.deal_scan_id == scan_id)
            .order_by(DealSignalLink.created_at, DealSignalLink.id)
        )
        return self._execute_query(stmt, "list_for_scan", {"scan_id": scan_id})

    def linked_signals_for_scan(self, scan_id: UUID) -> List[MacroSignalRecord]:
        """Distinct signals linked to any finding of the scan."""
        stmt = (
            select(MacroSignalRecord)
            .join(DealSignalLink, DealSignalLink.signal_id == MacroSignalRecord.id)
            .join(DealRisk, DealRisk.id == DealSignalLink.deal_risk_id)
            .where(DealRisk.deal_scan_id == scan_id)
            .distinct()
        )
        try:
            return list(self._session.execute(stmt).scalars().unique().all())
        except SQLAlchemyError as e:
            self._raise_storage_error(e, "linked_signals_for_scan", {"scan_id": scan_id})
            raise
