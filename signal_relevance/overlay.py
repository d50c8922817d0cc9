"""
Signal Relevance - Overlay Service.

============================================================
PURPOSE
============================================================
Applies relevance matching to a persisted scan:

1. Read candidate signals (trailing window, capped, newest first)
2. Run the pure matcher
3. Upsert links (insert-or-ignore on the unique pair)
4. Write severity escalations
5. Return the scan's linked signals for macro exposure

============================================================
FAILURE SEMANTICS
============================================================
A failure while READING candidate signals or linked signals
degrades to an empty/partial result with a WARNING. Write
failures propagate to the caller, which owns the transaction.

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from core.settings import AnalyticsSettings, get_settings
from risk_index.types import RiskFinding
from storage.models.signals import MacroSignalRecord
from storage.repositories.deals import DealRiskRepository
from storage.repositories.exceptions import RepositoryException
from storage.repositories.signals import MacroSignalRepository, SignalLinkRepository

from .matcher import match
from .types import DealContext, MacroSignal, MatchResult, SignalLink


logger = logging.getLogger(__name__)


def signal_from_record(record: MacroSignalRecord) -> MacroSignal:
    return MacroSignal.create(
        id=record.id,
        signal_type=record.signal_type,
        what_changed=record.what_changed,
        created_at=record.created_at,
    )


@dataclass
class OverlayResult:
    """What one overlay run did to a scan."""

    findings: List[RiskFinding] = field(default_factory=list)
    links: List[SignalLink] = field(default_factory=list)
    links_inserted: int = 0
    escalated: int = 0
    candidate_count: int = 0
    linked_signals: List[MacroSignal] = field(default_factory=list)


class RelevanceOverlayService:
    """
    Runs the relevance matcher against stored signals and
    persists its diff.

    Re-running on the same scan inserts no new links and
    changes no severities.
    """

    def __init__(self, session: Session, settings: Optional[AnalyticsSettings] = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._signals = MacroSignalRepository(session)
        self._links = SignalLinkRepository(session)
        self._risks = DealRiskRepository(session)

    def load_candidates(self, now: Optional[datetime] = None) -> List[MacroSignal]:
        """Signals in the trailing window; empty on read failure."""
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=self._settings.signal_window_days)
        try:
            records = self._signals.list_recent(since, limit=self._settings.signal_candidate_limit)
        except RepositoryException as e:
            logger.warning(f"Candidate signal lookup failed, skipping relevance matching: {e}")
            return []
        return [signal_from_record(r) for r in records]

    def linked_signals(self, scan_id: UUID) -> Optional[List[MacroSignal]]:
        """All signals linked to the scan's findings, or None on read failure."""
        try:
            records = self._links.linked_signals_for_scan(scan_id)
        except RepositoryException as e:
            logger.warning(f"Linked signal lookup failed for scan {scan_id}: {e}")
            return None
        return [signal_from_record(r) for r in records]

    def apply(
        self,
        scan_id: UUID,
        findings: Sequence[RiskFinding],
        deal_context: Optional[DealContext] = None,
        now: Optional[datetime] = None,
        candidates: Optional[Sequence[MacroSignal]] = None,
    ) -> OverlayResult:
        """
        Match, persist links and escalations, and collect linked signals.

        `findings` must carry their stored ids. The returned findings
        have escalations applied.
        """
        if candidates is None:
            candidates = self.load_candidates(now)

        result = match(findings, candidates, deal_context)
        inserted = self._persist(result)

        linked = self.linked_signals(scan_id)
        if linked is None:
            by_id = {str(s.id): s for s in candidates}
            linked_ids = dict.fromkeys(str(link.signal_id) for link in result.links)
            linked = [by_id[signal_id] for signal_id in linked_ids]

        logger.info(
            f"Relevance overlay for scan {scan_id}: {len(candidates)} candidates, "
            f"{len(result.links)} links ({inserted} new), "
            f"{len(result.escalations)} escalated"
        )

        return OverlayResult(
            findings=result.apply(findings),
            links=list(result.links),
            links_inserted=inserted,
            escalated=len(result.escalations),
            candidate_count=len(candidates),
            linked_signals=linked,
        )

    def _persist(self, result: MatchResult) -> int:
        if result.is_empty:
            return 0
        inserted = self._links.upsert_many(
            (link.risk_finding_id, link.signal_id, link.link_reason) for link in result.links
        )
        self._risks.update_severities(
            {e.risk_finding_id: e.escalated.value for e in result.escalations}
        )
        return inserted


def finding_severity_labels(findings: Sequence[RiskFinding]) -> dict:
    """id -> severity_current label, for persisting override results."""
    return {f.id: f.severity_current.value for f in findings if f.id is not None}
