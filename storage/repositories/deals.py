"""
Deal Repositories.

============================================================
PURPOSE
============================================================
Data access for deals, scans and risk findings.

- DealRepository: deal records and their relevance context
- DealScanRepository: scan lifecycle, score persistence,
  previous-scan lookup, rescan dedupe, backtest rows
- DealRiskRepository: findings per scan, severity updates

============================================================
ORDERING
============================================================
"Previous scan" is always the most recent COMPLETED scan of
the same deal strictly before the given one, ordered by
(created_at, id).

============================================================
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from storage.models.base import utcnow
from storage.models.deals import Deal, DealRisk, DealScan
from storage.repositories.base import BaseRepository


SCAN_STATUS_PENDING = "pending"
SCAN_STATUS_COMPLETED = "completed"
SCAN_STATUS_FAILED = "failed"


# ============================================================
# DEALS
# ============================================================


class DealRepository(BaseRepository[Deal]):
    """Repository for deals."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Deal, "DealRepository")

    def create(
        self,
        name: str,
        asset_type: Optional[str] = None,
        market: Optional[str] = None,
        state: Optional[str] = None,
    ) -> Deal:
        return self._add(Deal(name=name, asset_type=asset_type, market=market, state=state))

    def get_by_id(self, deal_id: UUID) -> Optional[Deal]:
        return self._get_by_id(deal_id)

    def get_by_id_or_raise(self, deal_id: UUID) -> Deal:
        return self._get_by_id_or_raise(deal_id, "deal_id")


# ============================================================
# SCANS
# ============================================================


class DealScanRepository(BaseRepository[DealScan]):
    """
    Repository for deal scans.

    Score columns are written only through save_score(), together
    with the model version and completion time.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, DealScan, "DealScanRepository")

    def create(
        self,
        deal_id: UUID,
        extraction: Optional[Dict[str, Any]] = None,
        input_text_hash: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> DealScan:
        scan = DealScan(
            deal_id=deal_id,
            extraction=extraction,
            input_text_hash=input_text_hash,
            status=SCAN_STATUS_PENDING,
        )
        if created_at is not None:
            scan.created_at = created_at
        return self._add(scan)

    def get_by_id(self, scan_id: UUID) -> Optional[DealScan]:
        return self._get_by_id(scan_id)

    def get_by_id_or_raise(self, scan_id: UUID) -> DealScan:
        return self._get_by_id_or_raise(scan_id, "scan_id")

    def save_score(
        self,
        scan: DealScan,
        score: int,
        band: str,
        breakdown: Dict[str, Any],
        model_version: str,
        macro_linked_count: Optional[int] = None,
        completed_at: Optional[datetime] = None,
    ) -> DealScan:
        """Persist a scoring result and mark the scan completed."""
        scan.risk_index_score = score
        scan.risk_index_band = band
        scan.risk_index_breakdown = breakdown
        scan.risk_index_version = model_version
        scan.macro_linked_count = macro_linked_count
        scan.status = SCAN_STATUS_COMPLETED
        scan.completed_at = completed_at or utcnow()
        self._flush("save_score")
        self._logger.debug(f"Saved score {score} ({band}) for scan {scan.id}")
        return scan

    def record_outcome(
        self,
        scan: DealScan,
        outcome_type: str,
        outcome_value: Optional[float],
        observed_at: Optional[datetime] = None,
    ) -> DealScan:
        """Annotate a realized outcome (out-of-band, for backtesting)."""
        scan.actual_outcome_type = outcome_type
        scan.actual_outcome_value = outcome_value
        scan.actual_outcome_at = observed_at or utcnow()
        self._flush("record_outcome")
        return scan

    def get_previous_completed(self, scan: DealScan) -> Optional[DealScan]:
        """Most recent completed, scored scan of the same deal before `scan`."""
        stmt = (
            select(DealScan)
            .where(
                DealScan.deal_id == scan.deal_id,
                DealScan.id != scan.id,
                DealScan.status == SCAN_STATUS_COMPLETED,
                DealScan.risk_index_score.is_not(None),
                or_(
                    DealScan.created_at < scan.created_at,
                    and_(DealScan.created_at == scan.created_at, DealScan.id < scan.id),
                ),
            )
            .order_by(DealScan.created_at.desc(), DealScan.id.desc())
            .limit(1)
        )
        return self._execute_scalar(
            stmt, "get_previous_completed", {"deal_id": scan.deal_id, "scan_id": scan.id}
        )

    def list_completed_for_deal(self, deal_id: UUID) -> List[DealScan]:
        """Completed, scored scans of a deal in ascending (created_at, id) order."""
        stmt = (
            select(DealScan)
            .where(
                DealScan.deal_id == deal_id,
                DealScan.status == SCAN_STATUS_COMPLETED,
                DealScan.risk_index_score.is_not(None),
            )
            .order_by(DealScan.created_at, DealScan.id)
        )
        return self._execute_query(stmt, "list_completed_for_deal", {"deal_id": deal_id})

    def list_scored(self) -> List[DealScan]:
        """All completed, scored scans ordered by deal then time."""
        stmt = (
            select(DealScan)
            .where(
                DealScan.status == SCAN_STATUS_COMPLETED,
                DealScan.risk_index_score.is_not(None),
            )
            .order_by(DealScan.deal_id, DealScan.created_at, DealScan.id)
        )
        return self._execute_query(stmt, "list_scored")

    def list_with_outcomes(self) -> List[DealScan]:
        """Scored scans carrying an outcome annotation."""
        stmt = (
            select(DealScan)
            .where(
                DealScan.risk_index_score.is_not(None),
                DealScan.actual_outcome_type.is_not(None),
                DealScan.actual_outcome_type != "",
            )
            .order_by(DealScan.created_at, DealScan.id)
        )
        return self._execute_query(stmt, "list_with_outcomes")

    def latest_completed_per_deal(self) -> List[DealScan]:
        """Latest completed scan of every deal (portfolio view)."""
        latest: Dict[UUID, DealScan] = {}
        for scan in self.list_scored():
            latest[scan.deal_id] = scan
        return list(latest.values())

    def find_recent_by_hash(
        self,
        deal_id: UUID,
        input_text_hash: str,
        since: datetime,
        exclude_scan_id: Optional[UUID] = None,
    ) -> Optional[DealScan]:
        """Most recent completed scan of the deal with the same input hash since `since`."""
        conditions = [
            DealScan.deal_id == deal_id,
            DealScan.input_text_hash == input_text_hash,
            DealScan.status == SCAN_STATUS_COMPLETED,
            DealScan.created_at >= since,
        ]
        if exclude_scan_id is not None:
            conditions.append(DealScan.id != exclude_scan_id)
        stmt = (
            select(DealScan)
            .where(*conditions)
            .order_by(DealScan.created_at.desc(), DealScan.id.desc())
            .limit(1)
        )
        return self._execute_scalar(stmt, "find_recent_by_hash", {"deal_id": deal_id})


# ============================================================
# RISK FINDINGS
# ============================================================


class DealRiskRepository(BaseRepository[DealRisk]):
    """Repository for risk findings of a scan."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, DealRisk, "DealRiskRepository")

    def create_many(self, scan_id: UUID, rows: Iterable[Dict[str, Any]]) -> List[DealRisk]:
        """
        Create findings from extraction rows.

        severity_current defaults to the extracted severity.
        """
        entities = []
        for row in rows:
            severity = row.get("severity_original") or row.get("severity") or "Low"
            entities.append(
                DealRisk(
                    deal_scan_id=scan_id,
                    risk_type=row["risk_type"],
                    severity_original=severity,
                    severity_current=row.get("severity_current") or severity,
                    confidence=row.get("confidence"),
                    what_changed_or_trigger=row.get("what_changed_or_trigger"),
                    why_it_matters=row.get("why_it_matters"),
                    who_this_affects=row.get("who_this_affects"),
                    recommended_action=row.get("recommended_action"),
                    evidence_snippets=row.get("evidence_snippets"),
                )
            )
        return self._add_all(entities)

    def list_for_scan(self, scan_id: UUID) -> List[DealRisk]:
        stmt = (
            select(DealRisk)
            .where(DealRisk.deal_scan_id == scan_id)
            .order_by(DealRisk.created_at, DealRisk.id)
        )
        return self._execute_query(stmt, "list_for_scan", {"deal_scan_id": scan_id})

    def update_severities(self, severities: Dict[UUID, str]) -> int:
        """Set severity_current for the given findings. Returns rows changed."""
        if not severities:
            return 0
        risks = self._execute_query(
            select(DealRisk).where(DealRisk.id.in_(list(severities))), "update_severities"
        )
        changed = 0
        for risk in risks:
            new_severity = severities[risk.id]
            if risk.severity_current != new_severity:
                risk.severity_current = new_severity
                changed += 1
        self._flush("update_severities")
        if changed:
            self._logger.debug(f"Updated severity on {changed} findings")
        return changed
