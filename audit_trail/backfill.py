"""
Audit Trail - Backfill.

============================================================
PURPOSE
============================================================
Creates audit entries for historical scored scans that
predate the audit log.

- Scans are grouped per deal and ordered by (created_at, id)
- Each scan's previous is the one before it in that order
- Scans already present in the log are skipped
- Scans without a model version use the default version

The plan is computed without writing; run_backfill() writes
it insert-once, so a rerun inserts nothing new.

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy.orm import Session

from risk_index.config import CURRENT_MODEL_VERSION
from storage.repositories.audit import RiskAuditLogRepository
from storage.repositories.deals import DealScanRepository

from .recorder import AuditTrailRecorder, compute_audit_entry
from .types import AuditLogEntry, ScanSnapshot


logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    scanned: int = 0
    already_logged: int = 0
    planned: int = 0
    inserted: int = 0
    dry_run: bool = False
    entries: List[AuditLogEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "scanned": self.scanned,
            "already_logged": self.already_logged,
            "planned": self.planned,
            "inserted": self.inserted,
            "dry_run": self.dry_run,
        }


def plan_backfill(
    scans: Iterable[ScanSnapshot],
    existing_scan_ids: Set[UUID],
    default_version: str = CURRENT_MODEL_VERSION,
) -> List[AuditLogEntry]:
    """Entries to insert for scored scans not yet in the log."""
    by_deal: Dict[UUID, List[ScanSnapshot]] = {}
    for scan in scans:
        if scan.score is None:
            continue
        by_deal.setdefault(scan.deal_id, []).append(scan)

    entries: List[AuditLogEntry] = []
    for deal_scans in by_deal.values():
        deal_scans.sort(key=lambda s: s.sort_key)
        previous: Optional[ScanSnapshot] = None
        for scan in deal_scans:
            if scan.scan_id not in existing_scan_ids:
                entry = compute_audit_entry(scan, previous, default_version)
                if entry is not None:
                    entries.append(entry)
            previous = scan
    return entries


def run_backfill(
    session: Session,
    dry_run: bool = False,
    default_version: str = CURRENT_MODEL_VERSION,
) -> BackfillReport:
    """Plan and (unless dry_run) insert backfill entries. Caller commits."""
    scans = [ScanSnapshot.from_scan(s) for s in DealScanRepository(session).list_scored()]
    existing = RiskAuditLogRepository(session).existing_scan_ids()
    entries = plan_backfill(scans, existing, default_version)

    report = BackfillReport(
        scanned=len(scans),
        already_logged=sum(1 for s in scans if s.scan_id in existing),
        planned=len(entries),
        dry_run=dry_run,
        entries=entries,
    )
    logger.info(
        f"Audit backfill: {report.scanned} scored scans, "
        f"{report.already_logged} already logged, {report.planned} to insert"
    )

    if dry_run or not entries:
        return report

    recorder = AuditTrailRecorder(session)
    report.inserted = sum(1 for entry in entries if recorder.insert(entry))
    skipped = report.planned - report.inserted
    logger.info(f"Audit backfill inserted {report.inserted}, skipped {skipped} already present")
    return report
