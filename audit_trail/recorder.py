"""
Audit Trail - Recorder.

============================================================
PURPOSE
============================================================
Computes and persists one audit entry per completed scan:

- previous_score: score of the most recently completed prior
  scan of the same deal, by (created_at, id)
- delta: new_score - previous_score, only when the two scans
  were scored under the same model version (or the prior scan
  has no version recorded)
- band_change: "{prev} → {new}" only when the bands differ

Entries are insert-once per scan_id. Recording the same scan
again is a no-op.

============================================================
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from risk_index.config import CURRENT_MODEL_VERSION
from storage.models.deals import DealScan
from storage.repositories.audit import RiskAuditLogRepository
from storage.repositories.deals import DealScanRepository

from .types import AuditLogEntry, ScanSnapshot


logger = logging.getLogger(__name__)


def format_band_change(previous: Optional[str], new: Optional[str]) -> Optional[str]:
    """'{prev} → {new}', or None when either is missing or they are equal."""
    if previous is None or new is None:
        return None
    previous, new = previous.strip(), new.strip()
    if previous == new:
        return None
    return f"{previous} → {new}"


def versions_comparable(previous_version: Optional[str], version: str) -> bool:
    if previous_version is None or not previous_version.strip():
        return True
    return previous_version.strip() == version


def compute_audit_entry(
    scan: ScanSnapshot,
    previous: Optional[ScanSnapshot],
    default_version: str = CURRENT_MODEL_VERSION,
) -> Optional[AuditLogEntry]:
    """
    Audit entry for `scan` given its prior scan (or None).

    Returns None when the scan has no score to record.
    """
    if scan.score is None:
        return None

    version = (scan.model_version or "").strip() or default_version
    previous_score = previous.score if previous is not None else None

    delta = None
    band_change = None
    if previous_score is not None:
        if versions_comparable(previous.model_version, version):
            delta = scan.score - previous_score
        band_change = format_band_change(previous.band, scan.band)

    return AuditLogEntry(
        deal_id=scan.deal_id,
        scan_id=scan.scan_id,
        new_score=scan.score,
        model_version=version,
        previous_score=previous_score,
        delta=delta,
        band_change=band_change,
        created_at=scan.created_at,
    )


class AuditTrailRecorder:
    """Writes audit entries for completed scans through the repositories."""

    def __init__(self, session: Session) -> None:
        self._scans = DealScanRepository(session)
        self._audit = RiskAuditLogRepository(session)

    def record(self, scan: DealScan, previous: Optional[DealScan] = None) -> Optional[AuditLogEntry]:
        """
        Record the audit entry for a completed scan.

        When `previous` is not given it is looked up. Returns the
        computed entry, or None when the scan carries no score.
        """
        if previous is None:
            previous = self._scans.get_previous_completed(scan)

        entry = compute_audit_entry(
            ScanSnapshot.from_scan(scan),
            ScanSnapshot.from_scan(previous) if previous is not None else None,
        )
        if entry is None:
            logger.warning(f"Scan {scan.id} has no score, no audit entry recorded")
            return None

        if self.insert(entry):
            logger.info(
                f"Audit entry for scan {scan.id}: score {entry.new_score}, "
                f"previous {entry.previous_score}, delta {entry.delta}"
            )
        return entry

    def insert(self, entry: AuditLogEntry) -> bool:
        return self._audit.insert_if_absent(
            deal_id=entry.deal_id,
            scan_id=entry.scan_id,
            new_score=entry.new_score,
            model_version=entry.model_version,
            previous_score=entry.previous_score,
            delta=entry.delta,
            band_change=entry.band_change,
        )
