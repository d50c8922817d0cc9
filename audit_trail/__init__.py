"""
Audit Trail Package.

Append-only score history per deal: one entry per completed
scan, with the previous comparable score, delta and band
transition.
"""

from .backfill import BackfillReport, plan_backfill, run_backfill
from .recorder import AuditTrailRecorder, compute_audit_entry, format_band_change, versions_comparable
from .types import AuditLogEntry, ScanSnapshot


__all__ = [
    "AuditLogEntry",
    "ScanSnapshot",
    "AuditTrailRecorder",
    "compute_audit_entry",
    "format_band_change",
    "versions_comparable",
    "BackfillReport",
    "plan_backfill",
    "run_backfill",
]
