"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All database access MUST go through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. Session Injection: Sessions are injected, not created internally
2. Explicit Methods: clear method names, no generic 'execute'
3. Append-Only: links and audit entries are insert-or-ignore
4. Exception Handling: DB errors re-raised as storage errors naming
   the table and row keys

============================================================
REPOSITORY GROUPS
============================================================
DEALS
-----
- DealRepository, DealScanRepository, DealRiskRepository

SIGNALS
-------
- MacroSignalRepository, SignalLinkRepository

AUDIT
-----
- RiskAuditLogRepository

============================================================
"""

from storage.repositories.audit import RiskAuditLogRepository
from storage.repositories.base import BaseRepository
from storage.repositories.deals import (
    SCAN_STATUS_COMPLETED,
    SCAN_STATUS_FAILED,
    SCAN_STATUS_PENDING,
    DealRepository,
    DealRiskRepository,
    DealScanRepository,
)
from storage.repositories.exceptions import (
    ConstraintViolationError,
    QueryError,
    RecordNotFoundError,
    RepositoryException,
    StorageUnavailableError,
    TransactionError,
)
from storage.repositories.signals import MacroSignalRepository, SignalLinkRepository


__all__ = [
    "BaseRepository",
    "DealRepository",
    "DealScanRepository",
    "DealRiskRepository",
    "MacroSignalRepository",
    "SignalLinkRepository",
    "RiskAuditLogRepository",
    "SCAN_STATUS_PENDING",
    "SCAN_STATUS_COMPLETED",
    "SCAN_STATUS_FAILED",
    "RepositoryException",
    "RecordNotFoundError",
    "ConstraintViolationError",
    "StorageUnavailableError",
    "QueryError",
    "TransactionError",
]
