"""
ORM Models Package.

Importing this package registers every table on Base.metadata.
"""

from storage.models.base import Base, CreatedAtMixin, utcnow
from storage.models.deals import Deal, DealRisk, DealScan
from storage.models.signals import DealSignalLink, MacroSignalRecord
from storage.models.audit import RiskAuditLog


__all__ = [
    "Base",
    "CreatedAtMixin",
    "utcnow",
    "Deal",
    "DealScan",
    "DealRisk",
    "MacroSignalRecord",
    "DealSignalLink",
    "RiskAuditLog",
]
