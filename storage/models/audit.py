"""
Risk Audit Log ORM Model.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Mutability: IMMUTABLE (append-only)
- One row per scored scan (scan_id UNIQUE)
- previous_score is relative to the previous scan of the SAME
  deal

============================================================
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, CreatedAtMixin


class RiskAuditLog(Base, CreatedAtMixin):
    """Score history entry for one scan."""

    __tablename__ = "risk_audit_log"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    deal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False,
    )

    scan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("deal_scans.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    previous_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_score: Mapped[int] = mapped_column(Integer, nullable=False)
    delta: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    band_change: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment='e.g. "Moderate → Elevated"; null when unchanged'
    )

    model_version: Mapped[str] = mapped_column(String(16), nullable=False)

    __table_args__ = (
        Index("ix_risk_audit_log_deal_created", "deal_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<RiskAuditLog(scan_id={self.scan_id}, previous={self.previous_score}, "
            f"new={self.new_score})>"
        )
