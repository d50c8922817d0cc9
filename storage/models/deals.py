"""
Deal Domain ORM Models.

============================================================
PURPOSE
============================================================
Deals, their scans and the risk findings extracted per scan.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Deal: MUTABLE descriptive record
- DealScan: written once at extraction, completed once by the
  scoring pipeline; outcome columns are annotated out-of-band
- DealRisk: created per scan; severity_current may be
  overridden and escalated once by the pipeline

============================================================
MODELS
============================================================
- Deal
- DealScan
- DealRisk

============================================================
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storage.models.base import Base, CreatedAtMixin


class Deal(Base, CreatedAtMixin):
    """A commercial real estate deal under underwriting."""

    __tablename__ = "deals"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Deal identifier"
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Deal name"
    )

    asset_type: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Multifamily, Office, Retail, Industrial, ..."
    )

    market: Mapped[Optional[str]] = mapped_column(
        String(128),
        nullable=True,
        comment="Market name, e.g. Phoenix"
    )

    state: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="State, preferred over market for relevance filtering"
    )

    scans: Mapped[List["DealScan"]] = relationship(back_populates="deal")

    def __repr__(self) -> str:
        return f"<Deal(id={self.id}, name={self.name!r})>"


class DealScan(Base, CreatedAtMixin):
    """
    One underwriting scan of a deal.

    ============================================================
    SCORING COLUMNS
    ============================================================
    risk_index_score / band / breakdown / version are written
    together by the scoring pipeline and never recomputed by
    readers.

    ============================================================
    OUTCOME COLUMNS
    ============================================================
    actual_outcome_* are annotated out-of-band once a realized
    outcome is known; only annotated scans enter backtesting.

    ============================================================
    """

    __tablename__ = "deal_scans"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Scan identifier"
    )

    deal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False,
        comment="Scanned deal"
    )

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="pending",
        comment="pending, completed, failed"
    )

    extraction: Mapped[Optional[Any]] = mapped_column(
        JSON,
        nullable=True,
        comment="Extraction payload, including assumptions"
    )

    input_text_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Content hash of the scanned input, for rescan dedupe"
    )

    risk_index_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="0-100 risk index"
    )

    risk_index_band: Mapped[Optional[str]] = mapped_column(
        String(16),
        nullable=True,
        comment="Low, Moderate, Elevated, High"
    )

    risk_index_breakdown: Mapped[Optional[Any]] = mapped_column(
        JSON,
        nullable=True,
        comment="Score breakdown (display-only for readers)"
    )

    risk_index_version: Mapped[Optional[str]] = mapped_column(
        String(16),
        nullable=True,
        comment="Risk model version the score was computed under"
    )

    macro_linked_count: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Distinct linked macro categories at scoring time"
    )

    actual_outcome_type: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="default_flag, loss_rate, ..."
    )

    actual_outcome_value: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Realized outcome value"
    )

    actual_outcome_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the outcome was observed"
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When scoring completed"
    )

    deal: Mapped[Deal] = relationship(back_populates="scans")
    risks: Mapped[List["DealRisk"]] = relationship(back_populates="scan")

    __table_args__ = (
        Index("ix_deal_scans_deal_created", "deal_id", "created_at"),
        Index("ix_deal_scans_input_hash", "input_text_hash"),
    )

    @property
    def assumptions_payload(self) -> dict:
        extraction = self.extraction if isinstance(self.extraction, dict) else {}
        assumptions = extraction.get("assumptions")
        return assumptions if isinstance(assumptions, dict) else {}

    def __repr__(self) -> str:
        return (
            f"<DealScan(id={self.id}, deal_id={self.deal_id}, status={self.status}, "
            f"score={self.risk_index_score})>"
        )


class DealRisk(Base, CreatedAtMixin):
    """A structural risk finding extracted for one scan."""

    __tablename__ = "deal_risks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Finding identifier"
    )

    deal_scan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("deal_scans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning scan"
    )

    risk_type: Mapped[str] = mapped_column(String(64), nullable=False)
    severity_original: Mapped[str] = mapped_column(String(16), nullable=False)
    severity_current: Mapped[str] = mapped_column(String(16), nullable=False)
    confidence: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    what_changed_or_trigger: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    why_it_matters: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    who_this_affects: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recommended_action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence_snippets: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)

    scan: Mapped[DealScan] = relationship(back_populates="risks")

    def __repr__(self) -> str:
        return (
            f"<DealRisk(id={self.id}, type={self.risk_type}, "
            f"severity={self.severity_current})>"
        )
