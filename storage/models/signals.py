"""
Macro Signal ORM Models.

============================================================
PURPOSE
============================================================
Macro signals (shared, read-only for scoring) and the links
between signals and deal risk findings.

============================================================
DATA LIFECYCLE ROLE
============================================================
- MacroSignalRecord: independent, time-stamped observation
- DealSignalLink: insert-only; unique per (risk, signal) so a
  re-run of relevance matching is a no-op

============================================================
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, CreatedAtMixin


class MacroSignalRecord(Base, CreatedAtMixin):
    """A market-level observation not tied to any deal."""

    __tablename__ = "macro_signals"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Signal identifier"
    )

    signal_type: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Pricing, Credit Availability, Credit Risk, Liquidity, ..."
    )

    what_changed: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Free-text description"
    )

    def __repr__(self) -> str:
        return f"<MacroSignalRecord(id={self.id}, type={self.signal_type})>"


class DealSignalLink(Base, CreatedAtMixin):
    """Link between a deal risk finding and a corroborating macro signal."""

    __tablename__ = "deal_signal_links"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    deal_risk_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("deal_risks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    signal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("macro_signals.id", ondelete="CASCADE"),
        nullable=False,
    )

    link_reason: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("deal_risk_id", "signal_id", name="uq_deal_signal_links_risk_signal"),
    )

    def __repr__(self) -> str:
        return f"<DealSignalLink(risk={self.deal_risk_id}, signal={self.signal_id})>"
