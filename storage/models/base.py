"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Provides the declarative base and common mixins used by all
ORM models of the risk analytics store.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- CreatedAtMixin: Creation timestamp column
- utcnow: Timezone-aware "now" used for Python-side defaults

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    Portable column types only (generic Uuid and JSON) so the
    same schema runs on PostgreSQL and SQLite.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class CreatedAtMixin:
    """
    Mixin providing the creation timestamp.

    The default is set Python-side so rows inserted in the same
    transaction keep their insertion order on every backend.

    Usage:
        class MyModel(Base, CreatedAtMixin):
            __tablename__ = "my_table"
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
        comment="Record creation timestamp (UTC)"
    )
