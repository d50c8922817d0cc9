"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Shared plumbing for the deal, signal and audit repositories:
- The injected session; repositories flush, never commit
- Translation of SQLAlchemy errors into storage errors that
  name the table and the deal/scan/risk/signal keys involved
- Insert-or-ignore for the append-only tables

============================================================
USAGE
============================================================
    class SignalLinkRepository(BaseRepository[DealSignalLink]):
        def __init__(self, session: Session) -> None:
            super().__init__(session, DealSignalLink, "SignalLinkRepository")

The caller owns the transaction (see database.transaction_scope).

============================================================
"""

import logging
from abc import ABC
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, Type, TypeVar
from uuid import UUID

from sqlalchemy import and_, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConstraintViolationError,
    QueryError,
    RecordNotFoundError,
    StorageUnavailableError,
    TransactionError,
)


T = TypeVar("T", bound=Base)

# Columns that identify a row in error reports.
KEY_COLUMNS = ("id", "deal_id", "deal_scan_id", "scan_id", "deal_risk_id", "signal_id")


def row_keys(entity: Any) -> Dict[str, Any]:
    """Identifying column values of an ORM entity, skipping unset ones."""
    keys = {}
    for column in KEY_COLUMNS:
        value = getattr(entity, column, None)
        if value is not None:
            keys[column] = value
    return keys


def constraint_name(error: IntegrityError) -> Optional[str]:
    # psycopg2 exposes the violated constraint; SQLite only names it in the text
    diag = getattr(error.orig, "diag", None)
    return getattr(diag, "constraint_name", None)


class BaseRepository(ABC, Generic[T]):
    """Base class for repositories over one ORM model."""

    def __init__(self, session: Session, model_class: Type[T], repository_name: str) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._table_name = model_class.__tablename__
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def repository_name(self) -> str:
        return self._repository_name

    # =========================================================
    # ERROR TRANSLATION
    # =========================================================

    def _raise_storage_error(
        self,
        error: SQLAlchemyError,
        operation: str,
        keys: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Log and re-raise a SQLAlchemy error as a storage error.

        Raises:
            StorageUnavailableError: connection, timeout or lock failure
            ConstraintViolationError: integrity failure
            QueryError: anything else
        """
        keys = dict(keys or {})
        detail = str(getattr(error, "orig", None) or error)
        self._logger.error(f"{operation} on {self._table_name} failed ({keys}): {detail}")

        if isinstance(error, OperationalError):
            raise StorageUnavailableError(
                self._repository_name, operation, self._table_name, keys, detail
            ) from error
        if isinstance(error, IntegrityError):
            raise ConstraintViolationError(
                self._repository_name,
                operation,
                self._table_name,
                keys,
                detail,
                constraint=constraint_name(error),
            ) from error
        raise QueryError(
            self._repository_name, operation, detail, table=self._table_name, keys=keys
        ) from error

    # =========================================================
    # READS AND WRITES
    # =========================================================

    def _add(self, entity: T) -> T:
        try:
            self._session.add(entity)
            self._session.flush()
        except SQLAlchemyError as e:
            self._raise_storage_error(e, "add", row_keys(entity))
            raise
        self._logger.debug(f"Added {self._table_name} row {row_keys(entity)}")
        return entity

    def _add_all(self, entities: Sequence[T]) -> List[T]:
        entities = list(entities)
        try:
            self._session.add_all(entities)
            self._session.flush()
        except SQLAlchemyError as e:
            parents = {k: v for k, v in row_keys(entities[0]).items() if k != "id"} if entities else {}
            self._raise_storage_error(e, "add_all", parents)
            raise
        self._logger.debug(f"Added {len(entities)} {self._table_name} rows")
        return entities

    def _get_by_id(self, record_id: UUID) -> Optional[T]:
        try:
            return self._session.get(self._model_class, record_id)
        except SQLAlchemyError as e:
            self._raise_storage_error(e, "get", {"id": record_id})
            raise

    def _get_by_id_or_raise(self, record_id: UUID, key_field: str = "id") -> T:
        entity = self._get_by_id(record_id)
        if entity is None:
            raise RecordNotFoundError(self._repository_name, self._table_name, key_field, record_id)
        return entity

    def _execute_query(self, stmt: Any, operation: str = "query", keys: Optional[Mapping[str, Any]] = None) -> List[Any]:
        try:
            return list(self._session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self._raise_storage_error(e, operation, keys)
            raise

    def _execute_scalar(self, stmt: Any, operation: str = "query", keys: Optional[Mapping[str, Any]] = None) -> Optional[Any]:
        try:
            return self._session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            self._raise_storage_error(e, operation, keys)
            raise

    def _insert_ignore(self, values: Dict[str, Any], conflict_columns: Sequence[str]) -> bool:
        """
        INSERT ... ON CONFLICT DO NOTHING on the given unique columns.

        Returns True when a row was inserted, False when it already
        existed. Dialects without ON CONFLICT support fall back to a
        lookup before the insert.
        """
        table = self._model_class.__table__
        dialect = self._session.get_bind().dialect.name
        try:
            if dialect in ("postgresql", "sqlite"):
                dialect_insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
                stmt = dialect_insert(table).values(**values).on_conflict_do_nothing(
                    index_elements=list(conflict_columns)
                )
                result = self._session.execute(stmt)
                return (result.rowcount or 0) > 0

            existing = self._session.execute(
                select(table.c.id).where(
                    and_(*(table.c[col] == values[col] for col in conflict_columns))
                )
            ).first()
            if existing is not None:
                return False
            self._session.execute(insert(table).values(**values))
            return True
        except SQLAlchemyError as e:
            self._raise_storage_error(e, "insert_ignore", {col: values[col] for col in conflict_columns})
            raise

    def _flush(self, operation: str) -> None:
        """
        Flush pending updates.

        Raises:
            TransactionError: If the flush fails
        """
        try:
            self._session.flush()
        except SQLAlchemyError as e:
            self._logger.error(f"Flush of {self._table_name} failed in {operation}: {e}")
            raise TransactionError(self._repository_name, operation, self._table_name, str(e)) from e
