"""
Storage Errors.

============================================================
PURPOSE
============================================================
Every SQLAlchemy error raised inside a repository is re-raised
as one of these, naming the table, the repository operation and
the keys of the row involved (deal_id, scan_id, deal_risk_id,
signal_id). Repositories never retry. `retryable` tells the
caller whether re-running the whole scan can succeed.

Conflicts on the idempotent paths (signal link upsert, audit
entry insert) never get here: they are resolved as no-ops.

============================================================
HIERARCHY
============================================================
RepositoryException
├── RecordNotFoundError        required row is absent
├── ConstraintViolationError   unique/foreign key/check failure
├── StorageUnavailableError    connection or lock failure (retryable)
├── QueryError                 any other statement failure
└── TransactionError           flush failure (retryable)

The relevance overlay catches RepositoryException on its read
path only and degrades to a no-op; everything else propagates.

============================================================
"""

from typing import Any, Dict, Mapping, Optional


class RepositoryException(Exception):
    """Base storage error; carries where it happened and on which row."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        table: Optional[str] = None,
        keys: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.table = table
        self.keys: Dict[str, str] = {k: str(v) for k, v in (keys or {}).items()}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        where = f"{self.repository_name}.{self.operation}"
        if self.table:
            where += f" on {self.table}"
        text = f"[{where}] {self.message}"
        if self.keys:
            text += " (" + ", ".join(f"{k}={v}" for k, v in sorted(self.keys.items())) + ")"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "repository": self.repository_name,
            "operation": self.operation,
            "table": self.table,
            "keys": dict(self.keys),
            "retryable": self.retryable,
        }


class RecordNotFoundError(RepositoryException):
    """A deal or scan the caller named does not exist."""

    def __init__(self, repository_name: str, table: str, key_field: str, record_id: Any) -> None:
        super().__init__(
            message=f"no row with {key_field}={record_id}",
            repository_name=repository_name,
            operation="get",
            table=table,
            keys={key_field: record_id},
        )
        self.key_field = key_field
        self.record_id = record_id


class ConstraintViolationError(RepositoryException):
    """
    A write broke a table constraint.

    Outside the insert-or-ignore paths a duplicate is a real
    conflict (e.g. two scans created with the same id), so it is
    surfaced rather than ignored.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        table: Optional[str],
        keys: Optional[Mapping[str, Any]],
        detail: str,
        constraint: Optional[str] = None,
    ) -> None:
        label = f"constraint {constraint} violated" if constraint else "constraint violated"
        super().__init__(
            message=f"{label}: {detail}",
            repository_name=repository_name,
            operation=operation,
            table=table,
            keys=keys,
        )
        self.constraint = constraint

    @property
    def is_duplicate(self) -> bool:
        text = self.message.lower()
        return "unique" in text or "duplicate" in text


class StorageUnavailableError(RepositoryException):
    """The database could not be reached or the row was locked."""

    retryable = True

    def __init__(
        self,
        repository_name: str,
        operation: str,
        table: Optional[str],
        keys: Optional[Mapping[str, Any]],
        detail: str,
    ) -> None:
        super().__init__(
            message=f"storage unavailable: {detail}",
            repository_name=repository_name,
            operation=operation,
            table=table,
            keys=keys,
        )


class QueryError(RepositoryException):
    """A statement failed for any other reason."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        detail: str,
        table: Optional[str] = None,
        keys: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=f"query failed: {detail}",
            repository_name=repository_name,
            operation=operation,
            table=table,
            keys=keys,
        )


class TransactionError(RepositoryException):
    """Pending score, outcome or severity changes could not be flushed."""

    retryable = True

    def __init__(self, repository_name: str, operation: str, table: Optional[str], detail: str) -> None:
        super().__init__(
            message=f"flush failed: {detail}",
            repository_name=repository_name,
            operation=operation,
            table=table,
        )
