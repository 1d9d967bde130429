"""Row store used by the synchronizer.

The synchronizer only talks to storage through two operations, ``upsert``
and ``select``, so the reconciliation logic can run against any backend
(and against an in-memory fake in tests). ``SqlAlchemyRowStore`` is the
PostgreSQL implementation built on the application's async session.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import Table, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import career_loader.models  # noqa: F401  registers the curriculum tables
from career_loader.utils.db import Base

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# SQLSTATE reported by PostgreSQL for unique violations
UNIQUE_VIOLATION = "23505"


@dataclass
class StoreError:
    """Error reported by a store operation.

    Attributes:
        message: Human-readable error message.
        code: Backend error code (SQLSTATE for PostgreSQL), if known.
    """

    message: str
    code: Optional[str] = None

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


@dataclass
class StoreResult:
    """Rows returned by a store operation, or the error it produced."""

    rows: List[Row] = field(default_factory=list)
    error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RowStore(ABC):
    """Narrow interface over the relational store.

    Implementations must not raise for ordinary write or read failures;
    they report them through ``StoreResult.error`` instead.
    """

    @abstractmethod
    async def upsert(
        self,
        table: str,
        rows: Sequence[Row],
        on_conflict: Optional[str] = None,
        ignore_duplicates: bool = False,
    ) -> StoreResult:
        """Insert rows, updating (or skipping) rows that already exist.

        Args:
            table: Table name.
            rows: Rows to write.
            on_conflict: Conflict column; defaults to the primary key.
            ignore_duplicates: Skip conflicting rows instead of updating them.
                Skipped rows are absent from the result.

        Returns:
            StoreResult with the rows actually written.
        """
        raise NotImplementedError

    @abstractmethod
    async def select(
        self,
        table: str,
        columns: Sequence[str],
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> StoreResult:
        """Read rows from a table.

        Args:
            table: Table name.
            columns: Columns to return.
            filters: Column filters; sequence values mean ``IN``.
            limit: Maximum number of rows to return.

        Returns:
            StoreResult with the matching rows.
        """
        raise NotImplementedError


class SqlAlchemyRowStore(RowStore):
    """PostgreSQL row store backed by an async SQLAlchemy session.

    Every call runs in its own transaction: writes commit on success and
    roll back on failure, so one failing call never poisons the next.

    Usage:
        session = await get_session()
        store = SqlAlchemyRowStore(session)
        result = await store.upsert("subjects", rows, on_conflict="code",
                                    ignore_duplicates=True)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize store with database session.

        Args:
            db: Database session for operations
        """
        self.db = db

    def _table(self, name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise KeyError(f"Unknown table '{name}'")
        return table

    @staticmethod
    def _error_from(e: Exception) -> StoreError:
        orig = getattr(e, "orig", None)
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return StoreError(message=str(orig or e), code=code)

    async def upsert(
        self,
        table: str,
        rows: Sequence[Row],
        on_conflict: Optional[str] = None,
        ignore_duplicates: bool = False,
    ) -> StoreResult:
        if not rows:
            return StoreResult()

        try:
            target = self._table(table)
        except KeyError as e:
            return StoreResult(error=StoreError(str(e)))

        if on_conflict:
            conflict_columns = [on_conflict]
        else:
            conflict_columns = [column.name for column in target.primary_key.columns]

        stmt = insert(target).values(list(rows))
        updatable = [
            column.name
            for column in target.columns
            if column.name not in conflict_columns
            and column.name not in ("created_at", "updated_at")
            and column.name in rows[0]
        ]
        if ignore_duplicates or not updatable:
            stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=conflict_columns,
                set_={name: stmt.excluded[name] for name in updatable},
            )
        stmt = stmt.returning(*target.columns)

        try:
            result = await self.db.execute(stmt)
            written = [dict(row) for row in result.mappings().all()]
            await self.db.commit()
            logger.debug(
                "Upserted rows",
                extra={"table": table, "requested": len(rows), "written": len(written)},
            )
            return StoreResult(rows=written)
        except (DBAPIError, SQLAlchemyError) as e:
            await self.db.rollback()
            error = self._error_from(e)
            logger.error(
                "Failed to upsert rows",
                extra={"table": table, "rows": len(rows), "error": str(error)},
            )
            return StoreResult(error=error)

    async def select(
        self,
        table: str,
        columns: Sequence[str],
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> StoreResult:
        try:
            target = self._table(table)
            query = select(*(target.c[name] for name in columns))
            for key, value in (filters or {}).items():
                if isinstance(value, (list, tuple, set, frozenset)):
                    query = query.where(target.c[key].in_(list(value)))
                else:
                    query = query.where(target.c[key] == value)
        except KeyError as e:
            return StoreResult(error=StoreError(f"Invalid select on '{table}': {e}"))

        if limit:
            query = query.limit(limit)

        try:
            result = await self.db.execute(query)
            return StoreResult(rows=[dict(row) for row in result.mappings().all()])
        except (DBAPIError, SQLAlchemyError) as e:
            await self.db.rollback()
            error = self._error_from(e)
            logger.error(
                "Failed to select rows",
                extra={"table": table, "filters": dict(filters or {}), "error": str(error)},
            )
            return StoreResult(error=error)
