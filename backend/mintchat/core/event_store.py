"""
EventStore: the single durable store behind Mintchat.

Thin wrapper over the Supabase (PostgREST) query builder for the four record
sets (conversations, messages, notifications, reactions). It holds no
business rules: services describe *what* to read or write with plain filter
dicts and this module turns that into PostgREST calls.

Every store error is surfaced as PersistenceFailure. Unique-constraint
violations surface as DuplicateRecordError so callers can re-read after
losing a create race.
"""

import logging
from typing import Any, Optional, Union

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from mintchat.core.database import TABLES, get_supabase

logger = logging.getLogger(__name__)

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

Filters = Optional[dict[str, Any]]
Ordering = Union[str, list[str], None]


class PersistenceFailure(Exception):
    """The store was unreachable or rejected the operation."""

    def __init__(self, message: str, table: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message)
        self.table = table
        self.operation = operation


class DuplicateRecordError(PersistenceFailure):
    """An insert collided with a uniqueness constraint."""

    pass


class EventStore:
    """Insert / query / update / delete over Supabase tables."""

    def __init__(self, supabase: Optional[Client] = None) -> None:
        self._supabase = supabase

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    # =========================================================================
    # Public API
    # =========================================================================

    def insert(self, table: str, row: dict) -> dict:
        """Insert one row and return it as stored (with generated columns)."""
        query = self._table(table).insert(row)
        result = self._execute(query, table, "insert")
        if not result.data:
            raise PersistenceFailure(f"Insert into {table} returned no row", table, "insert")
        return result.data[0]

    def find(
        self,
        table: str,
        *,
        eq: Filters = None,
        neq: Filters = None,
        in_: Optional[dict[str, list]] = None,
        either: Filters = None,
        lt: Filters = None,
        before_key: Filters = None,
        order_by: Ordering = None,
        desc: bool = False,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> list[dict]:
        """
        Select rows matching every filter.

        Args:
            eq / neq / lt: column -> value comparisons, all ANDed
            in_: column -> allowed values
            either: column -> value pairs ORed together (e.g. "either participant")
            before_key: ordered column -> value pairs; keeps rows whose tuple of
                those columns sorts strictly before the given one (keyset paging).
                Cannot be combined with `either`.
            order_by / desc / limit: ordering column(s) and page size
        """
        query = self._table(table).select(columns)
        if either and before_key:
            raise ValueError("either and before_key cannot be combined")
        query = self._apply_filters(query, eq=eq, neq=neq, in_=in_, either=either, lt=lt)
        if before_key:
            query = query.or_(self._keyset_before(before_key))
        orderings = [order_by] if isinstance(order_by, str) else list(order_by or [])
        for column in orderings:
            query = query.order(column, desc=desc)
        if limit is not None:
            query = query.limit(limit)
        result = self._execute(query, table, "select")
        return result.data or []

    def find_one(self, table: str, **filters: Any) -> Optional[dict]:
        """Return the first matching row or None."""
        rows = self.find(table, limit=1, **filters)
        return rows[0] if rows else None

    def count(
        self,
        table: str,
        *,
        eq: Filters = None,
        neq: Filters = None,
        in_: Optional[dict[str, list]] = None,
        either: Filters = None,
    ) -> int:
        """Exact count of matching rows."""
        query = self._table(table).select("id", count="exact")
        query = self._apply_filters(query, eq=eq, neq=neq, in_=in_, either=either)
        result = self._execute(query, table, "count")
        return result.count or 0

    def update(
        self,
        table: str,
        values: dict,
        *,
        eq: dict[str, Any],
        neq: Filters = None,
        in_: Optional[dict[str, list]] = None,
    ) -> list[dict]:
        """Update matching rows and return them as updated."""
        if not eq:
            raise ValueError("update requires at least one equality filter")
        query = self._table(table).update(values)
        query = self._apply_filters(query, eq=eq, neq=neq, in_=in_)
        result = self._execute(query, table, "update")
        return result.data or []

    def delete(self, table: str, *, eq: dict[str, Any]) -> list[dict]:
        """Hard-delete matching rows and return what was removed."""
        if not eq:
            raise ValueError("delete requires at least one equality filter")
        query = self._table(table).delete()
        query = self._apply_filters(query, eq=eq)
        result = self._execute(query, table, "delete")
        return result.data or []

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _table(self, table: str) -> Any:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        return self.supabase.table(table)

    @staticmethod
    def _apply_filters(
        query: Any,
        *,
        eq: Filters = None,
        neq: Filters = None,
        in_: Optional[dict[str, list]] = None,
        either: Filters = None,
        lt: Filters = None,
    ) -> Any:
        for column, value in (eq or {}).items():
            query = query.eq(column, value)
        for column, value in (neq or {}).items():
            query = query.neq(column, value)
        for column, values in (in_ or {}).items():
            query = query.in_(column, values)
        for column, value in (lt or {}).items():
            query = query.lt(column, value)
        if either:
            query = query.or_(
                ",".join(f"{column}.eq.{value}" for column, value in either.items())
            )
        return query

    @staticmethod
    def _keyset_before(key: dict[str, Any]) -> str:
        """(a, b) < (x, y) as a PostgREST or-filter: a < x, or a = x and b < y."""
        items = list(key.items())
        clauses = []
        for i, (column, value) in enumerate(items):
            terms = [f'{c}.eq."{v}"' for c, v in items[:i]]
            terms.append(f'{column}.lt."{value}"')
            clauses.append(terms[0] if len(terms) == 1 else f"and({','.join(terms)})")
        return ",".join(clauses)

    @staticmethod
    def _execute(query: Any, table: str, operation: str) -> Any:
        try:
            return query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateRecordError(
                    f"Duplicate {table} record: {e.message}", table, operation
                ) from e
            logger.error("Store rejected %s on %s: %s", operation, table, e.message)
            raise PersistenceFailure(
                f"Failed to {operation} {table}: {e.message}", table, operation
            ) from e
        except httpx.HTTPError as e:
            logger.error("Store unreachable during %s on %s: %s", operation, table, e)
            raise PersistenceFailure(
                f"Store unreachable during {operation} on {table}", table, operation
            ) from e
