"""
school-bridge tabular repository.

All tabular reads and writes go through TableRepo. Nothing outside this
module writes SQL directly.

The data layer works on entity types, not ORM classes, so the repository
is generic: every call names a table and the repository builds the
statement from the SQLAlchemy Table object in store/models.py. Rows come
back as plain dicts.

    store = TabularStore(engine)
    async with store.transaction() as repo:
        row = await repo.insert("teachers", {"first_name": "Ada", ...})
        await repo.update_where("classes", "teacher_id", 1, None)

One transaction() block is one database transaction: it commits on clean
exit and rolls back if anything inside raises.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncGenerator

from sqlalchemy import Date, Integer, delete, func, insert, select, text, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from school_bridge.core.errors import InvalidPayload, StoreUnavailable
from school_bridge.store.models import get_table

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Value coercion
# ─────────────────────────────────────────────────────────────

def coerce_identity(value: Any) -> int | None:
    """Integer form of a caller-supplied identity, or None if it has none.

    A non-numeric identity cannot match an integer key, so callers treat
    None as "no such row" instead of sending it to the database.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _coerce_value(table_name: str, column, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(column.type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if value == "":
            return None
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            raise InvalidPayload(
                f"{table_name}.{column.name}: {value!r} is not an ISO date",
                {"column": column.name},
            ) from None
    if isinstance(column.type, Integer) and isinstance(value, str):
        if value.strip() == "":
            return None
        try:
            return int(value)
        except ValueError:
            raise InvalidPayload(
                f"{table_name}.{column.name}: {value!r} is not an integer",
                {"column": column.name},
            ) from None
    return value


def coerce_row(table_name: str, payload: dict) -> dict:
    """Validate payload keys against the table and coerce wire values.

    Raises:
        InvalidPayload: If a key is not a column, or a value does not parse.
    """
    table = get_table(table_name)
    unknown = sorted(k for k in payload if k not in table.c)
    if unknown:
        raise InvalidPayload(
            f"{table_name} has no column(s): {', '.join(unknown)}",
            {"unknown": unknown},
        )
    return {k: _coerce_value(table_name, table.c[k], v) for k, v in payload.items()}


# ─────────────────────────────────────────────────────────────
# Repository
# ─────────────────────────────────────────────────────────────

class TableRepo:
    """Row operations on one connection, inside the caller's transaction."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def select_all(self, table_name: str, order_by: str | None = None) -> list[dict]:
        table = get_table(table_name)
        stmt = select(table)
        if order_by:
            stmt = stmt.order_by(table.c[order_by])
        result = await self.conn.execute(stmt)
        return [dict(r._mapping) for r in result]

    async def select_columns(self, table_name: str, columns: list[str]) -> list[dict]:
        table = get_table(table_name)
        result = await self.conn.execute(select(*[table.c[c] for c in columns]))
        return [dict(r._mapping) for r in result]

    async def get(self, table_name: str, id_column: str, identity: Any) -> dict | None:
        key = coerce_identity(identity)
        if key is None:
            return None
        table = get_table(table_name)
        result = await self.conn.execute(select(table).where(table.c[id_column] == key))
        row = result.first()
        return dict(row._mapping) if row else None

    async def insert(self, table_name: str, payload: dict) -> dict:
        table = get_table(table_name)
        values = coerce_row(table_name, payload)
        result = await self.conn.execute(
            insert(table).values(**values).returning(*table.c)
        )
        return dict(result.one()._mapping)

    async def insert_many(self, table_name: str, rows: list[dict]) -> int:
        if not rows:
            return 0
        table = get_table(table_name)
        await self.conn.execute(
            insert(table), [coerce_row(table_name, r) for r in rows]
        )
        return len(rows)

    async def update(
        self,
        table_name: str,
        id_column: str,
        identity: Any,
        payload: dict,
    ) -> dict | None:
        """Update one row by identity. Returns the row after, or None on a miss."""
        key = coerce_identity(identity)
        if key is None or not payload:
            return None
        table = get_table(table_name)
        values = coerce_row(table_name, payload)
        result = await self.conn.execute(
            update(table)
            .where(table.c[id_column] == key)
            .values(**values)
            .returning(*table.c)
        )
        row = result.first()
        return dict(row._mapping) if row else None

    async def delete(self, table_name: str, id_column: str, identity: Any) -> dict | None:
        """Delete one row by identity. Returns the removed row, or None."""
        key = coerce_identity(identity)
        if key is None:
            return None
        table = get_table(table_name)
        result = await self.conn.execute(
            delete(table).where(table.c[id_column] == key).returning(*table.c)
        )
        row = result.first()
        return dict(row._mapping) if row else None

    # ── Dependent-row helpers ─────────────────────────────────

    async def count_where(self, table_name: str, column: str, value: Any) -> int:
        table = get_table(table_name)
        result = await self.conn.execute(
            select(func.count()).select_from(table).where(table.c[column] == value)
        )
        return int(result.scalar_one())

    async def ids_where(
        self,
        table_name: str,
        id_column: str,
        column: str,
        value: Any,
    ) -> list[int]:
        table = get_table(table_name)
        result = await self.conn.execute(
            select(table.c[id_column]).where(table.c[column] == value)
        )
        return [r[0] for r in result.all()]

    async def update_where(
        self,
        table_name: str,
        column: str,
        value: Any,
        new_value: Any,
    ) -> int:
        """Point every row with column == value at new_value. Returns the row count."""
        table = get_table(table_name)
        result = await self.conn.execute(
            update(table).where(table.c[column] == value).values({column: new_value})
        )
        return result.rowcount

    async def delete_where(self, table_name: str, column: str, value: Any) -> int:
        table = get_table(table_name)
        result = await self.conn.execute(
            delete(table).where(table.c[column] == value)
        )
        return result.rowcount

    # ── Bulk ──────────────────────────────────────────────────

    async def wipe(self, table_names: list[str]) -> None:
        """Remove every row from the given tables, children first.

        Postgres also restarts the identity sequences so reseeded rows get
        ids 1..N. SQLite rowids restart on their own once a table is empty.
        """
        if self.conn.dialect.name == "postgresql":
            await self.conn.execute(text(
                f"TRUNCATE TABLE {', '.join(table_names)} RESTART IDENTITY CASCADE"
            ))
            return
        for name in table_names:
            await self.conn.execute(delete(get_table(name)))


# ─────────────────────────────────────────────────────────────
# Store
# ─────────────────────────────────────────────────────────────

class TabularStore:
    """Owns the async engine. Hands out transaction-scoped repositories."""

    name = "tabular"

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[TableRepo, None]:
        """Yield a TableRepo inside one transaction.

        Commits on clean exit, rolls back on exception.

        Raises:
            StoreUnavailable: If no connection can be acquired.
        """
        try:
            conn = await self.engine.connect()
        except (OperationalError, InterfaceError, OSError) as e:
            raise StoreUnavailable(self.name, str(e)) from e
        try:
            async with conn.begin():
                yield TableRepo(conn)
        finally:
            await conn.close()

    async def ping(self) -> bool:
        try:
            async with self.transaction() as repo:
                await repo.conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Tabular store ping failed: {e}")
            return False

    async def close(self) -> None:
        await self.engine.dispose()
