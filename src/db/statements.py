"""Conflict-aware INSERT helpers.

Uniqueness is enforced by the database; callers hand over the natural key and
let ``ON CONFLICT`` decide instead of reading first.
"""

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase


def _insert_for(session: AsyncSession, model: type[DeclarativeBase]):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise NotImplementedError(f"Conflict-aware inserts are not supported on {dialect}")


async def insert_or_ignore(
    session: AsyncSession,
    model: type[DeclarativeBase],
    values: dict[str, Any],
    index_elements: list[str],
) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING. Returns True when a row was written."""
    stmt = _insert_for(session, model).values(**values).on_conflict_do_nothing(
        index_elements=index_elements
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def upsert(
    session: AsyncSession,
    model: type[DeclarativeBase],
    values: dict[str, Any],
    index_elements: list[str],
    update_columns: list[str],
) -> None:
    """INSERT ... ON CONFLICT DO UPDATE, replacing ``update_columns`` wholesale."""
    stmt = _insert_for(session, model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_={column: stmt.excluded[column] for column in update_columns},
    )
    await session.execute(stmt)
