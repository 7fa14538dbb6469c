"""INSERT ... ON CONFLICT DO NOTHING for the session's dialect."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.db.base import Base


async def insert_ignore(
    db: AsyncSession,
    model: type[Base],
    values: dict[str, Any],
    index_elements: list[str],
) -> bool:
    """Insert one row unless it collides on ``index_elements``.

    Returns True when a row was written, False when it already existed.
    """
    insert = sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert
    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=index_elements)
    result = await db.execute(stmt)
    return result.rowcount == 1
