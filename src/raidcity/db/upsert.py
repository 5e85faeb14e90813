"""Dialect-aware INSERT ... ON CONFLICT construction."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, table: Any) -> Any:  # noqa: ANN401
    """Return an ``insert()`` for ``table`` that supports ``on_conflict_do_*``.

    PostgreSQL and SQLite both implement the ON CONFLICT clause with the same
    SQLAlchemy API; any other dialect is rejected.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    msg = f"Upsert not supported for dialect {dialect!r}"
    raise RuntimeError(msg)
