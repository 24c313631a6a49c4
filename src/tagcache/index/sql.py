"""SQL tag index backed by SQLAlchemy's async engine.

The index is a two-column table::

    cacheid | tag
    --------+------
    user:1  | users
    user:1  | org:7

When ``unique`` is set the table carries a unique constraint over both
columns and inserts that hit it are ignored, so concurrent writers cannot
create duplicate rows even though ``exists`` and ``insert`` are separate
statements.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import (
    Column,
    Index,
    MetaData,
    Select,
    String,
    Table,
    UniqueConstraint,
    delete,
    select,
)
from sqlalchemy import exists as sql_exists
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from tagcache.errors import IndexUnavailable

logger = logging.getLogger(__name__)


def build_table(
    table_name: str = "cache_tags",
    *,
    unique: bool = True,
    metadata: MetaData | None = None,
) -> Table:
    """Build the ``(cacheid, tag)`` table definition."""
    constraints = (
        [UniqueConstraint("cacheid", "tag", name=f"uq_{table_name}_cacheid_tag")]
        if unique
        else []
    )
    return Table(
        table_name,
        metadata if metadata is not None else MetaData(),
        Column("cacheid", String(255), nullable=False),
        Column("tag", String(255), nullable=False),
        Index(f"ix_{table_name}_cacheid", "cacheid"),
        Index(f"ix_{table_name}_tag", "tag"),
        *constraints,
    )


class AsyncSqlTagIndex:
    """Async tag index stored in a relational table."""

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        table_name: str = "cache_tags",
        unique: bool = True,
    ) -> None:
        self._engine = engine
        self._unique = unique
        self.table = build_table(table_name, unique=unique)

    async def create_schema(self) -> None:
        """Create the index table if it does not exist."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(self.table.metadata.create_all)
        except SQLAlchemyError as e:
            raise IndexUnavailable(f"Could not create table {self.table.name}") from e

    async def exists(self, key: str, tag: str) -> bool:
        t = self.table
        stmt = select(sql_exists().where(t.c.cacheid == key, t.c.tag == tag))
        try:
            async with self._engine.connect() as conn:
                return bool(await conn.scalar(stmt))
        except SQLAlchemyError as e:
            raise IndexUnavailable(f"Lookup failed for {key!r}") from e

    async def insert(self, key: str, tag: str) -> None:
        stmt = self.table.insert().values(cacheid=key, tag=tag)
        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except IntegrityError:
            if not self._unique:
                raise IndexUnavailable(f"Insert failed for {key!r}") from None
            # Lost a race with a concurrent writer; the row is there
            logger.debug("Mapping (%r, %r) already present", key, tag)
        except SQLAlchemyError as e:
            raise IndexUnavailable(f"Insert failed for {key!r}") from e

    async def delete_by_key(self, key: str) -> None:
        stmt = delete(self.table).where(self.table.c.cacheid == key)
        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise IndexUnavailable(f"Delete failed for {key!r}") from e

    async def find_keys_by_tag_in(self, tags: Iterable[str]) -> set[str]:
        wanted = sorted(set(tags))
        if not wanted:
            return set()
        t = self.table
        stmt = select(t.c.cacheid).where(t.c.tag.in_(wanted)).distinct()
        return await self._fetch_column(stmt)

    async def find_keys_by_tag_not_in(self, tags: Iterable[str]) -> set[str]:
        t = self.table
        matching = select(t.c.cacheid).where(t.c.tag.in_(sorted(set(tags))))
        stmt = select(t.c.cacheid).where(t.c.cacheid.not_in(matching)).distinct()
        return await self._fetch_column(stmt)

    async def tags_for_key(self, key: str) -> set[str]:
        t = self.table
        return await self._fetch_column(select(t.c.tag).where(t.c.cacheid == key))

    async def all_tags(self) -> set[str]:
        return await self._fetch_column(select(self.table.c.tag).distinct())

    async def all_keys(self) -> set[str]:
        return await self._fetch_column(select(self.table.c.cacheid).distinct())

    async def clear(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.execute(delete(self.table))
        except SQLAlchemyError as e:
            raise IndexUnavailable(f"Could not clear {self.table.name}") from e

    async def disconnect(self) -> None:
        """Dispose of the engine's connection pool."""
        await self._engine.dispose()

    async def _fetch_column(self, stmt: Select[Any]) -> set[str]:
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                return set(result.scalars().all())
        except SQLAlchemyError as e:
            raise IndexUnavailable("Tag index query failed") from e
