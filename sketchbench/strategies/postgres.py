"""
Exact strategies backed by Postgres tables.

Both variants store one row per token occurrence and answer every query with
an exact scan or aggregation. The indexed variant creates a b-tree index on
the word column before loading, so the index maintenance cost is part of the
measured initialization; the only observable difference between the two is
latency, which is what the benchmark compares.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from psycopg import AsyncConnection, sql

from sketchbench.errors import StrategyStateError
from sketchbench.infrastructure.db_factory import (
    BACKEND,
    connect_postgres,
    translate_postgres_errors,
)
from sketchbench.strategies.abstract import AbstractStorageStrategy, SizeReport


class PostgresStrategy(AbstractStorageStrategy):
    """
    Shared implementation for the two table layouts.

    Loads the corpus with a single COPY ... FROM STDIN stream instead of
    row-by-row INSERTs, so per-row round trips do not dominate initialization.
    """

    backend: str = BACKEND
    table_name: str
    indexed: bool = False

    def __init__(
        self,
        dsn_override: Optional[str] = None,
        connection: Optional[AsyncConnection] = None,
    ) -> None:
        super().__init__()
        self._dsn_override = dsn_override
        self._conn = connection
        self._owns_connection = connection is None

    async def connect(self) -> None:
        if self._conn is None:
            self._conn = await connect_postgres(self._dsn_override)
            self._owns_connection = True

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None and self._owns_connection:
            await conn.close()

    def _connection(self) -> AsyncConnection:
        if self._conn is None:
            raise StrategyStateError(f"{self.name} is not connected")
        return self._conn

    @property
    def _table(self) -> sql.Identifier:
        return sql.Identifier(self.table_name)

    async def _fetchval(self, query: sql.Composable, params: Sequence[Any] = ()) -> Any:
        conn = self._connection()
        with translate_postgres_errors():
            cur = await conn.execute(query, params)
            row = await cur.fetchone()
        return row[0] if row else None

    async def _load(self, corpus: Sequence[str]) -> None:
        conn = self._connection()
        with translate_postgres_errors():
            await conn.execute(
                sql.SQL("CREATE TABLE {} (id BIGSERIAL PRIMARY KEY, word TEXT NOT NULL)").format(
                    self._table
                )
            )
            if self.indexed:
                await conn.execute(
                    sql.SQL("CREATE INDEX {} ON {} (word)").format(
                        sql.Identifier(f"{self.table_name}_word_idx"), self._table
                    )
                )
            async with conn.cursor() as cur:
                async with cur.copy(
                    sql.SQL("COPY {} (word) FROM STDIN").format(self._table)
                ) as copy:
                    for token in corpus:
                        await copy.write_row((token,))

    async def presence_check(self, token: str) -> bool:
        self._require_initialized()
        query = sql.SQL("SELECT EXISTS (SELECT 1 FROM {} WHERE word = %s)").format(self._table)
        return bool(await self._fetchval(query, (token,)))

    async def item_count(self, token: str) -> int:
        self._require_initialized()
        query = sql.SQL("SELECT count(*) FROM {} WHERE word = %s").format(self._table)
        return int(await self._fetchval(query, (token,)) or 0)

    async def cardinality_check(self) -> int:
        self._require_initialized()
        query = sql.SQL("SELECT count(DISTINCT word) FROM {}").format(self._table)
        return int(await self._fetchval(query) or 0)

    async def top_k(self, k: int) -> List[str]:
        self._require_initialized()
        if k <= 0:
            return []
        # Ties on frequency are broken by the word itself so repeated calls agree.
        query = sql.SQL(
            "SELECT word FROM {} GROUP BY word ORDER BY count(*) DESC, word ASC LIMIT %s"
        ).format(self._table)
        conn = self._connection()
        with translate_postgres_errors():
            cur = await conn.execute(query, (k,))
            rows = await cur.fetchall()
        return [row[0] for row in rows]

    async def report_size(self, sizes: SizeReport) -> None:
        self._require_initialized()
        conn = self._connection()
        with translate_postgres_errors():
            cur = await conn.execute(
                "SELECT pg_table_size(%s::regclass), pg_indexes_size(%s::regclass)",
                (self.table_name, self.table_name),
            )
            row = await cur.fetchone()
        table_bytes, index_bytes = row if row else (0, 0)
        sizes[f"{self.name}.table"] = max(int(table_bytes or 0), 0)
        sizes[f"{self.name}.indexes"] = max(int(index_bytes or 0), 0)


class PostgresUnindexedStrategy(PostgresStrategy):
    """Heap table with no secondary index on the word column."""

    name: str = "postgres_unindexed"
    description: str = "Postgres table, one row per occurrence, no word index."
    table_name: str = "words_unindexed"
    indexed: bool = False


class PostgresIndexedStrategy(PostgresStrategy):
    """Same table layout plus a b-tree index on the word column."""

    name: str = "postgres_indexed"
    description: str = "Postgres table, one row per occurrence, b-tree index on word."
    table_name: str = "words_indexed"
    indexed: bool = True


__all__ = ["PostgresStrategy", "PostgresUnindexedStrategy", "PostgresIndexedStrategy"]
