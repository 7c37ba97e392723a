"""SQLite-backed chunk store with FTS5 search."""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite
import structlog
from ulid import ULID

from memoir.models.chunk import (
    Chunk,
    ChunkContent,
    ChunkHeader,
    ChunkMetadata,
    FilePart,
    ReasoningPart,
    SearchResult,
    TextPart,
    ToolPart,
)
from memoir.models.config import SearchConfig, StoreConfig

T = TypeVar("T")


def make_id(prefix: str) -> str:
    """
    Generate a ULID-based sortable identifier.

    Args:
        prefix: Short string prefix, e.g. ``"ch"``.

    Returns:
        A string like ``"ch_01JXYZ6K3MNPQR4STUVWXYZ01"``.
    """
    return f"{prefix}_{ULID()}"


# ── Exceptions ─────────────────────────────────────────────────────────────────


class MemoirStoreError(Exception):
    """Base class for store errors."""


class PersistenceError(MemoirStoreError):
    """Raised when a write transaction fails and has been rolled back."""


class ChunkNotFoundError(MemoirStoreError):
    """Raised when a chunk_id does not exist in the store."""

    def __init__(self, chunk_id: str) -> None:
        super().__init__(f"Chunk not found: {chunk_id!r}")
        self.chunk_id = chunk_id


class DuplicateIDError(MemoirStoreError):
    """Raised when attempting to insert a chunk with a duplicate primary key."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Duplicate ID: {record_id!r}")
        self.record_id = record_id


# ── Index text ─────────────────────────────────────────────────────────────────

_HEADER_FIELDS = (
    "id",
    "session_id",
    "status",
    "depth",
    "summary",
    "child_refs",
    "metadata",
    "message_count",
    "content_chars",
    "created_at",
)
_HEADER_COLUMNS = ", ".join(_HEADER_FIELDS)
_CHUNK_COLUMNS = f"{_HEADER_COLUMNS}, content"


class IndexText:
    """The three FTS5 column values derived from a chunk."""

    __slots__ = ("body", "summary", "tools")

    def __init__(self, summary: str, body: str, tools: str) -> None:
        self.summary = summary
        self.body = body
        self.tools = tools

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> IndexText:
        body: list[str] = []
        tools: list[str] = []
        for message in chunk.content.messages:
            for part in message.parts:
                if isinstance(part, (TextPart, ReasoningPart, FilePart)):
                    body.append(part.text)
                elif isinstance(part, ToolPart):
                    tools.append(part.tool)
                    if part.input:
                        tools.append(json.dumps(part.input, ensure_ascii=False))
                    if part.output:
                        tools.append(part.output)
        return cls(chunk.summary or "", "\n".join(body), "\n".join(tools))

    @property
    def content_chars(self) -> int:
        return len(self.body) + len(self.tools)


def build_match_query(query: str) -> str | None:
    """
    Turn free text into an FTS5 MATCH expression.

    Every word becomes a quoted term and terms are joined with ``OR`` so a
    chunk matching any of them is a candidate; BM25 rewards matching more.
    Returns None when the text has no searchable words.
    """
    terms = re.findall(r"\w+", query)
    if not terms:
        return None
    return " OR ".join(f'"{term}"' for term in terms)


def _is_transient(exc: aiosqlite.Error) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


# ── ChunkStore ─────────────────────────────────────────────────────────────────


class ChunkStore:
    """
    Persisted chunk hierarchy backed by one SQLite connection.

    Every mutation runs inside ``BEGIN IMMEDIATE ... COMMIT`` under the store's
    lock and is rolled back on error, so a chunk, its index row and any status
    flips land together or not at all. Reads take the same lock so they never
    observe a half-applied write on the shared connection.

    Usage::

        store = ChunkStore(StoreConfig(db_path="/tmp/memoir.db"))
        await store.initialize()
        try:
            chunk = await store.create_chunk("ses_1", content)
            hits = await store.search("migration")
        finally:
            await store.close()
    """

    def __init__(self, config: StoreConfig, search: SearchConfig | None = None) -> None:
        self._config = config
        self._search = search or SearchConfig()
        self._db_path = str(Path(config.db_path).expanduser())
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._logger = structlog.get_logger("memoir.store")

    @property
    def db_path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        """
        Open the database connection and apply the schema.

        Raises:
            aiosqlite.Error: If the database cannot be opened or the schema fails.
        """
        if self._conn is not None:
            return
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None: transactions are opened explicitly by _write().
        conn = await aiosqlite.connect(
            self._db_path,
            timeout=self._config.connection_timeout,
            isolation_level=None,
        )
        try:
            conn.row_factory = aiosqlite.Row
            if self._config.wal_mode:
                await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            schema_path = Path(__file__).parent / "schema.sql"
            await conn.executescript(schema_path.read_text())
        except Exception:
            await conn.close()
            raise

        self._conn = conn
        self._logger.info("store_initialized", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _conn_or_raise(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise MemoirStoreError("Store is not initialized. Call initialize() first.")
        return self._conn

    async def _write(self, op: Callable[[aiosqlite.Connection], Awaitable[T]]) -> T:
        """
        Run ``op`` inside one immediate transaction, retrying transient lock errors.

        Raises:
            DuplicateIDError: If ``op`` violates the chunk primary key.
            PersistenceError: If the transaction fails for any other SQLite reason.
        """
        conn = self._conn_or_raise()
        attempt = 0
        async with self._lock:
            while True:
                try:
                    await conn.execute("BEGIN IMMEDIATE")
                    try:
                        result = await op(conn)
                        await conn.execute("COMMIT")
                    except BaseException:
                        await conn.rollback()
                        raise
                    return result
                except aiosqlite.IntegrityError as exc:
                    raise PersistenceError(str(exc)) from exc
                except aiosqlite.OperationalError as exc:
                    if _is_transient(exc) and attempt < self._config.write_retries:
                        attempt += 1
                        wait = min(0.05 * 2 ** (attempt - 1), 2.0)
                        self._logger.warning(
                            "store_write_retry",
                            attempt=attempt,
                            wait_seconds=wait,
                            error=str(exc),
                        )
                        await asyncio.sleep(wait)
                        continue
                    raise PersistenceError(str(exc)) from exc
                except aiosqlite.Error as exc:
                    raise PersistenceError(str(exc)) from exc

    # ── Write Methods ──────────────────────────────────────────────────────────

    async def insert_chunk(self, chunk: Chunk) -> Chunk:
        """
        Persist a fully-built chunk together with its search index row.

        Args:
            chunk: The chunk to store. Must carry a pre-generated id.

        Returns:
            The stored chunk (unmodified).

        Raises:
            DuplicateIDError: If a chunk with this ID already exists.
            PersistenceError: If the write fails.
        """

        async def op(conn: aiosqlite.Connection) -> None:
            await self._insert_row(conn, chunk)

        await self._write(op)
        self._logger.debug(
            "chunk_inserted",
            chunk_id=chunk.id,
            session_id=chunk.session_id,
            depth=chunk.depth,
            messages=chunk.message_count,
        )
        return chunk

    async def create_chunk(
        self,
        session_id: str,
        content: ChunkContent,
        *,
        summary: str | None = None,
    ) -> Chunk:
        """
        Create and persist an active depth-0 chunk from ready-made content.

        Args:
            session_id: Owning session.
            content: Messages and metadata for the chunk.
            summary: Optional synopsis to store alongside the content.

        Returns:
            The created Chunk with a fresh ``ch_`` id and timestamp.

        Raises:
            PersistenceError: If the write fails.
        """
        chunk = Chunk(
            id=make_id("ch"),
            session_id=session_id,
            content=content,
            summary=summary,
            status="active",
            depth=0,
        )
        return await self.insert_chunk(chunk)

    async def insert_summary(self, summary_chunk: Chunk) -> None:
        """
        Insert a summary chunk and compact its children in one transaction.

        Every id in ``summary_chunk.child_refs`` must name an active chunk of
        the same session; otherwise nothing is written.

        Raises:
            MemoirStoreError: If a child is missing, already compacted, or
                belongs to another session.
            DuplicateIDError: If the summary id already exists.
            PersistenceError: If the write fails.
        """
        child_ids = summary_chunk.child_refs
        if not child_ids:
            raise MemoirStoreError("A summary chunk must reference at least one child")

        async def op(conn: aiosqlite.Connection) -> None:
            placeholders = ",".join("?" * len(child_ids))
            cursor = await conn.execute(
                f"UPDATE chunks SET status = 'compacted'"
                f" WHERE session_id = ? AND status = 'active' AND id IN ({placeholders})",
                (summary_chunk.session_id, *child_ids),
            )
            if cursor.rowcount != len(set(child_ids)):
                raise MemoirStoreError(
                    f"Cannot compact {len(child_ids)} chunks into {summary_chunk.id!r}:"
                    f" only {cursor.rowcount} are active in session"
                    f" {summary_chunk.session_id!r}"
                )
            await self._insert_row(conn, summary_chunk)

        await self._write(op)
        self._logger.debug(
            "summary_inserted",
            chunk_id=summary_chunk.id,
            session_id=summary_chunk.session_id,
            depth=summary_chunk.depth,
            children=len(child_ids),
        )

    async def delete_session(self, session_id: str) -> int:
        """
        Remove every chunk of a session and its search index rows.

        Returns:
            The number of chunks deleted.

        Raises:
            PersistenceError: If the write fails.
        """

        async def op(conn: aiosqlite.Connection) -> int:
            await conn.execute(
                "DELETE FROM chunks_fts WHERE rowid IN"
                " (SELECT rowid FROM chunks WHERE session_id = ?)",
                (session_id,),
            )
            cursor = await conn.execute("DELETE FROM chunks WHERE session_id = ?", (session_id,))
            return cursor.rowcount

        deleted = await self._write(op)
        self._logger.info("session_chunks_deleted", session_id=session_id, chunks=deleted)
        return deleted

    async def _insert_row(self, conn: aiosqlite.Connection, chunk: Chunk) -> None:
        index = IndexText.from_chunk(chunk)
        try:
            cursor = await conn.execute(
                """
                INSERT INTO chunks
                    (id, session_id, status, depth, summary, child_refs, metadata,
                     content, message_count, content_chars, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    chunk.id,
                    chunk.session_id,
                    chunk.status,
                    chunk.depth,
                    chunk.summary,
                    json.dumps(chunk.child_refs),
                    chunk.content.metadata.model_dump_json(),
                    chunk.content.model_dump_json(),
                    chunk.message_count,
                    index.content_chars,
                    chunk.created_at,
                ),
            )
        except aiosqlite.IntegrityError as exc:
            raise DuplicateIDError(chunk.id) from exc
        await conn.execute(
            "INSERT INTO chunks_fts (rowid, summary, body, tools) VALUES (?, ?, ?, ?)",
            (cursor.lastrowid, index.summary, index.body, index.tools),
        )

    # ── Read Methods ───────────────────────────────────────────────────────────

    async def _fetch(self, sql: str, params: tuple[Any, ...] | list[Any]) -> list[aiosqlite.Row]:
        conn = self._conn_or_raise()
        async with self._lock:
            async with conn.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        return list(rows)

    async def get_chunk(self, chunk_id: str) -> Chunk | None:
        """Fetch a chunk by ID, or None if it does not exist."""
        rows = await self._fetch(f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE id = ?", (chunk_id,))
        return self._row_to_chunk(rows[0]) if rows else None

    async def get_chunk_or_raise(self, chunk_id: str) -> Chunk:
        """
        Fetch a chunk by ID.

        Raises:
            ChunkNotFoundError: If no chunk with this ID exists.
        """
        chunk = await self.get_chunk(chunk_id)
        if chunk is None:
            raise ChunkNotFoundError(chunk_id)
        return chunk

    async def get_chunks(self, chunk_ids: list[str]) -> list[Chunk]:
        """Fetch chunks in the order of ``chunk_ids``, skipping unknown ids."""
        if not chunk_ids:
            return []
        placeholders = ",".join("?" * len(chunk_ids))
        rows = await self._fetch(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE id IN ({placeholders})",
            list(chunk_ids),
        )
        by_id = {row["id"]: self._row_to_chunk(row) for row in rows}
        return [by_id[cid] for cid in chunk_ids if cid in by_id]

    async def get_active_chunks(self, session_id: str) -> list[Chunk]:
        """
        Return every active chunk of a session, at any depth, oldest first.

        Args:
            session_id: The session to query.

        Returns:
            Active chunks ordered by creation time, then insertion order.
        """
        rows = await self._fetch(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks"
            " WHERE session_id = ? AND status = 'active'"
            " ORDER BY created_at ASC, rowid ASC",
            (session_id,),
        )
        return [self._row_to_chunk(row) for row in rows]

    async def get_recent_chunks(
        self,
        session_id: str | None = None,
        limit: int = 10,
    ) -> list[Chunk]:
        """
        Return the newest chunks, optionally restricted to one session.

        Args:
            session_id: Restrict to this session when given; all sessions otherwise.
            limit: Maximum number of chunks to return.

        Returns:
            Chunks of any status and depth, newest first.
        """
        if limit <= 0:
            return []
        where = "WHERE session_id = ?" if session_id is not None else ""
        params: list[Any] = [session_id] if session_id is not None else []
        params.append(limit)
        rows = await self._fetch(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks {where}"
            " ORDER BY created_at DESC, rowid DESC LIMIT ?",
            params,
        )
        return [self._row_to_chunk(row) for row in rows]

    async def get_recent_summary_chunks(self, n: int = 5) -> list[Chunk]:
        """Return the ``n`` newest summary chunks (depth >= 1) across all sessions."""
        if n <= 0:
            return []
        rows = await self._fetch(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE depth >= 1"
            " ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (n,),
        )
        return [self._row_to_chunk(row) for row in rows]

    async def search(
        self,
        query: str,
        *,
        session_id: str | None = None,
        depth: int = 0,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """
        Rank chunks against a free-text query with BM25.

        Args:
            query: Free text. Punctuation is ignored; any word may match.
            session_id: Restrict to one session when given.
            depth: Minimum chunk depth to include.
            limit: Maximum results. Defaults to ``SearchConfig.default_limit``.

        Returns:
            Results ordered by rank descending (larger is more relevant), ties
            broken newest first. Empty for a blank query or no match.
        """
        match = build_match_query(query)
        limit = self._search.default_limit if limit is None else limit
        if match is None or limit <= 0:
            return []

        conditions = ["chunks_fts MATCH ?", "c.depth >= ?"]
        params: list[Any] = [
            self._search.summary_weight,
            self._search.body_weight,
            self._search.tools_weight,
            match,
            depth,
        ]
        if session_id is not None:
            conditions.append("c.session_id = ?")
            params.append(session_id)
        params.append(limit)

        columns = ", ".join(f"c.{col}" for col in (*_HEADER_FIELDS, "content"))
        rows = await self._fetch(
            f"""
            SELECT {columns}, bm25(chunks_fts, ?, ?, ?) AS score
            FROM chunks_fts
            JOIN chunks c ON c.rowid = chunks_fts.rowid
            WHERE {" AND ".join(conditions)}
            ORDER BY score ASC, c.created_at DESC, c.rowid DESC
            LIMIT ?
            """,
            params,
        )
        results = [SearchResult(chunk=self._row_to_chunk(row), rank=-row["score"]) for row in rows]
        self._logger.debug(
            "chunk_search",
            query=query,
            session_id=session_id,
            depth=depth,
            hits=len(results),
        )
        return results

    async def expand(self, chunk_id: str, include_children: bool = False) -> list[Chunk]:
        """
        Resolve a chunk id into the chunk and, optionally, its direct children.

        Args:
            chunk_id: The chunk to expand.
            include_children: Also return the chunks named in ``child_refs``,
                in that order. Grandchildren are never included.

        Returns:
            ``[]`` for an unknown id, ``[chunk]``, or ``[chunk, *children]``.
        """
        chunk = await self.get_chunk(chunk_id)
        if chunk is None:
            return []
        if not include_children or not chunk.child_refs:
            return [chunk]
        return [chunk, *await self.get_chunks(chunk.child_refs)]

    async def expand_headers(
        self,
        chunk_id: str,
        include_children: bool = False,
    ) -> list[ChunkHeader]:
        """Same shape as :meth:`expand` but without reading message bodies."""
        rows = await self._fetch(f"SELECT {_HEADER_COLUMNS} FROM chunks WHERE id = ?", (chunk_id,))
        if not rows:
            return []
        header = self._row_to_header(rows[0])
        if not include_children or not header.child_refs:
            return [header]
        placeholders = ",".join("?" * len(header.child_refs))
        child_rows = await self._fetch(
            f"SELECT {_HEADER_COLUMNS} FROM chunks WHERE id IN ({placeholders})",
            list(header.child_refs),
        )
        by_id = {row["id"]: self._row_to_header(row) for row in child_rows}
        return [header, *(by_id[cid] for cid in header.child_refs if cid in by_id)]

    # ── Private Helpers ────────────────────────────────────────────────────────

    def _row_to_header(self, row: aiosqlite.Row) -> ChunkHeader:
        return ChunkHeader(
            id=row["id"],
            session_id=row["session_id"],
            summary=row["summary"],
            status=row["status"],
            depth=row["depth"],
            child_refs=json.loads(row["child_refs"]),
            created_at=row["created_at"],
            metadata=ChunkMetadata.model_validate_json(row["metadata"]),
            message_count=row["message_count"],
            content_chars=row["content_chars"],
        )

    def _row_to_chunk(self, row: aiosqlite.Row) -> Chunk:
        return Chunk(
            id=row["id"],
            session_id=row["session_id"],
            content=ChunkContent.model_validate_json(row["content"]),
            summary=row["summary"],
            status=row["status"],
            depth=row["depth"],
            child_refs=json.loads(row["child_refs"]),
            created_at=row["created_at"],
        )
