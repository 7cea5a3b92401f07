"""Data access layer -- repository pattern for PreDB and release operations."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Iterator

from prematch.core.hash_extractor import extract_hash
from prematch.models.correlation_mode import CorrelationMode
from prematch.models.predb_entry import NukeStatus, PreDbEntry
from prematch.models.release import CandidateRow, ReleaseCandidate, ReleaseFile
from prematch.utils.constants import (
    CACHE_EXPIRY_MEDIUM_SECONDS,
    DEFAULT_PAGE_SIZE,
    DEHASH_STATUS_MATCHED,
    NZB_STATUS_PUBLISHED,
    UNMATCHED_PAGE_SIZE,
)
from prematch.utils.logger import get_logger

logger = get_logger("db.repositories")

_LIKE_ESCAPE = "\\"


def _like_term(term: str) -> str:
    """Wrap a search term in wildcards, escaping LIKE metacharacters."""
    escaped = (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _has_hash(text: str | None) -> int:
    return 1 if extract_hash(text) else 0


class QueryCacheRepository:
    """Key-value cache for listing queries.

    Each entry is keyed by a string (e.g. ``predb_all:0:50:foo``) and stores
    the query result as JSON. Readers pass the lifetime they accept, so
    entries of different lifetimes share one table.
    """

    DEFAULT_MAX_AGE_SECONDS = CACHE_EXPIRY_MEDIUM_SECONDS

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize with an active database connection.

        Args:
            connection: SQLite connection (with Row factory enabled).
        """
        self._conn = connection

    def get(self, cache_key: str, max_age_seconds: int | None = None) -> Any:
        """Retrieve a cached result younger than *max_age_seconds*.

        Args:
            cache_key: The cache key.
            max_age_seconds: Accepted age. Defaults to the medium expiry.

        Returns:
            Deserialized JSON, or ``None`` on miss or expiry.
        """
        age = max_age_seconds if max_age_seconds is not None else self.DEFAULT_MAX_AGE_SECONDS
        cursor = self._conn.execute(
            """SELECT response_json FROM query_cache
               WHERE cache_key = ? AND created_at >= datetime('now', ?)""",
            (cache_key, f"-{int(age)} seconds"),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["response_json"])
        except (json.JSONDecodeError, TypeError):
            return None

    def put(self, cache_key: str, data: Any) -> None:
        """Store a result, replacing any previous value for the key.

        Args:
            cache_key: The cache key.
            data: JSON-serializable result.
        """
        self._conn.execute(
            """INSERT OR REPLACE INTO query_cache (cache_key, response_json, created_at)
               VALUES (?, ?, CURRENT_TIMESTAMP)""",
            (cache_key, json.dumps(data, ensure_ascii=False)),
        )
        self._conn.commit()

    def clear(self) -> int:
        """Drop every cached result.

        Returns:
            Number of rows deleted.
        """
        cursor = self._conn.execute("DELETE FROM query_cache")
        self._conn.commit()
        return cursor.rowcount

    def prune(self, max_age_seconds: int | None = None) -> int:
        """Delete entries older than *max_age_seconds*.

        Returns:
            Number of rows deleted.
        """
        age = max_age_seconds if max_age_seconds is not None else self.DEFAULT_MAX_AGE_SECONDS
        cursor = self._conn.execute(
            "DELETE FROM query_cache WHERE created_at < datetime('now', ?)",
            (f"-{int(age)} seconds",),
        )
        self._conn.commit()
        deleted = cursor.rowcount
        if deleted:
            logger.info("Pruned %d expired query cache entries", deleted)
        return deleted


class PreDbRepository:
    """Read access to the PreDB and its hash index.

    Point lookups always go to the database: a cached miss could hide an
    entry that was ingested since, and the matchers call these in their hot
    path. Listings and counts may be served from the query cache.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        cache: QueryCacheRepository | None = None,
        cache_expiry: int = CACHE_EXPIRY_MEDIUM_SECONDS,
    ) -> None:
        """Initialize with an active database connection.

        Args:
            connection: SQLite connection (with Row factory enabled).
            cache: Optional cache for ``get_all`` / ``get_count``.
            cache_expiry: Lifetime in seconds of cached listings.
        """
        self._conn = connection
        self._cache = cache
        self._cache_expiry = cache_expiry

    # --- Point lookups ---

    def get_by_id(self, predb_id: int) -> PreDbEntry | None:
        """Return a single PreDB entry by ID, or None."""
        cursor = self._conn.execute("SELECT * FROM predb WHERE id = ?", (predb_id,))
        row = cursor.fetchone()
        return self._row_to_entry(row) if row else None

    def get_by_title(self, title: str) -> PreDbEntry | None:
        """Return the entry whose title equals *title* exactly, or None."""
        cursor = self._conn.execute(
            "SELECT * FROM predb WHERE title = ? LIMIT 1", (title,)
        )
        row = cursor.fetchone()
        return self._row_to_entry(row) if row else None

    def get_by_filename(self, filename: str) -> PreDbEntry | None:
        """Return the first entry whose filename equals *filename* exactly, or None."""
        cursor = self._conn.execute(
            "SELECT * FROM predb WHERE filename = ? ORDER BY id LIMIT 1", (filename,)
        )
        row = cursor.fetchone()
        return self._row_to_entry(row) if row else None

    def get_by_hash(self, hash_value: str) -> PreDbEntry | None:
        """Resolve a hex hash through the hash index.

        Args:
            hash_value: Hex digest in any case.

        Returns:
            The PreDB entry the hash belongs to, or None.
        """
        cursor = self._conn.execute(
            """SELECT p.* FROM predb p
               INNER JOIN predb_hashes h ON h.predb_id = p.id
               WHERE h.hash = ?
               LIMIT 1""",
            (hash_value.lower(),),
        )
        row = cursor.fetchone()
        return self._row_to_entry(row) if row else None

    def get_for_release(self, predb_id: int) -> list[PreDbEntry]:
        """Return the PreDB entries referenced by a release's ``predb_id``."""
        cursor = self._conn.execute("SELECT * FROM predb WHERE id = ?", (predb_id,))
        return [self._row_to_entry(row) for row in cursor.fetchall()]

    # --- Listings ---

    def get_all(
        self,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
        search: str = "",
    ) -> dict[str, Any]:
        """Page through the PreDB, newest first.

        Args:
            offset: Rows to skip.
            limit: Maximum rows to return.
            search: Whitespace-separated terms; every term must appear in the
                title (case-insensitive substring match).

        Returns:
            ``{"rows": [...], "count": n}`` where each row is a dict of the
            predb columns plus ``guid`` (a release matched to it, or None)
            and ``count`` is the total for the same search.
        """
        terms = search.split()
        count = self.get_count(search)

        cache_key = f"predb_all:{offset}:{limit}:{' '.join(terms)}"
        rows = self._cache_get(cache_key)
        if rows is None:
            where, params = self._search_clause(terms)
            cursor = self._conn.execute(
                f"""SELECT p.*,
                       (SELECT r.guid FROM releases r
                        WHERE r.predb_id = p.id ORDER BY r.id LIMIT 1) AS guid
                    FROM predb p
                    {where}
                    ORDER BY p.created DESC, p.id DESC
                    LIMIT ? OFFSET ?""",
                [*params, limit, offset],
            )
            rows = [dict(row) for row in cursor.fetchall()]
            self._cache_put(cache_key, rows)

        return {"rows": rows, "count": count}

    def get_count(self, search: str = "") -> int:
        """Count PreDB entries matching *search* (same rules as ``get_all``)."""
        terms = search.split()
        cache_key = f"predb_count:{' '.join(terms)}"
        cached = self._cache_get(cache_key)
        if cached is not None:
            return int(cached)

        where, params = self._search_clause(terms)
        cursor = self._conn.execute(f"SELECT COUNT(id) AS cnt FROM predb p {where}", params)
        count = cursor.fetchone()["cnt"]
        self._cache_put(cache_key, count)
        return count

    # --- Helpers ---

    @staticmethod
    def _search_clause(terms: list[str]) -> tuple[str, list[str]]:
        if not terms:
            return "", []
        clause = " AND ".join(
            f"p.title LIKE ? ESCAPE '{_LIKE_ESCAPE}'" for _ in terms
        )
        return f"WHERE {clause}", [_like_term(t) for t in terms]

    def _cache_get(self, cache_key: str) -> Any:
        if self._cache is None:
            return None
        return self._cache.get(cache_key, self._cache_expiry)

    def _cache_put(self, cache_key: str, data: Any) -> None:
        if self._cache is not None:
            self._cache.put(cache_key, data)

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> PreDbEntry:
        return PreDbEntry(
            id=row["id"],
            title=row["title"],
            filename=row["filename"],
            source=row["source"],
            created=row["created"],
            nuked=NukeStatus(row["nuked"] or 0),
            nukereason=row["nukereason"],
        )


class ReleaseRepository:
    """Selection cursors and idempotent write-backs over the release corpus.

    Every write is guarded so repeating it is a no-op: ``predb_id`` is only
    set while still unset, and ``dehash_status`` is never pushed past the
    retry floor.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize with an active database connection.

        Registers the ``has_hash(text)`` SQL function used to rank releases
        when a pass is limited.

        Args:
            connection: SQLite connection (with Row factory enabled).
        """
        self._conn = connection
        self._conn.create_function("has_hash", 1, _has_hash, deterministic=True)

    # --- Hash correlation cursor ---

    def count_hash_candidates(self, mode: CorrelationMode) -> int:
        """Number of cursor rows ``stream_hash_candidates`` will yield."""
        sql, params = self._hash_candidate_query(mode)
        cursor = self._conn.execute(f"SELECT COUNT(*) FROM ({sql})", params)
        return cursor.fetchone()[0]

    def stream_hash_candidates(self, mode: CorrelationMode) -> Iterator[CandidateRow]:
        """Lazily yield release/file rows eligible for hash matching.

        Rows are grouped by release (ascending ID). A release with N files
        yields up to N rows, one per file. A mode limit counts releases,
        never rows, so a release is never cut off part-way through its files.
        """
        sql, params = self._hash_candidate_query(mode)
        cursor = self._conn.execute(sql, params)
        for row in cursor:
            yield CandidateRow(
                release_id=row["release_id"],
                name=row["name"],
                searchname=row["searchname"],
                category_id=row["category_id"],
                group_id=row["group_id"],
                dehash_status=row["dehash_status"],
                filename=row["filename"],
            )

    def _hash_candidate_query(self, mode: CorrelationMode) -> tuple[str, list[Any]]:
        # Release-level eligibility; file rows are filtered again in the outer query.
        clauses = [
            "r.nzb_status = ?",
            "r.dehash_status > ?",
            "r.dehash_status <= 0",
            "(r.is_hashed = 1 OR EXISTS (SELECT 1 FROM release_files hf "
            "WHERE hf.release_id = r.id AND hf.is_hashed = 1))",
        ]
        params: list[Any] = [NZB_STATUS_PUBLISHED, mode.retry_floor]

        mode_clauses, mode_params = mode.predicate()
        clauses.extend(mode_clauses)
        params.extend(mode_params)
        where = " AND ".join(clauses)

        if mode.limit is not None:
            # The limit counts releases; every file of a selected release is
            # streamed. Releases with a hash in the name or a file name go first.
            release_filter = (
                "r.id IN (SELECT r.id FROM releases r "
                f"WHERE {where} "
                "ORDER BY (has_hash(r.name) OR EXISTS (SELECT 1 FROM release_files hf "
                "WHERE hf.release_id = r.id AND (r.is_hashed = 1 OR hf.is_hashed = 1) "
                "AND has_hash(hf.name))) DESC, r.id "
                "LIMIT ?)"
            )
            params.append(mode.limit)
        else:
            release_filter = where

        order = "r.id, f.size DESC" if mode.largest_file_first else "r.id, f.id"
        sql = (
            "SELECT r.id AS release_id, r.name, r.searchname, r.category_id, "
            "r.group_id, r.dehash_status, f.name AS filename "
            "FROM releases r "
            "LEFT OUTER JOIN release_files f ON f.release_id = r.id "
            f"WHERE {release_filter} AND (r.is_hashed = 1 OR f.is_hashed = 1) "
            f"ORDER BY {order}"
        )
        return sql, params

    # --- Direct match cursor ---

    def count_unmatched(self, days: int | None = None) -> int:
        """Number of releases ``stream_unmatched`` will yield."""
        where, params = self._unmatched_clause(days)
        cursor = self._conn.execute(f"SELECT COUNT(*) FROM releases {where}", params)
        return cursor.fetchone()[0]

    def stream_unmatched(
        self,
        days: int | None = None,
        page_size: int = UNMATCHED_PAGE_SIZE,
    ) -> Iterator[ReleaseCandidate]:
        """Lazily yield releases without a ``predb_id``, in ID order.

        Rows are read one page at a time, keyed on the last ID seen, so the
        caller can write ``predb_id`` back between items.

        Args:
            days: When positive, only releases added within this many days.
            page_size: Rows fetched per query.
        """
        where, params = self._unmatched_clause(days)
        last_id = 0
        while True:
            cursor = self._conn.execute(
                f"SELECT * FROM releases {where} AND id > ? ORDER BY id LIMIT ?",
                [*params, last_id, page_size],
            )
            rows = cursor.fetchall()
            if not rows:
                return
            for row in rows:
                yield self._row_to_release(row)
            last_id = rows[-1]["id"]

    @staticmethod
    def _unmatched_clause(days: int | None) -> tuple[str, list[Any]]:
        where = "WHERE (predb_id IS NULL OR predb_id = 0)"
        params: list[Any] = []
        if days is not None and days > 0:
            where += " AND added_at > datetime('now', ?)"
            params.append(f"-{int(days)} days")
        return where, params

    # --- Point reads ---

    def get_by_id(self, release_id: int) -> ReleaseCandidate | None:
        """Retrieve a release with its files, or None."""
        cursor = self._conn.execute("SELECT * FROM releases WHERE id = ?", (release_id,))
        row = cursor.fetchone()
        if row is None:
            return None
        release = self._row_to_release(row)
        files = self._conn.execute(
            "SELECT name, size, is_hashed FROM release_files WHERE release_id = ? ORDER BY id",
            (release_id,),
        )
        release.files = [
            ReleaseFile(name=f["name"], size=f["size"], is_hashed=bool(f["is_hashed"]))
            for f in files.fetchall()
        ]
        return release

    # --- Idempotent writes ---

    def set_predb_id(self, release_id: int, predb_id: int) -> bool:
        """Tie an unmatched release to a PreDB entry.

        Returns:
            True if the row changed; False if it was already matched.
        """
        cursor = self._conn.execute(
            """UPDATE releases SET predb_id = ?
               WHERE id = ? AND (predb_id IS NULL OR predb_id = 0)""",
            (predb_id, release_id),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def apply_hash_match(
        self,
        release_id: int,
        predb_id: int,
        searchname: str,
        category_id: int,
    ) -> bool:
        """Rename an unmatched release after a hash hit and mark it resolved.

        Returns:
            True if the row changed; False if it was already matched.
        """
        cursor = self._conn.execute(
            """UPDATE releases
               SET searchname = ?, category_id = ?, is_renamed = 1,
                   predb_id = ?, dehash_status = ?
               WHERE id = ? AND (predb_id IS NULL OR predb_id = 0)""",
            (searchname, category_id, predb_id, DEHASH_STATUS_MATCHED, release_id),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def decrement_dehash_status(self, release_id: int, floor: int) -> bool:
        """Spend one hash-matching retry, never going below *floor*.

        Returns:
            True if the counter moved; False at the floor or when resolved.
        """
        cursor = self._conn.execute(
            """UPDATE releases SET dehash_status = dehash_status - 1
               WHERE id = ? AND dehash_status > ? AND dehash_status <= 0""",
            (release_id, floor),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_release(row: sqlite3.Row) -> ReleaseCandidate:
        return ReleaseCandidate(
            id=row["id"],
            guid=row["guid"],
            name=row["name"],
            searchname=row["searchname"],
            category_id=row["category_id"],
            group_id=row["group_id"],
            dehash_status=row["dehash_status"],
            is_renamed=bool(row["is_renamed"]),
            is_hashed=bool(row["is_hashed"]),
            nzb_status=row["nzb_status"],
            predb_id=row["predb_id"] or 0,
            added_at=row["added_at"],
        )
