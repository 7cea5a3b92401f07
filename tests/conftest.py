"""Shared fixtures: a fresh SQLite store per test and seeding helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Callable, Iterator

import pytest

from prematch.db.database import Database
from prematch.db.repositories import PreDbRepository, QueryCacheRepository, ReleaseRepository


@pytest.fixture
def db(tmp_path: Path) -> Iterator[Database]:
    database = Database(tmp_path / "prematch.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def conn(db: Database) -> sqlite3.Connection:
    return db.connection


@pytest.fixture
def predb_repo(conn: sqlite3.Connection) -> PreDbRepository:
    return PreDbRepository(conn)


@pytest.fixture
def release_repo(conn: sqlite3.Connection) -> ReleaseRepository:
    return ReleaseRepository(conn)


@pytest.fixture
def query_cache(conn: sqlite3.Connection) -> QueryCacheRepository:
    return QueryCacheRepository(conn)


@pytest.fixture
def add_predb(conn: sqlite3.Connection) -> Callable[..., int]:
    """Insert a PreDB entry (and optional hash index rows); returns its ID."""

    def _add(
        title: str,
        filename: str | None = None,
        created: str | None = None,
        nuked: int = 0,
        nukereason: str | None = None,
        source: str | None = None,
        hashes: tuple[str, ...] = (),
    ) -> int:
        cursor = conn.execute(
            """INSERT INTO predb (title, filename, source, nuked, nukereason, created)
               VALUES (?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))""",
            (title, filename, source, nuked, nukereason, created),
        )
        predb_id = cursor.lastrowid
        for value in hashes:
            conn.execute(
                "INSERT INTO predb_hashes (hash, predb_id) VALUES (?, ?)",
                (value.lower(), predb_id),
            )
        conn.commit()
        return predb_id

    return _add


@pytest.fixture
def add_release(conn: sqlite3.Connection) -> Callable[..., int]:
    """Insert a release (and optional files); returns its ID.

    Files are ``(name, size, is_hashed)`` tuples.
    """

    def _add(
        name: str,
        searchname: str | None = None,
        guid: str | None = None,
        category_id: int = 10,
        group_id: int = 1,
        nzb_status: int = 1,
        is_renamed: int = 0,
        is_hashed: int = 1,
        dehash_status: int = 0,
        predb_id: int = 0,
        added_at: str | None = None,
        files: tuple[tuple[str, int, int], ...] = (),
    ) -> int:
        cursor = conn.execute(
            """INSERT INTO releases (guid, name, searchname, category_id, group_id,
                   nzb_status, is_renamed, is_hashed, dehash_status, predb_id, added_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))""",
            (
                guid, name, searchname if searchname is not None else name,
                category_id, group_id, nzb_status, is_renamed, is_hashed,
                dehash_status, predb_id, added_at,
            ),
        )
        release_id = cursor.lastrowid
        for file_name, size, file_hashed in files:
            conn.execute(
                "INSERT INTO release_files (release_id, name, size, is_hashed) VALUES (?, ?, ?, ?)",
                (release_id, file_name, size, file_hashed),
            )
        conn.commit()
        return release_id

    return _add
