"""SQLite store for releases, their files, the PreDB and its hash index."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from prematch.utils.constants import DEFAULT_DB_FILENAME
from prematch.utils.logger import get_logger

logger = get_logger("db.database")

SCHEMA_VERSION = 2

CREATE_TABLES_SQL = """
-- PreDB: canonical release titles, written by the ingestion process
CREATE TABLE IF NOT EXISTS predb (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL UNIQUE,
    filename TEXT,
    source TEXT,
    nuked INTEGER NOT NULL DEFAULT 0,
    nukereason TEXT,
    created TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Hash index: md5/sha1 style hashes of PreDB titles
CREATE TABLE IF NOT EXISTS predb_hashes (
    hash TEXT PRIMARY KEY,
    predb_id INTEGER NOT NULL,
    FOREIGN KEY (predb_id) REFERENCES predb(id)
);

-- Releases: aggregated newsgroup uploads
CREATE TABLE IF NOT EXISTS releases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    guid TEXT UNIQUE,
    name TEXT NOT NULL,
    searchname TEXT NOT NULL,
    category_id INTEGER NOT NULL DEFAULT 0,
    group_id INTEGER NOT NULL DEFAULT 0,
    nzb_status INTEGER NOT NULL DEFAULT 0,
    is_renamed INTEGER NOT NULL DEFAULT 0,
    is_hashed INTEGER NOT NULL DEFAULT 0,
    dehash_status INTEGER NOT NULL DEFAULT 0,
    predb_id INTEGER NOT NULL DEFAULT 0,
    added_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Release files: the files listed in each release's NZB
CREATE TABLE IF NOT EXISTS release_files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    release_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    size INTEGER NOT NULL DEFAULT 0,
    is_hashed INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (release_id) REFERENCES releases(id)
);

-- Query cache: listing results with a bounded lifetime
CREATE TABLE IF NOT EXISTS query_cache (
    cache_key TEXT PRIMARY KEY,
    response_json TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_predb_filename ON predb(filename);
CREATE INDEX IF NOT EXISTS idx_predb_created ON predb(created);
CREATE INDEX IF NOT EXISTS idx_releases_predb ON releases(predb_id);
CREATE INDEX IF NOT EXISTS idx_releases_searchname ON releases(searchname);
CREATE INDEX IF NOT EXISTS idx_releases_dehash ON releases(nzb_status, dehash_status);
CREATE INDEX IF NOT EXISTS idx_releases_added ON releases(added_at);
CREATE INDEX IF NOT EXISTS idx_release_files_release ON release_files(release_id);
CREATE INDEX IF NOT EXISTS idx_query_cache_created ON query_cache(created_at);
"""


class StoreUnavailableError(RuntimeError):
    """The backing store failed a read or write.

    Fatal for the current driver run. Every write is idempotent, so the
    caller can simply re-run the same pass later.
    """


class Database:
    """SQLite database manager for prematch.

    Handles connection management, schema creation, and migrations.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file. If None, uses
                the default filename in the current directory.
        """
        self._db_path = Path(db_path) if db_path else Path(DEFAULT_DB_FILENAME)
        self._connection: sqlite3.Connection | None = None

    @property
    def path(self) -> Path:
        return self._db_path

    def connect(self) -> sqlite3.Connection:
        """Open a connection to the database and ensure schema is created.

        Returns:
            Active SQLite connection.

        Raises:
            StoreUnavailableError: If the database cannot be opened.
        """
        if self._connection is not None:
            return self._connection

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connection = sqlite3.connect(str(self._db_path))
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA journal_mode=WAL")
            self._connection.execute("PRAGMA foreign_keys=ON")
            self._ensure_schema()
        except sqlite3.Error as e:
            self._connection = None
            raise StoreUnavailableError(f"Cannot open {self._db_path}: {e}") from e

        logger.info("Database connected: %s", self._db_path)
        return self._connection

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.debug("Database connection closed")

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active connection, connecting if necessary."""
        if self._connection is None:
            return self.connect()
        return self._connection

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and run migrations if needed."""
        conn = self._connection
        if conn is None:
            return

        conn.executescript(CREATE_TABLES_SQL)

        cursor = conn.execute("SELECT COUNT(*) FROM schema_version")
        count = cursor.fetchone()[0]

        if count == 0:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info("Database schema created (version %d)", SCHEMA_VERSION)
        else:
            cursor = conn.execute("SELECT version FROM schema_version")
            current_version = cursor.fetchone()[0]
            if current_version < SCHEMA_VERSION:
                self._migrate(current_version, SCHEMA_VERSION)

    def _migrate(self, from_version: int, to_version: int) -> None:
        """Run database migrations between versions.

        Args:
            from_version: Current schema version.
            to_version: Target schema version.
        """
        logger.info("Migrating database from v%d to v%d", from_version, to_version)
        conn = self._connection
        if not conn:
            return

        if from_version < 2:
            # v1 predb rows had no source column; the query cache arrived with it.
            columns = {row["name"] for row in conn.execute("PRAGMA table_info(predb)")}
            if "source" not in columns:
                conn.execute("ALTER TABLE predb ADD COLUMN source TEXT")
            logger.info("Migration v1->v2: added predb.source")

        conn.execute("UPDATE schema_version SET version = ?", (to_version,))
        conn.commit()

    def __enter__(self) -> Database:
        """Open the database connection for use as a context manager."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the database connection when exiting the context."""
        self.close()
