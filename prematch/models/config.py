"""Typed configuration model for prematch.

All configuration values have explicit types, defaults, and documentation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from prematch.utils.constants import (
    CACHE_EXPIRY_MEDIUM_SECONDS,
    DEFAULT_DB_FILENAME,
    DEFAULT_GLOBAL_BATCH_LIMIT,
    DEFAULT_GROUP_BATCH_LIMIT,
    DEFAULT_RECENT_WINDOW_HOURS,
    DEFAULT_RETRY_FLOOR,
    OTHER_CATEGORY_GROUP,
)


@dataclass
class AppConfig:
    """Strongly-typed configuration for the prematch application.

    Attributes:
        db_path: Path to the SQLite database holding releases and the PreDB.
        recent_window_hours: Age limit for the per-group correlation pass.
        retry_floor: Lowest ``dehash_status`` a release can reach. Releases at
            the floor are no longer considered by the hash path.
        other_category_ids: Categories scanned by the global correlation pass.
        group_batch_limit: Maximum rows per per-group correlation pass.
        global_batch_limit: Maximum rows per global correlation pass.
        direct_match_days: Restrict the direct title backfill to releases
            added within this many days (None = all releases).
        cache_expiry_medium: Lifetime in seconds of cached PreDB listings.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_file: Path to log file (None = console only).
        dry_run: If True, report what would change without writing.
    """

    # --- Storage ---
    db_path: str = DEFAULT_DB_FILENAME

    # --- Correlation ---
    recent_window_hours: int = DEFAULT_RECENT_WINDOW_HOURS
    retry_floor: int = DEFAULT_RETRY_FLOOR
    other_category_ids: list[int] = field(
        default_factory=lambda: list(OTHER_CATEGORY_GROUP)
    )
    group_batch_limit: int = DEFAULT_GROUP_BATCH_LIMIT
    global_batch_limit: int = DEFAULT_GLOBAL_BATCH_LIMIT

    # --- Direct Matching ---
    direct_match_days: int | None = None

    # --- Cache ---
    cache_expiry_medium: int = CACHE_EXPIRY_MEDIUM_SECONDS

    # --- Logging ---
    log_level: str = "INFO"
    log_file: str | None = None

    # --- Safety ---
    dry_run: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> AppConfig:
        """Create an AppConfig from a raw dictionary (e.g., from YAML).

        Unknown keys are ignored so config files with extra or future keys
        don't break older code.

        Args:
            data: Dictionary of configuration values.

        Returns:
            Populated AppConfig instance.
        """
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in known_fields and v is not None}
        return cls(**filtered)

    def to_dict(self) -> dict:
        """Serialize the config to a dictionary."""
        from dataclasses import asdict
        return asdict(self)

    @property
    def db_path_resolved(self) -> Path:
        """Return db_path as a resolved Path."""
        return Path(self.db_path).expanduser().resolve()
