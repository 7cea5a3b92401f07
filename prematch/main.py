"""prematch -- Entry point for the PreDB matching stages."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import yaml
from tqdm import tqdm

from prematch.utils.constants import (
    APP_NAME,
    APP_VERSION,
    CACHE_EXPIRY_MEDIUM_SECONDS,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_GLOBAL_BATCH_LIMIT,
    DEFAULT_GROUP_BATCH_LIMIT,
    DEFAULT_RECENT_WINDOW_HOURS,
    DEFAULT_RETRY_FLOOR,
    GLOBAL_STAGE,
    OTHER_CATEGORY_GROUP,
)
from prematch.utils.logger import get_logger, setup_logger

EXIT_OK = 0
EXIT_STORE_UNAVAILABLE = 1
EXIT_BAD_ARGUMENT = 2

_POSITIVE_INT_KEYS = {
    "recent_window_hours": DEFAULT_RECENT_WINDOW_HOURS,
    "group_batch_limit": DEFAULT_GROUP_BATCH_LIMIT,
    "global_batch_limit": DEFAULT_GLOBAL_BATCH_LIMIT,
    "cache_expiry_medium": CACHE_EXPIRY_MEDIUM_SECONDS,
}


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: dict) -> list[str]:
    """Validate configuration values and return a list of warnings.

    Invalid values are replaced with their defaults in *config*.

    Checks:
    - Window sizes, batch limits and the cache lifetime are positive integers
    - The global batch limit is not smaller than the per-group one
    - The retry floor is a negative integer
    - The "other" category list is a non-empty list of integers
    - direct_match_days is empty or a positive integer

    Args:
        config: Configuration dictionary.

    Returns:
        List of human-readable warning strings. Empty if all checks pass.
    """
    warnings: list[str] = []

    for key, default in _POSITIVE_INT_KEYS.items():
        value = config.get(key, default)
        if not _is_int(value) or value <= 0:
            warnings.append(
                f"{key} must be a positive integer, got {value!r}. Using default ({default})."
            )
            config[key] = default

    group_limit = config.get("group_batch_limit", DEFAULT_GROUP_BATCH_LIMIT)
    global_limit = config.get("global_batch_limit", DEFAULT_GLOBAL_BATCH_LIMIT)
    if global_limit < group_limit:
        warnings.append(
            f"global_batch_limit ({global_limit}) must be >= group_batch_limit "
            f"({group_limit}). Swapping them."
        )
        config["global_batch_limit"] = group_limit
        config["group_batch_limit"] = global_limit

    floor = config.get("retry_floor", DEFAULT_RETRY_FLOOR)
    if not _is_int(floor) or floor >= 0:
        warnings.append(
            f"retry_floor must be a negative integer, got {floor!r}. "
            f"Using default ({DEFAULT_RETRY_FLOOR})."
        )
        config["retry_floor"] = DEFAULT_RETRY_FLOOR

    categories = config.get("other_category_ids", list(OTHER_CATEGORY_GROUP))
    if (
        not isinstance(categories, list)
        or not categories
        or not all(_is_int(c) for c in categories)
    ):
        warnings.append(
            f"other_category_ids must be a non-empty list of integers, got {categories!r}. "
            f"Using default ({list(OTHER_CATEGORY_GROUP)})."
        )
        config["other_category_ids"] = list(OTHER_CATEGORY_GROUP)

    days = config.get("direct_match_days")
    if days is not None and (not _is_int(days) or days <= 0):
        warnings.append(
            f"direct_match_days must be empty or a positive integer, got {days!r}. "
            f"Matching against all releases."
        )
        config["direct_match_days"] = None

    return warnings


def load_config(config_path: Path | str | None = None) -> dict:
    """Load configuration from config.yaml.

    Args:
        config_path: Explicit file to read. Defaults to ``config/config.yaml``
            next to the package.

    Returns:
        Configuration dictionary (suitable for ``AppConfig.from_dict()``).
    """
    config: dict = {}

    path = (
        Path(config_path)
        if config_path
        else Path(__file__).parent.parent / "config" / DEFAULT_CONFIG_FILENAME
    )
    if path.exists():
        with open(path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

    return config


class ProgressBar:
    """Renders driver progress callbacks as a tqdm bar, one bar per pass."""

    def __init__(self, disable: bool = False) -> None:
        self._disable = disable
        self._bar: tqdm | None = None

    def __call__(self, checked: int, total: int) -> None:
        if self._bar is None or checked == 1:
            self.close()
            self._bar = tqdm(total=total, unit="row", leave=False, disable=self._disable)
        self._bar.update(checked - self._bar.n)
        if checked >= total:
            self.close()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Match releases against the PreDB for one group or globally.",
    )
    parser.add_argument(
        "stage",
        help=f"Numeric group id for the per-group stage, or '{GLOBAL_STAGE}'",
    )
    parser.add_argument(
        "--retry", action="store_true",
        help="Also run a hash pass over every unmatched release with retries left",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Report what would change without writing",
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--db", help="SQLite database path (overrides config)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Application entry point. Loads config, sets up logging and runs a stage."""
    from prematch.core.stages import MatchingStages, parse_stage_argument
    from prematch.db.database import Database, StoreUnavailableError
    from prematch.models.config import AppConfig
    from prematch.models.match_result import RunPolicy

    args = build_parser().parse_args(argv)

    raw_config = load_config(args.config)
    if args.db:
        raw_config["db_path"] = args.db
    if args.log_level:
        raw_config["log_level"] = args.log_level
    if args.dry_run:
        raw_config["dry_run"] = True

    # Validate the raw dict first (mutates to fix invalid values)
    config_warnings = validate_config(raw_config)
    config = AppConfig.from_dict(raw_config)

    setup_logger(log_level=config.log_level, log_file=config.log_file)
    logger = get_logger("main")
    logger.info("%s v%s starting", APP_NAME, APP_VERSION)

    for warning in config_warnings:
        logger.warning("Config: %s", warning)

    try:
        group_id = parse_stage_argument(args.stage)
    except ValueError as e:
        logger.error("%s", e)
        return EXIT_BAD_ARGUMENT

    policy = RunPolicy.PREVIEW if config.dry_run else RunPolicy.APPLY
    progress = ProgressBar(disable=args.no_progress)

    db = Database(config.db_path_resolved)
    try:
        stages = MatchingStages(db.connection, config, progress_callback=progress)
        if group_id is None:
            stages.run_global(policy)
        else:
            stages.run_group(group_id, policy)
        if args.retry:
            stages.run_retry(policy)
    except StoreUnavailableError as e:
        logger.error("Store unavailable, stopping: %s", e)
        return EXIT_STORE_UNAVAILABLE
    finally:
        progress.close()
        db.close()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
