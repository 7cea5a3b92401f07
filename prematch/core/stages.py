"""Matching calls made by the per-group and global release stages.

The release pipeline is run once per newsgroup and then once more, globally,
after every group has finished. Only the PreDB matching steps of those two
stages live here:

- per-group: hash correlation over the group's recent releases, then the
  direct title backfill;
- global: hash correlation over releases still in the "other" categories,
  then the direct title backfill.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from prematch.core.correlation_driver import CorrelationDriver, ProgressCallback
from prematch.core.direct_match_driver import DirectMatchDriver
from prematch.core.hash_matcher import Categorizer, HashMatcher
from prematch.core.title_matcher import TitleMatcher
from prematch.db.repositories import PreDbRepository, QueryCacheRepository, ReleaseRepository
from prematch.models.config import AppConfig
from prematch.models.correlation_mode import category_window, recent_window, retry_window
from prematch.models.match_result import CorrelationSummary, DirectMatchSummary, RunPolicy
from prematch.utils.constants import GLOBAL_STAGE
from prematch.utils.logger import get_logger

logger = get_logger("core.stages")


@dataclass
class StageResult:
    """Summaries of the two matching passes of a stage."""

    correlation: CorrelationSummary
    direct: DirectMatchSummary


def parse_stage_argument(value: str) -> int | None:
    """Turn a stage argument into a group ID, or None for the global stage.

    Raises:
        ValueError: If *value* is neither a group ID nor the global sentinel.
    """
    text = value.strip()
    if text.lower() == GLOBAL_STAGE:
        return None
    if text.isdigit():
        return int(text)
    raise ValueError(f"Expected a numeric group id or '{GLOBAL_STAGE}', got {value!r}")


class MatchingStages:
    """Wires repositories, matchers and drivers together from an AppConfig."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        config: AppConfig,
        categorizer: Categorizer | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self._config = config
        cache = QueryCacheRepository(connection)
        self.predb_repo = PreDbRepository(connection, cache, config.cache_expiry_medium)
        self.release_repo = ReleaseRepository(connection)
        self.correlation = CorrelationDriver(
            self.release_repo,
            HashMatcher(self.predb_repo, self.release_repo, categorizer),
            progress_callback=progress_callback,
        )
        self.direct = DirectMatchDriver(
            self.release_repo,
            TitleMatcher(self.predb_repo),
            progress_callback=progress_callback,
        )

    def run_group(self, group_id: int, policy: RunPolicy = RunPolicy.APPLY) -> StageResult:
        """Matching passes for one newsgroup's freshly built releases."""
        logger.info("Group %d: PreDB matching", group_id)
        mode = recent_window(
            hours=self._config.recent_window_hours,
            group_id=group_id,
            limit=self._config.group_batch_limit,
            retry_floor=self._config.retry_floor,
        )
        correlation = self.correlation.run(mode, policy)
        direct = self.direct.run(self._config.direct_match_days, policy)
        return StageResult(correlation, direct)

    def run_global(self, policy: RunPolicy = RunPolicy.APPLY) -> StageResult:
        """Matching passes run once all groups have finished."""
        logger.info("Global stage: PreDB matching")
        mode = category_window(
            self._config.other_category_ids,
            limit=self._config.global_batch_limit,
            retry_floor=self._config.retry_floor,
        )
        correlation = self.correlation.run(mode, policy)
        direct = self.direct.run(self._config.direct_match_days, policy)
        return StageResult(correlation, direct)

    def run_retry(self, policy: RunPolicy = RunPolicy.APPLY) -> CorrelationSummary:
        """Hash pass over every unmatched release that still has retries left."""
        mode = retry_window(
            limit=self._config.global_batch_limit,
            retry_floor=self._config.retry_floor,
        )
        return self.correlation.run(mode, policy)
