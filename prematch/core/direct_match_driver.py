"""Direct match driver -- backfills predb_id by exact title equality."""

from __future__ import annotations

import sqlite3

from prematch.core.correlation_driver import ProgressCallback
from prematch.core.title_matcher import TitleMatcher
from prematch.db.database import StoreUnavailableError
from prematch.db.repositories import ReleaseRepository
from prematch.models.match_result import DirectMatchSummary, RunPolicy
from prematch.utils.logger import get_logger

logger = get_logger("core.direct_match_driver")


class DirectMatchDriver:
    """Ties unmatched releases to PreDB entries whose title or filename
    equals the release's searchname.

    Only ``predb_id`` is written; the searchname is left as it is.
    """

    def __init__(
        self,
        release_repo: ReleaseRepository,
        title_matcher: TitleMatcher,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self._releases = release_repo
        self._matcher = title_matcher
        self._progress_callback = progress_callback

    def run(
        self,
        days: int | None = None,
        policy: RunPolicy = RunPolicy.APPLY,
    ) -> DirectMatchSummary:
        """Run one backfill pass.

        Args:
            days: When positive, only releases added within this many days.
            policy: PREVIEW to count matches without writing them.

        Returns:
            Totals for the pass.

        Raises:
            StoreUnavailableError: If the store fails mid-run.
        """
        summary = DirectMatchSummary(policy=policy)
        logger.info("Querying DB for release search names not matched with PreDB titles.")

        try:
            summary.total = self._releases.count_unmatched(days)
            logger.info("%d releases to match.", summary.total)

            for release in self._releases.stream_unmatched(days):
                summary.checked += 1
                found = self._matcher.match(release.searchname)
                if found is not None:
                    if not policy.writes or self._releases.set_predb_id(release.id, found.predb_id):
                        summary.matched += 1
                if self._progress_callback:
                    self._progress_callback(summary.checked, summary.total)
        except sqlite3.Error as e:
            logger.error("Store failed after %d releases: %s", summary.checked, e)
            raise StoreUnavailableError(str(e)) from e

        logger.info(
            "%s %d PreDB titles to release search names.",
            "Matched" if policy.writes else "[DRY RUN] Could match",
            summary.matched,
        )
        return summary
