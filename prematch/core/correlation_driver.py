"""Correlation driver -- runs hash matching over a selected slice of releases."""

from __future__ import annotations

import sqlite3
from typing import Callable

from prematch.core.hash_extractor import HashExtractor
from prematch.core.hash_matcher import HashMatcher
from prematch.db.database import StoreUnavailableError
from prematch.db.repositories import ReleaseRepository
from prematch.models.correlation_mode import CorrelationMode
from prematch.models.match_result import CorrelationSummary, RunPolicy
from prematch.models.release import CandidateRow
from prematch.utils.logger import get_logger

logger = get_logger("core.correlation_driver")

# Callback type: (checked, total)
ProgressCallback = Callable[[int, int], None]


class CorrelationDriver:
    """Streams eligible releases and hands each one to the HashMatcher.

    The cursor yields one row per release file, grouped by release. For each
    release the rows are tried in order until one yields a hash; the rest of
    that release's rows are counted as skipped. Rows are independent: an
    unexpected error on one row is logged and the run continues. Storage
    errors end the run with :class:`StoreUnavailableError`.

    Usage:
        driver = CorrelationDriver(release_repo, hash_matcher)
        summary = driver.run(recent_window(), RunPolicy.APPLY)
    """

    def __init__(
        self,
        release_repo: ReleaseRepository,
        hash_matcher: HashMatcher,
        extractor: HashExtractor | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            release_repo: Source of the candidate cursor.
            hash_matcher: Applies hash lookups to each release.
            extractor: Field-ordered hash extractor (release name first,
                then file name, by default).
            progress_callback: Optional callback(checked, total) called after
                each cursor row.
        """
        self._releases = release_repo
        self._matcher = hash_matcher
        self._extractor = extractor or HashExtractor()
        self._progress_callback = progress_callback

    def run(
        self,
        mode: CorrelationMode,
        policy: RunPolicy = RunPolicy.APPLY,
    ) -> CorrelationSummary:
        """Run one correlation pass.

        Args:
            mode: Which releases to look at and how to charge misses.
            policy: PREVIEW to report only, APPLY to persist.

        Returns:
            Totals for the pass.

        Raises:
            StoreUnavailableError: If the store fails mid-run.
        """
        summary = CorrelationSummary(policy=policy)
        logger.info("Fixing search names %s using the PreDB hash.", mode.label)

        try:
            summary.total = self._releases.count_hash_candidates(mode)
            logger.info("%d releases to process.", summary.total)
            if summary.total == 0:
                return summary
            self._process_rows(mode, policy, summary)
        except sqlite3.Error as e:
            logger.error(
                "Store failed after %d of %d rows: %s", summary.checked, summary.total, e
            )
            raise StoreUnavailableError(str(e)) from e

        if policy.writes:
            logger.info(
                "%d releases have had their names changed out of: %d files.",
                summary.changed, summary.checked,
            )
        else:
            logger.info(
                "%d releases could have their names changed. %d files were checked.",
                summary.changed, summary.checked,
            )
        return summary

    def _process_rows(
        self,
        mode: CorrelationMode,
        policy: RunPolicy,
        summary: CorrelationSummary,
    ) -> None:
        current: CandidateRow | None = None
        handled = False  # a hash was found (or the row failed) for `current`

        for row in self._releases.stream_hash_candidates(mode):
            if current is None or row.release_id != current.release_id:
                self._finish_release(current, handled, mode, policy, summary)
                current = row
                handled = False

            summary.checked += 1
            if handled:
                summary.skipped += 1
            else:
                try:
                    handled = self._process_row(row, mode, policy, summary)
                except sqlite3.Error:
                    raise
                except Exception as e:
                    logger.error("Error matching release #%d: %s", row.release_id, e)
                    summary.errors += 1
                    handled = True

            self._emit_progress(summary.checked, summary.total)

        self._finish_release(current, handled, mode, policy, summary)

    def _process_row(
        self,
        row: CandidateRow,
        mode: CorrelationMode,
        policy: RunPolicy,
        summary: CorrelationSummary,
    ) -> bool:
        """Match one row. Returns True once the release needs no more rows."""
        file_hash = self._extractor.extract(row)
        if file_hash is None:
            return False

        summary.hashed += 1
        summary.changed += self._matcher.match(file_hash, row, mode, policy)
        return True

    def _finish_release(
        self,
        row: CandidateRow | None,
        handled: bool,
        mode: CorrelationMode,
        policy: RunPolicy,
        summary: CorrelationSummary,
    ) -> None:
        """Charge a retry to a release none of whose rows held a hash."""
        if row is None or handled or not mode.charge_missing_hash:
            return
        try:
            self._matcher.record_miss(row, mode, policy)
        except sqlite3.Error:
            raise
        except Exception as e:
            logger.error("Error charging a retry to release #%d: %s", row.release_id, e)
            summary.errors += 1

    def _emit_progress(self, checked: int, total: int) -> None:
        if self._progress_callback:
            self._progress_callback(checked, total)
