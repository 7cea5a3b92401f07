"""Resolve extracted hashes to PreDB titles and rename the release."""

from __future__ import annotations

from typing import Callable

from prematch.db.repositories import PreDbRepository, ReleaseRepository
from prematch.models.correlation_mode import CorrelationMode
from prematch.models.match_result import MatchMethod, PreMatch, RunPolicy
from prematch.models.release import CandidateRow
from prematch.utils.logger import get_logger

logger = get_logger("core.hash_matcher")

# Callback type: (new_title, group_id) -> category_id, or None to keep the current one
Categorizer = Callable[[str, int], int | None]


class HashMatcher:
    """Looks a hash up in the PreDB hash index and applies the outcome.

    A hit renames the release to the PreDB title, recategorizes it, links it
    to the entry and marks it resolved. A miss spends one unit of the
    release's retry budget (``dehash_status``) until the mode's floor is
    reached; after that the release is left alone.
    """

    def __init__(
        self,
        predb_repo: PreDbRepository,
        release_repo: ReleaseRepository,
        categorizer: Categorizer | None = None,
    ) -> None:
        """Initialize the matcher.

        Args:
            predb_repo: Source of the hash index.
            release_repo: Target of the write-backs.
            categorizer: Optional category classifier for renamed releases.
                When omitted the release keeps its current category.
        """
        self._predb_repo = predb_repo
        self._release_repo = release_repo
        self._categorizer = categorizer

    def lookup(self, file_hash: str) -> PreMatch | None:
        """Resolve a hash without touching the release corpus."""
        entry = self._predb_repo.get_by_hash(file_hash)
        if entry is None:
            return None
        return PreMatch(predb_id=entry.id, title=entry.title, method=MatchMethod.HASH)

    def match(
        self,
        file_hash: str,
        row: CandidateRow,
        mode: CorrelationMode,
        policy: RunPolicy = RunPolicy.APPLY,
    ) -> int:
        """Try to match one release by hash.

        Args:
            file_hash: Hex digest pulled from the release or file name.
            row: The release being matched.
            mode: Supplies the retry floor.
            policy: PREVIEW reports without writing.

        Returns:
            1 if the release was (or, in PREVIEW, would be) renamed, else 0.
        """
        if row.dehash_status <= mode.retry_floor:
            logger.debug("Release #%d has no hash retries left", row.release_id)
            return 0

        found = self.lookup(file_hash)
        if found is None:
            self.record_miss(row, mode, policy)
            return 0

        category_id = self._category_for(found.title, row)
        if policy.writes:
            changed = self._release_repo.apply_hash_match(
                row.release_id, found.predb_id, found.title, category_id,
            )
            if not changed:
                logger.debug("Release #%d was already matched", row.release_id)
                return 0

        logger.info(
            "%s release #%d via %s: %s -> %s",
            "Renamed" if policy.writes else "[DRY RUN] Would rename",
            row.release_id,
            found.method.value,
            row.searchname,
            found.title,
        )
        return 1

    def record_miss(
        self,
        row: CandidateRow,
        mode: CorrelationMode,
        policy: RunPolicy = RunPolicy.APPLY,
    ) -> bool:
        """Spend one retry for *row*; a no-op at the floor or in PREVIEW.

        Returns:
            True if the retry counter moved.
        """
        if not policy.writes:
            return False
        moved = self._release_repo.decrement_dehash_status(row.release_id, mode.retry_floor)
        if moved:
            logger.debug(
                "No PreDB hash for release #%d (dehash_status %d -> %d)",
                row.release_id, row.dehash_status, row.dehash_status - 1,
            )
        return moved

    def _category_for(self, title: str, row: CandidateRow) -> int:
        if self._categorizer is None:
            return row.category_id
        category_id = self._categorizer(title, row.group_id)
        return row.category_id if category_id is None else category_id
