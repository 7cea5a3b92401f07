"""Exact title / filename matching against the PreDB."""

from __future__ import annotations

from typing import Callable, NamedTuple

from prematch.db.repositories import PreDbRepository
from prematch.models.match_result import MatchMethod, PreMatch
from prematch.models.predb_entry import PreDbEntry
from prematch.utils.logger import get_logger

logger = get_logger("core.title_matcher")


class _LookupStrategy(NamedTuple):
    method: MatchMethod
    lookup: Callable[[str], PreDbEntry | None]
    # Whether the PreDB title replaces the cleaned name on a hit.
    adopt_predb_title: bool


class TitleMatcher:
    """Matches a cleaned release name to a PreDB entry by exact equality.

    Strategies are tried in order and the first hit wins:

    1. ``predb.title == name`` -- the release keeps its own name.
    2. ``predb.filename == name`` -- the release takes the PreDB title.
    """

    def __init__(self, predb_repo: PreDbRepository) -> None:
        self._strategies: list[_LookupStrategy] = [
            _LookupStrategy(MatchMethod.TITLE, predb_repo.get_by_title, False),
            _LookupStrategy(MatchMethod.FILENAME, predb_repo.get_by_filename, True),
        ]

    def match(self, cleaned_name: str | None) -> PreMatch | None:
        """Look up *cleaned_name* in the PreDB.

        Args:
            cleaned_name: Cleaned release name. Empty names never match and
                are not queried.

        Returns:
            The match, or None.
        """
        if not cleaned_name:
            return None

        for strategy in self._strategies:
            entry = strategy.lookup(cleaned_name)
            if entry is None:
                continue
            title = entry.title if strategy.adopt_predb_title else cleaned_name
            logger.debug(
                "PreDB %s match for %r -> #%d", strategy.method.value, cleaned_name, entry.id
            )
            return PreMatch(predb_id=entry.id, title=title, method=strategy.method)

        return None
