"""Selection modes for the hash correlation pass.

A ``CorrelationMode`` fully describes one pass: which releases are selected,
in what order, how many, and how failed attempts are charged against the
retry budget. Build them with :func:`recent_window`, :func:`category_window`
or :func:`retry_window` rather than by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from prematch.utils.constants import (
    DEFAULT_RECENT_WINDOW_HOURS,
    DEFAULT_RETRY_FLOOR,
    OTHER_CATEGORY_GROUP,
)


class SelectionWindow(Enum):
    """Which slice of the release corpus a pass looks at."""

    RECENT = "recent"
    CATEGORY = "category"
    RETRY = "retry"


@dataclass(frozen=True)
class CorrelationMode:
    """Selection predicate and write policy for one correlation pass.

    Attributes:
        window: The selection window this mode was built for.
        hours: Only releases added within this many hours (RECENT).
        category_ids: Only releases in these categories (CATEGORY).
        group_id: Restrict the pass to a single newsgroup.
        limit: Maximum number of releases to process. Releases whose name
            or files carry a hash are picked first.
        retry_floor: Exhaustion boundary for ``dehash_status``. Releases at
            or below it are never selected or decremented again.
        require_unrenamed: Skip releases whose searchname was finalized.
        require_unmatched: Skip releases that already carry a ``predb_id``.
        charge_missing_hash: Spend one retry on a release when none of its
            rows contains a hash.
        largest_file_first: Order each release's files by size, descending.
    """

    window: SelectionWindow
    hours: int | None = None
    category_ids: tuple[int, ...] = ()
    group_id: int | None = None
    limit: int | None = None
    retry_floor: int = DEFAULT_RETRY_FLOOR
    require_unrenamed: bool = True
    require_unmatched: bool = False
    charge_missing_hash: bool = False
    largest_file_first: bool = False

    @property
    def label(self) -> str:
        if self.window is SelectionWindow.RECENT:
            return f"in the past {self.hours} hours"
        if self.window is SelectionWindow.CATEGORY:
            return "in the other categories"
        return "awaiting retry"

    def predicate(self) -> tuple[list[str], list[Any]]:
        """Return the mode-specific WHERE fragments and their parameters.

        Fragments use the ``r`` alias for releases.
        """
        clauses: list[str] = []
        params: list[Any] = []

        if self.require_unrenamed:
            clauses.append("r.is_renamed = 0")
        if self.require_unmatched:
            clauses.append("(r.predb_id IS NULL OR r.predb_id = 0)")
        if self.hours is not None:
            clauses.append("r.added_at > datetime('now', ?)")
            params.append(f"-{int(self.hours)} hours")
        if self.category_ids:
            placeholders = ", ".join("?" for _ in self.category_ids)
            clauses.append(f"r.category_id IN ({placeholders})")
            params.extend(self.category_ids)
        if self.group_id is not None:
            clauses.append("r.group_id = ?")
            params.append(self.group_id)

        return clauses, params


def recent_window(
    hours: int = DEFAULT_RECENT_WINDOW_HOURS,
    group_id: int | None = None,
    limit: int | None = None,
    retry_floor: int = DEFAULT_RETRY_FLOOR,
) -> CorrelationMode:
    """Releases added in the last *hours*, largest file of each release first."""
    return CorrelationMode(
        window=SelectionWindow.RECENT,
        hours=hours,
        group_id=group_id,
        limit=limit,
        retry_floor=retry_floor,
        largest_file_first=True,
    )


def category_window(
    category_ids: tuple[int, ...] | list[int] = OTHER_CATEGORY_GROUP,
    limit: int | None = None,
    retry_floor: int = DEFAULT_RETRY_FLOOR,
) -> CorrelationMode:
    """Releases that are still sitting in the misc/hashed "other" categories."""
    if not category_ids:
        raise ValueError("category_window needs at least one category id")
    return CorrelationMode(
        window=SelectionWindow.CATEGORY,
        category_ids=tuple(category_ids),
        limit=limit,
        retry_floor=retry_floor,
    )


def retry_window(
    limit: int | None = None,
    retry_floor: int = DEFAULT_RETRY_FLOOR,
) -> CorrelationMode:
    """Every unmatched release with retry budget left, renamed or not."""
    return CorrelationMode(
        window=SelectionWindow.RETRY,
        limit=limit,
        retry_floor=retry_floor,
        require_unrenamed=False,
        require_unmatched=True,
        charge_missing_hash=True,
    )
