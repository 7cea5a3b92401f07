"""Match result models for PreDB correlation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MatchMethod(Enum):
    """How a release was tied to its PreDB entry."""

    TITLE = "title"
    FILENAME = "filename"
    HASH = "hash"


class RunPolicy(Enum):
    """Whether a driver run persists its matches."""

    PREVIEW = "preview"
    APPLY = "apply"

    @property
    def writes(self) -> bool:
        return self is RunPolicy.APPLY


@dataclass(frozen=True)
class PreMatch:
    """A successful match against the PreDB.

    Attributes:
        predb_id: ID of the matched PreDB entry.
        title: Title the release should carry. For a title match this is the
            input name; for filename and hash matches it is the PreDB title.
        method: Which strategy produced the match.
    """

    predb_id: int
    title: str
    method: MatchMethod


@dataclass
class CorrelationSummary:
    """Totals for one CorrelationDriver run.

    Attributes:
        policy: Whether the run wrote its results.
        total: Cursor rows eligible at the start of the run.
        checked: Cursor rows looked at.
        hashed: Rows in which a hash was found and looked up.
        changed: Releases renamed (or, in PREVIEW, that would be).
        skipped: Rows skipped because their release was already handled.
        errors: Rows that failed with a non-storage error.
    """

    policy: RunPolicy = RunPolicy.APPLY
    total: int = 0
    checked: int = 0
    changed: int = 0
    hashed: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass
class DirectMatchSummary:
    """Totals for one DirectMatchDriver run."""

    policy: RunPolicy = RunPolicy.APPLY
    total: int = 0
    checked: int = 0
    matched: int = 0
