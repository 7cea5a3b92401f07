"""Data models for prematch."""

from prematch.models.predb_entry import PreDbEntry, NukeStatus
from prematch.models.release import ReleaseCandidate, ReleaseFile, CandidateRow
from prematch.models.match_result import (
    CorrelationSummary,
    DirectMatchSummary,
    MatchMethod,
    PreMatch,
    RunPolicy,
)
from prematch.models.correlation_mode import (
    CorrelationMode,
    SelectionWindow,
    category_window,
    recent_window,
    retry_window,
)
from prematch.models.config import AppConfig

__all__ = [
    "PreDbEntry",
    "NukeStatus",
    "ReleaseCandidate",
    "ReleaseFile",
    "CandidateRow",
    "CorrelationSummary",
    "DirectMatchSummary",
    "MatchMethod",
    "PreMatch",
    "RunPolicy",
    "CorrelationMode",
    "SelectionWindow",
    "category_window",
    "recent_window",
    "retry_window",
    "AppConfig",
]
