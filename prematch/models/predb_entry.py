"""PreDB entry model -- a curated canonical release title."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class NukeStatus(IntEnum):
    """Nuke state of a PreDB entry, as stored in the ``nuked`` column."""

    NONE = 0  # Pre is not nuked.
    UNNUKED = 1  # Pre was un-nuked.
    NUKED = 2
    MODNUKE = 3  # Nuke reason was modified.
    RENUKED = 4
    OLDNUKE = 5  # Nuked for being old.

    @property
    def is_nuked(self) -> bool:
        """True while the entry is flagged defective (un-nuked and clean are not)."""
        return self in {
            NukeStatus.NUKED,
            NukeStatus.MODNUKE,
            NukeStatus.RENUKED,
            NukeStatus.OLDNUKE,
        }


@dataclass(frozen=True)
class PreDbEntry:
    """A known release title from the pre-release database.

    Entries are written by the ingestion process and only ever read here.

    Attributes:
        id: Database ID.
        title: Canonical release name.
        filename: Alternate name used for matching (often the archive name).
        source: Where the pre was announced.
        created: Timestamp string of when the pre was recorded.
        nuked: Nuke status.
        nukereason: Human-readable nuke reason, if any.
    """

    id: int
    title: str
    filename: str | None = None
    source: str | None = None
    created: str | None = None
    nuked: NukeStatus = NukeStatus.NONE
    nukereason: str | None = None
