"""Release models -- aggregated newsgroup releases and their files."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ReleaseFile:
    """A single file inside a release's NZB."""

    name: str
    size: int = 0
    is_hashed: bool = False


@dataclass
class ReleaseCandidate:
    """A release that may be correlated with a PreDB entry.

    Attributes:
        id: Database ID.
        guid: Public release identifier.
        name: Raw, subject-derived name.
        searchname: Cleaned display name.
        category_id: Current category.
        group_id: Newsgroup the release was built from.
        dehash_status: Retry counter for hash matching. 0 means not tried yet,
            negative values count failed attempts, 1 means resolved by hash.
        is_renamed: Whether the searchname has already been finalized.
        is_hashed: Whether the name looks like an obfuscated hash.
        nzb_status: 1 once the NZB has been published.
        predb_id: Matched PreDB entry, 0 when unmatched.
        added_at: Timestamp string of when the release was created.
        files: Files contained in the release.
    """

    id: int
    name: str
    searchname: str
    guid: str | None = None
    category_id: int = 0
    group_id: int = 0
    dehash_status: int = 0
    is_renamed: bool = False
    is_hashed: bool = False
    nzb_status: int = 0
    predb_id: int = 0
    added_at: str | None = None
    files: list[ReleaseFile] = field(default_factory=list)

    @property
    def is_matched(self) -> bool:
        return bool(self.predb_id)


@dataclass(frozen=True)
class CandidateRow:
    """One row of the correlation cursor: release columns plus one file name.

    A release with N files produces N rows; a release without files produces
    a single row with ``filename`` set to None.
    """

    release_id: int
    name: str
    searchname: str
    category_id: int
    group_id: int
    dehash_status: int
    filename: str | None = None
