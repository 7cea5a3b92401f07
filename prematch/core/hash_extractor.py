"""Pull probable content hashes (md5 / sha1 hex digests) out of release names."""

from __future__ import annotations

import re
from typing import Sequence

from prematch.models.release import CandidateRow
from prematch.utils.constants import HASH_MAX_LENGTH, HASH_MIN_LENGTH

# A hex run of 32-40 chars that is not part of a longer hex run.
_HASH_RE = re.compile(
    rf"(?<![0-9a-f])[0-9a-f]{{{HASH_MIN_LENGTH},{HASH_MAX_LENGTH}}}(?![0-9a-f])",
    re.IGNORECASE,
)

DEFAULT_SOURCE_FIELDS: tuple[str, ...] = ("name", "filename")


def extract_hash(text: str | None) -> str | None:
    """Return the first 32-40 character hex run in *text*, or None.

    Runs shorter than 32 or longer than 40 characters are not hashes.

    >>> extract_hash("Some.Release.0123456789abcdef0123456789ABCDEF")
    '0123456789abcdef0123456789ABCDEF'
    """
    if not text:
        return None
    match = _HASH_RE.search(text)
    return match.group(0) if match else None


class HashExtractor:
    """Tries an ordered list of row fields and returns the first hash found.

    Usage:
        extractor = HashExtractor()             # release name, then file name
        file_hash = extractor.extract(row)
    """

    def __init__(self, fields: Sequence[str] = DEFAULT_SOURCE_FIELDS) -> None:
        """Initialize the extractor.

        Args:
            fields: Attribute names of the row, in priority order.
        """
        if not fields:
            raise ValueError("HashExtractor needs at least one source field")
        self._fields = tuple(fields)

    @property
    def fields(self) -> tuple[str, ...]:
        return self._fields

    def extract(self, row: CandidateRow) -> str | None:
        """Return the hash from the first field that contains one."""
        for field_name in self._fields:
            found = extract_hash(getattr(row, field_name, None))
            if found:
                return found
        return None
