"""Tests for HashMatcher -- hash index hits, misses, and the retry floor."""

from __future__ import annotations

import hashlib

import pytest

from prematch.core.hash_matcher import HashMatcher
from prematch.db.repositories import PreDbRepository, ReleaseRepository
from prematch.models.correlation_mode import recent_window, retry_window
from prematch.models.match_result import MatchMethod, RunPolicy
from prematch.models.release import CandidateRow

TITLE = "Some.Release.PROPER-GRP"
TITLE_MD5 = hashlib.md5(TITLE.encode("utf-8")).hexdigest()
UNKNOWN_MD5 = "f" * 32


@pytest.fixture
def matcher(predb_repo: PreDbRepository, release_repo: ReleaseRepository) -> HashMatcher:
    return HashMatcher(predb_repo, release_repo)


def _row(release_repo: ReleaseRepository, release_id: int) -> CandidateRow:
    release = release_repo.get_by_id(release_id)
    return CandidateRow(
        release_id=release.id,
        name=release.name,
        searchname=release.searchname,
        category_id=release.category_id,
        group_id=release.group_id,
        dehash_status=release.dehash_status,
    )


# ------------------------------------------------------------------
# lookup tests
# ------------------------------------------------------------------


class TestLookup:
    def test_hit(self, matcher: HashMatcher, add_predb):
        predb_id = add_predb(TITLE, hashes=(TITLE_MD5,))
        found = matcher.lookup(TITLE_MD5)
        assert found.predb_id == predb_id
        assert found.title == TITLE
        assert found.method is MatchMethod.HASH

    def test_hit_is_case_insensitive(self, matcher: HashMatcher, add_predb):
        add_predb(TITLE, hashes=(TITLE_MD5,))
        assert matcher.lookup(TITLE_MD5.upper()) is not None

    def test_miss(self, matcher: HashMatcher):
        assert matcher.lookup(UNKNOWN_MD5) is None


# ------------------------------------------------------------------
# match tests
# ------------------------------------------------------------------


class TestMatch:
    def test_hit_renames_and_links(self, matcher, release_repo, add_predb, add_release):
        predb_id = add_predb(TITLE, hashes=(TITLE_MD5,))
        release_id = add_release(TITLE_MD5)

        changed = matcher.match(TITLE_MD5, _row(release_repo, release_id), recent_window())

        assert changed == 1
        release = release_repo.get_by_id(release_id)
        assert release.predb_id == predb_id
        assert release.searchname == TITLE
        assert release.is_renamed is True
        assert release.dehash_status == 1

    def test_hit_uses_categorizer(self, predb_repo, release_repo, add_predb, add_release):
        add_predb(TITLE, hashes=(TITLE_MD5,))
        release_id = add_release(TITLE_MD5, category_id=10, group_id=4)
        seen = []

        def categorize(title: str, group_id: int) -> int:
            seen.append((title, group_id))
            return 2040

        matcher = HashMatcher(predb_repo, release_repo, categorizer=categorize)
        matcher.match(TITLE_MD5, _row(release_repo, release_id), recent_window())

        assert seen == [(TITLE, 4)]
        assert release_repo.get_by_id(release_id).category_id == 2040

    def test_categorizer_returning_none_keeps_category(
        self, predb_repo, release_repo, add_predb, add_release,
    ):
        add_predb(TITLE, hashes=(TITLE_MD5,))
        release_id = add_release(TITLE_MD5, category_id=20)
        matcher = HashMatcher(predb_repo, release_repo, categorizer=lambda t, g: None)
        matcher.match(TITLE_MD5, _row(release_repo, release_id), recent_window())
        assert release_repo.get_by_id(release_id).category_id == 20

    def test_already_matched_release_is_not_rematched(
        self, matcher, release_repo, add_predb, add_release,
    ):
        first = add_predb("First.Title")
        add_predb(TITLE, hashes=(TITLE_MD5,))
        release_id = add_release(TITLE_MD5, predb_id=first)

        changed = matcher.match(TITLE_MD5, _row(release_repo, release_id), recent_window())

        assert changed == 0
        assert release_repo.get_by_id(release_id).predb_id == first

    def test_preview_does_not_write(self, matcher, release_repo, add_predb, add_release):
        add_predb(TITLE, hashes=(TITLE_MD5,))
        release_id = add_release(TITLE_MD5)

        changed = matcher.match(
            TITLE_MD5, _row(release_repo, release_id), recent_window(), RunPolicy.PREVIEW,
        )

        assert changed == 1
        release = release_repo.get_by_id(release_id)
        assert release.predb_id == 0
        assert release.searchname == TITLE_MD5

    def test_miss_decrements_dehash_status(self, matcher, release_repo, add_release):
        release_id = add_release(UNKNOWN_MD5, dehash_status=-1)
        changed = matcher.match(UNKNOWN_MD5, _row(release_repo, release_id), recent_window())
        assert changed == 0
        release = release_repo.get_by_id(release_id)
        assert release.dehash_status == -2
        assert release.predb_id == 0

    def test_miss_in_preview_keeps_dehash_status(self, matcher, release_repo, add_release):
        release_id = add_release(UNKNOWN_MD5, dehash_status=-1)
        matcher.match(
            UNKNOWN_MD5, _row(release_repo, release_id), recent_window(), RunPolicy.PREVIEW,
        )
        assert release_repo.get_by_id(release_id).dehash_status == -1


# ------------------------------------------------------------------
# retry floor tests
# ------------------------------------------------------------------


class TestRetryFloor:
    def test_last_retry_reaches_the_floor(self, matcher, release_repo, add_release):
        release_id = add_release(UNKNOWN_MD5, dehash_status=-5)
        matcher.match(UNKNOWN_MD5, _row(release_repo, release_id), retry_window())
        assert release_repo.get_by_id(release_id).dehash_status == -6

    def test_never_goes_below_the_floor(self, matcher, release_repo, add_release):
        release_id = add_release(UNKNOWN_MD5, dehash_status=-6)
        for _ in range(3):
            matcher.match(UNKNOWN_MD5, _row(release_repo, release_id), retry_window())
        assert release_repo.get_by_id(release_id).dehash_status == -6

    def test_exhausted_release_is_not_looked_up(
        self, matcher, release_repo, add_predb, add_release,
    ):
        add_predb(TITLE, hashes=(TITLE_MD5,))
        release_id = add_release(TITLE_MD5, dehash_status=-6)
        changed = matcher.match(TITLE_MD5, _row(release_repo, release_id), retry_window())
        assert changed == 0
        assert release_repo.get_by_id(release_id).predb_id == 0

    def test_custom_floor(self, matcher, release_repo, add_release):
        release_id = add_release(UNKNOWN_MD5, dehash_status=-1)
        mode = retry_window(retry_floor=-2)
        matcher.match(UNKNOWN_MD5, _row(release_repo, release_id), mode)
        matcher.match(UNKNOWN_MD5, _row(release_repo, release_id), mode)
        assert release_repo.get_by_id(release_id).dehash_status == -2

    def test_resolved_release_is_never_decremented(self, matcher, release_repo, add_release):
        release_id = add_release(UNKNOWN_MD5, dehash_status=1)
        row = _row(release_repo, release_id)
        assert matcher.record_miss(row, retry_window()) is False
        assert release_repo.get_by_id(release_id).dehash_status == 1
