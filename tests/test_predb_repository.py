"""Tests for PreDbRepository and QueryCacheRepository."""

from __future__ import annotations

import pytest

from prematch.db.repositories import PreDbRepository, QueryCacheRepository
from prematch.models.predb_entry import NukeStatus
from prematch.utils.constants import DEFAULT_PAGE_SIZE


@pytest.fixture
def cached_repo(conn, query_cache) -> PreDbRepository:
    return PreDbRepository(conn, query_cache, cache_expiry=600)


# ------------------------------------------------------------------
# Point lookups
# ------------------------------------------------------------------


class TestPointLookups:
    def test_get_by_id(self, predb_repo, add_predb):
        predb_id = add_predb(
            "Nuked.Title-GRP", filename="nt", source="efnet",
            nuked=int(NukeStatus.NUKED), nukereason="dupe",
        )
        entry = predb_repo.get_by_id(predb_id)
        assert entry.title == "Nuked.Title-GRP"
        assert entry.filename == "nt"
        assert entry.source == "efnet"
        assert entry.nuked is NukeStatus.NUKED
        assert entry.nuked.is_nuked
        assert entry.nukereason == "dupe"

    def test_get_by_id_missing(self, predb_repo):
        assert predb_repo.get_by_id(999) is None

    def test_get_by_title_and_filename(self, predb_repo, add_predb):
        predb_id = add_predb("Title.One", filename="file.one")
        assert predb_repo.get_by_title("Title.One").id == predb_id
        assert predb_repo.get_by_filename("file.one").id == predb_id
        assert predb_repo.get_by_title("file.one") is None

    def test_get_by_hash_any_case(self, predb_repo, add_predb):
        digest = "0123456789abcdef0123456789abcdef"
        predb_id = add_predb("Hashed.Title", hashes=(digest,))
        assert predb_repo.get_by_hash(digest).id == predb_id
        assert predb_repo.get_by_hash(digest.upper()).id == predb_id
        assert predb_repo.get_by_hash("f" * 32) is None

    def test_get_for_release(self, predb_repo, add_predb):
        predb_id = add_predb("Linked.Title")
        assert [e.id for e in predb_repo.get_for_release(predb_id)] == [predb_id]
        assert predb_repo.get_for_release(0) == []

    def test_unnuked_is_not_nuked(self):
        assert not NukeStatus.UNNUKED.is_nuked
        assert not NukeStatus.NONE.is_nuked
        assert NukeStatus.OLDNUKE.is_nuked


# ------------------------------------------------------------------
# Listings
# ------------------------------------------------------------------


class TestListing:
    def test_search_terms_are_anded(self, predb_repo, add_predb):
        add_predb("foo.bar.2024", created="2024-01-02 00:00:00")
        add_predb("foo.baz.2024", created="2024-01-03 00:00:00")
        add_predb("bar.foo.2023", created="2024-01-04 00:00:00")

        result = predb_repo.get_all(0, 10, "foo bar")

        assert [r["title"] for r in result["rows"]] == ["bar.foo.2023", "foo.bar.2024"]
        assert result["count"] == 2

    def test_search_is_case_insensitive(self, predb_repo, add_predb):
        add_predb("Foo.Bar")
        assert predb_repo.get_count("foo BAR") == 1

    def test_newest_first_with_paging(self, predb_repo, add_predb):
        for day in range(1, 6):
            add_predb(f"Title.{day}", created=f"2024-01-0{day} 00:00:00")

        page = predb_repo.get_all(1, 2)

        assert [r["title"] for r in page["rows"]] == ["Title.4", "Title.3"]
        assert page["count"] == 5

    def test_default_page_size(self, predb_repo, add_predb):
        for i in range(DEFAULT_PAGE_SIZE + 1):
            add_predb(f"Title.{i}")
        result = predb_repo.get_all()
        assert len(result["rows"]) == DEFAULT_PAGE_SIZE
        assert result["count"] == DEFAULT_PAGE_SIZE + 1

    def test_empty_search_lists_everything(self, predb_repo, add_predb):
        add_predb("A")
        add_predb("B")
        assert predb_repo.get_count("") == 2
        assert predb_repo.get_count("   ") == 2

    def test_wildcards_are_literal(self, predb_repo, add_predb):
        add_predb("100%_Pure")
        add_predb("100xxPure")
        assert [r["title"] for r in predb_repo.get_all(0, 10, "%_")["rows"]] == ["100%_Pure"]

    def test_guid_of_matched_release(self, predb_repo, add_predb, add_release):
        matched = add_predb("Matched.Title", created="2024-01-02 00:00:00")
        add_predb("Unmatched.Title", created="2024-01-01 00:00:00")
        add_release("x", guid="abc123", predb_id=matched)

        rows = predb_repo.get_all(0, 10)["rows"]

        assert rows[0]["guid"] == "abc123"
        assert rows[1]["guid"] is None

    def test_entry_listed_once_with_several_releases(self, predb_repo, add_predb, add_release):
        predb_id = add_predb("Popular.Title")
        add_release("x", guid="g1", predb_id=predb_id)
        add_release("y", guid="g2", predb_id=predb_id)

        result = predb_repo.get_all(0, 10)

        assert len(result["rows"]) == 1
        assert result["rows"][0]["guid"] == "g1"


# ------------------------------------------------------------------
# Caching
# ------------------------------------------------------------------


class TestCaching:
    def test_listing_served_from_cache(self, cached_repo, add_predb):
        add_predb("First.Title")
        assert cached_repo.get_count() == 1
        first = cached_repo.get_all(0, 10)

        add_predb("Second.Title")

        assert cached_repo.get_count() == 1
        assert cached_repo.get_all(0, 10) == first

    def test_point_lookups_are_never_cached(self, cached_repo, add_predb):
        assert cached_repo.get_by_title("Late.Title") is None
        add_predb("Late.Title")
        assert cached_repo.get_by_title("Late.Title") is not None

    def test_clear_refreshes_listing(self, cached_repo, query_cache, add_predb):
        add_predb("First.Title")
        cached_repo.get_count()
        add_predb("Second.Title")
        query_cache.clear()
        assert cached_repo.get_count() == 2

    def test_expired_entry_is_a_miss(self, conn, query_cache: QueryCacheRepository):
        query_cache.put("k", {"a": 1})
        conn.execute(
            "UPDATE query_cache SET created_at = datetime('now', '-700 seconds')"
        )
        conn.commit()
        assert query_cache.get("k", 600) is None
        assert query_cache.get("k", 900) == {"a": 1}

    def test_prune(self, conn, query_cache: QueryCacheRepository):
        query_cache.put("old", [1])
        conn.execute("UPDATE query_cache SET created_at = datetime('now', '-1 hours')")
        conn.commit()
        query_cache.put("new", [2])

        assert query_cache.prune(600) == 1
        assert query_cache.get("new") == [2]
        assert query_cache.get("old", 10**6) is None

    def test_corrupt_payload_is_a_miss(self, conn, query_cache: QueryCacheRepository):
        conn.execute(
            "INSERT INTO query_cache (cache_key, response_json) VALUES ('bad', '{nope')"
        )
        conn.commit()
        assert query_cache.get("bad") is None
