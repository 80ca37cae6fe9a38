"""Tests for the depth-first mirror walk."""

import sqlite3
from unittest.mock import Mock

import pytest

from library_mirror.clients.errors import RequestError
from library_mirror.sync.folder_resolver import FolderCache, FolderResolver
from library_mirror.sync.video_matcher import VideoMatcher
from library_mirror.sync.walker import HierarchyWalker, MirrorStats, SkippedItem
from tests.helpers import folder_entry, make_vimeo, page, video_entry

ROOT = "/users/1/folders/root"


def build_walker(routes, panda, store, sleeps, create_missing=True, cache=None):
    return HierarchyWalker(
        source=make_vimeo(routes),
        resolver=FolderResolver(panda, cache=cache, create_missing=create_missing),
        matcher=VideoMatcher(panda, store, upload_missing=False, player_domain="vimeo.com"),
        video_delay=0.3,
        folder_delay=0.5,
        sleep=sleeps,
    )


@pytest.fixture()
def tree():
    """Root -> A (two videos) -> B (one video); root page 2 -> C (no connections)."""
    return {
        ROOT: page([folder_entry("/f/a", "A", "/f/a/videos", "/f/a/items")], next_url=f"{ROOT}?page=2"),
        f"{ROOT}?page=2": page([folder_entry("/f/c", "C")]),
        "/f/a/videos": page([video_entry(1, "Match me"), video_entry(2, "No match")]),
        "/f/a/items": page([folder_entry("/f/b", "B", "/f/b/videos")]),
        "/f/b/videos": page([video_entry(3, "Deep")]),
    }


class TestScenario:
    def test_creates_folder_and_maps_only_matches(self, panda, panda_http, store, sleeps):
        routes = {
            ROOT: page([folder_entry("/f/a", "A", "/f/a/videos")]),
            "/f/a/videos": page([video_entry(1, "First"), video_entry(2, "Second")]),
        }
        # Folder "A" will be created as new-1
        panda_http.videos = [{"id": "p1", "title": "First", "folder_id": "new-1", "video_external_id": "ext-1"}]

        stats = build_walker(routes, panda, store, sleeps).run(ROOT)

        assert panda_http.folders == [{"id": "new-1", "name": "A", "parent_folder_id": None}]
        assert store.count() == 1
        assert store.get("https://player.vimeo.com/video/1").target_video_id is not None
        assert store.get("https://player.vimeo.com/video/2") is None
        assert stats.folders_created == 1
        assert stats.matched == 1
        assert stats.unmatched == 1

        # A second run finds the folder instead of creating it and writes nothing
        store.upsert = Mock(wraps=store.upsert)
        again = build_walker(routes, panda, store, sleeps).run(ROOT)

        assert len(panda_http.folders) == 1
        assert again.folders_found == 1
        assert again.folders_created == 0
        assert again.already_mapped == 1
        assert store.upsert.call_count == 0
        assert store.count() == 1


class TestTraversal:
    def test_depth_first_before_next_page(self, tree, panda, store, sleeps):
        walker = build_walker(tree, panda, store, sleeps)

        walker.run(ROOT)

        assert walker.source.http.requested == [
            ROOT,
            "/f/a/videos",
            "/f/a/items",
            "/f/b/videos",
            f"{ROOT}?page=2",
        ]

    def test_children_created_under_resolved_parent(self, tree, panda, panda_http, store, sleeps):
        build_walker(tree, panda, store, sleeps).run(ROOT)

        by_name = {f["name"]: f for f in panda_http.folders}
        assert by_name["A"]["parent_folder_id"] is None
        assert by_name["B"]["parent_folder_id"] == by_name["A"]["id"]
        assert by_name["C"]["parent_folder_id"] is None

    def test_stats(self, tree, panda, store, sleeps):
        stats = build_walker(tree, panda, store, sleeps).run(ROOT)

        assert stats.folders_visited == 3
        assert stats.folders_created == 3
        assert stats.videos_seen == 3
        assert stats.unmatched == 3
        assert stats.skipped == []

    def test_delays_between_videos_and_folders(self, tree, panda, store, sleeps):
        build_walker(tree, panda, store, sleeps).run(ROOT)

        assert sleeps.calls.count(0.3) == 3
        assert sleeps.calls.count(0.5) == 3

    def test_zero_delay_does_not_sleep(self, tree, panda, store, sleeps):
        walker = build_walker(tree, panda, store, sleeps)
        walker.video_delay = walker.folder_delay = 0

        walker.run(ROOT)

        assert sleeps.calls == []

    def test_shared_cache_reused_across_paths(self, panda, panda_http, store, sleeps):
        routes = {
            ROOT: page([folder_entry("/f/shared", "Shared"), folder_entry("/f/shared", "Shared")]),
        }

        stats = build_walker(routes, panda, store, sleeps).run(ROOT)

        assert panda_http.count("POST", "/folders") == 1
        assert stats.folders_cached == 1
        assert stats.folders_visited == 2

    def test_pre_seeded_cache_skips_panda_lookup(self, panda, panda_http, store, sleeps):
        routes = {ROOT: page([folder_entry("/f/a", "A")])}

        build_walker(routes, panda, store, sleeps, cache=FolderCache({"/f/a": "known"})).run(ROOT)

        assert panda_http.calls == []


class TestFailures:
    def test_malformed_video_is_skipped(self, panda, store, sleeps):
        routes = {
            ROOT: page([folder_entry("/f/a", "A", "/f/a/videos")]),
            "/f/a/videos": page([{"uri": "/videos/oops", "name": "Broken"}, video_entry(2, "Fine")]),
        }

        stats = build_walker(routes, panda, store, sleeps).run(ROOT)

        assert stats.videos_seen == 2
        assert stats.unmatched == 1
        assert stats.skipped[0].kind == "video"
        assert stats.skipped[0].name == "Broken"

    def test_failed_video_search_does_not_stop_siblings(self, panda, panda_http, store, sleeps):
        routes = {
            ROOT: page([folder_entry("/f/a", "A", "/f/a/videos")]),
            "/f/a/videos": page([video_entry(1, "Flaky"), video_entry(2, "Good")]),
        }
        panda_http.fail_titles.add("Flaky")
        panda_http.videos = [{"id": "p2", "title": "Good", "folder_id": "new-1", "video_external_id": "e2"}]

        stats = build_walker(routes, panda, store, sleeps).run(ROOT)

        assert stats.matched == 1
        assert [s.name for s in stats.skipped] == ["Flaky"]

    def test_failed_folder_creation_skips_only_that_folder(self, panda, panda_http, store, sleeps):
        routes = {
            ROOT: page([
                folder_entry("/f/bad", "Broken", "/f/bad/videos", "/f/bad/items"),
                folder_entry("/f/ok", "Fine"),
            ]),
        }
        panda_http.fail_folder_names.add("Broken")

        walker = build_walker(routes, panda, store, sleeps)
        stats = walker.run(ROOT)

        assert stats.folders_skipped == 1
        assert stats.folders_visited == 1
        assert [f["name"] for f in panda_http.folders] == ["Fine"]
        assert "/f/bad/videos" not in walker.source.http.requested

    def test_video_listing_failure_still_walks_children(self, panda, store, sleeps):
        routes = {
            ROOT: page([folder_entry("/f/a", "A", "/f/a/videos", "/f/a/items")]),
            "/f/a/videos": RequestError("Gave up after 5 attempts", status=429, url="/f/a/videos"),
            "/f/a/items": page([folder_entry("/f/b", "B")]),
        }

        stats = build_walker(routes, panda, store, sleeps).run(ROOT)

        assert stats.folders_visited == 2
        assert stats.skipped[0].kind == "folder"
        assert "video listing failed" in stats.skipped[0].reason

    def test_child_listing_page_failure_skips_only_that_listing(self, panda, store, sleeps):
        routes = {
            ROOT: page([folder_entry("/f/a", "A", items_uri="/f/a/items"), folder_entry("/f/c", "C")]),
            "/f/a/items": page([folder_entry("/f/b", "B")], next_url="/f/a/items?page=2"),
            "/f/a/items?page=2": RequestError("Gave up after 5 attempts", status=429, url="/f/a/items?page=2"),
        }

        stats = build_walker(routes, panda, store, sleeps).run(ROOT)

        assert stats.folders_visited == 3
        assert stats.folders_skipped == 0
        assert [(s.kind, s.name) for s in stats.skipped] == [("listing", "/f/a/items")]
        assert "\"A\"" in stats.skipped[0].reason

    def test_read_only_mode_skips_missing_subtree(self, tree, panda, panda_http, store, sleeps):
        panda_http.folders = [{"id": "c-id", "name": "C", "parent_folder_id": None}]

        walker = build_walker(tree, panda, store, sleeps, create_missing=False)
        stats = walker.run(ROOT)

        assert panda_http.count("POST", "/folders") == 0
        assert stats.folders_visited == 1
        assert [(s.kind, s.name) for s in stats.skipped] == [("folder", "A")]
        assert "/f/a/items" not in walker.source.http.requested

    def test_root_listing_failure_is_fatal(self, panda, store, sleeps):
        routes = {ROOT: RequestError("API error 401: unauthorized", status=401, url=ROOT)}

        with pytest.raises(RequestError):
            build_walker(routes, panda, store, sleeps).run(ROOT)

    def test_store_failure_aborts_run(self, panda, panda_http, sleeps):
        routes = {
            ROOT: page([folder_entry("/f/a", "A", "/f/a/videos"), folder_entry("/f/b", "B")]),
            "/f/a/videos": page([video_entry(1, "One")]),
        }
        store = Mock()
        store.get.side_effect = sqlite3.OperationalError("unable to open database file")

        with pytest.raises(sqlite3.OperationalError):
            build_walker(routes, panda, store, sleeps).run(ROOT)

        assert [f["name"] for f in panda_http.folders] == ["A"]


class TestMirrorStats:
    def test_skip_counts(self):
        stats = MirrorStats()
        stats.skip("folder", "A", "boom")
        stats.skip("video", "v", "bad uri")
        stats.skip("video", "w", "bad uri")

        assert stats.folders_skipped == 1
        assert stats.videos_skipped == 2
        assert stats.skipped[0] == SkippedItem(kind="folder", name="A", reason="boom")
        assert "Skipped: 1 folders, 2 videos, 0 listings" in str(stats)
