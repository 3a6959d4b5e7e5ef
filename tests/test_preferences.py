"""Tests for environment-scoped preference storage."""

from __future__ import annotations

import json

from threadscope.preferences import SEARCH_TERM_KEY, PreferenceStore, environment_key


def test_environment_key():
    assert environment_key("threads-search-term", "production") == "threads-search-term-production"


class TestPreferenceStore:
    def test_round_trip_is_scoped_by_environment(self, tmp_path):
        path = tmp_path / "prefs.json"
        staging = PreferenceStore(path, environment="staging")
        production = PreferenceStore(path, environment="production")

        assert staging.set(SEARCH_TERM_KEY, "hotel")
        assert staging.get(SEARCH_TERM_KEY) == "hotel"
        assert production.get(SEARCH_TERM_KEY, "") == ""

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw == {"threads-search-term-staging": "hotel"}

    def test_missing_file_reads_default(self, tmp_path):
        assert PreferenceStore(tmp_path / "nope.json").get("k", 42) == 42

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text("{not json", encoding="utf-8")
        store = PreferenceStore(path)

        assert store.get("k") is None
        assert store.set("k", "v")
        assert store.get("k") == "v"

    def test_write_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        store = PreferenceStore(blocker / "sub" / "prefs.json")

        assert store.set("k", "v") is False
        assert store.get("k") is None

    def test_unserializable_value_returns_false(self, tmp_path):
        assert PreferenceStore(tmp_path / "p.json").set("k", object()) is False

    def test_remove(self, tmp_path):
        store = PreferenceStore(tmp_path / "p.json")
        store.set("k", "v")
        assert store.remove("k")
        assert store.get("k") is None
        assert store.remove("k")
