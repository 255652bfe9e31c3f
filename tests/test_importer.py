"""Tests for corpus file import."""
import json
from datetime import datetime, timezone

import pytest

from entrysim.importer import _parse_published, import_corpus, load_corpus_file

CORPUS_YAML = """\
users:
  - username: alice
    feeds:
      - url: https://example.com/feed.xml
        title: Example
        entries:
          - title: cat dog bird
            url: https://example.com/a
            published: 2026-02-14T10:00:00Z
          - title: cat dog fish
            url: https://example.com/b
            content: "<p>A fish story</p>"
      - url: https://other.example/rss
  - username: bob
"""


class TestLoadCorpusFile:
    def test_yaml(self, tmp_path):
        path = tmp_path / "corpus.yaml"
        path.write_text(CORPUS_YAML)
        users = load_corpus_file(str(path))
        assert [u["username"] for u in users] == ["alice", "bob"]
        assert users[0]["feeds"][1]["title"] == "https://other.example/rss"
        assert users[0]["feeds"][1]["entries"] == []
        assert users[1]["feeds"] == []

    def test_json(self, tmp_path):
        path = tmp_path / "corpus.json"
        path.write_text(json.dumps({"users": [{"username": "carol", "feeds": [
            {"url": "https://c.example/feed", "entries": [{"title": "hello"}]},
        ]}]}))
        users = load_corpus_file(str(path))
        assert users[0]["feeds"][0]["entries"][0]["title"] == "hello"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_corpus_file(str(tmp_path / "nope.yaml"))

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "corpus.txt"
        path.write_text("users: []")
        with pytest.raises(ValueError, match="Unsupported"):
            load_corpus_file(str(path))

    @pytest.mark.parametrize("content, message", [
        ("feeds: []\n", "users"),
        ("users: alice\n", "must be a list"),
        ("users:\n  - feeds: []\n", "username"),
        ("users:\n  - username: a\n    feeds:\n      - title: x\n", "url"),
        ("users:\n  - username: a\n    feeds:\n      - url: u\n        entries:\n          - url: x\n", "title"),
    ])
    def test_validation(self, tmp_path, content, message):
        path = tmp_path / "corpus.yaml"
        path.write_text(content)
        with pytest.raises(ValueError, match=message):
            load_corpus_file(str(path))


class TestParsePublished:
    def test_iso_string(self):
        assert _parse_published("2026-02-14T10:00:00Z") == datetime(2026, 2, 14, 10, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self):
        assert _parse_published(datetime(2026, 2, 14, 10)).tzinfo == timezone.utc

    def test_rfc822(self):
        dt = _parse_published("Sat, 14 Feb 2026 10:00:00 +0000")
        assert dt == datetime(2026, 2, 14, 10, tzinfo=timezone.utc)

    def test_empty(self):
        assert _parse_published(None) is None
        assert _parse_published("") is None

    def test_garbage(self):
        assert _parse_published("not a date at all") is None


class TestImportCorpus:
    def test_imports_everything(self, store, tmp_path):
        path = tmp_path / "corpus.yaml"
        path.write_text(CORPUS_YAML)
        stats = import_corpus(store, str(path))
        assert (stats.users, stats.feeds, stats.entries) == (2, 2, 2)

        alice = store.list_users()[0]
        entries = store.list_entries(alice.id)
        assert [e.title for e in entries] == ["cat dog bird", "cat dog fish"]
        assert entries[0].published_at == datetime(2026, 2, 14, 10, tzinfo=timezone.utc)
        assert entries[1].published_at is None
        assert entries[1].content == "<p>A fish story</p>"
        assert entries[0].feed_id == store.list_feeds(alice.id)[0].id

    def test_reimport_reuses_users_and_feeds(self, store, tmp_path):
        path = tmp_path / "corpus.yaml"
        path.write_text(CORPUS_YAML)
        import_corpus(store, str(path))
        import_corpus(store, str(path))
        assert len(store.list_users()) == 2
        assert len(store.list_feeds(store.list_users()[0].id)) == 2
