"""Shared test fixtures."""
import pytest

from entrysim.store import SQLiteStore


@pytest.fixture
def store(tmp_path):
    """A fresh on-disk SQLite store with the schema created."""
    s = SQLiteStore(tmp_path / "entrysim.db")
    s.init_schema()
    yield s
    s.close()


@pytest.fixture
def seeded_store(store):
    """One user with the classic three-document corpus."""
    user = store.add_user("alice")
    feed = store.add_feed(user.id, "https://example.com/feed.xml", title="Example")
    for title in ("cat dog bird", "cat dog fish", "totally unrelated text"):
        store.add_entry(user.id, title=title, url=f"https://example.com/{title.replace(' ', '-')}",
                        feed_id=feed.id)
    return store
