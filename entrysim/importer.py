"""Load users, feeds and entries from a YAML or JSON file into a store."""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from dateutil import parser as dateparser

from entrysim.store import SQLiteStore

logger = logging.getLogger(__name__)


@dataclass
class ImportStats:
    users: int = 0
    feeds: int = 0
    entries: int = 0


def load_corpus_file(path: str) -> List[dict]:
    """Load and validate a corpus file.

    Expected format (YAML):
        users:
          - username: alice
            feeds:
              - url: https://example.com/feed.xml
                title: Example
                entries:
                  - title: Something happened
                    url: https://example.com/a
                    content: "<p>Body</p>"
                    published: 2026-02-14T10:00:00Z
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Corpus file not found: {path}")

    content = p.read_text(encoding="utf-8")

    if p.suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(content)
    elif p.suffix == ".json":
        data = json.loads(content)
    else:
        raise ValueError(f"Unsupported corpus file format: {p.suffix} (use .yaml, .yml, or .json)")

    if not isinstance(data, dict) or "users" not in data:
        raise ValueError("Corpus file must contain a top-level 'users' key with a list of users")

    users = data["users"]
    if not isinstance(users, list):
        raise ValueError("'users' must be a list")

    for i, u in enumerate(users):
        if not isinstance(u, dict) or not u.get("username"):
            raise ValueError(f"User #{i+1} must be a dict with at least 'username'")
        feeds = u.setdefault("feeds", [])
        if not isinstance(feeds, list):
            raise ValueError(f"User '{u['username']}': 'feeds' must be a list")
        for j, f in enumerate(feeds):
            if not isinstance(f, dict) or "url" not in f:
                raise ValueError(f"User '{u['username']}' feed #{j+1} must be a dict with at least 'url'")
            f.setdefault("title", f["url"])
            entries = f.setdefault("entries", [])
            if not isinstance(entries, list):
                raise ValueError(f"Feed '{f['url']}': 'entries' must be a list")
            for k, e in enumerate(entries):
                if not isinstance(e, dict) or "title" not in e:
                    raise ValueError(f"Feed '{f['url']}' entry #{k+1} must be a dict with at least 'title'")

    return users


def _parse_published(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = dateparser.parse(str(value))
        except (ValueError, OverflowError):
            logger.warning(f"[Import] Unparseable timestamp {value!r}, leaving empty")
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def import_corpus(store: SQLiteStore, path: str) -> ImportStats:
    """Insert everything in the corpus file into the store."""
    stats = ImportStats()
    for u in load_corpus_file(path):
        user = store.add_user(u["username"])
        stats.users += 1
        for f in u["feeds"]:
            feed = store.add_feed(user.id, f["url"], title=f["title"])
            stats.feeds += 1
            for e in f["entries"]:
                store.add_entry(
                    user.id,
                    title=str(e["title"]),
                    url=str(e.get("url", "")),
                    content=str(e.get("content", "")),
                    feed_id=feed.id,
                    published_at=_parse_published(e.get("published")),
                )
                stats.entries += 1
    logger.info(f"[Import] {stats.users} users, {stats.feeds} feeds, {stats.entries} entries from {path}")
    return stats
