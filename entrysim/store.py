"""SQLite-backed entry store.

Holds users, feeds, entries and the ``entry_similar`` edge table. Edge
inserts are idempotent (``INSERT OR IGNORE`` on the ordered pair), and edge
lookups are direction-agnostic.

    store = SQLiteStore("entrysim.db")
    store.init_schema()
    for user in store.list_users():
        entries = store.list_entries(user.id)
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol, Union

from dateutil import parser as dateparser

from entrysim.models import Entry, Feed, SimilarityEdge, User

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    username TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL DEFAULT '',
    UNIQUE (user_id, url)
);
CREATE TABLE IF NOT EXISTS entries (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id INTEGER REFERENCES feeds(id) ON DELETE CASCADE,
    title TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL DEFAULT '',
    published_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_entries_user_feed ON entries (user_id, feed_id);
CREATE TABLE IF NOT EXISTS entry_similar (
    entry_id INTEGER NOT NULL REFERENCES entries(id) ON DELETE CASCADE,
    similar_entry_id INTEGER NOT NULL REFERENCES entries(id) ON DELETE CASCADE,
    similarity REAL NOT NULL CHECK (similarity >= 0 AND similarity <= 1),
    PRIMARY KEY (entry_id, similar_entry_id)
);
CREATE INDEX IF NOT EXISTS idx_entry_similar_target ON entry_similar (similar_entry_id);
"""


class StoreError(Exception):
    """A store operation failed."""


class EntryStore(Protocol):
    """What a similarity pass needs from persistence."""

    def list_users(self) -> List[User]: ...

    def list_entries(self, user_id: int, feed_id: Optional[int] = None,
                     since: Optional[datetime] = None) -> List[Entry]: ...

    def list_similar_edges(self, entry_id: int) -> List[SimilarityEdge]: ...

    def insert_similarity_edge(self, edge: SimilarityEdge) -> bool: ...


def _to_utc_text(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = dateparser.isoparse(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class SQLiteStore:
    """Thread-safe store on a single SQLite connection."""

    def __init__(self, path: Union[str, Path] = ":memory:"):
        self.path = str(path)
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreError(f"store: unable to open {self.path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.Lock()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _execute(self, action: str, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            with self._lock, self._conn:
                return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StoreError(f"store: unable to {action}: {e}") from e

    def _query(self, action: str, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"store: unable to {action}: {e}") from e

    def init_schema(self) -> None:
        try:
            with self._lock, self._conn:
                self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"store: unable to create schema: {e}") from e
        logger.debug(f"[Store] Schema ready in {self.path}")

    # -- users / feeds / entries -------------------------------------------

    def add_user(self, username: str) -> User:
        self._execute("create user", "INSERT OR IGNORE INTO users (username) VALUES (?)", (username,))
        row = self._query("fetch user", "SELECT id, username FROM users WHERE username = ?", (username,))[0]
        return User(id=row["id"], username=row["username"])

    def list_users(self) -> List[User]:
        rows = self._query("fetch users", "SELECT id, username FROM users ORDER BY id")
        return [User(id=r["id"], username=r["username"]) for r in rows]

    def add_feed(self, user_id: int, url: str, title: str = "") -> Feed:
        self._execute(
            "create feed",
            "INSERT OR IGNORE INTO feeds (user_id, url, title) VALUES (?, ?, ?)",
            (user_id, url, title),
        )
        row = self._query(
            "fetch feed",
            "SELECT id, user_id, title, url FROM feeds WHERE user_id = ? AND url = ?",
            (user_id, url),
        )[0]
        return Feed(id=row["id"], user_id=row["user_id"], title=row["title"], url=row["url"])

    def list_feeds(self, user_id: int) -> List[Feed]:
        rows = self._query(
            "fetch feeds",
            "SELECT id, user_id, title, url FROM feeds WHERE user_id = ? ORDER BY id",
            (user_id,),
        )
        return [Feed(id=r["id"], user_id=r["user_id"], title=r["title"], url=r["url"]) for r in rows]

    def add_entry(self, user_id: int, title: str, url: str = "", content: str = "",
                  feed_id: Optional[int] = None, published_at: Optional[datetime] = None) -> Entry:
        cur = self._execute(
            "create entry",
            "INSERT INTO entries (user_id, feed_id, title, url, content, published_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, feed_id, title, url, content, _to_utc_text(published_at)),
        )
        return Entry(
            id=cur.lastrowid, user_id=user_id, feed_id=feed_id, title=title,
            url=url, content=content, published_at=published_at,
        )

    def list_entries(self, user_id: int, feed_id: Optional[int] = None,
                     since: Optional[datetime] = None) -> List[Entry]:
        """Entries of one user (optionally one feed, optionally newer than since), by id."""
        sql = ("SELECT id, user_id, feed_id, title, url, content, published_at "
               "FROM entries WHERE user_id = ?")
        params: list = [user_id]
        if feed_id is not None:
            sql += " AND feed_id = ?"
            params.append(feed_id)
        if since is not None:
            sql += " AND published_at >= ?"
            params.append(_to_utc_text(since))
        sql += " ORDER BY id"
        rows = self._query("fetch entries", sql, tuple(params))
        return [
            Entry(
                id=r["id"], user_id=r["user_id"], feed_id=r["feed_id"], title=r["title"],
                url=r["url"], content=r["content"], published_at=_parse_ts(r["published_at"]),
            )
            for r in rows
        ]

    # -- similarity edges --------------------------------------------------

    def list_similar_edges(self, entry_id: int) -> List[SimilarityEdge]:
        """Stored edges in which entry_id appears on either side."""
        rows = self._query(
            "fetch similar entries",
            "SELECT entry_id, similar_entry_id, similarity FROM entry_similar "
            "WHERE entry_id = ? OR similar_entry_id = ? "
            "ORDER BY entry_id, similar_entry_id",
            (entry_id, entry_id),
        )
        return [
            SimilarityEdge(r["entry_id"], r["similar_entry_id"], r["similarity"])
            for r in rows
        ]

    def find_similarity(self, a: int, b: int) -> Optional[SimilarityEdge]:
        """The stored edge between a and b in either direction, if any."""
        rows = self._query(
            "fetch similarity",
            "SELECT entry_id, similar_entry_id, similarity FROM entry_similar "
            "WHERE (entry_id = ? AND similar_entry_id = ?) "
            "OR (entry_id = ? AND similar_entry_id = ?) LIMIT 1",
            (a, b, b, a),
        )
        if not rows:
            return None
        r = rows[0]
        return SimilarityEdge(r["entry_id"], r["similar_entry_id"], r["similarity"])

    def insert_similarity_edge(self, edge: SimilarityEdge) -> bool:
        """Insert an edge. Returns False (not an error) if the ordered pair exists."""
        cur = self._execute(
            f"create similar_entry ({edge.entry_id} -> {edge.similar_entry_id})",
            "INSERT OR IGNORE INTO entry_similar (entry_id, similar_entry_id, similarity) "
            "VALUES (?, ?, ?)",
            (edge.entry_id, edge.similar_entry_id, edge.similarity),
        )
        return cur.rowcount == 1

    def count_similar_edges(self) -> int:
        return self._query("count similar entries", "SELECT COUNT(*) AS n FROM entry_similar")[0]["n"]
