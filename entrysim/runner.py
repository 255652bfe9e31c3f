"""Similarity pass over every user in the store.

For each user (or each of a user's feeds with ``per_feed=True``, where
entries without a feed share one extra corpus) the entries are loaded,
scored by the SimilarityEngine, and the qualifying pairs are written as
edges unless an edge between the same two entries already exists in either
direction. A failure aborts only the user it happened for; the pass carries
on with the next one and reports the first error at the end.

    report = run_similarity_pass(store, threshold=0.6)
    print(report.total_created)
    report.raise_for_error()
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from entrysim.engine import EngineStats, SimilarityEngine
from entrysim.models import Entry, SimilarityEdge, Story, User
from entrysim.store import EntryStore

logger = logging.getLogger(__name__)


@dataclass
class UserReport:
    user_id: int
    username: str
    entries: int = 0
    comparisons: int = 0
    candidates: int = 0
    created: int = 0
    skipped: int = 0
    duration_ms: float = 0.0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def add_stats(self, stats: EngineStats) -> None:
        self.entries += stats.documents
        self.comparisons += stats.comparisons
        self.candidates += stats.candidates


@dataclass
class PassReport:
    threshold: float
    dry_run: bool = False
    users: List[UserReport] = field(default_factory=list)

    @property
    def total_created(self) -> int:
        return sum(u.created for u in self.users)

    @property
    def total_candidates(self) -> int:
        return sum(u.candidates for u in self.users)

    @property
    def failed_users(self) -> List[UserReport]:
        return [u for u in self.users if not u.ok]

    @property
    def error(self) -> Optional[Exception]:
        """The first error encountered during the pass, if any."""
        for u in self.users:
            if u.error is not None:
                return u.error
        return None

    def raise_for_error(self) -> None:
        err = self.error
        if err is not None:
            raise err


def _already_linked(store: EntryStore, edge: SimilarityEdge) -> bool:
    for existing in store.list_similar_edges(edge.entry_id):
        if existing.connects(edge.entry_id, edge.similar_entry_id):
            return True
    return False


def persist_stories(store: EntryStore, stories: Iterable[Story], report: UserReport,
                    dry_run: bool = False) -> None:
    """Write each story's edges, skipping pairs that are already linked.

    Runs sequentially within one user so the check-then-insert stays
    race-free; the insert itself is idempotent as well.
    """
    for story in stories:
        for edge in story.edges():
            if _already_linked(store, edge):
                logger.debug(f"[Runner] Existing similar: {edge.entry_id} ~ {edge.similar_entry_id}")
                report.skipped += 1
                continue
            if dry_run:
                logger.debug(
                    f"[Runner] Would link {edge.entry_id} -> {edge.similar_entry_id} "
                    f"({edge.similarity:.3f})"
                )
                report.created += 1
                continue
            if store.insert_similarity_edge(edge):
                logger.debug(
                    f"[Runner] New similar: {edge.entry_id} -> {edge.similar_entry_id} "
                    f"({edge.similarity:.3f})"
                )
                report.created += 1
            else:
                report.skipped += 1


def _corpora(store: EntryStore, user: User, per_feed: bool,
             since: Optional[datetime]) -> Iterable[List[Entry]]:
    """One corpus per user, or one per feed plus one for entries without a feed."""
    entries = store.list_entries(user.id, since=since)
    if not per_feed:
        yield entries
        return
    by_feed: Dict[Optional[int], List[Entry]] = {}
    for entry in entries:
        by_feed.setdefault(entry.feed_id, []).append(entry)
    for feed_id in sorted(by_feed, key=lambda f: (f is None, f or 0)):
        yield by_feed[feed_id]


def run_user(store: EntryStore, engine: SimilarityEngine, user: User, *,
             per_feed: bool = False, since: Optional[datetime] = None,
             dry_run: bool = False) -> UserReport:
    """Run one user; failures are recorded on the report, not raised."""
    report = UserReport(user_id=user.id, username=user.username)
    t0 = time.monotonic()
    try:
        for entries in _corpora(store, user, per_feed, since):
            stories, stats = engine.calculate(entries)
            report.add_stats(stats)
            persist_stories(store, stories, report, dry_run=dry_run)
    except Exception as e:
        report.error = e
        logger.error(f"[Runner] User {user.id} ({user.username}) failed: {e}")
    report.duration_ms = (time.monotonic() - t0) * 1000
    if report.ok:
        logger.info(
            f"[Runner] User {user.id} ({user.username}): {report.entries} entries, "
            f"{report.candidates} candidates, {report.created} new edges in {report.duration_ms:.0f}ms"
        )
    return report


def run_similarity_pass(
    store: EntryStore,
    threshold: float = 0.5,
    *,
    engine: Optional[SimilarityEngine] = None,
    user_ids: Optional[Iterable[int]] = None,
    per_feed: bool = False,
    since: Optional[datetime] = None,
    dry_run: bool = False,
) -> PassReport:
    """Compute and persist similarity edges for every user.

    Args:
        store: Entry store to read from and write edges to.
        threshold: Minimum cosine score for an edge (used when no engine is given).
        engine: Pre-configured engine (workers, vectorizer, timeout).
        user_ids: Restrict the pass to these users.
        per_feed: Build one corpus per feed instead of one per user.
        since: Only consider entries published at or after this time.
        dry_run: Compute candidates without writing edges.

    Returns:
        PassReport with one UserReport per processed user. ``report.error``
        holds the first failure, if any.
    """
    engine = engine or SimilarityEngine(threshold=threshold)
    report = PassReport(threshold=engine.threshold, dry_run=dry_run)
    logger.debug(f"[Runner] Calculating similarity (threshold={engine.threshold}, per_feed={per_feed})")

    try:
        users = store.list_users()
    except Exception as e:
        logger.error(f"[Runner] Unable to list users: {e}")
        report.users.append(UserReport(user_id=0, username="", error=e))
        return report

    if user_ids is not None:
        wanted = set(user_ids)
        users = [u for u in users if u.id in wanted]

    for user in users:
        logger.debug(f"[Runner] Processing user {user.id}")
        report.users.append(run_user(
            store, engine, user, per_feed=per_feed, since=since, dry_run=dry_run,
        ))

    logger.info(
        f"[Runner] Pass complete: {len(report.users)} users, {report.total_created} new edges, "
        f"{len(report.failed_users)} failed"
    )
    return report
