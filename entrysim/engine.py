"""Pairwise similarity engine for one corpus."""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from entrysim.comparator import Comparator
from entrysim.models import Document, Entry, Similar, Story
from entrysim.pool import Task, TaskError, WorkerPool
from entrysim.vectorizer import TermVector, TfidfVectorizer

logger = logging.getLogger(__name__)


class SimilarityTimeout(Exception):
    """The corpus did not finish within the configured timeout."""


@dataclass
class EngineStats:
    documents: int = 0
    terms: int = 0
    comparisons: int = 0
    candidates: int = 0
    empty_documents: int = 0
    duration_ms: float = 0.0


def is_exact_duplicate(a: Document, b: Document) -> bool:
    """Same non-empty normalized text. Links alone never decide a score."""
    return bool(a.content) and a.content == b.content


class SimilarityEngine:
    """Scores every document against every later document in id order.

    Document i is compared only with documents i+1..n-1, so each unordered
    pair is evaluated once and a qualifying pair is attached to the lower
    position document. The per-document scans run on a WorkerPool.
    """

    def __init__(self, threshold: float = 0.5, max_workers: int = 5, buffer: int = 200,
                 vectorizer: Optional[TfidfVectorizer] = None, timeout: Optional[float] = None,
                 slow_task_ms: float = 5000.0, task_timeout: Optional[float] = None):
        if threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {threshold}")
        self.threshold = threshold
        self.max_workers = max_workers
        self.buffer = buffer
        self.vectorizer = vectorizer or TfidfVectorizer()
        self.timeout = timeout or None
        self.slow_task_ms = slow_task_ms
        self.task_timeout = task_timeout or None

    @staticmethod
    def build_documents(entries: Sequence[Entry]) -> List[Document]:
        """Project entries into documents ordered by ascending id."""
        return [Document.from_entry(e) for e in sorted(entries, key=lambda e: e.id)]

    def _processor(self, docs: List[Document], vectors: List[TermVector],
                   comparator: Comparator, offset: int) -> Callable[[Document], Story]:
        """Build the task that scans docs[offset+1:] for one document."""
        def process(doc: Document) -> Story:
            t0 = time.monotonic()
            story = Story(document=doc)
            vec = vectors[offset]
            iterations = 0
            deadline = None if self.task_timeout is None else t0 + self.task_timeout
            for other, other_vec in zip(docs[offset + 1:], vectors[offset + 1:]):
                if deadline is not None and time.monotonic() > deadline:
                    raise SimilarityTimeout(
                        f"entry {doc.id} exceeded {self.task_timeout}s after {iterations} comparisons"
                    )
                if is_exact_duplicate(doc, other):
                    score = 1.0
                else:
                    score = comparator.compare(vec, other_vec)
                if score >= self.threshold:
                    story.similar.append(Similar(target=other, similarity=score))
                iterations += 1
            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.debug(
                f"[Engine] Processed entry {doc.id} at offset {offset}: "
                f"{iterations} comparisons, {len(story.similar)} similar in {elapsed_ms:.1f}ms"
            )
            return story
        return process

    def calculate(self, entries: Sequence[Entry]) -> Tuple[List[Story], EngineStats]:
        """Return stories with at least one similar document, plus run stats.

        Raises SimilarityTimeout if the corpus exceeds the timeout, or the
        first TaskError raised by a comparison task. A scan running past
        ``task_timeout`` stops between comparisons and fails its task with a
        SimilarityTimeout cause.
        """
        t0 = time.monotonic()
        stats = EngineStats()
        docs = self.build_documents(entries)
        stats.documents = len(docs)
        if not docs:
            return [], stats

        vectorization = self.vectorizer.vectorize(docs)
        vectors = vectorization.vectors
        comparator = Comparator(vectorization.index)
        stats.terms = len(vectorization.vocabulary)
        stats.empty_documents = sum(1 for v in vectors if v.is_zero)
        stats.comparisons = len(docs) * (len(docs) - 1) // 2

        stories: List[Story] = []
        errors: List[TaskError] = []
        pool: WorkerPool[Document, Story] = WorkerPool(
            num_workers=self.max_workers, buffer=self.buffer,
            name="similarity", slow_task_ms=self.slow_task_ms,
        )

        def collect_results():
            for result in pool.results:
                if result.value.similar:
                    stories.append(result.value)

        def collect_errors():
            for err in pool.errors:
                logger.error(f"[Engine] {err}")
                errors.append(err)

        collectors = [
            threading.Thread(target=collect_results, name="similarity-results", daemon=True),
            threading.Thread(target=collect_errors, name="similarity-errors", daemon=True),
        ]
        pool.start()
        for c in collectors:
            c.start()

        finished = True
        try:
            for offset, doc in enumerate(docs[:-1]):
                pool.submit(Task(
                    id=offset,
                    data=doc,
                    function=self._processor(docs, vectors, comparator, offset),
                ))
            finished = pool.wait(self.timeout)
        finally:
            pool.stop()
            for c in collectors:
                c.join()

        if not finished:
            raise SimilarityTimeout(
                f"similarity for {len(docs)} documents exceeded {self.timeout}s "
                f"({pool.stats.cancelled} task(s) cancelled)"
            )
        if errors:
            raise min(errors, key=lambda e: e.task_id)

        stories.sort(key=lambda s: s.id)
        stats.candidates = sum(len(s.similar) for s in stories)
        stats.duration_ms = (time.monotonic() - t0) * 1000
        logger.info(
            f"[Engine] {stats.documents} documents, {stats.comparisons} comparisons, "
            f"{stats.candidates} candidates in {stats.duration_ms:.0f}ms"
        )
        return stories, stats
