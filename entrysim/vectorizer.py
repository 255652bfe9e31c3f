"""TF-IDF weighting over a single corpus.

Each corpus gets its own IDF table; vectors from different corpora must
never be compared with each other.

    vectorizer = TfidfVectorizer()
    result = vectorizer.vectorize(documents)
    result.vectors[0]        # TermVector for documents[0]
    result.vocabulary        # sorted list of every term in the corpus
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence

from entrysim.models import Document
from entrysim.stopwords import DEFAULT_STOPWORDS
from entrysim.text import Tokenizer, TokenizeError, tokenize

logger = logging.getLogger(__name__)

TF_RAW = "raw"
TF_NORMALIZED = "normalized"
TF_MODES = (TF_RAW, TF_NORMALIZED)


class TermVector(Mapping):
    """Immutable sparse mapping of term → non-negative weight."""

    __slots__ = ("_weights", "_norm")

    def __init__(self, weights: Optional[Dict[str, float]] = None):
        self._weights = dict(weights or {})
        for term, w in self._weights.items():
            if w < 0 or math.isnan(w):
                raise ValueError(f"weight for {term!r} must be non-negative, got {w}")
        self._norm = math.sqrt(math.fsum(w * w for w in self._weights.values()))

    def __getitem__(self, term: str) -> float:
        return self._weights[term]

    def __iter__(self) -> Iterator[str]:
        return iter(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    @property
    def norm(self) -> float:
        """Euclidean magnitude, computed once at construction."""
        return self._norm

    @property
    def is_zero(self) -> bool:
        return self._norm == 0.0

    def __repr__(self) -> str:
        return f"TermVector({len(self._weights)} terms, norm={self._norm:.4f})"


@dataclass(frozen=True)
class VectorizerConfig:
    """Explicit, immutable inputs to a vectorization run."""
    stopwords: FrozenSet[str] = DEFAULT_STOPWORDS
    tf_mode: str = TF_RAW
    tokenizer: Optional[Tokenizer] = None

    def __post_init__(self):
        if self.tf_mode not in TF_MODES:
            raise ValueError(f"tf_mode must be one of {TF_MODES}, got {self.tf_mode!r}")


@dataclass(frozen=True)
class Vectorization:
    """Output of one corpus: a vector per document, in corpus order."""
    vectors: List[TermVector]
    vocabulary: List[str]
    idf: Mapping
    # term → position in ``vocabulary``; used to align vectors for comparison
    index: Mapping = field(repr=False)
    # documents that could not be tokenized and were treated as empty
    failed: FrozenSet[int] = frozenset()


class TfidfVectorizer:
    def __init__(self, config: Optional[VectorizerConfig] = None):
        self.config = config or VectorizerConfig()

    def terms(self, doc: Document) -> List[str]:
        return tokenize(doc.content, self.config.stopwords, self.config.tokenizer)

    def term_frequencies(self, terms: List[str]) -> Dict[str, float]:
        counts = Counter(terms)
        if self.config.tf_mode == TF_NORMALIZED and terms:
            total = float(len(terms))
            return {t: c / total for t, c in counts.items()}
        return {t: float(c) for t, c in counts.items()}

    def vectorize(self, corpus: Sequence[Document]) -> Vectorization:
        """Compute TF-IDF vectors for every document in the corpus.

        idf(t) = ln(N / df(t)) where N is the corpus size and df(t) the number
        of documents containing t. A document whose text cannot be tokenized
        gets an empty vector instead of failing the corpus.
        """
        term_freqs: List[Dict[str, float]] = []
        doc_freq: Counter = Counter()
        failed = set()

        for doc in corpus:
            try:
                terms = self.terms(doc)
            except TokenizeError as e:
                logger.warning(f"[Vectorizer] Document {doc.id} treated as empty: {e}")
                failed.add(doc.id)
                terms = []
            tf = self.term_frequencies(terms)
            term_freqs.append(tf)
            doc_freq.update(tf.keys())

        n_docs = len(corpus)
        idf = {term: math.log(n_docs / df) for term, df in doc_freq.items()}
        vocabulary = sorted(idf)
        index = {term: i for i, term in enumerate(vocabulary)}

        vectors = [
            TermVector({term: freq * idf[term] for term, freq in tf.items()})
            for tf in term_freqs
        ]
        logger.debug(f"[Vectorizer] {n_docs} documents, {len(vocabulary)} terms, tf={self.config.tf_mode}")
        return Vectorization(
            vectors=vectors,
            vocabulary=vocabulary,
            idf=MappingProxyType(idf),
            index=MappingProxyType(index),
            failed=frozenset(failed),
        )
