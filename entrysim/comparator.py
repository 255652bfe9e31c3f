"""Cosine similarity between TF-IDF term vectors."""
from __future__ import annotations

from typing import Mapping, Optional, Tuple

import numpy as np

from entrysim.vectorizer import TermVector


def align(a: TermVector, b: TermVector,
          index: Optional[Mapping[str, int]] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Densify two sparse vectors over the terms either of them carries.

    Positions follow the corpus vocabulary order when ``index`` is given,
    lexical order otherwise, so the result is deterministic.
    """
    terms = set(a) | set(b)
    if index is not None:
        ordered = sorted(terms, key=index.__getitem__)
    else:
        ordered = sorted(terms)
    vec_a = np.fromiter((a.get(t, 0.0) for t in ordered), dtype=np.float64, count=len(ordered))
    vec_b = np.fromiter((b.get(t, 0.0) for t in ordered), dtype=np.float64, count=len(ordered))
    return vec_a, vec_b


def cosine_similarity(a: TermVector, b: TermVector,
                      index: Optional[Mapping[str, int]] = None) -> float:
    """Dot product over the product of magnitudes, clamped to [0, 1].

    Zero vectors (empty or all-stopword documents) score 0.
    """
    if a.is_zero or b.is_zero:
        return 0.0
    vec_a, vec_b = align(a, b, index)
    score = float(np.dot(vec_a, vec_b)) / (a.norm * b.norm)
    return min(1.0, max(0.0, score))


class Comparator:
    """Scores document pairs of one corpus against its shared vocabulary."""

    def __init__(self, index: Optional[Mapping[str, int]] = None):
        self.index = index

    def compare(self, a: TermVector, b: TermVector) -> float:
        return cosine_similarity(a, b, self.index)
