"""Text normalization and tokenization.

``normalize`` turns an entry's title and body into a flat lowercase string:

    >>> normalize("Hello <b>World</b>!", "<p>It's  here.</p>")
    'hello world its here'

``tokenize`` splits normalized text into terms and drops stopwords. The
splitting strategy is a swappable ``Tokenizer``; the default splits on
whitespace, ``RegexTokenizer`` pulls runs of word characters instead.
"""
from __future__ import annotations

import re
from typing import FrozenSet, List, Optional, Protocol

from entrysim.stopwords import DEFAULT_STOPWORDS

_TAG_RE = re.compile(r"<[^>]*>")
_NON_WORD_RE = re.compile(r"[^\w\s]+")
_SPACE_RE = re.compile(r"\s+")


class TokenizeError(ValueError):
    """Raised when text cannot be split into terms."""


def strip_tags(text: str) -> str:
    """Remove markup tag markers, keeping the text between them."""
    return _TAG_RE.sub("", text)


def normalize(title: str, content: str = "") -> str:
    """Strip markup and punctuation, lowercase, and collapse whitespace.

    Total: ``None`` or empty input yields an empty string.
    """
    text = f"{title or ''} {content or ''}"
    text = strip_tags(text).lower()
    # lowercasing can emit combining marks (U+0130 -> i + U+0307); strip after it
    text = _NON_WORD_RE.sub("", text)
    return _SPACE_RE.sub(" ", text).strip()


class Tokenizer(Protocol):
    def split(self, text: str) -> List[str]: ...


class WhitespaceTokenizer:
    def split(self, text: str) -> List[str]:
        return text.split()


class RegexTokenizer:
    """Split on runs of word characters (``\\w+`` by default)."""

    def __init__(self, pattern: str = r"\w+"):
        self.pattern = re.compile(pattern)

    def split(self, text: str) -> List[str]:
        return self.pattern.findall(text)


DEFAULT_TOKENIZER = WhitespaceTokenizer()


def tokenize(
    text: str,
    stopwords: FrozenSet[str] = DEFAULT_STOPWORDS,
    tokenizer: Optional[Tokenizer] = None,
) -> List[str]:
    """Split text into lowercase terms, dropping stopwords. Order is preserved.

    Raises TokenizeError if the text is not a string or the tokenizer fails.
    """
    if not isinstance(text, str):
        raise TokenizeError(f"cannot tokenize {type(text).__name__}")
    splitter = tokenizer or DEFAULT_TOKENIZER
    try:
        raw = splitter.split(text)
    except Exception as e:
        raise TokenizeError(f"tokenizer failed: {e}") from e
    terms = []
    for tok in raw:
        term = tok.lower()
        if term and term not in stopwords:
            terms.append(term)
    return terms
