"""Stopword sets used by the tokenizer."""
import logging
from pathlib import Path
from typing import FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)

# Common English function words plus feed boilerplate
ENGLISH_STOPWORDS: FrozenSet[str] = frozenset(
    "a about above after again against all am an and any are as at be because been"
    " before being below between both but by can could did do does doing down during"
    " each few for from further had has have having he her here hers herself him"
    " himself his how i if in into is it its itself just me more most my myself no"
    " nor not now of off on once only or other our ours ourselves out over own s"
    " she should so some such t than that the their theirs them themselves then"
    " there these they this those through to too under until up very was we were"
    " what when where which while who whom why will with would you your yours"
    " yourself yourselves".split()
)

FEED_BOILERPLATE: FrozenSet[str] = frozenset(
    "read continue reading comments comment share via".split()
)

DEFAULT_STOPWORDS: FrozenSet[str] = ENGLISH_STOPWORDS | FEED_BOILERPLATE


def build_stopwords(extra: Optional[Iterable[str]] = None,
                    base: FrozenSet[str] = DEFAULT_STOPWORDS) -> FrozenSet[str]:
    """Return base ∪ extra, lowercased and stripped."""
    if not extra:
        return base
    words = {w.strip().lower() for w in extra if w and w.strip()}
    return base | frozenset(words)


def load_stopwords_file(path: str) -> FrozenSet[str]:
    """Load extra stopwords (one per line, '#' comments allowed) merged with the defaults."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Stopwords file not found: {path}")
    words = []
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            words.append(line)
    logger.info(f"[Stopwords] Loaded {len(words)} extra stopwords from {path}")
    return build_stopwords(words)
