"""Data models for Entrysim."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class User:
    id: int
    username: str


@dataclass
class Feed:
    id: int
    user_id: int
    title: str = ""
    url: str = ""


@dataclass
class Entry:
    """A stored content item as handed out by the store."""
    id: int
    user_id: int
    title: str
    url: str
    content: str = ""
    feed_id: Optional[int] = None
    published_at: Optional[datetime] = None


@dataclass(frozen=True)
class SimilarityEdge:
    """A directed similarity relation between two entries."""
    entry_id: int
    similar_entry_id: int
    similarity: float

    def __post_init__(self):
        if not 0.0 <= self.similarity <= 1.0:
            raise ValueError(f"similarity must be within [0, 1], got {self.similarity}")

    def connects(self, a: int, b: int) -> bool:
        """True if this edge links a and b in either direction."""
        return {self.entry_id, self.similar_entry_id} == {a, b}


@dataclass
class Document:
    """Normalized projection of an Entry, alive for one similarity run."""
    id: int
    title: str
    link: str
    raw_content: str
    content: str  # normalized title + content

    @classmethod
    def from_entry(cls, entry: Entry) -> "Document":
        from entrysim.text import normalize
        return cls(
            id=entry.id,
            title=entry.title or "",
            link=entry.url or "",
            raw_content=entry.content or "",
            content=normalize(entry.title or "", entry.content or ""),
        )


@dataclass
class Similar:
    """One qualifying comparison: the target document and its score."""
    target: Document
    similarity: float


@dataclass
class Story:
    """A document together with the higher-position documents it resembles."""
    document: Document
    similar: List[Similar] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.document.id

    def edges(self) -> List[SimilarityEdge]:
        """Edges in canonical direction: this document → each similar one."""
        return [
            SimilarityEdge(
                entry_id=self.document.id,
                similar_entry_id=s.target.id,
                similarity=s.similarity,
            )
            for s in self.similar
        ]
