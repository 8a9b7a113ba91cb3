"""Core dataclasses shared by the feedback pipeline.

These types are backend-agnostic (no Pyserini deps). They carry results between:
- seed resolution
- query expansion / re-execution
- result assembly and rendering
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class ScoredDoc:
    """A ranked document id (score is None unless scores were requested)."""

    id: str
    score: Optional[float] = None


@dataclass(frozen=True)
class DocList:
    """One window of a ranked result list.

    `matches` is the total number of matching documents, which can be larger
    than the window held in `docs`.
    """

    docs: Tuple[ScoredDoc, ...] = ()
    matches: int = 0
    offset: int = 0
    max_score: Optional[float] = None

    @classmethod
    def empty(cls, offset: int = 0) -> "DocList":
        return cls(docs=(), matches=0, offset=offset)

    @property
    def ids(self) -> List[str]:
        return [d.id for d in self.docs]

    def __len__(self) -> int:
        return len(self.docs)

    def __iter__(self) -> Iterator[ScoredDoc]:
        return iter(self.docs)


@dataclass(frozen=True)
class DocListAndSet:
    """A paginated document list plus the unpaginated set used for faceting.

    The default value (empty list, no set) is the result of a request whose
    seed query matched nothing.
    """

    doc_list: DocList = field(default_factory=DocList.empty)
    doc_set: Optional[FrozenSet[str]] = None


@dataclass(frozen=True)
class InterestingTerm:
    """A (field, term, boost) triple that drove the expanded query."""

    field: str
    term: str
    boost: float

    def __str__(self) -> str:
        return f"{self.field}:{self.term}"


@dataclass(frozen=True)
class Expansion:
    """Everything the expansion stage hands to the result assembler."""

    result: DocListAndSet
    match: Optional[DocList] = None
    query: Optional[object] = None

    @property
    def raw_query(self) -> Optional[str]:
        """String form of the expanded query (None when no seed was found)."""
        return None if self.query is None else str(self.query)
