"""Search engine port used by the feedback pipeline.

The pipeline never talks to a backend directly; it goes through `SearchEngine`.
Two adapters ship with the package:
- `relfeedback.memory_backend.InMemoryIndex` (pure Python BM25)
- `relfeedback.lucene_backend.LuceneEngine` (Pyserini / Lucene)
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from relfeedback.types import DocList, DocListAndSet


_TOKEN_RE = re.compile(r"\b\w+\b")


def tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall((text or "").lower())


@dataclass(frozen=True)
class Schema:
    """Field layout of an index.

    Keyword fields are matched verbatim; every other field is analyzed with
    `tokenize`.
    """

    unique_key: str = "id"
    default_field: str = "contents"
    keyword_fields: FrozenSet[str] = field(default_factory=frozenset)

    def is_keyword(self, name: str) -> bool:
        return name == self.unique_key or name in self.keyword_fields


class SearchEngine(ABC):
    """Port for a ranked search backend (read-only during a request)."""

    schema: Schema

    def analyze(self, field_name: str, text: str) -> List[str]:
        """Turn query text for `field_name` into index terms."""
        if self.schema.is_keyword(field_name):
            return [text] if text else []
        return tokenize(text)

    @abstractmethod
    def search(
        self,
        query,
        *,
        filters: Optional[Sequence[Any]] = None,
        sort=None,
        offset: int = 0,
        limit: int = 10,
        want_scores: bool = False,
    ) -> DocList:
        """Execute `query` and return the window [offset, offset + limit)."""
        raise NotImplementedError

    @abstractmethod
    def search_with_set(
        self,
        query,
        *,
        filters: Optional[Sequence[Any]] = None,
        sort=None,
        offset: int = 0,
        limit: int = 10,
        want_scores: bool = False,
    ) -> DocListAndSet:
        """Like `search`, plus the set of all matching document ids."""
        raise NotImplementedError

    @abstractmethod
    def doc(self, docid: str) -> Dict[str, Any]:
        """Return stored fields of a document (empty dict when unknown)."""
        raise NotImplementedError

    @abstractmethod
    def term_vector(self, docid: str, field_name: str) -> Dict[str, int]:
        """Return term -> frequency for one field of one document."""
        raise NotImplementedError

    @abstractmethod
    def doc_freq(self, field_name: str, term: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def num_docs(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def explain(self, query, docid: str) -> str:
        """Human readable description of how `docid` scored against `query`."""
        raise NotImplementedError
