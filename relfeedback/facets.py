"""Facet counts over the document set of an expanded result.

Supported request parameters:
- facet.field (repeatable): count values of a field; keyword fields count
  stored values, analyzed fields count index terms
- facet.query (repeatable): count documents matching a query
- facet.limit (negative = unlimited), facet.offset, facet.mincount,
  facet.sort (count | index), facet.missing
- per-field overrides: f.<field>.facet.<name>
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from relfeedback.config import FeedbackConfig, facet_default
from relfeedback.errors import BadRequestError
from relfeedback.interfaces import SearchEngine
from relfeedback.params import QueryRequest, get_bool, get_int, get_str
from relfeedback.query_parser import QueryParser


class SimpleFacets:
    """Computes `facet_counts` for one request and one document set."""

    def __init__(
        self,
        engine: SearchEngine,
        doc_set: FrozenSet[str],
        request: QueryRequest,
        parser: QueryParser,
        *,
        config: Optional[FeedbackConfig] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.engine = engine
        self.doc_set = doc_set
        self.request = request
        self.parser = parser
        self.config = config
        self.log = logger or logging.getLogger("relfeedback.facets")

    def _lookup(self, field_name: str, name: str) -> Tuple[str, ...]:
        per_field = self.request.get_all(f"f.{field_name}.facet.{name}")
        return per_field if per_field else self.request.get_all(f"facet.{name}")

    def _int(self, field_name: str, name: str, default: int) -> int:
        return get_int({name: self._lookup(field_name, name)}, name, default)

    def _bool(self, field_name: str, name: str, default: bool) -> bool:
        return bool(get_bool({name: self._lookup(field_name, name)}, name, default))

    def _str(self, field_name: str, name: str, default: Optional[str]) -> Optional[str]:
        return get_str({name: self._lookup(field_name, name)}, name, default)

    def facet_counts(self) -> Dict[str, Any]:
        return {
            "facet_queries": self.facet_query_counts(),
            "facet_fields": self.facet_field_counts(),
        }

    def facet_query_counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for text in self.request.get_all("facet.query"):
            if not text.strip():
                continue
            # QuerySyntaxError propagates; the handler reports it as a bad request.
            query = self.parser.parse(text)
            matched = self.engine.search_with_set(query, limit=0).doc_set or frozenset()
            out[text] = len(self.doc_set & matched)
        return out

    def _values(self, docid: str, field_name: str) -> List[str]:
        if not self.engine.schema.is_keyword(field_name):
            return list(self.engine.term_vector(docid, field_name).keys())
        raw = self.engine.doc(docid).get(field_name)
        if raw is None:
            return []
        values: Iterable[Any] = raw if isinstance(raw, (list, tuple)) else [raw]
        return sorted({str(v) for v in values if v is not None})

    def field_counts(self, field_name: str) -> Dict[Optional[str], int]:
        limit = self._int(field_name, "limit", int(facet_default(self.config, "limit", 100)))
        offset = self._int(field_name, "offset", 0)
        mincount = self._int(field_name, "mincount", int(facet_default(self.config, "mincount", 0)))
        missing = self._bool(field_name, "missing", False)
        sort = (self._str(field_name, "sort", None) or ("count" if limit > 0 else "index")).lower()
        if sort not in ("count", "index"):
            raise BadRequestError(f"Unknown facet.sort {sort!r} for field {field_name!r}")
        if offset < 0:
            raise BadRequestError(f"facet.offset must be >= 0 for field {field_name!r}")

        counts: Counter = Counter()
        n_missing = 0
        for docid in sorted(self.doc_set):
            values = self._values(docid, field_name)
            if not values:
                n_missing += 1
            counts.update(values)

        items = [(v, c) for v, c in counts.items() if c >= mincount]
        if sort == "count":
            items.sort(key=lambda x: (-x[1], x[0]))
        else:
            items.sort(key=lambda x: x[0])
        items = items[offset:]
        if limit >= 0:
            items = items[:limit]

        out: Dict[Optional[str], int] = dict(items)
        if missing:
            out[None] = n_missing
        return out

    def facet_field_counts(self) -> Dict[str, Dict[Optional[str], int]]:
        out: Dict[str, Dict[Optional[str], int]] = {}
        for field_name in self.request.get_all("facet.field"):
            field_name = field_name.strip()
            if not field_name or field_name in out:
                continue
            out[field_name] = self.field_counts(field_name)
        self.log.debug("Faceted %d fields over %d documents.", len(out), len(self.doc_set))
        return out
