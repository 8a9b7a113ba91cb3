"""Pyserini Lucene backend.

Adapts a Pyserini `LuceneSearcher` + `IndexReader` pair to the `SearchEngine`
port so the feedback pipeline can run against an Anserini/Pyserini index.

Expected usage:
    from relfeedback.lucene_backend import LuceneEngine

    engine = LuceneEngine.from_prebuilt_index("msmarco-v1-passage")
    engine.set_bm25(k1=0.9, b=0.4)

Notes:
- Pyserini/pyjnius are imported lazily; the rest of the package stays
  importable without a JVM.
- Anserini indexes keep the unique key in `id` and the analyzed text in
  `contents`; term vectors come from stored document vectors (index built
  with `-storeDocvectors`).
- Pyserini has no total-hit count or field sort, so `matches` and the
  document set come from a capped candidate window (`max_doc_set`) and
  non-score sorts are applied to that window.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from relfeedback.interfaces import Schema, SearchEngine
from relfeedback.query_parser import (
    BooleanClause,
    BooleanQuery,
    MatchAllQuery,
    Occur,
    PhraseQuery,
    Query,
    SortField,
    TermQuery,
)
from relfeedback.types import DocList, DocListAndSet, ScoredDoc


def _require_pyserini():
    try:
        from pyserini.index.lucene import IndexReader  # type: ignore
        from pyserini.pyclass import autoclass  # type: ignore
        from pyserini.search.lucene import LuceneSearcher, querybuilder  # type: ignore
    except Exception as e:
        raise RuntimeError(
            "The Lucene backend requires the optional dependency 'pyserini' (and a Java 21 JVM). "
            "Install it with: python -m pip install 'relfeedback[lucene]'"
        ) from e
    return LuceneSearcher, IndexReader, querybuilder, autoclass


def get_searcher(index: str, *, prebuilt: bool = False):
    """Create a Pyserini LuceneSearcher from a prebuilt index name or an index directory."""
    LuceneSearcher, _reader, _qb, _autoclass = _require_pyserini()
    if prebuilt:
        return LuceneSearcher.from_prebuilt_index(index)
    return LuceneSearcher(index)


def get_index_reader(index: str, *, prebuilt: bool = False):
    """Create a Pyserini IndexReader from a prebuilt index name or an index directory."""
    _searcher, IndexReader, _qb, _autoclass = _require_pyserini()
    if prebuilt:
        return IndexReader.from_prebuilt_index(index)
    return IndexReader(index)


def _fetch_stored_fields(searcher, docid: str, unique_key: str, default_field: str) -> Dict[str, Any]:
    """Best-effort stored fields: raw JSON when available, else `contents`."""
    d = searcher.doc(docid)
    if d is None:
        return {}
    raw = d.raw() or ""
    if raw.lstrip().startswith("{"):
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError:
            obj = None
        if isinstance(obj, dict):
            obj.setdefault(unique_key, docid)
            return obj
    fields: Dict[str, Any] = {unique_key: docid}
    contents = d.contents() if hasattr(d, "contents") else None
    fields[default_field] = contents or raw
    return fields


class LuceneEngine(SearchEngine):
    """`SearchEngine` over a Pyserini index."""

    def __init__(self, searcher, index_reader, schema: Optional[Schema] = None, *, max_doc_set: int = 10000) -> None:
        if max_doc_set <= 0:
            raise ValueError("max_doc_set must be > 0")
        self.searcher = searcher
        self.reader = index_reader
        self.schema = schema or Schema(unique_key="id", default_field="contents")
        self.max_doc_set = int(max_doc_set)
        self.log = logging.getLogger("relfeedback.lucene_backend")
        _s, _r, self._qb, autoclass = _require_pyserini()
        self._JTerm = autoclass("org.apache.lucene.index.Term")
        self._JTermQuery = autoclass("org.apache.lucene.search.TermQuery")
        self._JPhraseBuilder = autoclass("org.apache.lucene.search.PhraseQuery$Builder")
        self._JMatchAll = autoclass("org.apache.lucene.search.MatchAllDocsQuery")
        self._num_docs: Optional[int] = None

    @classmethod
    def from_prebuilt_index(cls, name: str, **kwargs: Any) -> "LuceneEngine":
        return cls(get_searcher(name, prebuilt=True), get_index_reader(name, prebuilt=True), **kwargs)

    @classmethod
    def from_index_dir(cls, path: str, **kwargs: Any) -> "LuceneEngine":
        return cls(get_searcher(path), get_index_reader(path), **kwargs)

    def set_bm25(self, k1: float, b: float) -> None:
        """Set BM25 parameters on the underlying LuceneSearcher."""
        if k1 <= 0:
            raise ValueError("k1 must be > 0")
        if not (0.0 <= b <= 1.0):
            raise ValueError("b must be in [0, 1]")
        self.searcher.set_bm25(k1=k1, b=b)

    # ------------------------------------------------------- translation
    def analyze(self, field_name: str, text: str) -> List[str]:
        if self.schema.is_keyword(field_name):
            return [text] if text else []
        return [str(t) for t in self.reader.analyze(text)]

    def to_lucene(self, query: Query):
        """Translate the query AST into a Lucene `Query` object."""
        occur = self._qb.JBooleanClauseOccur
        if isinstance(query, TermQuery):
            jq = self._JTermQuery(self._JTerm(query.field, query.text))
        elif isinstance(query, PhraseQuery):
            builder = self._JPhraseBuilder()
            for t in query.terms:
                builder.add(self._JTerm(query.field, t))
            jq = builder.build()
        elif isinstance(query, MatchAllQuery):
            jq = self._JMatchAll()
        elif isinstance(query, BooleanQuery):
            builder = self._qb.get_boolean_query_builder()
            for c in query.clauses:
                builder.add(self.to_lucene(c.query), occur[c.occur.value].value)
            if query.min_should_match > 0:
                builder.setMinimumNumberShouldMatch(int(query.min_should_match))
            jq = builder.build()
        else:
            raise TypeError(f"Unsupported query type: {type(query).__name__}")
        if query.boost != 1.0:
            jq = self._qb.get_boost_query(jq, float(query.boost))
        return jq

    def _filtered(self, query: Query, filters: Optional[Sequence[Query]]) -> Query:
        if not filters:
            return query
        clauses = [BooleanClause(query, Occur.MUST)] + [BooleanClause(f, Occur.FILTER) for f in filters]
        return BooleanQuery(clauses=tuple(clauses))

    # ------------------------------------------------------------ search
    def _hits(self, query: Query, filters, k: int) -> List[Tuple[str, float]]:
        if k <= 0:
            return []
        jq = self.to_lucene(self._filtered(query, filters))
        return [(str(h.docid), float(h.score)) for h in self.searcher.search(jq, k=k)]

    def _sorted(self, hits: List[Tuple[str, float]], sort: Sequence[SortField]) -> List[Tuple[str, float]]:
        ordered = list(hits)
        cache: Dict[str, Dict[str, Any]] = {}

        def value(docid: str, name: str):
            if docid not in cache:
                cache[docid] = self.doc(docid)
            v = cache[docid].get(name)
            if isinstance(v, (list, tuple)):
                v = v[0] if v else None
            if v is None:
                return None
            if isinstance(v, (int, float)) and not isinstance(v, bool):
                return (0, float(v))
            return (1, str(v))

        for sf in reversed(list(sort)):
            if sf.field == "score":
                ordered.sort(key=lambda h: h[1], reverse=sf.descending)
                continue
            present = [h for h in ordered if value(h[0], sf.field) is not None]
            missing = [h for h in ordered if value(h[0], sf.field) is None]
            present.sort(key=lambda h: value(h[0], sf.field), reverse=sf.descending)
            ordered = present + missing
        return ordered

    def _run(self, query, filters, sort, offset, limit, want_scores, want_set):
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit < 0:
            raise ValueError("limit must be >= 0")
        depth = self.max_doc_set if (want_set or sort) else offset + limit
        hits = self._hits(query, filters, max(depth, offset + limit))
        if sort:
            hits = self._sorted(hits, sort)
        window = hits[offset:offset + limit]
        docs = tuple(ScoredDoc(id=d, score=s if want_scores else None) for d, s in window)
        max_score = max(s for _d, s in hits) if (want_scores and hits) else None
        doc_list = DocList(docs=docs, matches=len(hits), offset=offset, max_score=max_score)
        return doc_list, hits

    def search(self, query, *, filters=None, sort=None, offset=0, limit=10, want_scores=False) -> DocList:
        doc_list, _hits = self._run(query, filters, sort, offset, limit, want_scores, False)
        return doc_list

    def search_with_set(self, query, *, filters=None, sort=None, offset=0, limit=10, want_scores=False) -> DocListAndSet:
        doc_list, hits = self._run(query, filters, sort, offset, limit, want_scores, True)
        if len(hits) >= self.max_doc_set:
            self.log.warning("Document set truncated at max_doc_set=%d; facet counts are partial.", self.max_doc_set)
        return DocListAndSet(doc_list=doc_list, doc_set=frozenset(d for d, _s in hits))

    # ------------------------------------------------------------ stats
    def doc(self, docid: str) -> Dict[str, Any]:
        return _fetch_stored_fields(self.searcher, docid, self.schema.unique_key, self.schema.default_field)

    def term_vector(self, docid: str, field_name: str) -> Dict[str, int]:
        if field_name != self.schema.default_field:
            # Pyserini only exposes document vectors of the main text field.
            return {}
        vec = self.reader.get_document_vector(docid)
        return {str(t): int(tf) for t, tf in (vec or {}).items()}

    def doc_freq(self, field_name: str, term: str) -> int:
        if field_name != self.schema.default_field:
            return 0
        df, _cf = self.reader.get_term_counts(term, analyzer=None)
        return int(df or 0)

    def num_docs(self) -> int:
        if self._num_docs is None:
            self._num_docs = int(self.reader.stats()["documents"])
        return self._num_docs

    def explain(self, query, docid: str) -> str:
        pinned = TermQuery(field=self.schema.unique_key, text=docid)
        hits = self._hits(query, [pinned], 1)
        if not hits:
            return f"0.0 = no match ({query})"
        return f"{hits[0][1]:.6f} = score({query})"

