"""In-process search engine (no Lucene index).

Scores documents with per-field BM25 over an in-memory corpus and evaluates
the query AST with Lucene boolean semantics:
- `must`/`filter` clauses are required, `must_not` clauses exclude
- `should` clauses are optional when a required clause exists, otherwise at
  least one (or `min_should_match`) must match
- ties in relevance break by index order, so rankings are deterministic

Intended for small corpora, tests and the CLI `--corpus` mode.
"""

from __future__ import annotations

import copy
import logging
import math
from collections import Counter
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from relfeedback.interfaces import Schema, SearchEngine, tokenize
from relfeedback.io import load_documents
from relfeedback.query_parser import (
    BooleanQuery,
    MatchAllQuery,
    Occur,
    PhraseQuery,
    Query,
    SortField,
    TermQuery,
)
from relfeedback.types import DocList, DocListAndSet, ScoredDoc

Hit = Tuple[int, float]


class InMemoryIndex(SearchEngine):
    """BM25 index over a list of documents (dicts keyed by field name)."""

    def __init__(
        self,
        documents: Iterable[Mapping[str, Any]],
        schema: Optional[Schema] = None,
        *,
        k1: float = 0.9,
        b: float = 0.4,
    ) -> None:
        if k1 <= 0:
            raise ValueError("k1 must be > 0")
        if not (0.0 <= b <= 1.0):
            raise ValueError("b must be in [0, 1]")
        self.schema = schema or Schema()
        self.k1 = float(k1)
        self.b = float(b)
        self.log = logging.getLogger("relfeedback.memory_backend")

        self._ids: List[str] = []
        self._pos: Dict[str, int] = {}
        self._stored: List[Dict[str, Any]] = []
        self._tokens: Dict[str, Dict[int, List[str]]] = {}
        self._tf: Dict[str, Dict[int, Counter]] = {}
        self._df: Dict[str, Counter] = {}

        for doc in documents:
            self._add(doc)

        self._avgdl: Dict[str, float] = {}
        for name, per_doc in self._tokens.items():
            total = sum(len(t) for t in per_doc.values())
            self._avgdl[name] = total / float(len(self._ids)) if self._ids else 0.0
        self.log.info("Indexed %d documents (%d fields).", len(self._ids), len(self._tokens))

    @classmethod
    def from_jsonl(cls, path: str, schema: Optional[Schema] = None, **kwargs: Any) -> "InMemoryIndex":
        schema = schema or Schema()
        return cls(load_documents(path, unique_key=schema.unique_key), schema, **kwargs)

    # ------------------------------------------------------------ indexing
    def _field_tokens(self, name: str, value: Any) -> List[str]:
        values = value if isinstance(value, (list, tuple)) else [value]
        if self.schema.is_keyword(name):
            return [str(v) for v in values if v is not None]
        out: List[str] = []
        for v in values:
            if isinstance(v, (str, int, float)) and not isinstance(v, bool):
                out.extend(tokenize(str(v)))
        return out

    def _add(self, doc: Mapping[str, Any]) -> None:
        key = doc.get(self.schema.unique_key)
        if key is None or not str(key).strip():
            raise ValueError(f"Document without unique key {self.schema.unique_key!r}: {doc!r}")
        docid = str(key)
        if docid in self._pos:
            raise ValueError(f"Duplicate document id {docid!r}")

        idx = len(self._ids)
        self._ids.append(docid)
        self._pos[docid] = idx
        stored = copy.deepcopy(dict(doc))
        stored[self.schema.unique_key] = docid
        self._stored.append(stored)

        for name, value in stored.items():
            toks = self._field_tokens(name, value)
            if not toks:
                continue
            tf = Counter(toks)
            self._tokens.setdefault(name, {})[idx] = toks
            self._tf.setdefault(name, {})[idx] = tf
            self._df.setdefault(name, Counter()).update(tf.keys())

    # ------------------------------------------------------------- scoring
    def _bm25(self, name: str, term: str, tf: int, doc_len: int) -> float:
        n_docs = len(self._ids)
        avgdl = self._avgdl.get(name, 0.0)
        if tf <= 0 or doc_len <= 0 or n_docs <= 0 or avgdl <= 0:
            return 0.0
        dft = self._df.get(name, Counter()).get(term, 0)
        idf = math.log((n_docs - dft + 0.5) / (dft + 0.5) + 1.0)
        denom = tf + self.k1 * (1.0 - self.b + self.b * (doc_len / avgdl))
        return float(idf * (tf * (self.k1 + 1.0)) / denom)

    def _phrase_freq(self, toks: Sequence[str], terms: Sequence[str]) -> int:
        n = len(terms)
        if n == 0 or len(toks) < n:
            return 0
        return sum(1 for i in range(len(toks) - n + 1) if list(toks[i:i + n]) == list(terms))

    def _score(self, query: Query, idx: int) -> Optional[float]:
        """Score of document `idx`, or None when it does not match."""
        if isinstance(query, MatchAllQuery):
            return query.boost

        if isinstance(query, TermQuery):
            tf = self._tf.get(query.field, {}).get(idx)
            freq = tf.get(query.text, 0) if tf else 0
            if freq <= 0:
                return None
            dl = len(self._tokens[query.field][idx])
            return self._bm25(query.field, query.text, freq, dl) * query.boost

        if isinstance(query, PhraseQuery):
            toks = self._tokens.get(query.field, {}).get(idx)
            freq = self._phrase_freq(toks or [], query.terms)
            if freq <= 0:
                return None
            dl = len(toks)
            return sum(self._bm25(query.field, t, freq, dl) for t in query.terms) * query.boost

        if isinstance(query, BooleanQuery):
            score = 0.0
            required = False
            should = 0
            for c in query.clauses:
                s = self._score(c.query, idx)
                if c.occur == Occur.MUST:
                    required = True
                    if s is None:
                        return None
                    score += s
                elif c.occur == Occur.FILTER:
                    required = True
                    if s is None:
                        return None
                elif c.occur == Occur.MUST_NOT:
                    if s is not None:
                        return None
                elif s is not None:
                    should += 1
                    score += s
            if should < query.min_should_match:
                return None
            if not required and should == 0:
                return None
            return score * query.boost

        raise TypeError(f"Unsupported query type: {type(query).__name__}")

    def _collect(self, query: Query, filters: Optional[Sequence[Query]]) -> List[Hit]:
        hits: List[Hit] = []
        for idx in range(len(self._ids)):
            if filters and any(self._score(f, idx) is None for f in filters):
                continue
            s = self._score(query, idx)
            if s is not None:
                hits.append((idx, s))
        return hits

    def _sort_value(self, idx: int, name: str) -> Optional[Tuple[int, Any]]:
        v = self._stored[idx].get(name)
        if isinstance(v, (list, tuple)):
            v = v[0] if v else None
        if v is None:
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return (0, float(v))
        return (1, str(v))

    def _order(self, hits: List[Hit], sort: Optional[Sequence[SortField]]) -> List[Hit]:
        if not sort:
            return sorted(hits, key=lambda h: (-h[1], h[0]))
        ordered = sorted(hits, key=lambda h: h[0])
        # Stable sorts applied from the least significant key; missing values go last.
        for sf in reversed(list(sort)):
            if sf.field == "score":
                ordered.sort(key=lambda h: h[1], reverse=sf.descending)
                continue
            present = [h for h in ordered if self._sort_value(h[0], sf.field) is not None]
            missing = [h for h in ordered if self._sort_value(h[0], sf.field) is None]
            present.sort(key=lambda h: self._sort_value(h[0], sf.field), reverse=sf.descending)
            ordered = present + missing
        return ordered

    def _run(
        self,
        query: Query,
        filters: Optional[Sequence[Query]],
        sort: Optional[Sequence[SortField]],
        offset: int,
        limit: int,
        want_scores: bool,
    ) -> Tuple[DocList, List[Hit]]:
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit < 0:
            raise ValueError("limit must be >= 0")
        hits = self._order(self._collect(query, filters), sort)
        window = hits[offset:offset + limit]
        docs = tuple(ScoredDoc(id=self._ids[i], score=s if want_scores else None) for i, s in window)
        max_score = max(s for _i, s in hits) if (want_scores and hits) else None
        return DocList(docs=docs, matches=len(hits), offset=offset, max_score=max_score), hits

    # ----------------------------------------------------------- interface
    def search(self, query, *, filters=None, sort=None, offset=0, limit=10, want_scores=False) -> DocList:
        doc_list, _hits = self._run(query, filters, sort, offset, limit, want_scores)
        return doc_list

    def search_with_set(self, query, *, filters=None, sort=None, offset=0, limit=10, want_scores=False) -> DocListAndSet:
        doc_list, hits = self._run(query, filters, sort, offset, limit, want_scores)
        return DocListAndSet(doc_list=doc_list, doc_set=frozenset(self._ids[i] for i, _s in hits))

    def doc(self, docid: str) -> Dict[str, Any]:
        idx = self._pos.get(docid)
        return {} if idx is None else copy.deepcopy(self._stored[idx])

    def term_vector(self, docid: str, field_name: str) -> Dict[str, int]:
        idx = self._pos.get(docid)
        if idx is None:
            return {}
        return dict(self._tf.get(field_name, {}).get(idx, {}))

    def doc_freq(self, field_name: str, term: str) -> int:
        return int(self._df.get(field_name, Counter()).get(term, 0))

    def num_docs(self) -> int:
        return len(self._ids)

    def _leaves(self, query: Query) -> Iterator[Query]:
        if isinstance(query, BooleanQuery):
            for c in query.clauses:
                if c.occur in (Occur.MUST, Occur.SHOULD):
                    yield from self._leaves(c.query)
        else:
            yield query

    def explain(self, query, docid: str) -> str:
        idx = self._pos.get(docid)
        if idx is None:
            return f"0.0 = unknown document {docid!r}"
        total = self._score(query, idx)
        if total is None:
            return f"0.0 = no match on required clause ({query})"
        lines = [f"{total:.6f} = sum of:"]
        for leaf in self._leaves(query):
            s = self._score(leaf, idx)
            if s is None:
                continue
            if isinstance(leaf, TermQuery):
                freq = self._tf[leaf.field][idx][leaf.text]
                df = self.doc_freq(leaf.field, leaf.text)
                lines.append(f"  {s:.6f} = weight({leaf}) [bm25 tf={freq}, df={df}]")
            else:
                lines.append(f"  {s:.6f} = weight({leaf})")
        return "\n".join(lines)
