"""LuceneEngine against fake Pyserini objects (no JVM needed)."""

import json
import sys
from enum import Enum
from types import SimpleNamespace

import pytest

from relfeedback import lucene_backend
from relfeedback.interfaces import Schema
from relfeedback.lucene_backend import LuceneEngine, _fetch_stored_fields
from relfeedback.query_parser import BooleanClause, BooleanQuery, MatchAllQuery, Occur, PhraseQuery, SortField, TermQuery


class FakeOccur(Enum):
    should = "SHOULD"
    must = "MUST"
    must_not = "MUST_NOT"
    filter = "FILTER"


class FakeBooleanBuilder:
    def __init__(self):
        self.clauses = []
        self.msm = 0

    def add(self, query, occur):
        self.clauses.append((query, occur))

    def setMinimumNumberShouldMatch(self, n):
        self.msm = n

    def build(self):
        return ("bool", tuple(self.clauses), self.msm)


class FakePhraseBuilder:
    def __init__(self):
        self.terms = []

    def add(self, term):
        self.terms.append(term)

    def build(self):
        return ("phrase", tuple(self.terms))


JAVA = {
    "org.apache.lucene.index.Term": lambda f, t: (f, t),
    "org.apache.lucene.search.TermQuery": lambda term: ("term",) + term,
    "org.apache.lucene.search.PhraseQuery$Builder": FakePhraseBuilder,
    "org.apache.lucene.search.MatchAllDocsQuery": lambda: ("all",),
}

QUERYBUILDER = SimpleNamespace(
    JBooleanClauseOccur=FakeOccur,
    get_boolean_query_builder=FakeBooleanBuilder,
    get_boost_query=lambda q, b: ("boost", q, b),
)


class FakeDoc:
    def __init__(self, raw):
        self._raw = raw

    def raw(self):
        return self._raw

    def contents(self):
        return None if self._raw.startswith("{") else self._raw


class FakeSearcher:
    def __init__(self, hits, docs):
        self.hits = hits
        self.docs = docs
        self.calls = []

    def search(self, q, k=10):
        self.calls.append((q, k))
        return [SimpleNamespace(docid=d, score=s) for d, s in self.hits[:k]]

    def doc(self, docid):
        raw = self.docs.get(docid)
        return None if raw is None else FakeDoc(raw)

    def set_bm25(self, k1, b):
        self.bm25 = (k1, b)


class FakeReader:
    def analyze(self, text):
        return text.lower().split()

    def get_document_vector(self, docid):
        return {"solr": 2, "lucene": 1}

    def get_term_counts(self, term, analyzer=None):
        return {"solr": 3}.get(term, 0), 7

    def stats(self):
        return {"documents": 42}


@pytest.fixture
def lucene(monkeypatch):
    monkeypatch.setattr(
        lucene_backend, "_require_pyserini", lambda: (None, None, QUERYBUILDER, JAVA.__getitem__)
    )
    docs = {
        "a": json.dumps({"id": "a", "title": "Zeta"}),
        "b": json.dumps({"id": "b", "title": "Alpha"}),
        "c": "plain text body",
    }
    searcher = FakeSearcher([("a", 3.0), ("b", 2.0), ("c", 1.0)], docs)
    return LuceneEngine(searcher, FakeReader(), Schema())


def test_translates_queries(lucene):
    q = BooleanQuery(
        clauses=(
            BooleanClause(TermQuery("contents", "solr", 2.0)),
            BooleanClause(PhraseQuery("contents", ("query", "expansion")), Occur.MUST),
            BooleanClause(MatchAllQuery(), Occur.MUST_NOT),
        ),
        min_should_match=1,
    )
    assert lucene.to_lucene(q) == (
        "bool",
        (
            (("boost", ("term", "contents", "solr"), 2.0), "SHOULD"),
            (("phrase", (("contents", "query"), ("contents", "expansion"))), "MUST"),
            (("all",), "MUST_NOT"),
        ),
        1,
    )


def test_filters_become_filter_clauses(lucene):
    lucene.search(TermQuery("contents", "solr"), filters=[TermQuery("id", "a")], limit=2)
    jq, k = lucene.searcher.calls[-1]
    assert k == 2
    assert [occur for _q, occur in jq[1]] == ["MUST", "FILTER"]


def test_window_and_set(lucene):
    result = lucene.search_with_set(TermQuery("contents", "solr"), offset=1, limit=1, want_scores=True)
    assert result.doc_list.ids == ["b"]
    assert result.doc_list.matches == 3
    assert result.doc_list.max_score == 3.0
    assert result.doc_set == frozenset({"a", "b", "c"})
    assert lucene.searcher.calls[-1][1] == lucene.max_doc_set


def test_sort_uses_stored_fields(lucene):
    result = lucene.search(MatchAllQuery(), sort=(SortField("title", descending=False),))
    assert result.ids == ["b", "a", "c"]


def test_limit_zero_skips_the_search(lucene):
    assert lucene.search(MatchAllQuery(), limit=0).matches == 0
    assert lucene.searcher.calls == []


def test_statistics(lucene):
    assert lucene.term_vector("a", "contents") == {"solr": 2, "lucene": 1}
    assert lucene.term_vector("a", "title") == {}
    assert lucene.doc_freq("contents", "solr") == 3
    assert lucene.doc_freq("title", "solr") == 0
    assert lucene.num_docs() == 42
    assert lucene.analyze("contents", "Solr Rocks") == ["solr", "rocks"]
    assert lucene.analyze("id", "Doc-1") == ["Doc-1"]


def test_stored_fields(lucene):
    assert lucene.doc("a") == {"id": "a", "title": "Zeta"}
    assert lucene.doc("c") == {"id": "c", "contents": "plain text body"}
    assert lucene.doc("zzz") == {}
    assert _fetch_stored_fields(lucene.searcher, "b", "docid", "body") == {"id": "b", "title": "Alpha", "docid": "b"}


def test_set_bm25_validates(lucene):
    lucene.set_bm25(1.2, 0.75)
    assert lucene.searcher.bm25 == (1.2, 0.75)
    with pytest.raises(ValueError):
        lucene.set_bm25(0, 0.5)


def test_missing_pyserini_is_reported(monkeypatch):
    monkeypatch.setitem(sys.modules, "pyserini", None)
    with pytest.raises(RuntimeError, match="pyserini"):
        lucene_backend._require_pyserini()
