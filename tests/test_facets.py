import pytest

from relfeedback.errors import BadRequestError, QuerySyntaxError
from relfeedback.facets import SimpleFacets
from relfeedback.params import parse_request
from relfeedback.query_parser import QueryParser

ALL = frozenset({"1", "2", "3", "4", "5"})


@pytest.fixture
def facets(engine):
    def _make(params, doc_set=ALL):
        parser = QueryParser(engine.analyze, default_field="contents")
        return SimpleFacets(engine, doc_set, parse_request(params), parser)

    return _make


def test_keyword_field_counts(facets):
    counts = facets({"facet.field": "category"}).facet_counts()
    assert counts == {
        "facet_queries": {},
        "facet_fields": {"category": {"food": 2, "search": 2, "ir": 1, "soup": 1}},
    }
    assert list(counts["facet_fields"]["category"]) == ["food", "search", "ir", "soup"]


def test_counts_only_cover_the_doc_set(facets):
    counts = facets({"facet.field": "category"}, frozenset({"1", "2", "3"})).facet_field_counts()
    assert counts == {"category": {"search": 2, "ir": 1}}


def test_analyzed_field_counts_terms(facets):
    counts = facets({"facet.field": "contents", "facet.mincount": "2"}).field_counts("contents")
    assert counts == {
        "relevance": 3,
        "cooking": 2,
        "expansion": 2,
        "feedback": 2,
        "lucene": 2,
        "query": 2,
        "recipe": 2,
        "tomato": 2,
    }


def test_limit_offset_and_index_sort(facets):
    f = facets({"facet.field": "category", "facet.sort": "index", "facet.limit": "2", "facet.offset": "1"})
    assert list(f.field_counts("category").items()) == [("ir", 1), ("search", 2)]


def test_per_field_overrides(facets):
    f = facets({"facet.field": ["category", "title"], "f.category.facet.limit": "1", "facet.mincount": "2"})
    counts = f.facet_field_counts()
    assert counts["category"] == {"food": 2}
    assert counts["title"] == {}


def test_missing_bucket(facets):
    f = facets({"facet.field": "year", "facet.missing": "true"}, frozenset({"1", "2"}))
    assert f.field_counts("year") == {None: 2}


def test_facet_queries(facets):
    f = facets({"facet.query": ["category:food", "contents:relevance"]}, frozenset({"1", "4", "5"}))
    assert f.facet_query_counts() == {"category:food": 2, "contents:relevance": 1}


def test_bad_facet_sort(facets):
    with pytest.raises(BadRequestError):
        facets({"facet.field": "category", "facet.sort": "random"}).facet_field_counts()


def test_bad_facet_query(facets):
    with pytest.raises(QuerySyntaxError):
        facets({"facet.query": "category:"}).facet_query_counts()
