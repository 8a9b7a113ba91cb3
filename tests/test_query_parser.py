import pytest

from relfeedback.errors import QuerySyntaxError
from relfeedback.query_parser import (
    BooleanClause,
    BooleanQuery,
    ExtendedQueryParser,
    MatchAllQuery,
    Occur,
    PhraseQuery,
    QueryParser,
    SortField,
    TermQuery,
    get_query_parser_class,
    parse_sort,
    resolve_min_should_match,
)


@pytest.fixture
def lucene(analyzer):
    return QueryParser(analyzer, default_field="contents")


def test_single_term_is_not_wrapped(lucene):
    assert lucene.parse("Relevance") == TermQuery("contents", "relevance")


def test_field_and_boost(lucene):
    q = lucene.parse("title:Solr^2")
    assert q == TermQuery("title", "solr", 2.0)
    assert str(q) == "title:solr^2"


def test_keyword_field_is_verbatim(lucene):
    assert lucene.parse("category:Search") == TermQuery("category", "Search")


def test_required_and_prohibited_clauses(lucene):
    q = lucene.parse("+a -b c")
    assert isinstance(q, BooleanQuery)
    assert [c.occur for c in q.clauses] == [Occur.MUST, Occur.MUST_NOT, Occur.SHOULD]
    assert str(q) == "+contents:a -contents:b contents:c"


def test_and_not_keywords(lucene):
    q = lucene.parse("a AND b NOT c")
    assert [c.occur for c in q.clauses] == [Occur.MUST, Occur.MUST, Occur.MUST_NOT]


def test_phrase(lucene):
    q = lucene.parse('title:"Relevance Feedback"')
    assert q == PhraseQuery("title", ("relevance", "feedback"))
    assert str(q) == 'title:"relevance feedback"'


def test_group_with_field_context_and_boost(lucene):
    q = lucene.parse("title:(solr lucene)^3")
    assert isinstance(q, BooleanQuery)
    assert q.boost == 3.0
    assert [c.query for c in q.clauses] == [TermQuery("title", "solr"), TermQuery("title", "lucene")]


def test_match_all(lucene):
    assert lucene.parse("*:*") == MatchAllQuery()


@pytest.mark.parametrize(
    "text",
    [
        'title:"unclosed',
        "title:",
        ":value",
        "a^high",
        "+",
        "(a b",
        "a)",
        "a AND",
        "AND a",
        "title:*",
        "a^inf",
        "   ",
    ],
)
def test_syntax_errors(lucene, text):
    with pytest.raises(QuerySyntaxError):
        lucene.parse(text)


def test_syntax_error_is_a_value_error(lucene):
    with pytest.raises(ValueError, match="Unbalanced quote"):
        lucene.parse('"oops')


def test_edismax_fans_bare_terms_over_qf(analyzer):
    p = ExtendedQueryParser(analyzer, default_field="id", query_fields=(("title", 2.0), ("contents", 1.0)))
    q = p.parse("Solr")
    assert q == BooleanQuery(
        clauses=(
            BooleanClause(
                BooleanQuery(
                    clauses=(
                        BooleanClause(TermQuery("title", "solr", 2.0)),
                        BooleanClause(TermQuery("contents", "solr")),
                    )
                )
            ),
        )
    )
    assert str(q) == "(title:solr^2 contents:solr)"


def test_edismax_fielded_terms_ignore_qf(analyzer):
    p = ExtendedQueryParser(analyzer, default_field="id", query_fields=(("title", 2.0),), min_should_match="0")
    q = p.parse("id:42")
    assert q.clauses == (BooleanClause(TermQuery("id", "42")),)
    assert q.min_should_match == 0


def test_edismax_pure_negative_matches_everything_else(analyzer):
    q = ExtendedQueryParser(analyzer, default_field="contents").parse("-solr")
    assert q.clauses[0] == BooleanClause(MatchAllQuery(), Occur.MUST)
    assert q.clauses[1].occur == Occur.MUST_NOT


@pytest.mark.parametrize("mm,expected", [("2", 2), ("-1", 2), ("50%", 1), ("-50%", 2), ("10", 3), (None, 0)])
def test_edismax_min_should_match(analyzer, mm, expected):
    q = ExtendedQueryParser(analyzer, default_field="contents", min_should_match=mm).parse("a b c")
    assert q.min_should_match == expected


def test_invalid_mm():
    with pytest.raises(QuerySyntaxError):
        resolve_min_should_match("lots", 3)


def test_parse_sort():
    assert parse_sort("title asc, score desc") == (SortField("title", False), SortField("score", True))
    assert parse_sort(None) == ()
    assert parse_sort("  ") == ()


@pytest.mark.parametrize("text", ["title", "title up", "title asc extra"])
def test_parse_sort_errors(text):
    with pytest.raises(QuerySyntaxError):
        parse_sort(text)


def test_parser_registry():
    assert get_query_parser_class("lucene") is QueryParser
    assert get_query_parser_class("EDISMAX") is ExtendedQueryParser
    assert get_query_parser_class("myedismax") is ExtendedQueryParser
    with pytest.raises(KeyError):
        get_query_parser_class("nope")
