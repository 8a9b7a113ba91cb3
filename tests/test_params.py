import pytest

from relfeedback.config import FeedbackConfig
from relfeedback.errors import BadRequestError
from relfeedback import query_parser
from relfeedback.params import QueryRequest, TermStyle, apply_parser_defaults, parse_request
from relfeedback.query_parser import QueryParser, get_query_parser_class, register_query_parser


def test_defaults():
    req = parse_request({"q": "id:1"})
    assert req.q == "id:1"
    assert req.start == 0
    assert req.rows == 10
    assert req.match_include is True
    assert req.match_offset == 0
    assert req.max_documents_to_process == 1
    assert req.interesting_terms == TermStyle.NONE
    assert req.filters == ()
    assert req.facet is False
    assert req.want_score is False


def test_config_supplies_defaults():
    req = parse_request({}, FeedbackConfig(default_rows=3, max_documents_to_process=5))
    assert req.rows == 3
    assert req.max_documents_to_process == 5


def test_list_values_and_blank_filters():
    req = parse_request({"q": ["a", "b"], "fq": ["category:x", " ", ""], "uf.fq": "category:y"})
    assert req.q == "a"
    assert req.filters == ("category:x",)
    assert req.feedback_filters == ("category:y",)
    assert req.get_all("fq") == ("category:x", " ", "")


def test_field_list_and_score():
    req = parse_request({"fl": ["id,title", "score"]})
    assert req.fl == ("id", "title", "score")
    assert req.want_score


@pytest.mark.parametrize(
    "params",
    [
        {"rows": "ten"},
        {"start": "-1"},
        {"maxDocumentsToProcess": "-2"},
        {"matchInclude": "maybe"},
        {"interestingTerms": "everything"},
        {"uf.mintf": "x"},
        {"uf.qf": "title^big"},
    ],
)
def test_malformed_parameters(params):
    with pytest.raises(BadRequestError) as ei:
        parse_request(params)
    assert ei.value.code == 400


def test_booleans():
    req = parse_request({"matchInclude": "off", "facet": "on", "debugQuery": "TRUE"})
    assert req.match_include is False
    assert req.facet is True
    assert req.debug_query is True


def test_term_style_lookup():
    assert TermStyle.get("DETAILS") == TermStyle.DETAILS
    assert TermStyle.get(" list ") == TermStyle.LIST
    assert TermStyle.get(None) == TermStyle.NONE
    assert TermStyle.get("") == TermStyle.NONE


def test_term_overrides_keep_only_given_values():
    req = parse_request({"uf.mintf": "2", "uf.fl": "title contents", "uf.qf": "title^2", "uf.boost": "false"})
    assert dict(req.term_overrides) == {
        "fields": "title contents",
        "min_tf": 2,
        "boost": False,
        "field_boosts": {"title": 2.0},
    }


def test_parser_defaults_return_a_new_request():
    req = QueryRequest(q="id:1")
    merged = apply_parser_defaults(req, unique_key="id")
    assert merged is not req
    assert (merged.def_type, merged.mm, merged.df) == ("edismax", "0", "id")
    assert (req.def_type, req.mm, req.df) == (None, None, None)


def test_parser_defaults_override_caller_mm_and_df():
    merged = apply_parser_defaults(QueryRequest(q="x", def_type="myedismax", mm="2", df="title"), unique_key="key")
    assert (merged.mm, merged.df) == ("0", "key")


def test_parser_defaults_leave_classic_parser_alone():
    req = QueryRequest(q="x", def_type="lucene", mm="1")
    merged = apply_parser_defaults(req, unique_key="id")
    assert merged == req


def test_unknown_parser():
    with pytest.raises(BadRequestError):
        apply_parser_defaults(QueryRequest(q="x", def_type="bogus"), unique_key="id")


def test_scalar_values_are_accepted():
    req = parse_request({"rows": 3, "start": 1, "facet": True, "q": "id:1"})
    assert (req.rows, req.start, req.facet) == (3, 1, True)
    assert req.get_all("rows") == ("3",)


def test_unsupported_value_type():
    with pytest.raises(BadRequestError, match="Invalid value for rows"):
        parse_request({"rows": {"n": 5}})


def test_registered_parser_needing_a_default_field(monkeypatch):
    monkeypatch.setattr(query_parser, "_PARSERS", dict(query_parser._PARSERS))

    class StrictParser(QueryParser):
        name = "strict"
        requires_default_field = True

    register_query_parser("Strict", StrictParser)
    assert get_query_parser_class("strict") is StrictParser

    merged = apply_parser_defaults(QueryRequest(q="x", def_type="strict", mm="3"), unique_key="key")
    assert (merged.def_type, merged.mm, merged.df) == ("strict", "0", "key")


def test_register_parser_needs_a_name():
    with pytest.raises(ValueError):
        register_query_parser(" ", QueryParser)
