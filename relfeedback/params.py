"""Request parameters for the feedback handler.

Raw parameters arrive as a mapping of name -> value or list of values (the
shape of a decoded query string). `parse_request` turns them into an immutable
`QueryRequest`; `apply_parser_defaults` returns a new request with the query
parser defaults merged in (the caller's request is never mutated).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from relfeedback.config import FeedbackConfig, default_feedback_config, parse_field_list
from relfeedback.errors import BadRequestError
from relfeedback.query_parser import get_query_parser_class

# Common search parameters
Q = "q"
FQ = "fq"
START = "start"
ROWS = "rows"
SORT = "sort"
FL = "fl"
DEF_TYPE = "defType"
DF = "df"
QF = "qf"
MM = "mm"
FACET = "facet"
DEBUG_QUERY = "debugQuery"
DEBUG = "debug"

# Feedback parameters
MAX_DOCUMENTS_TO_PROCESS = "maxDocumentsToProcess"
MATCH_INCLUDE = "matchInclude"
MATCH_OFFSET = "matchOffset"
INTERESTING_TERMS = "interestingTerms"
UF_FQ = "uf.fq"
UF_FL = "uf.fl"
UF_QF = "uf.qf"
UF_MINTF = "uf.mintf"
UF_MINDF = "uf.mindf"
UF_MAXDF = "uf.maxdf"
UF_MINWL = "uf.minwl"
UF_MAXWL = "uf.maxwl"
UF_MAXQT = "uf.maxqt"
UF_BOOST = "uf.boost"

RawParams = Mapping[str, Union[str, Sequence[str], None]]

_TRUE = {"true", "on", "yes", "1"}
_FALSE = {"false", "off", "no", "0"}


class TermStyle(str, Enum):
    """How interesting terms are rendered (and whether they are collected at all)."""

    NONE = "none"
    LIST = "list"
    DETAILS = "details"

    @classmethod
    def get(cls, value: Optional[str]) -> "TermStyle":
        if value is None or not value.strip():
            return cls.NONE
        key = value.strip().lower()
        for style in cls:
            if style.value == key:
                return style
        raise BadRequestError(
            f"Unknown {INTERESTING_TERMS} style {value!r} (expected none, list or details)"
        )


def _values(params: RawParams, name: str) -> List[str]:
    v = params.get(name)
    if v is None:
        return []
    if isinstance(v, str):
        return [v]
    if isinstance(v, (list, tuple)):
        return [str(x) for x in v if x is not None]
    if isinstance(v, (int, float, bool)):
        return [str(v)]
    raise BadRequestError(f"Invalid value for {name}: {v!r}")


def get_str(params: RawParams, name: str, default: Optional[str] = None) -> Optional[str]:
    vals = _values(params, name)
    return vals[0] if vals else default


def get_int(params: RawParams, name: str, default: Optional[int] = None, *, minimum: Optional[int] = None) -> Optional[int]:
    raw = get_str(params, name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise BadRequestError(f"Invalid integer for {name}: {raw!r}") from e
    if minimum is not None and value < minimum:
        raise BadRequestError(f"{name} must be >= {minimum}, got {value}")
    return value


def get_bool(params: RawParams, name: str, default: Optional[bool] = None) -> Optional[bool]:
    raw = get_str(params, name)
    if raw is None or not raw.strip():
        return default
    key = raw.strip().lower()
    if key in _TRUE:
        return True
    if key in _FALSE:
        return False
    raise BadRequestError(f"Invalid boolean for {name}: {raw!r}")


def _split_fl(values: Iterable[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for v in values:
        out.extend(x for x in v.replace(",", " ").split() if x)
    return tuple(out)


@dataclass(frozen=True)
class QueryRequest:
    """One feedback request; immutable for the duration of the request."""

    q: Optional[str] = None
    def_type: Optional[str] = None
    start: int = 0
    rows: int = 10
    filters: Tuple[str, ...] = ()
    feedback_filters: Tuple[str, ...] = ()
    sort: Optional[str] = None
    fl: Tuple[str, ...] = ()
    df: Optional[str] = None
    qf: Optional[str] = None
    mm: Optional[str] = None
    facet: bool = False
    debug_query: bool = False
    debug: Tuple[str, ...] = ()
    match_include: bool = True
    match_offset: int = 0
    max_documents_to_process: int = 1
    interesting_terms: TermStyle = TermStyle.NONE
    term_overrides: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    params: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def want_score(self) -> bool:
        return "score" in self.fl

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First raw value of any parameter (facet.*, f.<field>.* ...)."""
        return get_str(self.params, name, default)

    def get_all(self, name: str) -> Tuple[str, ...]:
        return tuple(self.params.get(name, ()))


def _term_overrides(params: RawParams) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {
        "fields": get_str(params, UF_FL),
        "min_tf": get_int(params, UF_MINTF, minimum=0),
        "min_df": get_int(params, UF_MINDF, minimum=0),
        "max_df": get_int(params, UF_MAXDF, minimum=0),
        "min_word_len": get_int(params, UF_MINWL, minimum=0),
        "max_word_len": get_int(params, UF_MAXWL, minimum=0),
        "max_query_terms": get_int(params, UF_MAXQT, minimum=0),
        "boost": get_bool(params, UF_BOOST),
    }
    qf = get_str(params, UF_QF)
    if qf:
        try:
            overrides["field_boosts"] = dict(parse_field_list(qf))
        except ValueError as e:
            raise BadRequestError(f"Invalid {UF_QF}: {e}") from e
    return {k: v for k, v in overrides.items() if v is not None}


def parse_request(params: RawParams, config: FeedbackConfig | None = None) -> QueryRequest:
    """Validate raw parameters into a `QueryRequest`.

    Raises:
        BadRequestError: for malformed numbers/booleans or unknown term styles.
    """
    cfg = config or default_feedback_config()
    frozen = MappingProxyType({k: tuple(_values(params, k)) for k in params.keys()})
    return QueryRequest(
        q=get_str(params, Q),
        def_type=get_str(params, DEF_TYPE),
        start=get_int(params, START, 0, minimum=0),
        rows=get_int(params, ROWS, cfg.default_rows, minimum=0),
        filters=tuple(v for v in _values(params, FQ) if v and v.strip()),
        feedback_filters=tuple(v for v in _values(params, UF_FQ) if v and v.strip()),
        sort=get_str(params, SORT),
        fl=_split_fl(_values(params, FL)),
        df=get_str(params, DF),
        qf=get_str(params, QF),
        mm=get_str(params, MM),
        facet=bool(get_bool(params, FACET, False)),
        debug_query=bool(get_bool(params, DEBUG_QUERY, False)),
        debug=tuple(x.strip().lower() for x in _split_fl(_values(params, DEBUG))),
        match_include=bool(get_bool(params, MATCH_INCLUDE, True)),
        match_offset=get_int(params, MATCH_OFFSET, 0, minimum=0),
        max_documents_to_process=get_int(
            params, MAX_DOCUMENTS_TO_PROCESS, cfg.max_documents_to_process, minimum=0
        ),
        interesting_terms=TermStyle.get(get_str(params, INTERESTING_TERMS)),
        term_overrides=MappingProxyType(_term_overrides(params)),
        params=frozen,
    )


def apply_parser_defaults(
    request: QueryRequest,
    *,
    unique_key: str,
    config: FeedbackConfig | None = None,
) -> QueryRequest:
    """Return a copy of `request` with query parser defaults merged in.

    - no `defType` => the configured default parser (edismax)
    - a parser that requires a default field gets `mm=0` and `df=<unique key>`,
      since it refuses to run without one even when the query names its fields

    Raises:
        BadRequestError: when `defType` names no registered parser.
    """
    cfg = config or default_feedback_config()
    def_type = request.def_type or cfg.default_def_type
    try:
        parser_cls = get_query_parser_class(def_type)
    except KeyError:
        raise BadRequestError(f"Unknown query parser {def_type!r}") from None

    if parser_cls.requires_default_field:
        return replace(request, def_type=def_type, mm="0", df=unique_key)
    return replace(request, def_type=def_type)
