"""Query language: AST, parsers and sort specifications.

Two parsers are registered:
- `lucene`: classic syntax, bare terms search one default field
- `edismax`: same syntax, bare terms fan out over `qf` fields and `mm` applies

Supported syntax (whitespace separated clauses):
    [+|-](field:)?(term | "a phrase" | (group))(^boost)?
    *:*        match all documents
    AND OR NOT classic boolean keywords

`str()` of every node is Lucene-style text, which is what debug traces and the
raw expanded query report.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type, Union

from relfeedback.errors import QuerySyntaxError


class Occur(str, Enum):
    SHOULD = "should"
    MUST = "must"
    MUST_NOT = "must_not"
    FILTER = "filter"


_OCCUR_PREFIX = {Occur.SHOULD: "", Occur.MUST: "+", Occur.MUST_NOT: "-", Occur.FILTER: "#"}


def _fmt_boost(boost: float) -> str:
    return "" if boost == 1.0 else f"^{boost:g}"


@dataclass(frozen=True)
class TermQuery:
    """Match one index term (text is already in analyzed form)."""

    field: str
    text: str
    boost: float = 1.0

    def __str__(self) -> str:
        return f"{self.field}:{self.text}{_fmt_boost(self.boost)}"


@dataclass(frozen=True)
class PhraseQuery:
    field: str
    terms: Tuple[str, ...]
    boost: float = 1.0

    def __str__(self) -> str:
        return '{0}:"{1}"{2}'.format(self.field, " ".join(self.terms), _fmt_boost(self.boost))


@dataclass(frozen=True)
class MatchAllQuery:
    boost: float = 1.0

    def __str__(self) -> str:
        return "*:*" + _fmt_boost(self.boost)


@dataclass(frozen=True)
class BooleanClause:
    query: "Query"
    occur: Occur = Occur.SHOULD


@dataclass(frozen=True)
class BooleanQuery:
    clauses: Tuple[BooleanClause, ...] = ()
    min_should_match: int = 0
    boost: float = 1.0

    def __str__(self) -> str:
        parts = []
        for c in self.clauses:
            inner = str(c.query)
            if isinstance(c.query, BooleanQuery) and not inner.startswith("("):
                inner = f"({inner})"
            parts.append(_OCCUR_PREFIX[c.occur] + inner)
        body = " ".join(parts)
        if self.min_should_match > 0:
            body = f"({body})~{self.min_should_match}"
        if self.boost != 1.0:
            if not body.startswith("("):
                body = f"({body})"
            body += _fmt_boost(self.boost)
        return body


Query = Union[TermQuery, PhraseQuery, MatchAllQuery, BooleanQuery]


@dataclass(frozen=True)
class SortField:
    field: str
    descending: bool = True

    def __str__(self) -> str:
        return f"{self.field} {'desc' if self.descending else 'asc'}"


SortSpec = Tuple[SortField, ...]


def parse_sort(text: Optional[str]) -> SortSpec:
    """Parse `"price asc, score desc"`. Empty/None means relevance order."""
    if text is None or not text.strip():
        return ()
    out: List[SortField] = []
    for item in text.split(","):
        parts = item.split()
        if len(parts) != 2:
            raise QuerySyntaxError("Expected 'field asc|desc' in sort", text)
        name, direction = parts
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise QuerySyntaxError(f"Unknown sort direction {parts[1]!r}", text)
        out.append(SortField(field=name, descending=direction == "desc"))
    return tuple(out)


def resolve_min_should_match(spec: Optional[str], optional_clauses: int) -> int:
    """Resolve a dismax `mm` spec ("2", "-1", "75%", "-25%") against a clause count."""
    if spec is None or not str(spec).strip():
        return 0
    s = str(spec).strip()
    try:
        if s.endswith("%"):
            pct = int(s[:-1])
            calc = int(math.floor(optional_clauses * abs(pct) / 100.0))
            n = optional_clauses - calc if pct < 0 else calc
        else:
            v = int(s)
            n = optional_clauses + v if v < 0 else v
    except ValueError as e:
        raise QuerySyntaxError(f"Invalid mm value {s!r}") from e
    return max(0, min(n, optional_clauses))


Analyzer = Callable[[str, str], List[str]]

_STOP_CHARS = set(' \t\r\n()"^')


class QueryParser:
    """Classic query parser; subclasses customize how bare terms are expanded."""

    name = "lucene"
    requires_default_field = False

    def __init__(
        self,
        analyzer: Analyzer,
        *,
        default_field: str,
        query_fields: Sequence[Tuple[str, float]] = (),
        min_should_match: Optional[str] = None,
    ) -> None:
        if not default_field:
            raise ValueError("default_field must be a non-empty string")
        self.analyzer = analyzer
        self.default_field = default_field
        self.query_fields = tuple(query_fields)
        self.min_should_match = min_should_match

    # ------------------------------------------------------------------ API
    def parse(self, text: Optional[str]) -> Query:
        if text is None or not text.strip():
            raise QuerySyntaxError("Empty query", text)
        return _Reader(text, self).parse()

    def parse_sort(self, text: Optional[str]) -> SortSpec:
        return parse_sort(text)

    # -------------------------------------------------------------- hooks
    def field_query(self, field_name: str, text: str, boost: float = 1.0) -> Optional[Query]:
        """Analyze `text` for one field; returns None if it analyzes to nothing."""
        tokens = self.analyzer(field_name, text)
        if not tokens:
            return None
        if len(tokens) == 1:
            return TermQuery(field=field_name, text=tokens[0], boost=boost)
        return PhraseQuery(field=field_name, terms=tuple(tokens), boost=boost)

    def bare_query(self, text: str) -> Optional[Query]:
        return self.field_query(self.default_field, text)

    def bare_phrase(self, text: str) -> Optional[Query]:
        return self.bare_query(text)

    def finish(self, clauses: List[BooleanClause]) -> Query:
        if len(clauses) == 1 and clauses[0].occur == Occur.SHOULD:
            return clauses[0].query
        return BooleanQuery(clauses=tuple(clauses))


class ExtendedQueryParser(QueryParser):
    """Extended dismax flavour: multi-field bare terms and minimum-should-match."""

    name = "edismax"
    requires_default_field = True

    def _fields(self) -> Sequence[Tuple[str, float]]:
        return self.query_fields or ((self.default_field, 1.0),)

    def bare_query(self, text: str) -> Optional[Query]:
        subs = [q for q in (self.field_query(f, text, b) for f, b in self._fields()) if q is not None]
        if not subs:
            return None
        if len(subs) == 1:
            return subs[0]
        return BooleanQuery(clauses=tuple(BooleanClause(q) for q in subs))

    def finish(self, clauses: List[BooleanClause]) -> Query:
        if clauses and all(c.occur == Occur.MUST_NOT for c in clauses):
            # Purely negative queries exclude from everything.
            clauses = [BooleanClause(MatchAllQuery(), Occur.MUST)] + clauses
        optional = sum(1 for c in clauses if c.occur == Occur.SHOULD)
        msm = resolve_min_should_match(self.min_should_match, optional)
        return BooleanQuery(clauses=tuple(clauses), min_should_match=msm)


class _Reader:
    """Recursive descent over the raw query text."""

    def __init__(self, text: str, owner: QueryParser) -> None:
        self.s = text
        self.i = 0
        self.owner = owner

    def error(self, message: str) -> QuerySyntaxError:
        return QuerySyntaxError(f"{message} at position {self.i}", self.s)

    def parse(self) -> Query:
        clauses = self._clauses(depth=0, field_ctx=None)
        return self.owner.finish(clauses)

    def _eof(self) -> bool:
        return self.i >= len(self.s)

    def _skip_ws(self) -> None:
        while not self._eof() and self.s[self.i].isspace():
            self.i += 1

    def _peek_keyword(self) -> Optional[str]:
        for kw in ("AND", "OR", "NOT"):
            end = self.i + len(kw)
            if self.s.startswith(kw, self.i) and (end >= len(self.s) or self.s[end].isspace()):
                return kw
        return None

    def _clauses(self, depth: int, field_ctx: Optional[str]) -> List[BooleanClause]:
        items: List[List[object]] = []
        pending: Optional[Occur] = None
        while True:
            self._skip_ws()
            if self._eof():
                if depth > 0:
                    raise self.error("Missing ')'")
                break
            ch = self.s[self.i]
            if ch == ")":
                if depth == 0:
                    raise self.error("Unexpected ')'")
                self.i += 1
                break

            kw = self._peek_keyword()
            if kw is not None:
                self.i += len(kw)
                if kw == "AND":
                    if not items:
                        raise self.error("AND without a left operand")
                    if items[-1][0] is None:
                        items[-1][0] = Occur.MUST
                    pending = Occur.MUST
                elif kw == "NOT":
                    pending = Occur.MUST_NOT
                continue

            occur = pending
            pending = None
            if ch in "+-":
                occur = Occur.MUST if ch == "+" else Occur.MUST_NOT
                self.i += 1
                if self._eof() or self.s[self.i].isspace() or self.s[self.i] == ")":
                    raise self.error(f"Dangling operator {ch!r}")
            node = self._clause(depth, field_ctx)
            items.append([occur, node])

        if pending is not None:
            raise self.error("Operator without a right operand")
        out: List[BooleanClause] = []
        for occur, node in items:
            if node is None:
                continue
            out.append(BooleanClause(query=node, occur=occur or Occur.SHOULD))
        return out

    def _read_while(self, stop: set) -> str:
        start = self.i
        while not self._eof() and self.s[self.i] not in stop:
            self.i += 1
        return self.s[start:self.i]

    def _read_boost(self) -> float:
        if self._eof() or self.s[self.i] != "^":
            return 1.0
        self.i += 1
        raw = self._read_while(_STOP_CHARS)
        try:
            boost = float(raw)
        except ValueError:
            raise self.error(f"Invalid boost {raw!r}") from None
        if boost < 0 or not math.isfinite(boost):
            raise self.error(f"Invalid boost {raw!r}")
        return boost

    def _read_phrase(self) -> str:
        self.i += 1  # opening quote
        end = self.s.find('"', self.i)
        if end < 0:
            raise self.error("Unbalanced quote")
        text = self.s[self.i:end]
        self.i = end + 1
        return text

    def _clause(self, depth: int, field_ctx: Optional[str]) -> Optional[Query]:
        ch = self.s[self.i]
        if ch == "(":
            self.i += 1
            sub = self._clauses(depth + 1, field_ctx)
            boost = self._read_boost()
            if not sub:
                return None
            q: Query = BooleanQuery(clauses=tuple(sub))
            return _with_boost(q, boost)
        if ch == '"':
            text = self._read_phrase()
            boost = self._read_boost()
            q2 = self.owner.field_query(field_ctx, text) if field_ctx else self.owner.bare_phrase(text)
            return _with_boost(q2, boost)
        if ch == "^":
            raise self.error("Boost without a term")

        ident = self._read_while(_STOP_CHARS | {":"})
        if not self._eof() and self.s[self.i] == ":":
            if not ident:
                raise self.error("Empty field name")
            self.i += 1
            if self._eof() or self.s[self.i].isspace() or self.s[self.i] == ")":
                raise self.error(f"Empty value for field {ident!r}")
            nxt = self.s[self.i]
            if nxt == "(":
                self.i += 1
                sub = self._clauses(depth + 1, ident)
                boost = self._read_boost()
                if not sub:
                    return None
                return _with_boost(BooleanQuery(clauses=tuple(sub)), boost)
            if nxt == '"':
                text = self._read_phrase()
                return _with_boost(self.owner.field_query(ident, text), self._read_boost())
            value = self._read_while(_STOP_CHARS)
            if not value:
                raise self.error(f"Empty value for field {ident!r}")
            boost = self._read_boost()
            if ident == "*" and value == "*":
                return MatchAllQuery(boost=boost)
            if value == "*":
                raise self.error(f"Unsupported wildcard query {ident}:*")
            return _with_boost(self.owner.field_query(ident, value), boost)

        if not ident:
            raise self.error(f"Unexpected character {ch!r}")
        boost = self._read_boost()
        if field_ctx:
            return _with_boost(self.owner.field_query(field_ctx, ident), boost)
        return _with_boost(self.owner.bare_query(ident), boost)


def _with_boost(q: Optional[Query], boost: float) -> Optional[Query]:
    if q is None or boost == 1.0:
        return q
    return replace(q, boost=q.boost * boost)


_PARSERS: Dict[str, Type[QueryParser]] = {
    QueryParser.name: QueryParser,
    ExtendedQueryParser.name: ExtendedQueryParser,
}


def register_query_parser(name: str, parser_cls: Type[QueryParser]) -> None:
    """Register a parser implementation under a `defType` name."""
    if not name or not name.strip():
        raise ValueError("parser name must be a non-empty string")
    _PARSERS[name.strip().lower()] = parser_cls


def get_query_parser_class(name: str) -> Type[QueryParser]:
    """Look up a parser by `defType`; raises KeyError for unknown names.

    Custom names that embed `edismax` (e.g. `myedismax`) resolve to the
    extended parser unless registered explicitly.
    """
    key = (name or "").strip().lower()
    if key in _PARSERS:
        return _PARSERS[key]
    if ExtendedQueryParser.name in key:
        return ExtendedQueryParser
    raise KeyError(name)
