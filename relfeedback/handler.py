"""Request orchestration for unsupervised (pseudo-relevance) feedback.

Pipeline (per request):
1) Parse raw parameters into an immutable request, merge query parser defaults
2) Parse the seed query, sort and filter clauses (syntax errors => 400)
3) Resolve the seed document and expand / re-execute (see `expansion`)
4) Assemble the response: response, match, interestingTerms, facet_counts, debug

Faults raised while parsing or resolving abort the request with no partial
response. Only debug generation is isolated.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from relfeedback.assembly import add_debug, add_facets, add_interesting_terms
from relfeedback.builder import FeedbackQueryBuilder
from relfeedback.config import FeedbackConfig, TermSettings, default_feedback_config, parse_field_list, resolve_term_settings
from relfeedback.debug import debug_flags, standard_debug
from relfeedback.errors import BadRequestError, FeedbackError, QuerySyntaxError, ServerError
from relfeedback.expansion import expand
from relfeedback.facets import SimpleFacets
from relfeedback.interfaces import SearchEngine
from relfeedback.logging_utils import StageTimings
from relfeedback.params import QueryRequest, RawParams, TermStyle, apply_parser_defaults, parse_request
from relfeedback.query_parser import Query, QueryParser, get_query_parser_class
from relfeedback.types import InterestingTerm


class FeedbackHandler:
    """Answers "find documents like the best match of this query" requests."""

    def __init__(
        self,
        engine: SearchEngine,
        config: Optional[FeedbackConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.engine = engine
        self.config = config or default_feedback_config()
        self.log = logger or logging.getLogger("relfeedback.handler")

    def handle(self, params: RawParams) -> Dict[str, Any]:
        """Run one feedback request.

        Raises:
            BadRequestError: missing `q`, malformed parameters or query syntax.
            ServerError: any other failure while resolving or expanding.
        """
        try:
            return self._handle(params)
        except FeedbackError:
            raise
        except QuerySyntaxError as e:
            raise BadRequestError(str(e)) from e
        except Exception as e:
            self.log.error("Feedback request failed: %s: %s", type(e).__name__, e)
            raise ServerError(f"{type(e).__name__}: {e}") from e

    # ------------------------------------------------------------- stages
    def prepare(self, params: RawParams) -> QueryRequest:
        """Parse raw parameters and merge parser defaults into a new request."""
        request = parse_request(params, self.config)
        return apply_parser_defaults(request, unique_key=self.engine.schema.unique_key, config=self.config)

    def _default_field(self, request: QueryRequest) -> str:
        return request.df or self.engine.schema.default_field

    def query_parser(self, request: QueryRequest) -> QueryParser:
        try:
            parser_cls = get_query_parser_class(request.def_type or self.config.default_def_type)
        except KeyError:
            raise BadRequestError(f"Unknown query parser {request.def_type!r}") from None
        try:
            qf = parse_field_list(request.qf)
        except ValueError as e:
            raise BadRequestError(f"Invalid qf: {e}") from e
        return parser_cls(
            self.engine.analyze,
            default_field=self._default_field(request),
            query_fields=qf,
            min_should_match=request.mm,
        )

    def filter_parser(self, request: QueryRequest) -> QueryParser:
        """Filters and facet queries always use the classic parser."""
        return QueryParser(self.engine.analyze, default_field=self._default_field(request))

    def parse_filters(self, texts: Sequence[str], parser: QueryParser) -> List[Query]:
        return [parser.parse(t) for t in texts if t and t.strip()]

    def term_settings(self, request: QueryRequest) -> TermSettings:
        try:
            return resolve_term_settings(
                self.config,
                request.term_overrides,
                default_field=self.engine.schema.default_field,
            )
        except ValueError as e:
            raise BadRequestError(f"Invalid feedback term settings: {e}") from e

    def _handle(self, params: RawParams) -> Dict[str, Any]:
        timings = StageTimings(self.log)
        request = self.prepare(params)
        if request.q is None:
            raise BadRequestError(
                "Unsupervised feedback requires a query (?q=) to find the seed document."
            )

        with timings.stage("parse"):
            parser = self.query_parser(request)
            fparser = self.filter_parser(request)
            try:
                seed_query = parser.parse(request.q)
                sort = parser.parse_sort(request.sort)
                filters = self.parse_filters(request.filters, fparser)
                feedback_filters = self.parse_filters(request.feedback_filters, fparser)
            except QuerySyntaxError as e:
                raise BadRequestError(str(e)) from e

        builder = FeedbackQueryBuilder(self.engine, self.term_settings(request))
        style = request.interesting_terms
        interesting: Optional[List[InterestingTerm]] = None if style == TermStyle.NONE else []

        with timings.stage("expand"):
            expansion = expand(
                seed_query,
                request,
                engine=self.engine,
                builder=builder,
                filters=filters,
                feedback_filters=feedback_filters,
                sort=sort,
                interesting=interesting,
            )

        rsp: Dict[str, Any] = {}
        if expansion.match is not None:
            rsp["match"] = expansion.match
        rsp["response"] = expansion.result.doc_list

        add_interesting_terms(rsp, style, interesting)

        if request.facet:
            with timings.stage("facet"):
                add_facets(
                    rsp,
                    expansion.result,
                    lambda doc_set: self._facet_counts(doc_set, request, fparser),
                )

        flags = debug_flags(request)
        if flags.enabled:
            executed: Tuple[Query, ...] = tuple(filters) + tuple(feedback_filters)
            add_debug(
                rsp,
                lambda: standard_debug(
                    request=request,
                    engine=self.engine,
                    flags=flags,
                    parser_name=parser.name,
                    seed_query=seed_query,
                    expansion=expansion,
                    filters=executed,
                    timings=timings,
                ),
            )

        self.log.info(
            "Feedback q=%r: expanded=%s, %d/%d results, %d interesting terms in %.2fs.",
            request.q,
            expansion.query is not None,
            len(expansion.result.doc_list),
            expansion.result.doc_list.matches,
            len(interesting or ()),
            timings.seconds("parse") + timings.seconds("expand") + timings.seconds("facet"),
        )
        return rsp

    def _facet_counts(self, doc_set, request: QueryRequest, parser: QueryParser) -> Dict[str, Any]:
        try:
            return SimpleFacets(self.engine, doc_set, request, parser, config=self.config).facet_counts()
        except QuerySyntaxError as e:
            raise BadRequestError(f"Invalid facet.query: {e}") from e
