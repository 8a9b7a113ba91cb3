"""Debug trace for feedback requests.

`debugQuery=true` turns everything on. `debug` takes any of:
query, results, timing, all (or true).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from relfeedback.interfaces import SearchEngine
from relfeedback.logging_utils import StageTimings
from relfeedback.params import QueryRequest
from relfeedback.types import Expansion


@dataclass(frozen=True)
class DebugFlags:
    query: bool = False
    results: bool = False
    timing: bool = False

    @property
    def enabled(self) -> bool:
        return self.query or self.results or self.timing


def debug_flags(request: QueryRequest) -> DebugFlags:
    if request.debug_query:
        return DebugFlags(query=True, results=True, timing=True)
    values = set(request.debug)
    if values & {"all", "true"}:
        return DebugFlags(query=True, results=True, timing=True)
    return DebugFlags(
        query="query" in values,
        results="results" in values,
        timing="timing" in values,
    )


def standard_debug(
    *,
    request: QueryRequest,
    engine: SearchEngine,
    flags: DebugFlags,
    parser_name: str,
    seed_query: Any,
    expansion: Expansion,
    filters: Sequence[Any] = (),
    timings: Optional[StageTimings] = None,
) -> Dict[str, Any]:
    """Build the debug trace; `filters` are the parsed clauses actually executed."""
    dbg: Dict[str, Any] = {}
    if flags.query:
        dbg["rawquerystring"] = request.q
        dbg["querystring"] = request.q
        dbg["seedquery"] = str(seed_query)
        dbg["parsedquery"] = expansion.raw_query
        dbg["QParser"] = parser_name

    if flags.results:
        explain: Dict[str, str] = {}
        if expansion.query is not None:
            for d in expansion.result.doc_list:
                explain[d.id] = engine.explain(expansion.query, d.id)
        dbg["explain"] = explain

    if flags.timing and timings is not None:
        dbg["timing"] = timings.as_millis()

    if request.filters or request.feedback_filters:
        dbg["filter_queries"] = list(request.filters)
        dbg["uf_filter_queries"] = [str(f) for f in filters]
    return dbg
