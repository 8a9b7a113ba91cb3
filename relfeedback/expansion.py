"""Seed resolution and query expansion / re-execution.

Stages:
    NoSeed    -> empty result (no expansion query is built)
    SeedFound -> expand from the top-ranked seed -> re-execute -> populated result

Only index 0 of the seed window drives expansion. The window itself is
bounded by `maxDocumentsToProcess` and starts at `matchOffset`; the rest of it
is surfaced to the caller through `match` but not blended into the feedback.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from relfeedback.builder import FeedbackQueryBuilder
from relfeedback.interfaces import SearchEngine
from relfeedback.params import QueryRequest
from relfeedback.query_parser import Query, SortSpec
from relfeedback.types import DocList, DocListAndSet, Expansion, InterestingTerm

log = logging.getLogger("relfeedback.expansion")


def resolve_seed(
    engine: SearchEngine,
    seed_query: Query,
    request: QueryRequest,
    *,
    filters: Sequence[Query] = (),
) -> DocList:
    """Run the seed query over the window [matchOffset, matchOffset + maxDocumentsToProcess)."""
    return engine.search(
        seed_query,
        filters=list(filters) or None,
        sort=None,
        offset=request.match_offset,
        limit=request.max_documents_to_process,
        want_scores=request.want_score,
    )


def expand(
    seed_query: Query,
    request: QueryRequest,
    *,
    engine: SearchEngine,
    builder: FeedbackQueryBuilder,
    filters: Sequence[Query] = (),
    feedback_filters: Sequence[Query] = (),
    sort: SortSpec = (),
    interesting: Optional[List[InterestingTerm]] = None,
) -> Expansion:
    """Resolve the seed, then expand and re-execute.

    `filters` apply to both the seed search and the expanded search;
    `feedback_filters` only to the expanded search. Builder or engine failures
    propagate to the caller.
    """
    match = resolve_seed(engine, seed_query, request, filters=filters)
    if not match.docs:
        log.info(
            "Seed query matched nothing in window (offset=%d, size=%d); skipping expansion.",
            request.match_offset,
            request.max_documents_to_process,
        )
        return Expansion(result=DocListAndSet(doc_list=DocList.empty(offset=request.start)))

    seed = match.docs[0].id
    result = builder.expand_and_reexecute(
        seed,
        start=request.start,
        rows=request.rows,
        filters=tuple(filters) + tuple(feedback_filters),
        sort=sort,
        want_scores=request.want_score,
        interesting=interesting,
    )
    return Expansion(
        result=result,
        match=match if request.match_include else None,
        query=builder.expanded_query,
    )
