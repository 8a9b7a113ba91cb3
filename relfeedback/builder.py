"""Feedback query builder: seed document -> expanded query -> re-executed results."""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence

from relfeedback.config import TermSettings
from relfeedback.interfaces import SearchEngine
from relfeedback.query_parser import BooleanQuery, Query, SortSpec
from relfeedback.terms import build_feedback_query, select_interesting_terms
from relfeedback.types import DocListAndSet, InterestingTerm


class FeedbackQueryBuilder:
    """Builds the expanded query for one seed document and re-executes it.

    One builder serves one request; `raw_query` holds the expanded query of
    the last expansion for debug output.
    """

    def __init__(
        self,
        engine: SearchEngine,
        settings: TermSettings,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.engine = engine
        self.settings = settings
        self.log = logger or logging.getLogger("relfeedback.builder")
        self.expanded_query: Optional[BooleanQuery] = None

    @property
    def max_query_terms_per_field(self) -> int:
        return self.settings.max_query_terms

    @property
    def raw_query(self) -> Optional[str]:
        return None if self.expanded_query is None else str(self.expanded_query)

    def interesting_terms(self, docid: str) -> List[InterestingTerm]:
        vectors = {name: self.engine.term_vector(docid, name) for name in self.settings.fields}
        return select_interesting_terms(
            vectors=vectors,
            doc_freq=self.engine.doc_freq,
            num_docs=self.engine.num_docs(),
            settings=self.settings,
        )

    def expand_and_reexecute(
        self,
        seed_docid: str,
        *,
        start: int,
        rows: int,
        filters: Sequence[Query] = (),
        sort: SortSpec = (),
        want_scores: bool = False,
        interesting: Optional[List[InterestingTerm]] = None,
    ) -> DocListAndSet:
        """Expand from `seed_docid` and run the expanded query.

        `interesting`, when given, is extended with the terms that built the
        query; pass None to skip collecting them.
        """
        t0 = time.perf_counter()
        terms = self.interesting_terms(seed_docid)
        self.expanded_query = build_feedback_query(terms)
        if interesting is not None:
            interesting.extend(terms)

        result = self.engine.search_with_set(
            self.expanded_query,
            filters=list(filters) or None,
            sort=sort or None,
            offset=start,
            limit=rows,
            want_scores=want_scores,
        )
        dt = time.perf_counter() - t0
        self.log.info(
            "Expanded seed %s into %d terms; %d matches (start=%d, rows=%d) in %.2fs.",
            seed_docid,
            len(terms),
            result.doc_list.matches,
            start,
            rows,
            dt,
        )
        return result
