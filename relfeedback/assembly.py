"""Result assembly: interesting terms, facets and debug output.

Nothing here runs the expanded search again; every function works from the
`Expansion` produced once by the expansion stage.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Callable, Dict, List, MutableMapping, Optional, Sequence, Union

from relfeedback.params import TermStyle
from relfeedback.terms import term_boosts
from relfeedback.types import DocListAndSet, InterestingTerm

log = logging.getLogger("relfeedback.assembly")

Response = MutableMapping[str, Any]


def render_interesting_terms(
    style: TermStyle,
    terms: Sequence[InterestingTerm],
) -> Union[Dict[str, float], List[str], None]:
    """`details` -> {"field:term": boost}, `list` -> [term, ...], `none` -> None."""
    if style == TermStyle.DETAILS:
        return term_boosts(terms)
    if style == TermStyle.LIST:
        return [t.term for t in terms]
    return None


def add_interesting_terms(rsp: Response, style: TermStyle, terms: Optional[Sequence[InterestingTerm]]) -> None:
    if terms is None or style == TermStyle.NONE:
        return
    rsp["interestingTerms"] = render_interesting_terms(style, terms)


def add_facets(rsp: Response, result: DocListAndSet, compute: Callable[[Any], Dict[str, Any]]) -> None:
    """Facet the result's document set; null when there is no set to facet."""
    if result.doc_set is None:
        rsp["facet_counts"] = None
        return
    rsp["facet_counts"] = compute(result.doc_set)


def add_debug(rsp: Response, build: Callable[[], Optional[Dict[str, Any]]]) -> None:
    """Attach the debug trace; a failure is reported in the response, never raised."""
    try:
        dbg = build()
    except Exception:
        log.exception("Exception during debug")
        rsp["exception_during_debug"] = traceback.format_exc()
        return
    if dbg is not None:
        rsp["debug"] = dbg
