"""Rendering a handler response into JSON-compatible data.

`DocList` values become `{"numFound", "start", "maxScore"?, "docs"}` with the
stored fields selected by `fl` (`*` = all, `score` adds the score).
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Sequence

from relfeedback.interfaces import SearchEngine
from relfeedback.types import DocList


def _select_fields(stored: Mapping[str, Any], fl: Sequence[str], unique_key: str) -> Dict[str, Any]:
    names = [f for f in fl if f != "score"]
    if not names or "*" in names:
        return dict(stored)
    out: Dict[str, Any] = {}
    for name in names:
        if name in stored:
            out[name] = stored[name]
    if not out and unique_key in stored:
        out[unique_key] = stored[unique_key]
    return out


def render_doc_list(doc_list: DocList, engine: SearchEngine, fl: Sequence[str] = ()) -> Dict[str, Any]:
    want_score = "score" in fl
    docs = []
    for d in doc_list:
        fields = _select_fields(engine.doc(d.id), fl, engine.schema.unique_key)
        if want_score and d.score is not None:
            fields["score"] = d.score
        docs.append(fields)
    out: Dict[str, Any] = {"numFound": doc_list.matches, "start": doc_list.offset}
    if want_score and doc_list.max_score is not None:
        out["maxScore"] = doc_list.max_score
    out["docs"] = docs
    return out


def render_response(rsp: Mapping[str, Any], engine: SearchEngine, fl: Sequence[str] = ()) -> Dict[str, Any]:
    """Replace every DocList in a handler response with its rendered form."""
    out: Dict[str, Any] = {}
    for key, value in rsp.items():
        out[key] = render_doc_list(value, engine, fl) if isinstance(value, DocList) else value
    return out


def to_json(rsp: Mapping[str, Any], engine: SearchEngine, fl: Sequence[str] = (), *, indent: int | None = 2) -> str:
    return json.dumps(render_response(rsp, engine, fl), indent=indent, ensure_ascii=False, default=str)
