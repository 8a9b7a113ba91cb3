"""Configuration for the feedback handler.

`FeedbackConfig` holds handler defaults plus a `params` dict with two sections,
`terms` (interesting-term extraction) and `facet`. Requests override them per
call through `uf.*` and `facet.*` parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class FeedbackConfig:
    """Handler defaults; request parameters override these per request."""

    name: str = "unsupervised_feedback"
    default_def_type: str = "edismax"
    default_rows: int = 10
    max_documents_to_process: int = 1
    params: Dict[str, Any] = field(default_factory=dict)


def default_feedback_config() -> FeedbackConfig:
    """Default config used when the caller does not provide one."""
    return FeedbackConfig(
        params={
            # Interesting-term extraction (overridable with uf.* request params).
            "terms": {
                # Fields to mine from the seed document; empty => schema default field.
                "fields": [],
                # Per-field boosts applied on top of term boosts, e.g. {"title": 2.0}.
                "field_boosts": {},
                "min_tf": 1,
                "min_df": 1,
                # None => no upper bound on document frequency.
                "max_df": None,
                # 0 => no bound.
                "min_word_len": 0,
                "max_word_len": 0,
                # Capacity of the interesting-term list, per field.
                "max_query_terms": 25,
                # Scale boosts by relative tf-idf score within the field.
                "boost": True,
                # none | english | nltk
                "stopwords": "none",
            },
            # Facet defaults (overridable with facet.* request params).
            "facet": {
                "limit": 100,
                "mincount": 0,
            },
        },
    )


@dataclass(frozen=True)
class TermSettings:
    """Resolved interesting-term settings for one request."""

    fields: Tuple[str, ...]
    field_boosts: Tuple[Tuple[str, float], ...] = ()
    min_tf: int = 1
    min_df: int = 1
    max_df: Optional[int] = None
    min_word_len: int = 0
    max_word_len: int = 0
    max_query_terms: int = 25
    boost: bool = True
    stopwords: str = "none"

    def field_boost(self, name: str) -> float:
        for f, b in self.field_boosts:
            if f == name:
                return b
        return 1.0


def _cfg_section(cfg: FeedbackConfig | None, name: str) -> Mapping[str, Any]:
    if cfg is None:
        return {}
    section = (cfg.params or {}).get(name) or {}
    return section if isinstance(section, Mapping) else {}


def parse_field_list(spec: str | Sequence[str] | None) -> Tuple[Tuple[str, float], ...]:
    """Parse `"title^2 body, summary"` into ((title, 2.0), (body, 1.0), (summary, 1.0))."""
    if spec is None:
        return ()
    items = spec.replace(",", " ").split() if isinstance(spec, str) else list(spec)
    out = []
    for item in items:
        item = str(item).strip()
        if not item:
            continue
        name, _, boost = item.partition("^")
        if not name:
            raise ValueError(f"Empty field name in field list: {spec!r}")
        try:
            out.append((name, float(boost) if boost else 1.0))
        except ValueError as e:
            raise ValueError(f"Invalid field boost {item!r}") from e
    return tuple(out)


def resolve_term_settings(
    cfg: FeedbackConfig | None,
    overrides: Mapping[str, Any],
    *,
    default_field: str,
) -> TermSettings:
    """Merge config term knobs with per-request overrides (already typed).

    Recognized override keys mirror the config keys: fields, field_boosts,
    min_tf, min_df, max_df, min_word_len, max_word_len, max_query_terms, boost.
    """
    base = dict(_cfg_section(cfg, "terms"))
    base.update({k: v for k, v in overrides.items() if v is not None})

    boosts = dict(parse_field_list(base.get("fields") or ()))
    extra = base.get("field_boosts") or {}
    if isinstance(extra, Mapping):
        boosts.update({str(k): float(v) for k, v in extra.items()})
    fields = tuple(boosts.keys()) or (default_field,)

    max_df = base.get("max_df")
    return TermSettings(
        fields=fields,
        field_boosts=tuple((f, boosts.get(f, 1.0)) for f in fields),
        min_tf=int(base.get("min_tf", 1)),
        min_df=int(base.get("min_df", 1)),
        max_df=None if max_df is None else int(max_df),
        min_word_len=int(base.get("min_word_len", 0)),
        max_word_len=int(base.get("max_word_len", 0)),
        max_query_terms=int(base.get("max_query_terms", 25)),
        boost=bool(base.get("boost", True)),
        stopwords=str(base.get("stopwords", "none")).strip().lower(),
    )


def facet_default(cfg: FeedbackConfig | None, name: str, fallback: Any) -> Any:
    return _cfg_section(cfg, "facet").get(name, fallback)
