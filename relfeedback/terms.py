"""Interesting-term selection and feedback query construction.

Given the term vector of a seed document, pick the terms that best
characterize it:
- filter by term frequency, document frequency, word length and stopwords
- score with tf * idf, idf = log(N / (df + 1)) + 1
- keep the top `max_query_terms` per field (score desc, then term asc)
- boost = score / best score in the field (times the field boost), or just
  the field boost when boosting is off
"""

from __future__ import annotations

import math
from typing import Callable, Dict, FrozenSet, List, Mapping, Sequence

from relfeedback.config import TermSettings
from relfeedback.query_parser import BooleanClause, BooleanQuery, Occur, TermQuery
from relfeedback.types import InterestingTerm


# Small built-in list; use stopwords="nltk" for the full NLTK English list.
ENGLISH_STOPWORDS: FrozenSet[str] = frozenset(
    """
    a an and are as at be but by for if in into is it no not of on or such that
    the their then there these they this to was will with
    """.split()
)


def _nltk_stopwords() -> FrozenSet[str]:
    # Lazy import so the package doesn't require nltk unless enabled.
    try:
        from nltk.corpus import stopwords  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError(
            "NLTK stopwords are enabled, but nltk is not available.\n"
            "Install nltk and download the corpus, e.g.:\n"
            "  python -m pip install nltk\n"
            "  python -m nltk.downloader stopwords\n"
        ) from e
    try:
        return frozenset(stopwords.words("english"))
    except LookupError as e:  # pragma: no cover
        raise LookupError(
            "NLTK stopwords are enabled, but the stopwords corpus is missing.\n"
            "Run:\n"
            "  python -m nltk.downloader stopwords\n"
        ) from e


def resolve_stopwords(name: str) -> FrozenSet[str]:
    key = (name or "none").strip().lower()
    if key in ("none", ""):
        return frozenset()
    if key == "english":
        return ENGLISH_STOPWORDS
    if key == "nltk":
        return _nltk_stopwords()
    raise ValueError(f"Unknown stopwords setting: {name!r} (use 'none', 'english' or 'nltk')")


def idf(doc_freq: int, num_docs: int) -> float:
    return math.log(num_docs / float(doc_freq + 1)) + 1.0


def _accept(term: str, tf: int, df: int, settings: TermSettings, stop: FrozenSet[str]) -> bool:
    if tf < settings.min_tf:
        return False
    if df < settings.min_df:
        return False
    if settings.max_df is not None and df > settings.max_df:
        return False
    if settings.min_word_len > 0 and len(term) < settings.min_word_len:
        return False
    if settings.max_word_len > 0 and len(term) > settings.max_word_len:
        return False
    return term not in stop


def select_field_terms(
    *,
    field_name: str,
    term_freqs: Mapping[str, int],
    doc_freq: Callable[[str], int],
    num_docs: int,
    settings: TermSettings,
    stopwords: FrozenSet[str] = frozenset(),
) -> List[InterestingTerm]:
    """Top interesting terms for one field of one document."""
    if settings.max_query_terms <= 0 or not term_freqs or num_docs <= 0:
        return []

    import numpy as np

    terms: List[str] = []
    scores: List[float] = []
    for term in sorted(term_freqs):
        tf = int(term_freqs[term])
        df = int(doc_freq(term))
        if not _accept(term, tf, df, settings, stopwords):
            continue
        terms.append(term)
        scores.append(tf * idf(df, num_docs))
    if not terms:
        return []

    arr = np.asarray(scores, dtype=float)
    # Terms are pre-sorted, so a stable sort on -score breaks ties by term.
    order = np.argsort(-arr, kind="stable")[: settings.max_query_terms]
    best = float(arr[order[0]])
    field_boost = settings.field_boost(field_name)

    out: List[InterestingTerm] = []
    for i in order:
        if settings.boost and best > 0:
            boost = float(arr[i]) / best * field_boost
        else:
            boost = field_boost
        out.append(InterestingTerm(field=field_name, term=terms[int(i)], boost=boost))
    return out


def select_interesting_terms(
    *,
    vectors: Mapping[str, Mapping[str, int]],
    doc_freq: Callable[[str, str], int],
    num_docs: int,
    settings: TermSettings,
) -> List[InterestingTerm]:
    """Interesting terms across all feedback fields, in `settings.fields` order."""
    stop = resolve_stopwords(settings.stopwords)
    out: List[InterestingTerm] = []
    for name in settings.fields:
        out.extend(
            select_field_terms(
                field_name=name,
                term_freqs=vectors.get(name) or {},
                doc_freq=lambda t, _f=name: doc_freq(_f, t),
                num_docs=num_docs,
                settings=settings,
                stopwords=stop,
            )
        )
    return out


def build_feedback_query(terms: Sequence[InterestingTerm]) -> BooleanQuery:
    """Disjunction of boosted term queries, in interesting-term order."""
    return BooleanQuery(
        clauses=tuple(
            BooleanClause(TermQuery(field=t.field, text=t.term, boost=t.boost), Occur.SHOULD) for t in terms
        )
    )


def term_boosts(terms: Sequence[InterestingTerm]) -> Dict[str, float]:
    """`field:term` -> boost, keeping the first boost when a pair repeats."""
    out: Dict[str, float] = {}
    for t in terms:
        out.setdefault(str(t), t.boost)
    return out
