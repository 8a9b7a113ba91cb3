"""
Shared fixtures: a small in-memory corpus and a handler over it.

Term statistics of `contents` (N=5):
  solr df=1; lucene, feedback, query, expansion df=2; relevance df=3
"""

import pytest

from relfeedback.handler import FeedbackHandler
from relfeedback.interfaces import Schema, tokenize
from relfeedback.memory_backend import InMemoryIndex


DOCUMENTS = [
    {
        "id": "1",
        "title": "Solr relevance feedback",
        "contents": "solr lucene relevance feedback query expansion",
        "category": "search",
    },
    {
        "id": "2",
        "title": "Lucene scoring",
        "contents": "lucene scoring bm25 relevance ranking",
        "category": "search",
    },
    {
        "id": "3",
        "title": "Query expansion",
        "contents": "query expansion feedback terms relevance",
        "category": "ir",
    },
    {
        "id": "4",
        "title": "Cooking pasta",
        "contents": "pasta tomato basil cooking recipe",
        "category": "food",
    },
    {
        "id": "5",
        "title": "Tomato soup",
        "contents": "tomato soup recipe cooking",
        "category": ["food", "soup"],
    },
]


@pytest.fixture
def documents():
    return [dict(d) for d in DOCUMENTS]


@pytest.fixture
def schema():
    return Schema(unique_key="id", default_field="contents", keyword_fields=frozenset({"category"}))


@pytest.fixture
def engine(documents, schema):
    return InMemoryIndex(documents, schema)


@pytest.fixture
def handler(engine):
    return FeedbackHandler(engine)


@pytest.fixture
def analyzer():
    def _analyze(field_name, text):
        if field_name in ("id", "category"):
            return [text] if text else []
        return tokenize(text)

    return _analyze
