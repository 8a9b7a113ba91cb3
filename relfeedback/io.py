"""I/O utilities for document corpora.

Expected input: a JSONL file, one JSON object per line, each carrying the
unique key field (default `id`) plus any number of stored fields, e.g.
    {"id": "42", "title": "...", "contents": "...", "category": ["a", "b"]}
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Tuple


def _iter_nonempty_lines(path: str) -> Iterable[Tuple[int, str]]:
    """Yield (line_no, stripped_line) skipping empty/whitespace-only lines."""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for i, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line:
                continue
            yield i, line


def load_documents(path: str, unique_key: str = "id") -> List[Dict[str, Any]]:
    """Load a JSONL corpus, keeping file order (which is also index order)."""
    docs: List[Dict[str, Any]] = []
    seen = set()

    for line_no, line in _iter_nonempty_lines(path):
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}:{line_no}: invalid JSON: {e.msg}") from e
        if not isinstance(obj, dict):
            raise ValueError(f"{path}:{line_no}: expected a JSON object, got {type(obj).__name__}")
        key = obj.get(unique_key)
        if key is None or not str(key).strip():
            raise ValueError(f"{path}:{line_no}: missing unique key field {unique_key!r}")
        key = str(key)
        if key in seen:
            raise ValueError(f"{path}:{line_no}: duplicate {unique_key}={key!r}")
        seen.add(key)
        obj[unique_key] = key
        docs.append(obj)

    return docs
