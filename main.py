from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, List, Optional, Sequence

from relfeedback.errors import FeedbackError
from relfeedback.handler import FeedbackHandler
from relfeedback.interfaces import Schema, SearchEngine
from relfeedback.logging_utils import configure_logging
from relfeedback.response import to_json


def _parse_params(items: Sequence[str]) -> Dict[str, List[str]]:
    params: Dict[str, List[str]] = {}
    for item in items:
        if "=" not in item:
            raise ValueError("Expected name=value, got: {0!r}".format(item))
        name, value = item.split("=", 1)
        name = name.strip()
        if not name:
            raise ValueError("Empty parameter name in: {0!r}".format(item))
        params.setdefault(name, []).append(value)
    return params


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Unsupervised relevance feedback runner.")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--corpus", help="JSONL corpus searched in memory (BM25).")
    src.add_argument("--index", help="Pyserini index directory (or prebuilt name with --prebuilt).")
    p.add_argument("--prebuilt", action="store_true", help="Treat --index as a Pyserini prebuilt index name.")
    p.add_argument(
        "-p",
        "--param",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Request parameter (repeatable), e.g. -p q=id:42 -p interestingTerms=details",
    )
    p.add_argument("--unique-key", default="id", help="Unique key field (default: id).")
    p.add_argument("--default-field", default="contents", help="Default text field (default: contents).")
    p.add_argument(
        "--keyword-field",
        action="append",
        default=[],
        help="Field matched verbatim instead of analyzed (repeatable).",
    )
    p.add_argument("--log-level", default="WARNING", help="Logging level (INFO, DEBUG, ...).")

    # BM25 params
    p.add_argument("--k1", type=float, default=0.9)
    p.add_argument("--b", type=float, default=0.4)
    return p


def build_engine(args: argparse.Namespace) -> SearchEngine:
    schema = Schema(
        unique_key=args.unique_key,
        default_field=args.default_field,
        keyword_fields=frozenset(args.keyword_field),
    )
    if args.corpus:
        from relfeedback.memory_backend import InMemoryIndex

        return InMemoryIndex.from_jsonl(args.corpus, schema, k1=args.k1, b=args.b)

    from relfeedback.lucene_backend import LuceneEngine

    if args.prebuilt:
        engine = LuceneEngine.from_prebuilt_index(args.index, schema=schema)
    else:
        engine = LuceneEngine.from_index_dir(args.index, schema=schema)
    engine.set_bm25(k1=args.k1, b=args.b)
    return engine


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.log_level)
    log = logging.getLogger("main")

    try:
        params = _parse_params(args.param)
    except ValueError as e:
        log.error("%s", e)
        return 2

    engine = build_engine(args)
    handler = FeedbackHandler(engine)
    try:
        rsp = handler.handle(params)
    except FeedbackError as e:
        log.error("Request failed (%d): %s", e.code, e)
        return 2 if e.code == 400 else 1

    fl = [f for v in params.get("fl", []) for f in v.replace(",", " ").split()]
    sys.stdout.write(to_json(rsp, engine, fl) + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
