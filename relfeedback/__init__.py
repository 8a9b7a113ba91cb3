"""Unsupervised relevance feedback ("more like the best match of this query").

Entry point for programmatic use is `relfeedback.handler.FeedbackHandler`;
backends live in `relfeedback.memory_backend` and `relfeedback.lucene_backend`
(the latter needs the optional Pyserini dependency).
"""
