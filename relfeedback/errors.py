"""Fault taxonomy for feedback requests.

`FeedbackError.code` is the client-facing status a transport layer should use.
"""

from __future__ import annotations


class FeedbackError(RuntimeError):
    """Base class for faults that abort a feedback request."""

    code = 500

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = int(code)


class BadRequestError(FeedbackError, ValueError):
    """Raised when the caller's input is missing or malformed."""

    code = 400


class ServerError(FeedbackError):
    """Raised for unexpected failures while resolving or expanding a query."""

    code = 500


class QuerySyntaxError(ValueError):
    """Raised by query/sort parsers for malformed query text."""

    def __init__(self, message: str, text: str | None = None) -> None:
        super().__init__(message if text is None else f"{message} in {text!r}")
        self.text = text
