"""Error taxonomy for the thread data pipeline."""

from __future__ import annotations


class ThreadPipelineError(Exception):
    """Base class for pipeline errors."""


class ValidationError(ThreadPipelineError, ValueError):
    """Malformed input, e.g. an inverted or unparsable time range."""


class TransportError(ThreadPipelineError):
    """A single fetch against the threads API failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint
        self.request_id = request_id


class EmptyResultError(ThreadPipelineError):
    """A well-formed request produced zero threads."""
