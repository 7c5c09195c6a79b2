"""Exception types raised by the housing pipelines."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline failures surfaced to callers."""


class FetchFailure(PipelineError):
    """An upstream request for a single area failed.

    ``status_code`` is the upstream HTTP status when one was received, otherwise
    ``None`` (connection errors, timeouts, undecodable payloads).
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status={self.status_code})"


class FeedFormatError(FetchFailure):
    """The upstream payload did not match the expected result-set shape."""


class SourceUnavailable(PipelineError):
    """A required data source could not be read at all."""


__all__ = ["PipelineError", "FetchFailure", "FeedFormatError", "SourceUnavailable"]
