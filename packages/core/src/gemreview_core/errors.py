"""Exceptions raised by the review pipeline.

Only the 422 rejection of an inline review is recovered locally (see
gemreview_core.poster). Everything here reaches the CLI, which reports it as
a single fatal message.
"""

from __future__ import annotations


class GemReviewError(Exception):
    """Base class for all gemreview errors."""


class ConfigError(GemReviewError):
    """The action inputs or the event context are missing or malformed."""


class UnsupportedEventError(GemReviewError):
    """The run was triggered by something other than a pull_request event."""


class EmptyResponseError(GemReviewError):
    """The model replied without a usable text payload."""


class MalformedResponseError(GemReviewError):
    """The model's text payload is not a JSON list of findings."""


class ReviewRequestError(GemReviewError):
    """Every attempt to get findings from the model failed."""

    def __init__(self, message: str, last_raw: str = "", attempts: int = 0):
        super().__init__(message)
        self.last_raw = last_raw
        self.attempts = attempts
