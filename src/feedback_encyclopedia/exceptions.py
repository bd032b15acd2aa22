"""
Error taxonomy for Feedback Encyclopedia.

Row-level malformation in the corpus is never an error; it is absorbed by the
normalizer. Everything here propagates to the caller, which decides how to
degrade. Nothing is retried automatically.
"""

from typing import Optional


class FeedbackEncyclopediaError(Exception):
    """Base class for all package errors."""


class SourceUnavailable(FeedbackEncyclopediaError):
    """The raw corpus could not be fetched or parsed at all."""


class RankerError(FeedbackEncyclopediaError):
    """Base class for relevance ranking failures."""


class RankerNotConfigured(RankerError):
    """The ranking service credential is missing."""


class RankerServiceUnavailable(RankerError):
    """The ranking service could not be reached, failed, or timed out."""


class RankerMalformedResponse(RankerError):
    """The ranking service answered with something that is not an id array."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class InvalidQueryError(FeedbackEncyclopediaError):
    """A ranking was requested with blank input."""


class RankingInProgressError(FeedbackEncyclopediaError):
    """A ranking was requested while another one is still in flight."""
