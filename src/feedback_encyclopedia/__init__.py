"""
Feedback Encyclopedia - problem/solution feedback lookup with AI-assisted ranking

This package normalizes a hand-maintained feedback spreadsheet into entries,
filters them by category and substring, and ranks them against free text
with an external chat model.
"""

__version__ = "1.0.0"

from .config import Config, get_config
from .exceptions import (
    RankerError,
    RankerMalformedResponse,
    RankerNotConfigured,
    RankerServiceUnavailable,
    SourceUnavailable,
)
from .models import FeedbackEntry
from .normalizer import normalize
from .ranker import RelevanceRanker
from .retrieval import RetrievalSession, RetrievalState, display_list

__all__ = [
    "Config",
    "get_config",
    "FeedbackEntry",
    "normalize",
    "RelevanceRanker",
    "RetrievalSession",
    "RetrievalState",
    "display_list",
    "RankerError",
    "RankerMalformedResponse",
    "RankerNotConfigured",
    "RankerServiceUnavailable",
    "SourceUnavailable",
]
