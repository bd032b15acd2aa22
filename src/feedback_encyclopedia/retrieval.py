"""
Retrieval facade: decides what list the user sees.

State lives in an explicit, immutable ``RetrievalState`` snapshot and every
transition returns a new snapshot. The display list is computed from
(corpus, state) with a fixed precedence:

1. a held AI result (even an empty one) is shown verbatim;
2. otherwise the corpus filtered by category facet and substring query.

Ranking calls are tagged with a monotonically increasing sequence number.
At most one call is in flight: ``loading`` stays set until that call ends,
whatever the user does meanwhile. Clear actions only bump the sequence, so a
completion whose number is not the latest issued ends the loading state but
its result or error is discarded.
"""
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .exceptions import InvalidQueryError, RankingInProgressError
from .models import ALL_CATEGORIES, FeedbackEntry
from .ranker import RelevanceRanker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievalState:
    category: str = ALL_CATEGORIES
    query: str = ""
    # None: AI not engaged. A tuple (possibly empty): held AI result.
    ai_result: Optional[Tuple[FeedbackEntry, ...]] = None
    loading: bool = False
    request_seq: int = 0
    error: Optional[str] = None

    @property
    def ai_active(self) -> bool:
        return self.ai_result is not None


def matches_category(entry: FeedbackEntry, category: str) -> bool:
    return category == ALL_CATEGORIES or entry.category == category


def matches_query(entry: FeedbackEntry, query: str) -> bool:
    """Case-insensitive substring match over problem, solutions and category."""
    if not query:
        return True
    needle = query.lower()
    fields = [entry.problem, entry.solution1, entry.category]
    if entry.solution2:
        fields.append(entry.solution2)
    return any(needle in field.lower() for field in fields)


def filter_entries(corpus: Sequence[FeedbackEntry], category: str = ALL_CATEGORIES, query: str = "") -> List[FeedbackEntry]:
    return [entry for entry in corpus if matches_category(entry, category) and matches_query(entry, query)]


def display_list(corpus: Sequence[FeedbackEntry], state: RetrievalState) -> List[FeedbackEntry]:
    """Apply the precedence rule to produce the list to show."""
    if state.ai_result is not None:
        return list(state.ai_result)
    return filter_entries(corpus, state.category, state.query)


def begin_ranking(state: RetrievalState, query: Optional[str] = None) -> RetrievalState:
    """
    Start a ranking request.

    The held result is cleared immediately so a stale list is never shown
    while the new one loads. The returned state's ``request_seq`` tags the call.
    """
    text = state.query if query is None else query
    if not text or not text.strip():
        raise InvalidQueryError("Query is required")
    if state.loading:
        raise RankingInProgressError("A ranking request is already in flight")
    return replace(
        state,
        query=text,
        ai_result=None,
        loading=True,
        request_seq=state.request_seq + 1,
        error=None,
    )


def commit_ranking(state: RetrievalState, seq: int, result: Sequence[FeedbackEntry]) -> RetrievalState:
    """Hold a successful ranking result unless a clear action superseded it."""
    if seq != state.request_seq:
        logger.debug("Discarding stale ranking result (seq=%s, latest=%s)", seq, state.request_seq)
        return replace(state, loading=False)
    return replace(
        state,
        category=ALL_CATEGORIES,
        ai_result=tuple(result),
        loading=False,
        error=None,
    )


def fail_ranking(state: RetrievalState, seq: int, error: str) -> RetrievalState:
    """Record a failed ranking; the held result stays cleared."""
    if seq != state.request_seq:
        logger.debug("Discarding stale ranking failure (seq=%s, latest=%s)", seq, state.request_seq)
        return replace(state, loading=False)
    return replace(state, ai_result=None, loading=False, error=error)


def _invalidate(state: RetrievalState, **changes) -> RetrievalState:
    # The in-flight call keeps running; its result is dropped on arrival.
    return replace(
        state,
        ai_result=None,
        request_seq=state.request_seq + 1,
        **changes,
    )


def set_query(state: RetrievalState, text: str) -> RetrievalState:
    """Update the search text; clearing it also clears the held AI result."""
    if text == "":
        return _invalidate(state, query="")
    return replace(state, query=text)


def dismiss_ai(state: RetrievalState) -> RetrievalState:
    """Drop the held AI result together with the search text."""
    return _invalidate(state, query="", error=None)


def select_category(state: RetrievalState, category: str) -> RetrievalState:
    """Choose a facet; this always returns to plain filtering."""
    return _invalidate(state, category=category)


class RetrievalSession:
    """
    One user's view over a fetched corpus.

    Holds the corpus, the current state snapshot and a ranker, and drives the
    ranking state transitions around the asynchronous ranker call.
    """

    def __init__(self, corpus: Sequence[FeedbackEntry], ranker: Optional[RelevanceRanker] = None,
                 state: Optional[RetrievalState] = None):
        self.corpus: Tuple[FeedbackEntry, ...] = tuple(corpus)
        self.ranker = ranker
        self.state = state or RetrievalState()

    def display(self) -> List[FeedbackEntry]:
        return display_list(self.corpus, self.state)

    def set_query(self, text: str) -> None:
        self.state = set_query(self.state, text)

    def select_category(self, category: str) -> None:
        self.state = select_category(self.state, category)

    def dismiss_ai(self) -> None:
        self.state = dismiss_ai(self.state)

    async def request_ranking(self, query: Optional[str] = None) -> List[FeedbackEntry]:
        """
        Rank the corpus against ``query`` (or the current search text).

        On failure the state falls back to plain filtering and the typed
        ranker error is re-raised for the caller to present.
        """
        if self.ranker is None:
            self.ranker = RelevanceRanker()

        self.state = begin_ranking(self.state, query)
        seq = self.state.request_seq
        try:
            result = await self.ranker.rank(self.state.query, self.corpus)
        except Exception as exc:
            self.state = fail_ranking(self.state, seq, type(exc).__name__)
            raise
        self.state = commit_ranking(self.state, seq, result)
        return self.display()
