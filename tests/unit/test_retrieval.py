"""
Unit tests for the retrieval facade: precedence rule, state transitions and
stale-result handling
"""

import asyncio

import pytest

from feedback_encyclopedia.exceptions import (
    InvalidQueryError,
    RankerMalformedResponse,
    RankerNotConfigured,
    RankingInProgressError,
)
from feedback_encyclopedia.ranker import RelevanceRanker
from feedback_encyclopedia.retrieval import (
    RetrievalSession,
    RetrievalState,
    begin_ranking,
    commit_ranking,
    dismiss_ai,
    display_list,
    fail_ranking,
    filter_entries,
    select_category,
    set_query,
)


def ids(entries):
    return [e.id for e in entries]


class TestPlainFilter:
    """Rule 2: category facet AND substring query"""

    def test_all_and_empty_query_returns_everything(self, corpus):
        assert filter_entries(corpus) == corpus

    def test_substring_is_case_insensitive(self, corpus):
        assert ids(filter_entries(corpus, query="BUG")) == [1]

    def test_category_facet(self, corpus):
        assert ids(filter_entries(corpus, category="Programming")) == [1, 2]

    def test_facet_and_query_combine(self, corpus):
        assert ids(filter_entries(corpus, category="Programming", query="names")) == [2]
        assert filter_entries(corpus, category="구성", query="bug") == []

    def test_matches_solutions_and_category(self, corpus):
        assert ids(filter_entries(corpus, query="reproduction")) == [1]
        assert ids(filter_entries(corpus, query="question")) == [3]
        assert ids(filter_entries(corpus, query="programming")) == [1, 2]
        assert ids(filter_entries(corpus, query="검사기")) == [0]

    def test_unknown_category_yields_nothing(self, corpus):
        assert filter_entries(corpus, category="Nope") == []


class TestPrecedence:
    """Rule 1 overrides rule 2 whenever an AI result is held"""

    def test_held_empty_result_overrides_facet(self, corpus):
        state = RetrievalState(category="Programming", ai_result=())
        assert display_list(corpus, state) == []

    def test_held_result_shown_verbatim(self, corpus):
        held = (corpus[3], corpus[0])
        state = RetrievalState(category="Programming", query="bug", ai_result=held)
        assert ids(display_list(corpus, state)) == [3, 0]

    def test_no_held_result_uses_filters(self, corpus):
        state = RetrievalState(category="Programming", query="bug")
        assert ids(display_list(corpus, state)) == [1]


class TestTransitions:
    """State changes around ranking requests"""

    def test_begin_clears_held_result_and_sets_loading(self, corpus):
        state = RetrievalState(query="draft", ai_result=(corpus[0],), request_seq=4)
        started = begin_ranking(state)
        assert started.ai_result is None
        assert started.loading is True
        assert started.request_seq == 5
        assert state.ai_result == (corpus[0],)

    def test_begin_rejects_blank_query(self):
        with pytest.raises(InvalidQueryError):
            begin_ranking(RetrievalState(query="   "))
        with pytest.raises(InvalidQueryError):
            begin_ranking(RetrievalState(), "")

    def test_begin_is_single_flight(self):
        started = begin_ranking(RetrievalState(), "draft")
        with pytest.raises(RankingInProgressError):
            begin_ranking(started, "again")

    def test_commit_holds_result_and_resets_category(self, corpus):
        started = begin_ranking(RetrievalState(category="구성"), "draft")
        done = commit_ranking(started, started.request_seq, [corpus[2]])
        assert done.ai_result == (corpus[2],)
        assert done.loading is False
        assert done.category == "All"

    def test_commit_of_empty_result_is_held(self):
        started = begin_ranking(RetrievalState(), "draft")
        done = commit_ranking(started, started.request_seq, [])
        assert done.ai_result == ()
        assert done.ai_active is True

    def test_stale_commit_after_category_click_is_discarded(self, corpus):
        started = begin_ranking(RetrievalState(), "bug")
        clicked = select_category(started, "Programming")
        assert clicked.loading is True
        after = commit_ranking(clicked, started.request_seq, [corpus[0]])
        assert after.ai_result is None
        assert after.loading is False
        assert after.category == "Programming"
        assert ids(display_list(corpus, after)) == [1]

    def test_clear_action_keeps_single_flight(self, corpus):
        first = begin_ranking(RetrievalState(), "one")
        cleared = dismiss_ai(first)
        assert cleared.loading is True
        with pytest.raises(RankingInProgressError):
            begin_ranking(cleared, "two")

        ended = commit_ranking(cleared, first.request_seq, [corpus[0]])
        assert ended.ai_result is None
        second = begin_ranking(ended, "two")
        done = commit_ranking(second, second.request_seq, [corpus[3]])
        assert done.ai_result == (corpus[3],)

    def test_failure_leaves_result_cleared(self):
        started = begin_ranking(RetrievalState(), "draft")
        failed = fail_ranking(started, started.request_seq, "RankerServiceUnavailable")
        assert failed.ai_result is None
        assert failed.loading is False
        assert failed.error == "RankerServiceUnavailable"

    def test_stale_failure_is_discarded(self):
        started = begin_ranking(RetrievalState(), "draft")
        cleared = set_query(started, "")
        failed = fail_ranking(cleared, started.request_seq, "boom")
        assert failed.error is None
        assert failed.loading is False
        assert failed.query == ""

    def test_clearing_search_text_clears_held_result(self, corpus):
        state = RetrievalState(query="draft", ai_result=(corpus[0],))
        cleared = set_query(state, "")
        assert cleared.ai_result is None
        assert cleared.query == ""

    def test_typing_keeps_held_result(self, corpus):
        state = RetrievalState(query="draft", ai_result=(corpus[0],))
        assert set_query(state, "draft2").ai_result == (corpus[0],)

    def test_dismiss_clears_result_and_text(self, corpus):
        state = RetrievalState(query="draft", ai_result=(corpus[0],), error="old")
        dismissed = dismiss_ai(state)
        assert dismissed.ai_result is None
        assert dismissed.query == ""
        assert dismissed.error is None

    def test_category_click_clears_held_result(self, corpus):
        state = RetrievalState(ai_result=())
        clicked = select_category(state, "문법")
        assert clicked.ai_result is None
        assert ids(display_list(corpus, clicked)) == [0]


class TestRetrievalSession:
    """Async driver around the ranker"""

    @pytest.mark.asyncio
    async def test_successful_ranking(self, make_llm, corpus):
        session = RetrievalSession(corpus, RelevanceRanker(llm=make_llm("[3, 1]")))
        session.select_category("문법")
        result = await session.request_ranking("draft")
        assert ids(result) == [3, 1]
        assert session.state.category == "All"
        assert ids(session.display()) == [3, 1]

    @pytest.mark.asyncio
    async def test_failure_degrades_to_plain_filter(self, make_llm, corpus):
        session = RetrievalSession(corpus, RelevanceRanker(llm=make_llm("not json")))
        with pytest.raises(RankerMalformedResponse):
            await session.request_ranking("bug")
        assert session.state.ai_result is None
        assert session.state.loading is False
        assert session.state.error == "RankerMalformedResponse"
        assert ids(session.display()) == [1]

    @pytest.mark.asyncio
    async def test_not_configured_is_distinguishable(self, corpus):
        session = RetrievalSession(corpus)
        with pytest.raises(RankerNotConfigured):
            await session.request_ranking("draft")
        assert session.state.error == "RankerNotConfigured"

    @pytest.mark.asyncio
    async def test_uses_current_search_text(self, make_llm, corpus):
        llm = make_llm("[]")
        session = RetrievalSession(corpus, RelevanceRanker(llm=llm))
        session.set_query("conclusion feedback")
        assert await session.request_ranking() == []
        assert "conclusion feedback" in llm.prompts[0]
        assert session.state.ai_result == ()

    @pytest.mark.asyncio
    async def test_blank_query_never_reaches_ranker(self, make_llm, corpus):
        llm = make_llm("[1]")
        session = RetrievalSession(corpus, RelevanceRanker(llm=llm))
        with pytest.raises(InvalidQueryError):
            await session.request_ranking("  ")
        assert llm.calls == 0

    @pytest.mark.asyncio
    async def test_clear_during_ranking_does_not_allow_second_call(self, make_llm, corpus):
        llm = make_llm("[3]", delay=0.2)
        session = RetrievalSession(corpus, RelevanceRanker(llm=llm))
        pending = asyncio.ensure_future(session.request_ranking("one"))
        while llm.calls == 0:
            await asyncio.sleep(0)

        session.select_category("Programming")
        with pytest.raises(RankingInProgressError):
            await session.request_ranking("two")

        await pending
        assert llm.calls == 1
        assert session.state.loading is False
        assert session.state.ai_result is None
        assert session.state.category == "Programming"

        assert ids(await session.request_ranking("two")) == [3]
        assert llm.calls == 2
