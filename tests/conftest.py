"""Pytest configuration and fixtures."""
import sys
from pathlib import Path
from typing import List, Optional

import pytest
from langchain_core.messages import AIMessage

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from feedback_encyclopedia.config import set_config  # noqa: E402
from feedback_encyclopedia.exceptions import SourceUnavailable  # noqa: E402
from feedback_encyclopedia.models import FeedbackEntry  # noqa: E402

CREDENTIAL_ENV_VARS = ["GEMINI_API_KEY", "GOOGLE_API_KEY", "AI_API_KEY", "OPENROUTER_API_KEY"]


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Fresh global configuration and no ambient credentials for every test."""
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    set_config(None)
    yield
    set_config(None)


class StubChatModel:
    """Stands in for a LangChain chat model; records every prompt it receives."""

    def __init__(self, response: str = "[]", error: Optional[Exception] = None, delay: float = 0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def ainvoke(self, messages):
        import asyncio

        self.prompts.append(messages[-1].content)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.response)


class StubSource:
    """In-memory corpus source."""

    def __init__(self, corpus: Optional[List[FeedbackEntry]] = None, fail: bool = False):
        self.corpus = corpus or []
        self.fail = fail
        self.fetches = 0

    async def fetch_corpus(self) -> List[FeedbackEntry]:
        self.fetches += 1
        if self.fail:
            raise SourceUnavailable("sheet unreachable")
        return list(self.corpus)


@pytest.fixture
def raw_rows():
    return [
        {"대분류": "문법", "문제점": "맞춤법 오류가 많음", "솔루션 (버전1)": "맞춤법 검사기를 사용하세요", "솔루션 (버전2)": ""},
        {"대분류": "Programming", "문제점": "The bug report is unclear", "솔루션 (버전1)": "", "솔루션 (버전2)": "Add reproduction steps"},
        {"대분류": "A", "문제점": "", "솔루션 (버전1)": "x"},
        {"문제점": "No category given", "솔루션": "Legacy solution column"},
        {"대분류": "구성", "문제점": "Conclusion is missing", "솔루션 (버전1)": "Summarize the argument", "비고": "ignored"},
    ]


@pytest.fixture
def corpus():
    return [
        FeedbackEntry(id=0, category="문법", problem="맞춤법 오류가 많음", solution1="맞춤법 검사기를 사용하세요"),
        FeedbackEntry(id=1, category="Programming", problem="The bug report is unclear", solution2="Add reproduction steps"),
        FeedbackEntry(id=2, category="Programming", problem="Variable names are cryptic", solution1="Use descriptive names"),
        FeedbackEntry(id=3, category="구성", problem="Conclusion is missing", solution1="Summarize the argument", solution2="End with a question"),
    ]


@pytest.fixture
def make_llm():
    return StubChatModel


@pytest.fixture
def make_source():
    return StubSource
