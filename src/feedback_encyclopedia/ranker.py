"""
Relevance Ranker - orders feedback entries by relevance to free text using an
external chat model.

The model only ever sees ids and problem statements. Its answer is treated as
untrusted text: it is sanitized, then validated as a JSON array of integers,
then mapped back onto the corpus. Any deviation from that shape is a
RankerMalformedResponse; nothing is guessed.
"""
import asyncio
import json
import logging
import re
from typing import Any, List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from .config import AIConfig, get_config
from .exceptions import (
    RankerError,
    RankerMalformedResponse,
    RankerNotConfigured,
    RankerServiceUnavailable,
)
from .llm_factory import LLMFactory
from .models import FeedbackEntry, RankedResult
from .prompts import PROBLEM_LINE, RANKING_PROMPT

logger = logging.getLogger(__name__)

_FENCE_MARKERS = re.compile(r"```json|```")


def build_problem_list(corpus: Sequence[FeedbackEntry]) -> str:
    """Compact ``id: problem`` listing; solutions are withheld."""
    return "\n".join(PROBLEM_LINE.format(id=entry.id, problem=entry.problem) for entry in corpus)


def build_prompt(query: str, corpus: Sequence[FeedbackEntry], top_k: int = 5) -> str:
    """Instruction block asking for the ``top_k`` most relevant ids."""
    example = json.dumps(list(range(top_k)))
    return RANKING_PROMPT.format(
        query=query,
        problems=build_problem_list(corpus),
        top_k=top_k,
        example=example,
    )


def sanitize_response(raw_text: str) -> str:
    """Strip code fences and a bare leading ``json`` word."""
    cleaned = _FENCE_MARKERS.sub("", raw_text).strip()
    if cleaned.startswith("json"):
        cleaned = cleaned[4:].strip()
    return cleaned


def parse_ranked_ids(raw_text: str) -> List[int]:
    """
    Parse the model's answer into a list of ids.

    Raises:
        RankerMalformedResponse: the sanitized text is not a JSON array of integers
    """
    cleaned = sanitize_response(raw_text)
    try:
        parsed = json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as exc:
        raise RankerMalformedResponse(f"Ranking response is not valid JSON: {exc}", raw_text) from exc

    if not isinstance(parsed, list):
        raise RankerMalformedResponse(
            f"Ranking response must be a JSON array, got {type(parsed).__name__}", raw_text
        )
    for item in parsed:
        if isinstance(item, bool) or not isinstance(item, int):
            raise RankerMalformedResponse(
                f"Ranking response must contain only integer ids, got {item!r}", raw_text
            )
    return parsed


def select_entries(ids: Sequence[int], corpus: Sequence[FeedbackEntry], limit: Optional[int] = None) -> RankedResult:
    """Map ids onto corpus entries in the given order; unknown ids and repeats are skipped."""
    by_id = {entry.id: entry for entry in corpus}
    selected: RankedResult = []
    seen = set()
    for entry_id in ids:
        if entry_id in seen:
            continue
        entry = by_id.get(entry_id)
        if entry is None:
            logger.debug("Ignoring unknown id %s in ranking response", entry_id)
            continue
        seen.add(entry_id)
        selected.append(entry)
        if limit is not None and len(selected) >= limit:
            break
    return selected


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict):
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)


class RelevanceRanker:
    """
    Ranks corpus entries against a free-text query with a single model call.

    The chat model is built lazily from the AI configuration unless one is
    injected. No retries are performed.
    """

    def __init__(
        self,
        llm: Optional[BaseChatModel] = None,
        ai_config: Optional[AIConfig] = None,
        top_k: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.ai_config = ai_config or get_config().ai
        self.top_k = top_k if top_k is not None else self.ai_config.top_k
        self.timeout = timeout if timeout is not None else self.ai_config.timeout
        self._llm = llm

    @property
    def is_configured(self) -> bool:
        if self._llm is not None or not self.ai_config.requires_api_key:
            return True
        return bool(self.ai_config.resolve_api_key())

    def ensure_configured(self) -> None:
        """Raise RankerNotConfigured when no credential is available."""
        if not self.is_configured:
            raise RankerNotConfigured(
                f"No API key configured for AI provider '{self.ai_config.provider}'"
            )

    def _get_llm(self) -> BaseChatModel:
        if self._llm is None:
            self.ensure_configured()
            self._llm = LLMFactory.from_config(self.ai_config)
        return self._llm

    async def _complete(self, prompt: str) -> str:
        try:
            llm = self._get_llm()
            message = await asyncio.wait_for(
                llm.ainvoke([HumanMessage(content=prompt)]),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("Ranking service timed out after %.1fs", self.timeout)
            raise RankerServiceUnavailable(f"Ranking service timed out after {self.timeout}s") from exc
        except RankerError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("Ranking service call failed: %s", exc)
            raise RankerServiceUnavailable(f"Ranking service call failed: {exc}") from exc
        return _message_text(message)

    async def rank(self, query: str, corpus: Sequence[FeedbackEntry]) -> RankedResult:
        """
        Select and order the entries most relevant to ``query``.

        Args:
            query: Non-blank free text (problem description or draft)
            corpus: Normalized entries of the current fetch

        Returns:
            At most ``top_k`` entries, most relevant first

        Raises:
            RankerNotConfigured: no credential for the configured provider
            RankerServiceUnavailable: the call failed or timed out
            RankerMalformedResponse: the answer is not a JSON array of integers
        """
        if not corpus:
            return []

        logger.info("Ranking %d entries for query: %.50s", len(corpus), query)
        prompt = build_prompt(query, corpus, self.top_k)
        raw_text = await self._complete(prompt)
        logger.debug("Raw ranking response: %s", raw_text)

        try:
            ids = parse_ranked_ids(raw_text)
        except RankerMalformedResponse:
            logger.error("Could not parse ranking response. Raw text was: %r", raw_text)
            raise

        logger.info("Parsed ranked ids: %s", ids)
        return select_entries(ids, corpus, limit=self.top_k)
