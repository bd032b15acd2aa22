"""
Corpus source: the published feedback spreadsheet, fetched as CSV on demand.
"""
from __future__ import annotations

import io
import logging
import time
from typing import Any, Dict, List, Optional

import httpx
import pandas as pd

from .config import get_config
from .exceptions import SourceUnavailable
from .models import FeedbackEntry
from .normalizer import normalize

logger = logging.getLogger(__name__)


def parse_csv(text: str) -> List[Dict[str, Any]]:
    """
    Parse CSV text with a header row into raw row mappings.

    Every cell is kept as a string and blank cells become "". Blank lines
    are skipped. An empty document yields no rows. Rows with more fields
    than the header are cut to the header width so row ordinals stay put.
    """
    if not text.strip():
        return []

    try:
        header = pd.read_csv(io.StringIO(text), dtype=str, nrows=0)
        width = len(header.columns)
        frame = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
            engine="python",
            on_bad_lines=lambda fields: fields[:width],
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, ValueError) as exc:
        raise SourceUnavailable(f"Feedback sheet is not valid CSV: {exc}") from exc

    return frame.fillna("").to_dict("records")


class SheetSource:
    """Fetches the feedback sheet fresh on every call; nothing is cached."""

    def __init__(
        self,
        csv_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        source_cfg = get_config().source

        self.csv_url = csv_url or source_cfg.resolved_url
        self.timeout = timeout if timeout is not None else source_cfg.timeout
        self.headers = {
            "User-Agent": user_agent or source_cfg.user_agent,
            "Cache-Control": "no-cache",
        }

        # Optional transport is provided for testing (httpx.MockTransport).
        self._transport = transport

    async def fetch_text(self) -> str:
        """Download the raw CSV document."""
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(self.csv_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Feedback sheet returned status %s", exc.response.status_code)
            raise SourceUnavailable(
                f"Feedback sheet returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch feedback sheet: %s", exc)
            raise SourceUnavailable(f"Failed to fetch feedback sheet: {exc}") from exc

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("Fetched feedback sheet (%d bytes) in %.0fms", len(response.content), elapsed_ms)
        return response.content.decode("utf-8-sig", errors="replace")

    async def fetch_rows(self) -> List[Dict[str, Any]]:
        """Download and parse the sheet into raw rows."""
        return parse_csv(await self.fetch_text())

    async def fetch_corpus(self) -> List[FeedbackEntry]:
        """Download, parse and normalize the sheet."""
        rows = await self.fetch_rows()
        corpus = normalize(rows)
        logger.info("Loaded %d feedback entries from %d rows", len(corpus), len(rows))
        return corpus
