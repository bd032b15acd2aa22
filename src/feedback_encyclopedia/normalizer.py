"""
Corpus normalizer: loosely-typed sheet rows to validated FeedbackEntry records.

The sheet is maintained by hand, so incomplete rows are expected noise and are
dropped without raising.
"""
import logging
import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .models import (
    ALL_CATEGORIES,
    CATEGORY_COLUMN,
    DEFAULT_CATEGORY,
    PROBLEM_COLUMN,
    SOLUTION1_COLUMN,
    SOLUTION1_FALLBACK_COLUMN,
    SOLUTION2_COLUMN,
    FeedbackEntry,
)

logger = logging.getLogger(__name__)


def _cell(row: Mapping[str, Any], *columns: str) -> str:
    """First non-blank value among the given columns, trimmed; "" if none."""
    for column in columns:
        value = row.get(column)
        if value is None:
            continue
        if isinstance(value, float) and math.isnan(value):
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def is_valid_entry(problem: str, solution1: str, solution2: str) -> bool:
    """Accept a row only if it states a problem and at least one solution."""
    return bool(problem) and bool(solution1 or solution2)


def normalize_row(index: int, row: Mapping[str, Any]) -> Optional[FeedbackEntry]:
    """Map one raw row; None when the row is rejected."""
    problem = _cell(row, PROBLEM_COLUMN)
    solution1 = _cell(row, SOLUTION1_COLUMN, SOLUTION1_FALLBACK_COLUMN)
    solution2 = _cell(row, SOLUTION2_COLUMN)

    if not is_valid_entry(problem, solution1, solution2):
        return None

    return FeedbackEntry(
        id=index,
        category=_cell(row, CATEGORY_COLUMN) or DEFAULT_CATEGORY,
        problem=problem,
        solution1=solution1,
        solution2=solution2,
    )


def normalize(raw_rows: Optional[Iterable[Any]]) -> List[FeedbackEntry]:
    """
    Normalize raw sheet rows into feedback entries.

    Args:
        raw_rows: Sequence of column-label to value mappings, in sheet order.

    Returns:
        Entries whose ``id`` is the row's position in ``raw_rows``. Ids keep
        gaps where rows were dropped.
    """
    entries: List[FeedbackEntry] = []
    if not isinstance(raw_rows, Iterable) or isinstance(raw_rows, (str, bytes, Mapping)):
        return entries

    total = 0
    for index, row in enumerate(raw_rows):
        total += 1
        if not isinstance(row, Mapping):
            logger.debug("Skipping row %s: not a mapping (%s)", index, type(row).__name__)
            continue
        entry = normalize_row(index, row)
        if entry is None:
            logger.debug("Dropping row %s: missing problem or solution", index)
            continue
        entries.append(entry)

    logger.debug("Normalized %d of %d rows", len(entries), total)
    return entries


def list_categories(corpus: Sequence[FeedbackEntry]) -> List[str]:
    """Facet values: "All" followed by each category in first-seen order."""
    seen = dict.fromkeys(entry.category for entry in corpus)
    return [ALL_CATEGORIES, *seen]
