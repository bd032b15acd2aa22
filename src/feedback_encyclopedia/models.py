"""
Data models for Feedback Encyclopedia
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


CATEGORY_COLUMN = "대분류"
PROBLEM_COLUMN = "문제점"
SOLUTION1_COLUMN = "솔루션 (버전1)"
SOLUTION1_FALLBACK_COLUMN = "솔루션"
SOLUTION2_COLUMN = "솔루션 (버전2)"

DEFAULT_CATEGORY = "기타"
ALL_CATEGORIES = "All"


class FeedbackEntry(BaseModel):
    """One normalized row of the feedback corpus"""
    id: int = Field(..., ge=0, description="Ordinal position of the row in the fetched sheet")
    category: str = Field(default=DEFAULT_CATEGORY, min_length=1)
    problem: str = Field(..., min_length=1)
    solution1: str = Field(default="")
    solution2: str = Field(default="")

    class Config:
        frozen = True

    @property
    def solutions(self) -> List[str]:
        """Non-empty solution versions, first version first"""
        return [s for s in (self.solution1, self.solution2) if s]

    def to_source_row(self) -> Dict[str, str]:
        """Express the entry in the sheet's column labels"""
        return {
            CATEGORY_COLUMN: self.category,
            PROBLEM_COLUMN: self.problem,
            SOLUTION1_COLUMN: self.solution1,
            SOLUTION2_COLUMN: self.solution2,
        }


# Ordered most relevant first, no duplicates, at most top_k long
RankedResult = List[FeedbackEntry]


class RankingRequest(BaseModel):
    """Body of the AI search endpoint"""
    query: Optional[str] = Field(None, description="Problem description or draft text")


class ErrorResponse(BaseModel):
    """Error payload returned by the retrieval API"""
    error: str
    details: Optional[str] = None


class APIResponse(BaseModel):
    """Standard envelope for informational endpoints"""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
