"""
Pydantic Schemas for API Request/Response validation
"""

from .common import CamelModel, Envelope, ErrorDetail
from .sov import (
    SOVSnapshotResponse,
    LatestSOVResponse,
    TrendPoint,
    ChartData,
    DateRange,
    TrendResponse,
    PromptFailureResponse,
    AnalysisResponse,
    CompetitorCreate,
    CompetitorResponse,
    CompetitorListResponse,
)
from .blog import (
    ScoreBlogRequest,
    FactorScoreResponse,
    BlogScoreResponse,
)

__all__ = [
    "CamelModel",
    "Envelope",
    "ErrorDetail",
    "SOVSnapshotResponse",
    "LatestSOVResponse",
    "TrendPoint",
    "ChartData",
    "DateRange",
    "TrendResponse",
    "PromptFailureResponse",
    "AnalysisResponse",
    "CompetitorCreate",
    "CompetitorResponse",
    "CompetitorListResponse",
    "ScoreBlogRequest",
    "FactorScoreResponse",
    "BlogScoreResponse",
]
