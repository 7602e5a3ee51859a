"""
GEO Blog Scoring Schemas
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sovtrack.models import Readiness
from .common import CamelModel


class ScoreBlogRequest(CamelModel):
    url: str


class FactorScoreResponse(CamelModel):
    name: str
    raw_score: float
    weight_percent: int
    weighted_score: float
    note: str = ""


class BlogScoreResponse(CamelModel):
    """Stored BlogScoreRecord"""
    id: UUID
    brand_id: UUID
    url: str
    overall_score: float
    readiness: Readiness
    factors: List[FactorScoreResponse]
    recommendations: List[str] = []
    title: Optional[str] = None
    meta_description: Optional[str] = None
    scored_at: datetime
