"""
GEO Blog Scoring Routes
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from sovtrack.api.deps import get_scoring_engine
from sovtrack.schemas import BlogScoreResponse, Envelope, ScoreBlogRequest
from sovtrack.services import GEOScoringEngine

router = APIRouter()


@router.post("/{brand_id}/blog-scores", response_model=Envelope[BlogScoreResponse])
async def score_blog(
    brand_id: UUID,
    payload: ScoreBlogRequest,
    engine: GEOScoringEngine = Depends(get_scoring_engine),
):
    """Fetch and score a page; replaces any earlier score for the same URL"""
    record = await engine.score_blog(brand_id, payload.url)
    return Envelope[BlogScoreResponse](data=BlogScoreResponse.model_validate(record))


@router.get("/{brand_id}/blog-scores", response_model=Envelope[List[BlogScoreResponse]])
async def list_blog_scores(
    brand_id: UUID,
    engine: GEOScoringEngine = Depends(get_scoring_engine),
):
    """Stored scores, most recent first"""
    records = await engine.list_scores(brand_id)
    return Envelope[List[BlogScoreResponse]](data=[BlogScoreResponse.model_validate(r) for r in records])
