"""
Route dependencies
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sovtrack.services import AnalysisService, GEOScoringEngine
from sovtrack.utils import get_db


async def get_analysis_service(db: AsyncSession = Depends(get_db)) -> AnalysisService:
    return AnalysisService(db)


async def get_scoring_engine(db: AsyncSession = Depends(get_db)) -> GEOScoringEngine:
    return GEOScoringEngine(db)
