"""
Share of Voice Routes
Analysis runs, competitor management and SOV reads for one brand
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from sovtrack.api.deps import get_analysis_service
from sovtrack.schemas import (
    AnalysisResponse, CompetitorCreate, CompetitorListResponse, CompetitorResponse,
    Envelope, LatestSOVResponse, PromptFailureResponse, SOVSnapshotResponse, TrendResponse,
)
from sovtrack.services import AnalysisService

router = APIRouter()


@router.post("/{brand_id}/analysis", response_model=Envelope[AnalysisResponse])
async def run_analysis(
    brand_id: UUID,
    service: AnalysisService = Depends(get_analysis_service),
):
    """
    Run every active prompt through the AI provider and append a new snapshot.

    Individual prompt failures are reported in the payload; if all prompts
    fail the response is a 503 carrying the previous snapshot.
    """
    outcome = await service.run_analysis(brand_id)
    batch = outcome.batch

    return Envelope[AnalysisResponse](data=AnalysisResponse(
        snapshot=SOVSnapshotResponse.model_validate(outcome.snapshot),
        prompts_total=len(batch.outcomes),
        prompts_succeeded=len(batch.successes),
        prompts_failed=len(batch.failures),
        failures=[
            PromptFailureResponse(prompt_id=o.prompt_id, kind=o.failure.kind.value, detail=o.failure.detail)
            for o in batch.failures
        ],
    ))


# ============================================================================
# COMPETITORS
# ============================================================================

@router.get("/{brand_id}/competitors", response_model=Envelope[CompetitorListResponse])
async def list_competitors(
    brand_id: UUID,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Active competitors in insertion order"""
    brand = await service.get_brand(brand_id)
    return Envelope[CompetitorListResponse](data=CompetitorListResponse(
        brand_id=brand.id,
        brand_name=brand.name,
        competitors=[CompetitorResponse.model_validate(c) for c in brand.active_competitors],
    ))


@router.post("/{brand_id}/competitors", response_model=Envelope[SOVSnapshotResponse])
async def add_competitor(
    brand_id: UUID,
    payload: CompetitorCreate,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Track a new competitor and return the recomputed snapshot"""
    snapshot = await service.add_competitor(brand_id, payload.name)
    return Envelope[SOVSnapshotResponse](data=SOVSnapshotResponse.model_validate(snapshot))


@router.delete("/{brand_id}/competitors/{name:path}", response_model=Envelope[SOVSnapshotResponse])
async def delete_competitor(
    brand_id: UUID,
    name: str,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Stop tracking a competitor and return the recomputed snapshot"""
    snapshot = await service.delete_competitor(brand_id, name)
    return Envelope[SOVSnapshotResponse](data=SOVSnapshotResponse.model_validate(snapshot))


# ============================================================================
# SOV READS
# ============================================================================

@router.get("/{brand_id}/sov", response_model=Envelope[LatestSOVResponse])
async def get_latest_sov(
    brand_id: UUID,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Most recent snapshot's distribution"""
    snapshot = await service.get_latest_sov(brand_id)
    return Envelope[LatestSOVResponse](data=LatestSOVResponse.model_validate(snapshot))


@router.get("/{brand_id}/sov-trends", response_model=Envelope[TrendResponse])
async def get_sov_trends(
    brand_id: UUID,
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    service: AnalysisService = Depends(get_analysis_service),
):
    """Per-entity SOV time series between from and to (inclusive)"""
    trend = await service.get_trend(brand_id, start, end)
    return Envelope[TrendResponse](data=TrendResponse.model_validate(trend))
