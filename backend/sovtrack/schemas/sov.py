"""
Share of Voice Schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from sovtrack.models import CalculationMethod, TriggerType
from .common import CamelModel


class SOVSnapshotResponse(CamelModel):
    """Full snapshot as appended to a brand's history"""
    id: UUID
    brand_id: UUID
    sequence: int
    taken_at: datetime
    share_of_voice: Dict[str, float]
    mention_counts: Dict[str, int]
    total_mentions: int
    brand_share: float
    ai_visibility_score: float
    calculation_method: CalculationMethod
    entity_names: List[str]
    trigger_type: TriggerType
    run_metadata: Optional[Dict[str, Any]] = None


class LatestSOVResponse(CamelModel):
    """GetLatestSOV payload"""
    share_of_voice: Dict[str, float]
    mention_counts: Dict[str, int]
    total_mentions: int
    brand_share: float
    ai_visibility_score: float
    calculation_method: CalculationMethod
    taken_at: datetime


class TrendPoint(BaseModel):
    x: datetime
    y: float


class ChartData(BaseModel):
    datasets: Dict[str, List[TrendPoint]]


class DateRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: Optional[datetime] = Field(None, alias="from")
    to: Optional[datetime] = None


class TrendResponse(CamelModel):
    """GetTrend payload"""
    chart_data: ChartData
    brand_names: List[str]
    total_snapshots: int
    date_range: DateRange


class PromptFailureResponse(CamelModel):
    prompt_id: UUID
    kind: str
    detail: str


class AnalysisResponse(CamelModel):
    """RunAnalysis payload: the new snapshot plus per-prompt failures"""
    snapshot: SOVSnapshotResponse
    prompts_total: int
    prompts_succeeded: int
    prompts_failed: int
    failures: List[PromptFailureResponse] = []


class CompetitorCreate(CamelModel):
    name: str


class CompetitorResponse(CamelModel):
    name: str
    position: int
    added_at: datetime


class CompetitorListResponse(CamelModel):
    brand_id: UUID
    brand_name: str
    competitors: List[CompetitorResponse]
