"""
Business Logic Services
"""

from .mention_extractor import MentionExtractor, MentionSet, ResponseText
from .sov_calculator import ShareOfVoiceCalculator, SOVResult
from .prompt_runner import PromptRunner, PromptSpec, PromptOutcome, PromptFailure, PromptBatchResult
from .snapshot_store import SnapshotStore
from .geo_scoring import GEOScoringEngine, GEOFactor, GEOScore, FactorScore, RUBRIC, score_factors, readiness_for
from .analysis_service import AnalysisService, AnalysisOutcome

__all__ = [
    "MentionExtractor",
    "MentionSet",
    "ResponseText",
    "ShareOfVoiceCalculator",
    "SOVResult",
    "PromptRunner",
    "PromptSpec",
    "PromptOutcome",
    "PromptFailure",
    "PromptBatchResult",
    "SnapshotStore",
    "GEOScoringEngine",
    "GEOFactor",
    "GEOScore",
    "FactorScore",
    "RUBRIC",
    "score_factors",
    "readiness_for",
    "AnalysisService",
    "AnalysisOutcome",
]
