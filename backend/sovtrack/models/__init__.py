"""
Database Models
"""

from .database import (
    Base,
    utcnow,
    # Enums
    CalculationMethod,
    TriggerType,
    Readiness,
    RunStatus,
    FailureKind,
    # Models
    Brand,
    Category,
    Prompt,
    CompetitorEntry,
    PromptRun,
    AIResponse,
    SOVSnapshot,
    BlogScoreRecord,
)

__all__ = [
    "Base",
    "utcnow",
    # Enums
    "CalculationMethod",
    "TriggerType",
    "Readiness",
    "RunStatus",
    "FailureKind",
    # Models
    "Brand",
    "Category",
    "Prompt",
    "CompetitorEntry",
    "PromptRun",
    "AIResponse",
    "SOVSnapshot",
    "BlogScoreRecord",
]
