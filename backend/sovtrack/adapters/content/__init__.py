"""
Content Adapters - page fetching and per-factor evaluation for GEO scoring
"""

from .page_fetcher import PageFetcher, FetchedPage
from .factor_evaluator import LLMFactorEvaluator, FactorEvaluation

__all__ = [
    "PageFetcher",
    "FetchedPage",
    "LLMFactorEvaluator",
    "FactorEvaluation",
]
