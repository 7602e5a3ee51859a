"""
Celery Tasks
"""

from .analysis_tasks import run_brand_analysis, process_scheduled_analyses
from .scoring_tasks import score_blog_url, score_blog_urls

__all__ = [
    "run_brand_analysis",
    "process_scheduled_analyses",
    "score_blog_url",
    "score_blog_urls",
]
