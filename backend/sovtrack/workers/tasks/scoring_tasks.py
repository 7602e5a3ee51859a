"""
Scoring Tasks
Background GEO scoring of blog URLs
"""

import asyncio
from typing import Dict, List
from uuid import UUID

from celery.utils.log import get_task_logger

from sovtrack.errors import PageFetchError, SOVTrackError
from sovtrack.services import GEOScoringEngine
from sovtrack.utils.database import close_db, get_db_context
from sovtrack.workers.celery_app import celery_app

logger = get_task_logger(__name__)


def run_async(coro):
    """Run async function in sync context"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _score(brand_id: UUID, url: str) -> Dict:
    try:
        async with get_db_context() as db:
            record = await GEOScoringEngine(db).score_blog(brand_id, url)
            return {
                "success": True,
                "brand_id": str(brand_id),
                "url": record.url,
                "overall_score": record.overall_score,
                "readiness": record.readiness.value,
            }
    finally:
        await close_db()


@celery_app.task(
    bind=True,
    name="sovtrack.workers.tasks.scoring_tasks.score_blog_url",
    max_retries=2,
    default_retry_delay=30,
)
def score_blog_url(self, brand_id: str, url: str) -> Dict:
    """Score one URL; fetch failures are retried"""
    try:
        result = run_async(_score(UUID(brand_id), url))
        logger.info(f"Scored {url}: {result['overall_score']} ({result['readiness']})")
        return result

    except PageFetchError as e:
        logger.warning(f"Could not fetch {url}: {e.message}")
        raise self.retry(exc=e)

    except SOVTrackError as e:
        logger.error(f"Scoring {url} failed: {e.error_type}: {e.message}")
        return {"success": False, "brand_id": brand_id, "url": url, "error": e.to_dict()}


@celery_app.task(
    name="sovtrack.workers.tasks.scoring_tasks.score_blog_urls",
)
def score_blog_urls(brand_id: str, urls: List[str]) -> Dict:
    """Queue scoring for several URLs of one brand"""
    for url in urls:
        score_blog_url.delay(brand_id, url)

    return {"success": True, "brand_id": brand_id, "queued": len(urls)}
