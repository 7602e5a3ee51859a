"""
Analysis Tasks
Queued and scheduled Share of Voice runs
"""

import asyncio
from typing import Dict, Optional
from uuid import UUID

from celery.utils.log import get_task_logger

from sovtrack.errors import ProviderUnavailable, SnapshotWriteConflict, SOVTrackError
from sovtrack.models import TriggerType
from sovtrack.services import AnalysisService
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


async def _analyze(brand_id: UUID, trigger: Optional[TriggerType]) -> Dict:
    try:
        async with get_db_context() as db:
            outcome = await AnalysisService(db).run_analysis(brand_id, trigger)
            return {
                "success": True,
                "brand_id": str(brand_id),
                "snapshot_id": str(outcome.snapshot.id),
                "sequence": outcome.snapshot.sequence,
                "calculation_method": outcome.snapshot.calculation_method.value,
                "failed_prompts": len(outcome.batch.failures),
            }
    finally:
        # The engine's pool is bound to this task's event loop
        await close_db()


async def _claim_due() -> list:
    try:
        async with get_db_context() as db:
            return await AnalysisService(db).claim_due_brands()
    finally:
        await close_db()


@celery_app.task(
    bind=True,
    name="sovtrack.workers.tasks.analysis_tasks.run_brand_analysis",
    max_retries=3,
    default_retry_delay=60,
)
def run_brand_analysis(self, brand_id: str, trigger: Optional[str] = None) -> Dict:
    """
    Run a full analysis for one brand.

    Args:
        brand_id: Brand UUID
        trigger: TriggerType value; inferred from history when omitted

    Lock contention and total provider failure are retried.
    """
    trigger_type = TriggerType(trigger) if trigger else None

    try:
        result = run_async(_analyze(UUID(brand_id), trigger_type))
        logger.info(f"Analysis for brand {brand_id} appended snapshot #{result['sequence']}")
        return result

    except (SnapshotWriteConflict, ProviderUnavailable) as e:
        logger.warning(f"Analysis for brand {brand_id} failed ({e.error_type}), retrying")
        raise self.retry(exc=e)

    except SOVTrackError as e:
        logger.error(f"Analysis for brand {brand_id} failed: {e.error_type}: {e.message}")
        return {"success": False, "brand_id": brand_id, "error": e.to_dict()}


@celery_app.task(
    name="sovtrack.workers.tasks.analysis_tasks.process_scheduled_analyses",
)
def process_scheduled_analyses() -> Dict:
    """
    Queue an analysis for every brand whose next run is due.
    Runs hourly from beat.
    """
    brand_ids = run_async(_claim_due())
    logger.info(f"Found {len(brand_ids)} brands due for analysis")

    for brand_id in brand_ids:
        run_brand_analysis.delay(str(brand_id), TriggerType.SCHEDULED_RUN.value)

    return {
        "success": True,
        "brands_queued": len(brand_ids),
        "brand_ids": [str(b) for b in brand_ids],
    }
