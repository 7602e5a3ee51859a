"""
Analysis Service
Orchestrates PromptRunner -> MentionExtractor -> ShareOfVoiceCalculator -> SnapshotStore

Every path that appends a snapshot (analysis runs, competitor add/delete)
holds the brand's snapshot lock across "read entity list -> recompute ->
append -> commit", so concurrent triggers for one brand never interleave.
A sequence conflict on append rolls back and reruns that whole step.
Provider calls happen before the lock is taken.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sovtrack.adapters.llm import get_adapter
from sovtrack.config import get_settings
from sovtrack.errors import (
    BrandNotFound, CompetitorNotFound, InvalidCompetitorName, ProviderUnavailable, SnapshotNotFound,
    SnapshotWriteConflict,
)
from sovtrack.models import (
    AIResponse, Brand, Category, CompetitorEntry, Prompt, SOVSnapshot, TriggerType, utcnow,
)
from sovtrack.schemas import SOVSnapshotResponse
from sovtrack.utils.locks import BrandLocks, get_brand_locks
from .mention_extractor import MentionExtractor, ResponseText
from .prompt_runner import PromptBatchResult, PromptRunner, PromptSpec
from .snapshot_store import SnapshotStore
from .sov_calculator import ShareOfVoiceCalculator

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; convert aware query bounds to match"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass
class AnalysisOutcome:
    snapshot: SOVSnapshot
    batch: PromptBatchResult


class AnalysisService:
    """Brand-level SOV operations: analysis runs, competitor changes, trends"""

    def __init__(
        self,
        db: AsyncSession,
        runner: Optional[PromptRunner] = None,
        locks: Optional[BrandLocks] = None,
    ):
        self.db = db
        self._runner = runner
        self.locks = locks or get_brand_locks()
        self.snapshots = SnapshotStore(db)

    @property
    def runner(self) -> PromptRunner:
        if self._runner is None:
            self._runner = PromptRunner(get_adapter(get_settings().AI_PROVIDER))
        return self._runner

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def _load_brand(self, brand_id: UUID) -> Brand:
        result = await self.db.execute(
            select(Brand)
            .where(Brand.id == brand_id)
            .options(selectinload(Brand.competitors), selectinload(Brand.categories))
            .execution_options(populate_existing=True)
        )
        brand = result.scalar_one_or_none()
        if brand is None:
            raise BrandNotFound(f"Brand {brand_id} not found", {"brand_id": str(brand_id)})
        return brand

    async def get_prompts_for_brand(self, brand_id: UUID) -> List[Prompt]:
        """Active prompts in category order, then prompt order"""
        result = await self.db.execute(
            select(Prompt)
            .join(Category, Prompt.category_id == Category.id)
            .where(and_(Prompt.brand_id == brand_id, Prompt.is_active == True))
            .order_by(Category.position, Prompt.position)
        )
        return list(result.scalars().all())

    async def _stored_responses(self, brand_id: UUID) -> List[ResponseText]:
        result = await self.db.execute(
            select(AIResponse)
            .join(Prompt, AIResponse.prompt_id == Prompt.id)
            .where(and_(AIResponse.brand_id == brand_id, Prompt.is_active == True))
        )
        return [
            ResponseText(text=r.text, prompt_id=r.prompt_id, response_id=r.id)
            for r in result.scalars().all()
        ]

    # =========================================================================
    # RECOMPUTE
    # =========================================================================

    async def _recompute(
        self,
        brand: Brand,
        trigger: TriggerType,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SOVSnapshot:
        """Extract, aggregate and append. Caller holds the brand lock"""
        entity_names = brand.entity_names()
        responses = await self._stored_responses(brand.id)

        mention_sets = MentionExtractor(entity_names).extract_all(responses)
        result = ShareOfVoiceCalculator(entity_names[0], entity_names).calculate(mention_sets)

        run_metadata = {
            "responsesAnalyzed": result.responses_analyzed,
            "totalCategories": len(brand.categories),
        }
        run_metadata.update(metadata or {})

        return await self.snapshots.append(brand.id, result, trigger, run_metadata)

    async def _write_snapshot(self, brand_id: UUID, write: Callable[[], Awaitable[T]]) -> T:
        """
        Run write() and commit under the brand lock.

        A SnapshotWriteConflict from a writer outside this lock registry
        rolls the session back and the whole step runs again from a fresh
        brand read, with the same retry budget and backoff as lock acquisition.
        """
        attempts = self.locks.max_retries + 1

        for attempt in range(attempts):
            async with self.locks.hold(brand_id):
                try:
                    result = await write()
                    await self.db.commit()
                    return result
                except ProviderUnavailable:
                    raise
                except SnapshotWriteConflict:
                    await self.db.rollback()
                    if attempt == attempts - 1:
                        raise
                except Exception:
                    await self.db.rollback()
                    raise

            delay = self.locks.backoff * (2 ** attempt)
            logger.warning(
                f"Snapshot write conflict for brand {brand_id}, retry {attempt + 1}/{self.locks.max_retries} in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    async def recompute(self, brand_id: UUID, trigger: TriggerType = TriggerType.MANUAL_RERUN) -> SOVSnapshot:
        """Recalculate from stored responses without calling the provider"""

        async def write() -> SOVSnapshot:
            brand = await self._load_brand(brand_id)
            return await self._recompute(brand, trigger)

        return await self._write_snapshot(brand_id, write)

    # =========================================================================
    # ANALYSIS RUNS
    # =========================================================================

    async def run_analysis(self, brand_id: UUID, trigger: Optional[TriggerType] = None) -> AnalysisOutcome:
        """
        RunAnalysis: execute every active prompt, store the answers and append
        a fresh snapshot.

        Raises ProviderUnavailable (with the latest snapshot as partial data)
        when every prompt fails; nothing is appended in that case.
        """
        await self._load_brand(brand_id)
        prompts = await self.get_prompts_for_brand(brand_id)

        batch = await self.runner.run([PromptSpec(prompt_id=p.id, text=p.text) for p in prompts])

        async def write() -> SOVSnapshot:
            await self.runner.persist(self.db, brand_id, batch)

            if batch.all_failed:
                await self.db.commit()
                latest = await self.snapshots.latest(brand_id)
                logger.error(f"All {len(batch.outcomes)} prompts failed for brand {brand_id}")
                raise ProviderUnavailable(
                    f"AI provider failed for all {len(batch.outcomes)} prompts",
                    {"brand_id": str(brand_id), "failures": batch.failure_summary()},
                    partial={
                        "latestSnapshot": SOVSnapshotResponse.model_validate(latest) if latest else None,
                        "failures": batch.failure_summary(),
                    },
                )

            brand = await self._load_brand(brand_id)
            run_trigger = trigger
            if run_trigger is None:
                previous = await self.snapshots.latest(brand_id)
                run_trigger = TriggerType.MANUAL_RERUN if previous else TriggerType.INITIAL_ANALYSIS

            snapshot = await self._recompute(brand, run_trigger, {
                "totalPrompts": len(batch.outcomes),
                "succeededPrompts": len(batch.successes),
                "failedPrompts": len(batch.failures),
                "deadlineExceeded": batch.deadline_exceeded,
            })

            now = utcnow()
            frequency = brand.analysis_frequency_days or get_settings().DEFAULT_ANALYSIS_FREQUENCY_DAYS
            brand.last_analyzed_at = now
            brand.next_analysis_at = now + timedelta(days=frequency)
            return snapshot

        snapshot = await self._write_snapshot(brand_id, write)
        return AnalysisOutcome(snapshot=snapshot, batch=batch)

    async def claim_due_brands(self, now: Optional[datetime] = None) -> List[UUID]:
        """
        Brands whose scheduled analysis is due. Their next run is pushed out
        by one period right away so the next beat does not queue them again.
        """
        now = now or utcnow()
        result = await self.db.execute(
            select(Brand).where(
                and_(
                    Brand.next_analysis_at.isnot(None),
                    Brand.next_analysis_at <= now,
                )
            )
        )
        brands = list(result.scalars().all())

        default_frequency = get_settings().DEFAULT_ANALYSIS_FREQUENCY_DAYS
        for brand in brands:
            brand.next_analysis_at = now + timedelta(days=brand.analysis_frequency_days or default_frequency)
        await self.db.commit()

        return [brand.id for brand in brands]

    # =========================================================================
    # COMPETITORS
    # =========================================================================

    async def get_brand(self, brand_id: UUID) -> Brand:
        """Brand with its competitor entries loaded"""
        return await self._load_brand(brand_id)

    async def add_competitor(self, brand_id: UUID, name: str) -> SOVSnapshot:
        """AddCompetitor: extend the entity list and return the recomputed snapshot"""
        name = (name or "").strip()
        if not name:
            raise InvalidCompetitorName("Competitor name cannot be empty", {"brand_id": str(brand_id)})

        async def write() -> SOVSnapshot:
            brand = await self._load_brand(brand_id)
            taken = {n.lower() for n in brand.entity_names()}
            if name.lower() in taken:
                raise InvalidCompetitorName(
                    f"'{name}' is already tracked for this brand",
                    {"brand_id": str(brand_id), "name": name},
                )

            # Positions are never reused, including those of removed entries
            position = max((c.position for c in brand.competitors), default=0) + 1
            brand.competitors.append(CompetitorEntry(name=name, position=position))
            await self.db.flush()

            return await self._recompute(brand, TriggerType.COMPETITOR_ADDED, {"competitor": name})

        snapshot = await self._write_snapshot(brand_id, write)
        logger.info(f"Added competitor '{name}' to brand {brand_id}")
        return snapshot

    async def delete_competitor(self, brand_id: UUID, name: str) -> SOVSnapshot:
        """DeleteCompetitor: soft-delete the entry and return the recomputed snapshot"""
        key = (name or "").strip().lower()

        async def write() -> SOVSnapshot:
            brand = await self._load_brand(brand_id)
            entry = next((c for c in brand.active_competitors if c.name.lower() == key), None)
            if entry is None:
                raise CompetitorNotFound(
                    f"Competitor '{name}' is not tracked for this brand",
                    {"brand_id": str(brand_id), "name": name},
                )

            entry.removed_at = utcnow()
            await self.db.flush()

            return await self._recompute(brand, TriggerType.COMPETITOR_DELETED, {"competitor": entry.name})

        snapshot = await self._write_snapshot(brand_id, write)
        logger.info(f"Deleted competitor '{snapshot.run_metadata['competitor']}' from brand {brand_id}")
        return snapshot

    # =========================================================================
    # READS
    # =========================================================================

    async def get_latest_sov(self, brand_id: UUID) -> SOVSnapshot:
        await self._load_brand(brand_id)
        snapshot = await self.snapshots.latest(brand_id)
        if snapshot is None:
            raise SnapshotNotFound(
                "Brand has not been analyzed yet",
                {"brand_id": str(brand_id)},
            )
        return snapshot

    async def get_trend(
        self,
        brand_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        GetTrend: one series per entity ever tracked in the window.

        An entity contributes points only for snapshots that included it, so a
        deleted competitor's line simply stops.
        """
        await self._load_brand(brand_id)
        start, end = _naive_utc(start), _naive_utc(end)
        snapshots = await self.snapshots.query(brand_id, start, end)

        brand_names: List[str] = []
        datasets: Dict[str, List[Dict[str, Any]]] = {}
        for snapshot in snapshots:
            for entity in snapshot.entity_names:
                if entity not in datasets:
                    brand_names.append(entity)
                    datasets[entity] = []
                datasets[entity].append({
                    "x": snapshot.taken_at,
                    "y": snapshot.share_of_voice.get(entity, 0.0),
                })

        return {
            "chart_data": {"datasets": datasets},
            "brand_names": brand_names,
            "total_snapshots": len(snapshots),
            "date_range": {
                "from": start or (snapshots[0].taken_at if snapshots else None),
                "to": end or (snapshots[-1].taken_at if snapshots else None),
            },
        }
