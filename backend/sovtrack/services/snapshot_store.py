"""
Snapshot Store
Append-only history of SOV snapshots per brand

Snapshots are never updated or deleted. The store assigns each new snapshot
the next per-brand sequence number and a taken_at strictly after the previous
one, so history always reads back in append order. Callers hold the brand's
snapshot lock (see utils.locks) across append and commit.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sovtrack.errors import SnapshotWriteConflict
from sovtrack.models import SOVSnapshot, TriggerType, utcnow
from .sov_calculator import SOVResult

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Persistence for SOVSnapshot rows. Exposes no update or delete"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        brand_id: UUID,
        result: SOVResult,
        trigger: TriggerType,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SOVSnapshot:
        previous = await self.latest(brand_id)

        taken_at = utcnow()
        sequence = 1
        if previous is not None:
            sequence = previous.sequence + 1
            # Clock skew or sub-resolution writes must not reorder history
            if taken_at <= previous.taken_at:
                taken_at = previous.taken_at + timedelta(microseconds=1)

        snapshot = SOVSnapshot(
            brand_id=brand_id,
            sequence=sequence,
            taken_at=taken_at,
            mention_counts=dict(result.mention_counts),
            total_mentions=result.total_mentions,
            share_of_voice=dict(result.share_of_voice),
            brand_share=result.brand_share,
            ai_visibility_score=result.ai_visibility_score,
            calculation_method=result.calculation_method,
            entity_names=list(result.entity_names),
            trigger_type=trigger,
            run_metadata=dict(metadata or {}),
        )
        self.db.add(snapshot)

        try:
            await self.db.flush()
        except IntegrityError as e:
            raise SnapshotWriteConflict(
                "Another snapshot was appended concurrently",
                {"brand_id": str(brand_id), "sequence": sequence},
            ) from e

        logger.info(
            f"Appended snapshot #{sequence} for brand {brand_id} "
            f"({trigger.value}, {result.calculation_method.value}, "
            f"brand share {result.brand_share:.2f}%)"
        )
        return snapshot

    async def latest(self, brand_id: UUID) -> Optional[SOVSnapshot]:
        result = await self.db.execute(
            select(SOVSnapshot)
            .where(SOVSnapshot.brand_id == brand_id)
            .order_by(SOVSnapshot.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def query(
        self,
        brand_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[SOVSnapshot]:
        """Snapshots with start <= taken_at <= end, oldest first"""
        conditions = [SOVSnapshot.brand_id == brand_id]
        if start is not None:
            conditions.append(SOVSnapshot.taken_at >= start)
        if end is not None:
            conditions.append(SOVSnapshot.taken_at <= end)

        result = await self.db.execute(
            select(SOVSnapshot)
            .where(and_(*conditions))
            .order_by(SOVSnapshot.taken_at.asc(), SOVSnapshot.sequence.asc())
        )
        return list(result.scalars().all())
