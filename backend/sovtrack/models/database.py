"""
SOV Tracker Database Models
SQLAlchemy ORM (PostgreSQL in production, SQLite locally)
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime,
    ForeignKey, Enum, JSON, Index, UniqueConstraint, Uuid, event
)
from sqlalchemy.orm import declarative_base, relationship

from sovtrack.errors import SnapshotImmutableError

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# ENUMS
# ============================================================================

class CalculationMethod(str, PyEnum):
    ENTITY_COUNT = "ENTITY_COUNT"
    FALLBACK_DISTRIBUTION = "FALLBACK_DISTRIBUTION"


class TriggerType(str, PyEnum):
    INITIAL_ANALYSIS = "initial_analysis"
    MANUAL_RERUN = "manual_rerun"
    SCHEDULED_RUN = "scheduled_run"
    COMPETITOR_ADDED = "competitor_added"
    COMPETITOR_DELETED = "competitor_deleted"


class Readiness(str, PyEnum):
    CRITICAL = "Critical"
    POOR = "Poor"
    MODERATE = "Moderate"
    STRONG = "Strong"
    EXCELLENT = "Excellent"


class RunStatus(str, PyEnum):
    COMPLETED = "completed"
    FAILED = "failed"


class FailureKind(str, PyEnum):
    PROVIDER_TIMEOUT = "ProviderTimeout"
    PROVIDER_ERROR = "ProviderError"
    EMPTY_RESPONSE = "EmptyResponse"


# ============================================================================
# BRAND, CATEGORIES & PROMPTS
# ============================================================================

class Brand(Base):
    """A tracked brand; its own name is always an entity in mention counting"""
    __tablename__ = "brands"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False)

    # Scheduling
    analysis_frequency_days = Column(Integer, default=7)
    last_analyzed_at = Column(DateTime)
    next_analysis_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    categories = relationship(
        "Category", back_populates="brand",
        cascade="all, delete-orphan", order_by="Category.position",
    )
    competitors = relationship(
        "CompetitorEntry", back_populates="brand",
        cascade="all, delete-orphan", order_by="CompetitorEntry.position",
    )

    @property
    def active_competitors(self):
        return [c for c in self.competitors if c.removed_at is None]

    def entity_names(self):
        """Brand first, then active competitors in insertion order"""
        return [self.name.strip()] + [c.name for c in self.active_competitors]


class Category(Base):
    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid4)
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    brand = relationship("Brand", back_populates="categories")
    prompts = relationship(
        "Prompt", back_populates="category",
        cascade="all, delete-orphan", order_by="Prompt.position",
    )


class Prompt(Base):
    """Free-text query sent to the AI provider"""
    __tablename__ = "prompts"

    id = Column(Uuid, primary_key=True, default=uuid4)
    category_id = Column(Uuid, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    # Denormalized for per-brand queries
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)

    text = Column(Text, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    category = relationship("Category", back_populates="prompts")
    response = relationship(
        "AIResponse", back_populates="prompt",
        uselist=False, cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_prompt_brand", "brand_id"),
    )


class CompetitorEntry(Base):
    """Competitor name; soft-deleted so historical snapshots stay readable"""
    __tablename__ = "competitors"

    id = Column(Uuid, primary_key=True, default=uuid4)
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False)

    added_at = Column(DateTime, default=utcnow, nullable=False)
    removed_at = Column(DateTime)

    brand = relationship("Brand", back_populates="competitors")

    @property
    def is_active(self) -> bool:
        return self.removed_at is None

    __table_args__ = (
        UniqueConstraint("brand_id", "position", name="uq_competitor_position"),
    )


# ============================================================================
# PROVIDER CALLS & RESPONSES
# ============================================================================

class PromptRun(Base):
    """One provider call attempt, successful or not"""
    __tablename__ = "prompt_runs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    prompt_id = Column(Uuid, ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)

    provider = Column(String(50), nullable=False)
    status = Column(Enum(RunStatus), nullable=False)
    failure_kind = Column(Enum(FailureKind))
    error_detail = Column(Text)
    latency_ms = Column(Integer)

    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_prompt_run_brand", "brand_id", "completed_at"),
    )


class AIResponse(Base):
    """Current provider answer for a prompt; replaced, never versioned"""
    __tablename__ = "ai_responses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    prompt_id = Column(Uuid, ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False, unique=True)
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)

    text = Column(Text, nullable=False)
    provider = Column(String(50), nullable=False)
    model = Column(String(100))
    latency_ms = Column(Integer)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    prompt = relationship("Prompt", back_populates="response")


# ============================================================================
# SHARE OF VOICE
# ============================================================================

class SOVSnapshot(Base):
    """Immutable point-in-time SOV computation; append-only per brand"""
    __tablename__ = "sov_snapshots"

    id = Column(Uuid, primary_key=True, default=uuid4)
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)

    # Per-brand append order
    sequence = Column(Integer, nullable=False)
    taken_at = Column(DateTime, nullable=False)

    mention_counts = Column(JSON, nullable=False)    # {entity: count}
    total_mentions = Column(Integer, nullable=False)
    share_of_voice = Column(JSON, nullable=False)    # {entity: percent}
    brand_share = Column(Float, nullable=False)
    ai_visibility_score = Column(Float, nullable=False)
    calculation_method = Column(Enum(CalculationMethod), nullable=False)

    # Ordered entity set at snapshot time (brand first)
    entity_names = Column(JSON, nullable=False)
    trigger_type = Column(Enum(TriggerType), nullable=False)
    run_metadata = Column(JSON, default=dict)

    __table_args__ = (
        UniqueConstraint("brand_id", "sequence", name="uq_snapshot_brand_sequence"),
        Index("idx_snapshot_brand_taken", "brand_id", "taken_at"),
    )

    @property
    def is_fallback(self) -> bool:
        return self.calculation_method == CalculationMethod.FALLBACK_DISTRIBUTION


@event.listens_for(SOVSnapshot, "before_update")
def _reject_snapshot_update(mapper, connection, target):
    raise SnapshotImmutableError(
        "SOV snapshots cannot be modified",
        {"snapshot_id": str(target.id), "brand_id": str(target.brand_id)},
    )


@event.listens_for(SOVSnapshot, "before_delete")
def _reject_snapshot_delete(mapper, connection, target):
    raise SnapshotImmutableError(
        "SOV snapshots cannot be deleted",
        {"snapshot_id": str(target.id), "brand_id": str(target.brand_id)},
    )


# ============================================================================
# BLOG SCORING
# ============================================================================

class BlogScoreRecord(Base):
    """Latest GEO score for a (brand, url); overwritten on rescoring"""
    __tablename__ = "blog_scores"

    id = Column(Uuid, primary_key=True, default=uuid4)
    brand_id = Column(Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    url = Column(String(2048), nullable=False)

    overall_score = Column(Float, nullable=False)  # 0-10
    readiness = Column(Enum(Readiness), nullable=False)
    # [{name, rawScore, weightPercent, weightedScore, note}]
    factors = Column(JSON, nullable=False)
    recommendations = Column(JSON, default=list)

    title = Column(String(500))
    meta_description = Column(Text)

    scored_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("brand_id", "url", name="uq_blog_score_brand_url"),
    )
