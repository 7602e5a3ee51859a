"""
Celery task tests

Tasks are called directly (synchronously) against the database configured
in the environment; the AI provider and page fetcher are replaced by fakes.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from sovtrack.errors import PageFetchError, ProviderError, ProviderUnavailable
from sovtrack.models import Base, Brand, SOVSnapshot, TriggerType, utcnow
from sovtrack.services import AnalysisService, GEOScoringEngine, PromptRunner
from sovtrack.utils import LocalBrandLocks
from sovtrack.utils import database
from sovtrack.utils.database import close_db, get_db_context
from sovtrack.workers.celery_app import celery_app
from sovtrack.workers.tasks import analysis_tasks, scoring_tasks

from conftest import FakeAdapter, FakeEvaluator, FakeFetcher, seed_brand


async def _reset_tables():
    try:
        engine = database._get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await close_db()


async def _seed(**kwargs):
    try:
        async with get_db_context() as db:
            brand = await seed_brand(db, **kwargs)
            return brand.id
    finally:
        await close_db()


async def _make_due(brand_id):
    try:
        async with get_db_context() as db:
            brand = await db.get(Brand, brand_id)
            brand.next_analysis_at = utcnow() - timedelta(hours=1)
    finally:
        await close_db()


async def _snapshots(brand_id):
    try:
        async with get_db_context() as db:
            result = await db.execute(
                select(SOVSnapshot).where(SOVSnapshot.brand_id == brand_id).order_by(SOVSnapshot.sequence)
            )
            return list(result.scalars().all())
    finally:
        await close_db()


@pytest.fixture
def brand_id():
    analysis_tasks.run_async(_reset_tables())
    return analysis_tasks.run_async(_seed())


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def fake_services(monkeypatch, adapter):
    """Build services with fakes inside the task's event loop"""
    def analysis_service(db):
        runner = PromptRunner(adapter, max_concurrency=2, timeout=1.0, batch_deadline=5.0)
        return AnalysisService(db, runner=runner, locks=LocalBrandLocks(timeout=1.0, max_retries=1, backoff=0.01))

    def scoring_engine(db):
        return GEOScoringEngine(db, fetcher=FakeFetcher(), evaluator=FakeEvaluator())

    monkeypatch.setattr(analysis_tasks, "AnalysisService", analysis_service)
    monkeypatch.setattr(scoring_tasks, "GEOScoringEngine", scoring_engine)


class TestCeleryApp:
    def test_tasks_registered(self):
        for name in (
            "sovtrack.workers.tasks.analysis_tasks.run_brand_analysis",
            "sovtrack.workers.tasks.analysis_tasks.process_scheduled_analyses",
            "sovtrack.workers.tasks.scoring_tasks.score_blog_url",
            "sovtrack.workers.tasks.scoring_tasks.score_blog_urls",
        ):
            assert name in celery_app.tasks

    def test_beat_schedule(self):
        schedule = celery_app.conf.beat_schedule["process-scheduled-analyses"]
        assert schedule["task"] == "sovtrack.workers.tasks.analysis_tasks.process_scheduled_analyses"
        assert schedule["schedule"] == 3600.0

    def test_analysis_runs_have_their_own_queue(self):
        routes = celery_app.conf.task_routes
        assert routes["sovtrack.workers.tasks.analysis_tasks.run_brand_analysis"] == {"queue": "analysis"}


class TestRunBrandAnalysis:
    """run_brand_analysis task"""

    def test_appends_snapshot(self, brand_id, fake_services):
        result = analysis_tasks.run_brand_analysis(str(brand_id))

        assert result["success"] is True
        assert result["sequence"] == 1
        assert result["failed_prompts"] == 0
        assert result["calculation_method"] == "ENTITY_COUNT"

    def test_scheduled_trigger(self, brand_id, fake_services):
        analysis_tasks.run_brand_analysis(str(brand_id))
        analysis_tasks.run_brand_analysis(str(brand_id), "scheduled_run")

        snapshots = analysis_tasks.run_async(_snapshots(brand_id))
        assert [s.trigger_type for s in snapshots] == [TriggerType.INITIAL_ANALYSIS, TriggerType.SCHEDULED_RUN]

    def test_total_failure_is_retried(self, brand_id, fake_services, adapter):
        adapter.fail_all = ProviderError("down")

        # Called directly, retry re-raises the original error
        with pytest.raises(ProviderUnavailable):
            analysis_tasks.run_brand_analysis(str(brand_id))

        assert analysis_tasks.run_async(_snapshots(brand_id)) == []

    def test_unknown_brand(self, brand_id, fake_services):
        result = analysis_tasks.run_brand_analysis("00000000-0000-0000-0000-000000000000")

        assert result["success"] is False
        assert result["error"]["type"] == "BrandNotFound"


class TestProcessScheduledAnalyses:
    """Beat task that queues due brands"""

    def test_queues_due_brands_once(self, brand_id, monkeypatch):
        queued = []
        monkeypatch.setattr(
            analysis_tasks, "run_brand_analysis", SimpleNamespace(delay=lambda *args: queued.append(args)),
        )
        analysis_tasks.run_async(_make_due(brand_id))

        first = analysis_tasks.process_scheduled_analyses()
        second = analysis_tasks.process_scheduled_analyses()

        assert first["brands_queued"] == 1
        assert queued == [(str(brand_id), "scheduled_run")]
        assert second["brands_queued"] == 0

    def test_nothing_due(self, brand_id, monkeypatch):
        monkeypatch.setattr(analysis_tasks, "run_brand_analysis", SimpleNamespace(delay=lambda *args: None))

        result = analysis_tasks.process_scheduled_analyses()

        assert result == {"success": True, "brands_queued": 0, "brand_ids": []}


class TestScoringTasks:
    """score_blog_url and score_blog_urls"""

    def test_score_blog_url(self, brand_id, fake_services):
        result = scoring_tasks.score_blog_url(str(brand_id), "https://acme.com/blog")

        assert result["success"] is True
        assert result["overall_score"] == 8.0
        assert result["readiness"] == "Strong"

    def test_fetch_failure_is_retried(self, brand_id, fake_services):
        with pytest.raises(PageFetchError):
            scoring_tasks.score_blog_url(str(brand_id), "https://acme.com/missing")

    def test_unknown_brand(self, brand_id, fake_services):
        result = scoring_tasks.score_blog_url("00000000-0000-0000-0000-000000000000", "https://acme.com/blog")

        assert result["success"] is False
        assert result["error"]["type"] == "BrandNotFound"

    def test_score_blog_urls_queues_each(self, brand_id, monkeypatch):
        queued = []
        monkeypatch.setattr(
            scoring_tasks, "score_blog_url", SimpleNamespace(delay=lambda *args: queued.append(args)),
        )

        result = scoring_tasks.score_blog_urls(str(brand_id), ["https://a.com", "https://b.com"])

        assert result["queued"] == 2
        assert queued == [(str(brand_id), "https://a.com"), (str(brand_id), "https://b.com")]
