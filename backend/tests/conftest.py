"""
Pytest Configuration and Shared Fixtures

Every test gets its own SQLite database file. AI provider, page fetcher and
factor evaluator are replaced by in-memory fakes.
"""

import asyncio
import os
import tempfile
from typing import Dict, List, Optional

# Settings are cached on first import, so the environment is fixed up front
_TASK_DB_DIR = tempfile.mkdtemp(prefix="sovtrack-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TASK_DB_DIR, 'tasks.db')}"
os.environ["SNAPSHOT_LOCK_BACKEND"] = "local"
os.environ["AI_PROVIDER"] = "openai"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["ANTHROPIC_API_KEY"] = "sk-ant-test"
os.environ["APP_ENV"] = "test"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sovtrack.adapters.content import FactorEvaluation, FetchedPage
from sovtrack.adapters.llm import AIProviderType, BaseAIAdapter, ProviderReply
from sovtrack.errors import PageFetchError, ProviderError
from sovtrack.models import Base, Brand, Category, CompetitorEntry, Prompt
from sovtrack.services import AnalysisService, PromptRunner
from sovtrack.utils import LocalBrandLocks


# ============================================================================
# Fakes
# ============================================================================

PROMPT_ANSWERS = {
    "What are the best project management tools?": "Acme is a great choice. Many teams also pick Foo.",
    "Which project management vendor is most reliable?": "Acme leads the market on uptime.",
    "Who offers the cheapest plan?": "It depends on the size of your team.",
}


class FakeAdapter(BaseAIAdapter):
    """Scripted provider: answers by prompt text, optional failures and delays"""

    def __init__(
        self,
        answers: Optional[Dict[str, str]] = None,
        failures: Optional[Dict[str, Exception]] = None,
        delays: Optional[Dict[str, float]] = None,
        default_answer: str = "No particular vendor stands out.",
    ):
        super().__init__(api_key="test")
        self.answers = dict(answers if answers is not None else PROMPT_ANSWERS)
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.default_answer = default_answer
        self.fail_all: Optional[Exception] = None
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def provider(self) -> AIProviderType:
        return AIProviderType.OPENAI

    @property
    def default_model(self) -> str:
        return "fake-model"

    def _build_request(self, prompt_text, system_prompt, cfg):
        raise NotImplementedError

    def _extract_text(self, data):
        raise NotImplementedError

    async def complete(self, prompt_text, timeout, config=None, system_prompt=None) -> ProviderReply:
        self.calls.append(prompt_text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(prompt_text)
            if delay:
                await asyncio.sleep(delay)
            if self.fail_all is not None:
                raise self.fail_all
            if prompt_text in self.failures:
                raise self.failures[prompt_text]
            return ProviderReply(
                text=self.answers.get(prompt_text, self.default_answer),
                provider=self.provider,
                model=self.default_model,
                latency_ms=5,
            )
        finally:
            self.in_flight -= 1


class FakeFetcher:
    def __init__(self, pages: Optional[Dict[str, FetchedPage]] = None):
        self.pages = pages or {}
        self.fetched: List[str] = []

    async def fetch(self, url: str) -> FetchedPage:
        self.fetched.append(url)
        if url in self.pages:
            return self.pages[url]
        if "missing" in url:
            raise PageFetchError(f"Fetching {url} returned HTTP 404", {"url": url, "status_code": 404})
        return FetchedPage(
            url=url,
            text="How to choose a project tool. Answer: start with your workflow.",
            title="Choosing a project tool",
            meta_description="A short guide to picking project software.",
        )


class FakeEvaluator:
    """Returns fixed raw scores per factor name"""

    def __init__(self, scores: Optional[Dict[str, float]] = None, failing: Optional[List[str]] = None):
        self.scores = scores or {}
        self.failing = set(failing or [])

    async def evaluate(self, factor, page: FetchedPage) -> FactorEvaluation:
        if factor.name in self.failing:
            raise ProviderError("Evaluator unavailable", {"factor": factor.name})
        return FactorEvaluation(score=self.scores.get(factor.name, 8.0), note=f"{factor.name} checked")


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sovtrack.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def seed_brand(
    session: AsyncSession,
    name: str = "Acme",
    competitors: Optional[List[str]] = None,
    prompts: Optional[List[str]] = None,
) -> Brand:
    brand = Brand(name=name, domain=f"{name.lower().replace(' ', '')}.com", analysis_frequency_days=7)
    session.add(brand)
    await session.flush()

    category = Category(brand_id=brand.id, name="Project Management", position=0)
    session.add(category)
    await session.flush()

    for position, text in enumerate(prompts if prompts is not None else list(PROMPT_ANSWERS)):
        session.add(Prompt(category_id=category.id, brand_id=brand.id, text=text, position=position))

    for position, competitor in enumerate(competitors if competitors is not None else ["Foo", "Bar"], start=1):
        session.add(CompetitorEntry(brand_id=brand.id, name=competitor, position=position))

    await session.commit()
    return brand


@pytest.fixture
async def acme(db_session) -> Brand:
    """Brand "Acme" with competitors Foo and Bar and three prompts"""
    return await seed_brand(db_session)


# ============================================================================
# Services
# ============================================================================

@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def adapter_factory():
    return FakeAdapter


@pytest.fixture
def locks() -> LocalBrandLocks:
    return LocalBrandLocks(timeout=1.0, max_retries=2, backoff=0.01)


@pytest.fixture
def runner(fake_adapter) -> PromptRunner:
    return PromptRunner(fake_adapter, max_concurrency=2, timeout=1.0, batch_deadline=5.0)


@pytest.fixture
def service(db_session, runner, locks) -> AnalysisService:
    return AnalysisService(db_session, runner=runner, locks=locks)


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def fake_evaluator() -> FakeEvaluator:
    return FakeEvaluator()


@pytest.fixture
def evaluator_factory():
    return FakeEvaluator


@pytest.fixture
def brand_factory(db_session):
    """Seed additional brands in the test database"""
    async def make(**kwargs) -> Brand:
        return await seed_brand(db_session, **kwargs)
    return make
