"""
Prompt Runner
Fans a brand's prompt set out to the AI provider with bounded concurrency

Every prompt ends up in the result, either with its answer or with a typed
failure. One slow or failing prompt never aborts its siblings, and a batch
deadline bounds the whole run: prompts still in flight when it elapses are
recorded as ProviderTimeout.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sovtrack.adapters.llm import BaseAIAdapter, ProviderReply
from sovtrack.config import get_settings
from sovtrack.errors import EmptyResponse, ProviderError, ProviderTimeout
from sovtrack.models import AIResponse, FailureKind, PromptRun, RunStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass
class PromptSpec:
    prompt_id: UUID
    text: str


@dataclass
class PromptFailure:
    kind: FailureKind
    detail: str


@dataclass
class PromptOutcome:
    """Result for one prompt: a reply or a failure, never both"""
    prompt_id: UUID
    prompt_text: str
    started_at: datetime
    reply: Optional[ProviderReply] = None
    failure: Optional[PromptFailure] = None

    @property
    def ok(self) -> bool:
        return self.reply is not None


@dataclass
class PromptBatchResult:
    outcomes: List[PromptOutcome] = field(default_factory=list)
    deadline_exceeded: bool = False

    @property
    def successes(self) -> List[PromptOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failures(self) -> List[PromptOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and not self.successes

    def failure_summary(self) -> List[dict]:
        return [
            {"promptId": str(o.prompt_id), "kind": o.failure.kind.value, "detail": o.failure.detail}
            for o in self.failures
        ]


class PromptRunner:
    """Runs prompts against one adapter with at most N calls in flight"""

    def __init__(
        self,
        adapter: BaseAIAdapter,
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        batch_deadline: Optional[float] = None,
    ):
        settings = get_settings()
        self.adapter = adapter
        self.max_concurrency = max_concurrency or settings.PROMPT_MAX_CONCURRENCY
        self.timeout = timeout or settings.PROMPT_TIMEOUT_SECONDS
        self.batch_deadline = batch_deadline or settings.PROMPT_BATCH_DEADLINE_SECONDS

    async def _call(self, spec: PromptSpec, semaphore: asyncio.Semaphore) -> PromptOutcome:
        async with semaphore:
            started_at = utcnow()
            outcome = PromptOutcome(prompt_id=spec.prompt_id, prompt_text=spec.text, started_at=started_at)
            try:
                # Hard bound on top of the adapter's own HTTP timeout
                outcome.reply = await asyncio.wait_for(
                    self.adapter.complete(spec.text, timeout=self.timeout),
                    timeout=self.timeout,
                )
            except (asyncio.TimeoutError, ProviderTimeout) as e:
                outcome.failure = PromptFailure(FailureKind.PROVIDER_TIMEOUT, str(e) or f"Timed out after {self.timeout}s")
            except EmptyResponse as e:
                outcome.failure = PromptFailure(FailureKind.EMPTY_RESPONSE, str(e))
            except ProviderError as e:
                outcome.failure = PromptFailure(FailureKind.PROVIDER_ERROR, str(e))
            except Exception as e:
                logger.exception(f"Unexpected adapter error for prompt {spec.prompt_id}")
                outcome.failure = PromptFailure(FailureKind.PROVIDER_ERROR, f"{type(e).__name__}: {e}")

            if outcome.failure:
                logger.warning(
                    f"Prompt {spec.prompt_id} failed ({outcome.failure.kind.value}): {outcome.failure.detail}"
                )
            return outcome

    async def run(self, prompts: Sequence[PromptSpec]) -> PromptBatchResult:
        """
        Execute all prompts and return one outcome per prompt, in input order.

        Never raises for provider failures; callers inspect the result.
        """
        if not prompts:
            return PromptBatchResult()

        semaphore = asyncio.Semaphore(self.max_concurrency)
        batch_started = utcnow()
        tasks = [asyncio.create_task(self._call(spec, semaphore)) for spec in prompts]

        done, pending = await asyncio.wait(tasks, timeout=self.batch_deadline)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        result = PromptBatchResult(deadline_exceeded=bool(pending))
        for spec, task in zip(prompts, tasks):
            if task in done:
                result.outcomes.append(task.result())
            else:
                result.outcomes.append(PromptOutcome(
                    prompt_id=spec.prompt_id,
                    prompt_text=spec.text,
                    started_at=batch_started,
                    failure=PromptFailure(
                        FailureKind.PROVIDER_TIMEOUT,
                        f"Batch deadline of {self.batch_deadline}s elapsed",
                    ),
                ))

        if pending:
            logger.warning(f"Batch deadline hit: {len(pending)} of {len(prompts)} prompts cut off")
        logger.info(
            f"Prompt batch finished: {len(result.successes)} succeeded, {len(result.failures)} failed"
        )
        return result

    async def persist(self, db: AsyncSession, brand_id: UUID, result: PromptBatchResult) -> int:
        """
        Record every attempt as a PromptRun and replace the stored AIResponse
        of each successful prompt. Failed prompts keep their previous answer.

        Returns the number of responses written.
        """
        provider = self.adapter.provider.value
        written = 0

        for outcome in result.outcomes:
            db.add(PromptRun(
                prompt_id=outcome.prompt_id,
                brand_id=brand_id,
                provider=provider,
                status=RunStatus.COMPLETED if outcome.ok else RunStatus.FAILED,
                failure_kind=None if outcome.ok else outcome.failure.kind,
                error_detail=None if outcome.ok else outcome.failure.detail,
                latency_ms=outcome.reply.latency_ms if outcome.ok else None,
                started_at=outcome.started_at,
            ))

            if not outcome.ok:
                continue

            existing = await db.execute(
                select(AIResponse).where(AIResponse.prompt_id == outcome.prompt_id)
            )
            previous = existing.scalar_one_or_none()
            if previous is not None:
                await db.delete(previous)
                await db.flush()

            db.add(AIResponse(
                prompt_id=outcome.prompt_id,
                brand_id=brand_id,
                text=outcome.reply.text,
                provider=provider,
                model=outcome.reply.model,
                latency_ms=outcome.reply.latency_ms,
            ))
            written += 1

        await db.flush()
        return written
