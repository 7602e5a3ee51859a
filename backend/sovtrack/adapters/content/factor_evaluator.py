"""
GEO Factor Evaluator
Asks an AI provider for a 0-10 rating of one rubric factor
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from sovtrack.adapters.llm import BaseAIAdapter, ProviderConfig, get_adapter
from sovtrack.config import get_settings
from sovtrack.errors import ProviderError
from .page_fetcher import FetchedPage

logger = logging.getLogger(__name__)


@dataclass
class FactorEvaluation:
    score: float
    note: str = ""


class LLMFactorEvaluator:
    """Implements EvaluateFactor(factorName, pageText) with an AI adapter"""

    SYSTEM_PROMPT = (
        "You are an SEO and AI content evaluation expert. You rate pages for "
        "Generative Engine Optimization (GEO): how likely AI answer engines are "
        "to surface and cite them."
    )

    PROMPT_TEMPLATE = """Rate the page below on ONE GEO factor.

Factor: {name}
What to evaluate: {guidance}

Scoring: 0 means the factor is absent, 10 means it is excellent.
Respond with JSON only, no explanation: {{"score": <number 0-10>, "note": "<one sentence>"}}

Page URL: {url}
Title: {title}
Content:
<<< {text} >>>"""

    JSON_PATTERN = re.compile(r"\{.*\}", re.DOTALL)
    NUMBER_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")
    OUT_OF_TEN_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:/|out of)\s*10\b", re.IGNORECASE)
    SCORE_PATTERN = re.compile(r"\bscore\b\D{0,15}?(\d+(?:\.\d+)?)", re.IGNORECASE)

    def __init__(self, adapter: Optional[BaseAIAdapter] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.adapter = adapter or get_adapter(settings.AI_PROVIDER)
        self.timeout = timeout or settings.PROMPT_TIMEOUT_SECONDS
        self.config = ProviderConfig(
            model=self.adapter.default_model,
            temperature=settings.GEO_EVALUATION_TEMPERATURE,
            max_tokens=200,
        )

    def parse(self, reply_text: str) -> FactorEvaluation:
        """
        Read a score out of the reply.

        Tried in order: a JSON object, "N/10" or "N out of 10", a number
        after the word "score", and finally the last number in the reply.
        """
        match = self.JSON_PATTERN.search(reply_text)
        if match:
            try:
                payload = json.loads(match.group(0))
                return FactorEvaluation(
                    score=float(payload["score"]),
                    note=str(payload.get("note", "")).strip(),
                )
            except (ValueError, KeyError, TypeError):
                pass

        for pattern in (self.OUT_OF_TEN_PATTERN, self.SCORE_PATTERN):
            found = pattern.search(reply_text)
            if found:
                return FactorEvaluation(score=float(found.group(1)))

        numbers = self.NUMBER_PATTERN.findall(reply_text)
        if not numbers:
            raise ProviderError("Evaluator reply contained no score", {"reply": reply_text[:200]})
        return FactorEvaluation(score=float(numbers[-1]))

    async def evaluate(self, factor, page: FetchedPage) -> FactorEvaluation:
        prompt = self.PROMPT_TEMPLATE.format(
            name=factor.name,
            guidance=factor.guidance,
            url=page.url,
            title=page.title or "(none)",
            text=page.text,
        )
        reply = await self.adapter.complete(
            prompt,
            timeout=self.timeout,
            config=self.config,
            system_prompt=self.SYSTEM_PROMPT,
        )
        evaluation = self.parse(reply.text)
        logger.debug(f"Evaluated '{factor.name}' for {page.url}: {evaluation.score}")
        return evaluation
