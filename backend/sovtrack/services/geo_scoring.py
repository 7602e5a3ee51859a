"""
GEO Scoring Engine
Weighted five-factor Generative Engine Optimization score for a single page

Formula: weightedScore = rawScore x weightPercent / 100
         overallScore  = sum(weightedScore)            (0-10, weights sum to 100)

The overall score is rounded to two decimals and mapped to a readiness bucket
through READINESS_THRESHOLDS.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from sovtrack.adapters.content import FetchedPage, LLMFactorEvaluator, PageFetcher
from sovtrack.config import (
    GEO_FACTOR_WEIGHTS, GEO_MAX_RECOMMENDATIONS, GEO_RECOMMENDATION_CUTOFF, READINESS_THRESHOLDS,
)
from sovtrack.errors import BrandNotFound, FactorEvaluationError, SOVTrackError
from sovtrack.models import BlogScoreRecord, Brand, Readiness, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GEOFactor:
    """One rubric factor with the guidance given to the evaluator"""
    name: str
    weight_percent: int
    guidance: str
    recommendation: str


RUBRIC: List[GEOFactor] = [
    GEOFactor(
        name="Content Structure & Answer Format",
        weight_percent=GEO_FACTOR_WEIGHTS["Content Structure & Answer Format"],
        guidance=(
            "Clear H1/H2/H3 hierarchy, FAQ or Q&A sections, direct answers right "
            "after question-style headings, scannable layout."
        ),
        recommendation=(
            "Restructure the post around question-style headings and answer each "
            "one in the first sentence below it; add an FAQ section."
        ),
    ),
    GEOFactor(
        name="Relevance & Accuracy",
        weight_percent=GEO_FACTOR_WEIGHTS["Relevance & Accuracy"],
        guidance=(
            "Content stays on topic for its title, claims are correct and current, "
            "statistics are sourced, terminology is used correctly."
        ),
        recommendation=(
            "Tighten the content to the topic in the title, refresh outdated "
            "figures and cite a source for every statistic."
        ),
    ),
    GEOFactor(
        name="User Experience",
        weight_percent=GEO_FACTOR_WEIGHTS["User Experience"],
        guidance=(
            "Readable paragraphs, natural conversational language, helpful visuals "
            "with descriptive alt text, no intrusive clutter."
        ),
        recommendation=(
            "Break long paragraphs up, write in a conversational tone and add "
            "supporting visuals with descriptive alt text."
        ),
    ),
    GEOFactor(
        name="Technical SEO",
        weight_percent=GEO_FACTOR_WEIGHTS["Technical SEO"],
        guidance=(
            "Descriptive title and meta description, clean heading markup, "
            "Article/FAQ structured data, internal and authoritative external links."
        ),
        recommendation=(
            "Write a specific title and meta description, add Article and FAQ "
            "schema markup and link to authoritative sources."
        ),
    ),
    GEOFactor(
        name="Content Depth",
        weight_percent=GEO_FACTOR_WEIGHTS["Content Depth"],
        guidance=(
            "Comprehensive coverage of the topic, original insight or first-hand "
            "experience, expert quotes, examples."
        ),
        recommendation=(
            "Expand coverage with original examples, expert quotes or first-hand "
            "data that other sites would want to cite."
        ),
    ),
]


@dataclass
class FactorScore:
    name: str
    raw_score: float
    weight_percent: int
    weighted_score: float
    note: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rawScore": self.raw_score,
            "weightPercent": self.weight_percent,
            "weightedScore": self.weighted_score,
            "note": self.note,
        }


@dataclass
class GEOScore:
    factors: List[FactorScore]
    overall_score: float
    readiness: Readiness
    recommendations: List[str] = field(default_factory=list)


def clamp_score(raw: float, factor_name: str) -> float:
    if raw < 0.0 or raw > 10.0:
        logger.warning(f"Raw score {raw} for '{factor_name}' outside [0, 10], clamping")
        return min(10.0, max(0.0, raw))
    return float(raw)


def readiness_for(overall_score: float) -> Readiness:
    for lower_bound, label in READINESS_THRESHOLDS:
        if overall_score >= lower_bound:
            return Readiness(label)
    return Readiness.CRITICAL


def build_recommendations(factor_scores: List[FactorScore]) -> List[str]:
    """Advice for weak factors, biggest loss of weighted points first"""
    by_name = {f.name: f for f in RUBRIC}
    weak = [fs for fs in factor_scores if fs.raw_score < GEO_RECOMMENDATION_CUTOFF]
    weak.sort(key=lambda fs: (10.0 - fs.raw_score) * fs.weight_percent, reverse=True)
    return [
        f"{fs.name}: {by_name[fs.name].recommendation}"
        for fs in weak[:GEO_MAX_RECOMMENDATIONS]
    ]


def score_factors(raw_scores: Dict[str, float], notes: Optional[Dict[str, str]] = None) -> GEOScore:
    """
    Apply the rubric to raw 0-10 factor scores keyed by factor name.

    Raises ValueError if a rubric factor has no score.
    """
    notes = notes or {}
    missing = [f.name for f in RUBRIC if f.name not in raw_scores]
    if missing:
        raise ValueError(f"Missing raw scores for: {', '.join(missing)}")

    factor_scores = []
    for factor in RUBRIC:
        raw = clamp_score(raw_scores[factor.name], factor.name)
        factor_scores.append(FactorScore(
            name=factor.name,
            raw_score=raw,
            weight_percent=factor.weight_percent,
            weighted_score=round(raw * factor.weight_percent / 100, 4),
            note=notes.get(factor.name, ""),
        ))

    overall = round(sum(fs.weighted_score for fs in factor_scores), 2)

    return GEOScore(
        factors=factor_scores,
        overall_score=overall,
        readiness=readiness_for(overall),
        recommendations=build_recommendations(factor_scores),
    )


class GEOScoringEngine:
    """
    Implements ScoreBlog(brandId, url): fetch the page, have every rubric
    factor rated, compute the weighted score and store it as the single
    BlogScoreRecord for that (brand, url).
    """

    def __init__(
        self,
        db: AsyncSession,
        fetcher: Optional[PageFetcher] = None,
        evaluator: Optional[LLMFactorEvaluator] = None,
    ):
        self.db = db
        self.fetcher = fetcher or PageFetcher()
        self.evaluator = evaluator or LLMFactorEvaluator()

    async def score_blog(self, brand_id: UUID, url: str) -> BlogScoreRecord:
        url = url.strip()
        brand = await self.db.get(Brand, brand_id)
        if brand is None:
            raise BrandNotFound(f"Brand {brand_id} not found", {"brand_id": str(brand_id)})

        page = await self.fetcher.fetch(url)
        score = await self._evaluate(page)

        record = await self._upsert(brand_id, page, score)
        logger.info(
            f"Scored {url} for brand {brand_id}: {score.overall_score} ({score.readiness.value})"
        )
        return record

    async def _evaluate(self, page: FetchedPage) -> GEOScore:
        results = await asyncio.gather(
            *(self.evaluator.evaluate(factor, page) for factor in RUBRIC),
            return_exceptions=True,
        )

        raw_scores: Dict[str, float] = {}
        notes: Dict[str, str] = {}
        failed: Dict[str, str] = {}
        for factor, result in zip(RUBRIC, results):
            if isinstance(result, SOVTrackError):
                failed[factor.name] = f"{result.error_type}: {result.message}"
            elif isinstance(result, BaseException):
                raise result
            else:
                raw_scores[factor.name] = result.score
                notes[factor.name] = result.note

        if failed:
            logger.warning(f"GEO evaluation of {page.url} failed for {len(failed)} factor(s)")
            raise FactorEvaluationError(
                f"Could not evaluate {len(failed)} of {len(RUBRIC)} factors",
                {"url": page.url, "failed": failed},
                partial={
                    "url": page.url,
                    "factors": [
                        {"name": name, "rawScore": clamp_score(raw, name), "note": notes.get(name, "")}
                        for name, raw in raw_scores.items()
                    ],
                },
            )

        return score_factors(raw_scores, notes)

    async def _upsert(self, brand_id: UUID, page: FetchedPage, score: GEOScore) -> BlogScoreRecord:
        record = await self.get_score(brand_id, page.url)
        if record is None:
            record = BlogScoreRecord(brand_id=brand_id, url=page.url)
            self.db.add(record)

        record.overall_score = score.overall_score
        record.readiness = score.readiness
        record.factors = [fs.to_dict() for fs in score.factors]
        record.recommendations = list(score.recommendations)
        record.title = page.title or None
        record.meta_description = page.meta_description or None
        record.scored_at = utcnow()

        await self.db.flush()
        return record

    async def get_score(self, brand_id: UUID, url: str) -> Optional[BlogScoreRecord]:
        result = await self.db.execute(
            select(BlogScoreRecord).where(
                and_(
                    BlogScoreRecord.brand_id == brand_id,
                    BlogScoreRecord.url == url,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_scores(self, brand_id: UUID) -> List[BlogScoreRecord]:
        brand = await self.db.get(Brand, brand_id)
        if brand is None:
            raise BrandNotFound(f"Brand {brand_id} not found", {"brand_id": str(brand_id)})

        result = await self.db.execute(
            select(BlogScoreRecord)
            .where(BlogScoreRecord.brand_id == brand_id)
            .order_by(BlogScoreRecord.scored_at.desc())
        )
        return list(result.scalars().all())
