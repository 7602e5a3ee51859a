"""
Share of Voice Calculator
Aggregates per-response mention counts into SOV percentages

Formula: SOV(entity) = mentions(entity) / total mentions x 100
Fallback: with zero total mentions each of the k entities gets 100 / k
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from sovtrack.models import CalculationMethod
from .mention_extractor import MentionSet


@dataclass
class SOVResult:
    """One aggregate SOV computation, ready to be persisted as a snapshot"""
    entity_names: List[str]
    mention_counts: Dict[str, int]
    total_mentions: int
    share_of_voice: Dict[str, float]
    brand_share: float
    ai_visibility_score: float
    calculation_method: CalculationMethod
    responses_analyzed: int = 0

    @property
    def is_fallback(self) -> bool:
        return self.calculation_method == CalculationMethod.FALLBACK_DISTRIBUTION


class ShareOfVoiceCalculator:
    """
    Deterministic SOV aggregation for one brand.

    Only entities in the current entity list contribute, so counts for a
    deleted competitor drop out of every later total. Aggregation is a plain
    sum and does not depend on the order the mention sets arrive in.
    """

    def __init__(self, brand_name: str, entity_names: Sequence[str]):
        if not entity_names or entity_names[0] != brand_name:
            raise ValueError("Entity list must start with the brand's own name")
        self.brand_name = brand_name
        self.entity_names = list(entity_names)

    def aggregate(self, mention_sets: Iterable[MentionSet]) -> Dict[str, int]:
        totals: Counter = Counter()
        for mention_set in mention_sets:
            totals.update(mention_set.counts)
        return {name: int(totals.get(name, 0)) for name in self.entity_names}

    def calculate(self, mention_sets: Iterable[MentionSet]) -> SOVResult:
        mention_sets = list(mention_sets)
        mention_counts = self.aggregate(mention_sets)
        total_mentions = sum(mention_counts.values())

        if total_mentions > 0:
            share_of_voice = {
                name: 100.0 * count / total_mentions
                for name, count in mention_counts.items()
            }
            method = CalculationMethod.ENTITY_COUNT
        else:
            # No real data yet: even split, counts stay at their true zeros
            even_share = 100.0 / len(self.entity_names)
            share_of_voice = {name: even_share for name in self.entity_names}
            method = CalculationMethod.FALLBACK_DISTRIBUTION

        brand_share = share_of_voice[self.brand_name]

        return SOVResult(
            entity_names=list(self.entity_names),
            mention_counts=mention_counts,
            total_mentions=total_mentions,
            share_of_voice=share_of_voice,
            brand_share=brand_share,
            # Pass-through until a weighted visibility definition exists
            ai_visibility_score=brand_share,
            calculation_method=method,
            responses_analyzed=len(mention_sets),
        )
