"""
Mention Extractor
Counts occurrences of a known, bounded set of entity names in AI responses
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID


@dataclass
class MentionSet:
    """Entity name -> occurrence count for one AI response"""
    counts: Dict[str, int]
    prompt_id: Optional[UUID] = None
    response_id: Optional[UUID] = None

    @property
    def total(self) -> int:
        return sum(self.counts.values())


@dataclass
class ResponseText:
    """Minimal view of a stored response for extraction"""
    text: str
    prompt_id: Optional[UUID] = None
    response_id: Optional[UUID] = None


class MentionExtractor:
    """
    Case-insensitive substring counting over a fixed entity list.

    Entity names are matched longest-first and every matched span is claimed,
    so "Foo Inc" is never also counted as "Foo" when both are entities.
    Occurrences of one name never overlap each other either. Matching is plain
    substring search, so short or common names can false-positive ("Bar"
    inside "Barcelona").

    The same (text, entity list) pair always yields the same counts.
    """

    def __init__(self, entity_names: Sequence[str]):
        self.entity_names: List[str] = []
        seen = set()
        for name in entity_names:
            key = name.strip().lower() if name else ""
            if not key or key in seen:
                continue
            seen.add(key)
            self.entity_names.append(name.strip())

        # sorted() is stable, so equal-length names keep their given order
        self._match_order = sorted(self.entity_names, key=len, reverse=True)

    def count(self, text: str) -> Dict[str, int]:
        counts = {name: 0 for name in self.entity_names}
        if not text:
            return counts

        text_lower = text.lower()
        claimed = bytearray(len(text_lower))

        for name in self._match_order:
            needle = name.lower()
            width = len(needle)
            start = 0
            while True:
                pos = text_lower.find(needle, start)
                if pos == -1:
                    break
                end = pos + width
                if any(claimed[pos:end]):
                    start = pos + 1
                    continue
                claimed[pos:end] = b"\x01" * width
                counts[name] += 1
                start = end

        return counts

    def extract(self, response: ResponseText) -> MentionSet:
        return MentionSet(
            counts=self.count(response.text),
            prompt_id=response.prompt_id,
            response_id=response.response_id,
        )

    def extract_all(self, responses: Iterable[ResponseText]) -> List[MentionSet]:
        return [self.extract(r) for r in responses]
