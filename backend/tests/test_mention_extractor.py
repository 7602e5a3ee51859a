"""
Tests for MentionExtractor: case-insensitive substring counting
"""

from uuid import uuid4

import pytest

from sovtrack.services import MentionExtractor, ResponseText


class TestCounting:
    """Counting occurrences of known entity names"""

    def test_counts_are_case_insensitive(self):
        extractor = MentionExtractor(["Acme", "Foo"])
        counts = extractor.count("ACME beats foo. acme is cheaper than Foo and Acme.")
        assert counts == {"Acme": 3, "Foo": 2}

    def test_unmentioned_entities_count_zero(self):
        extractor = MentionExtractor(["Acme", "Foo", "Bar"])
        assert extractor.count("Only Acme here.") == {"Acme": 1, "Foo": 0, "Bar": 0}

    def test_empty_text_yields_zeros(self):
        extractor = MentionExtractor(["Acme", "Foo"])
        assert extractor.count("") == {"Acme": 0, "Foo": 0}

    def test_longer_names_claim_their_span(self):
        """"Foo Inc" must not also be counted as "Foo"."""
        extractor = MentionExtractor(["Foo", "Foo Inc"])
        counts = extractor.count("Foo Inc ships faster than Foo.")
        assert counts == {"Foo": 1, "Foo Inc": 1}

    def test_occurrences_do_not_overlap(self):
        extractor = MentionExtractor(["aa"])
        assert extractor.count("aaaa") == {"aa": 2}

    def test_substring_matches_inside_words(self):
        """Plain substring search: "Bar" is found inside "Barcelona"."""
        extractor = MentionExtractor(["Bar"])
        assert extractor.count("We met in Barcelona.") == {"Bar": 1}

    def test_counting_is_idempotent(self):
        extractor = MentionExtractor(["Acme", "Foo", "Bar"])
        text = "Acme and Foo compete; Bar is new. Acme leads."
        first = extractor.count(text)
        for _ in range(5):
            assert extractor.count(text) == first


class TestEntityList:
    """Normalization of the entity list"""

    def test_duplicates_and_blanks_are_dropped(self):
        extractor = MentionExtractor(["Acme", "acme ", "", "  ", "Foo"])
        assert extractor.entity_names == ["Acme", "Foo"]

    def test_result_keeps_given_entity_order(self):
        extractor = MentionExtractor(["Zeta", "Acme", "Mid"])
        assert list(extractor.count("Acme").keys()) == ["Zeta", "Acme", "Mid"]


class TestExtract:
    """MentionSet construction from stored responses"""

    def test_extract_carries_ids(self):
        prompt_id, response_id = uuid4(), uuid4()
        extractor = MentionExtractor(["Acme"])
        mention_set = extractor.extract(ResponseText("Acme, Acme", prompt_id, response_id))
        assert mention_set.counts == {"Acme": 2}
        assert mention_set.prompt_id == prompt_id
        assert mention_set.response_id == response_id
        assert mention_set.total == 2

    def test_extract_all_one_set_per_response(self):
        extractor = MentionExtractor(["Acme", "Foo"])
        sets = extractor.extract_all([ResponseText("Acme"), ResponseText("Foo"), ResponseText("nothing")])
        assert [s.counts for s in sets] == [
            {"Acme": 1, "Foo": 0},
            {"Acme": 0, "Foo": 1},
            {"Acme": 0, "Foo": 0},
        ]
