"""Tests for per-category duplicate match rules"""

import pytest

from research_ledger.models.category import Category
from research_ledger.models.projection import ProjectionRow
from research_ledger.services.similarity_rules import (
    both_equal,
    find_matches,
    matches,
    null_safe_equal,
    rule_for,
    similar,
)
from research_ledger.utils.trigram import length_ratio, trigram_similarity

TITLE = "test publication for threshold analysis"
AUTHORS = "doe johnsmith simpson john victor"

PUBLICATION = Category.from_type("publication", "article")
ORGANIZED_EVENT = Category.from_type("accomplishment", "organized_event")
AWARD = Category.from_type("accomplishment", "award_achievement")
INVITED_TALK = Category.from_type("invited_talk", "scientific")
PATENT = Category.from_type("patent", "prosecution")


def row(research_item_id, title=TITLE, authors=AUTHORS, event="", type_id=1, **kwargs):
    return ProjectionRow(
        research_item_id=research_item_id,
        research_item_type_id=type_id,
        title_string=title,
        title_string_length=len(title),
        authors_string=authors,
        authors_string_length=len(authors),
        event_string=event,
        event_string_length=len(event),
        **kwargs,
    )


def test_null_safe_equal():
    assert null_safe_equal(None, None)
    assert null_safe_equal(2020, 2020)
    assert not null_safe_equal(2020, None)


def test_both_equal():
    assert both_equal("10.1/x", "10.1/x")
    assert not both_equal(None, None)
    assert not both_equal("10.1/x", None)


class TestSimilar:
    """Tests for the length-gated trigram comparison"""

    def test_similar_titles(self):
        a = row(1)
        b = row(2, title="test publication for threshold analy111")
        assert similar(a, b, "title", 0.9, 0.7)

    def test_low_similarity_rejected(self):
        a = row(1)
        b = row(2, title="test publication for threshold an123456")
        assert not similar(a, b, "title", 0.9, 0.7)

    def test_length_gate_rejects_before_similarity(self):
        """0.85 similarity is not enough when the length ratio is 35/39"""
        a = row(1)
        b = row(2, title="test publication for threshold anal")
        assert not similar(a, b, "title", 0.9, 0.7)
        assert similar(a, b, "title", 0.85, 0.7)

    def test_two_empty_strings_never_match(self):
        assert not similar(row(1, title=""), row(2, title=""), "title", 0.9, 0.7)

    def test_thresholds_are_strict(self):
        a = row(1, title="abc")
        assert not similar(a, row(2, title="abc"), "title", 1.0, 0.0)
        assert not similar(a, row(2, title="abc"), "title", 0.0, 1.0)


class TestPublicationRule:
    def test_title_and_authors(self):
        a = row(1)
        b = row(2, title="test publication for threshold analy111",
                authors="doe johnsmith simpson john 123456")
        assert matches(PUBLICATION, a, b)

    def test_dissimilar_authors_block_match(self):
        a = row(1)
        b = row(2, authors="roe janewhite mary")
        assert not matches(PUBLICATION, a, b)

    def test_near_threshold_authors_block_match(self):
        """Same length authors with 21/36 trigram similarity stay below 0.6"""
        near = "dox johnsmith simpson john xxxxxx"
        assert length_ratio(len(AUTHORS), len(near)) == 1.0
        assert trigram_similarity(AUTHORS, near) == pytest.approx(21 / 36)

        assert not matches(PUBLICATION, row(1), row(2, authors=near))

    def test_doi_match_ignores_text(self):
        a = row(1, doi="10.1000/xyz")
        b = row(2, title="completely different", authors="someone else", doi="10.1000/xyz")
        assert matches(PUBLICATION, a, b)

    def test_origin_id_match_ignores_text(self):
        a = row(1, origin_ids=frozenset({"W123"}))
        b = row(2, title="other", authors="other", origin_ids=frozenset({"W123"}))
        assert matches(PUBLICATION, a, b)

    def test_any_shared_origin_id_matches(self):
        a = row(1, title="first", authors="x", origin_ids=frozenset({"W100", "W200"}))
        b = row(2, title="second", authors="y", origin_ids=frozenset({"W200"}))
        assert matches(PUBLICATION, a, b)
        assert not matches(PUBLICATION, a, row(3, title="third", authors="z",
                                               origin_ids=frozenset({"W300"})))

    def test_null_dois_do_not_match(self):
        a = row(1, title="first", authors="x")
        b = row(2, title="second", authors="y")
        assert not matches(PUBLICATION, a, b)


class TestAccomplishmentRules:
    def test_organized_event_needs_same_year_and_sub_type(self):
        a = row(1, year=2020, sub_type="Conference")
        assert matches(ORGANIZED_EVENT, a, row(2, year=2020, sub_type="Conference"))
        assert not matches(ORGANIZED_EVENT, a, row(2, year=2021, sub_type="Conference"))
        assert not matches(ORGANIZED_EVENT, a, row(2, year=2020, sub_type="Workshop"))

    def test_missing_years_compare_equal(self):
        assert matches(AWARD, row(1), row(2))
        assert not matches(AWARD, row(1, year=2020), row(2))


class TestInvitedTalkRule:
    def test_requires_similar_event(self):
        a = row(1, event="international conference", sub_type="Keynote", year=2020)
        b = row(2, event="international conference", sub_type="Keynote", year=2020)
        assert matches(INVITED_TALK, a, b)

        c = row(2, event="summer school", sub_type="Keynote", year=2020)
        assert not matches(INVITED_TALK, a, c)

    def test_missing_sub_types_never_match(self):
        a = row(1, event="international conference", year=2020)
        b = row(2, event="international conference", year=2020)
        assert not matches(INVITED_TALK, a, b)


class TestPatentRule:
    def test_application_number(self):
        a = row(1, title="x", authors="y", application_number="EP1")
        b = row(2, title="z", authors="w", application_number="EP1")
        assert matches(PATENT, a, b)

    def test_patent_number(self):
        a = row(1, title="x", authors="y", patent_number="US9")
        b = row(2, title="z", authors="w", patent_number="US9")
        assert matches(PATENT, a, b)

    def test_text_match_needs_same_filing_date(self):
        a = row(1, filing_date="2020-01-01")
        assert matches(PATENT, a, row(2, filing_date="2020-01-01"))
        assert not matches(PATENT, a, row(2, filing_date="2021-01-01"))

    def test_looser_title_thresholds(self):
        """Patents accept title similarities a publication would reject"""
        a = row(1)
        b = row(2, title="test publication for threshold an123456")
        assert matches(PATENT, a, b)
        assert not matches(PUBLICATION, a, b)


class TestMatches:
    def test_never_matches_itself(self):
        assert not matches(PUBLICATION, row(1, doi="d"), row(1, doi="d"))

    def test_never_matches_other_type(self):
        assert not matches(PUBLICATION, row(1, doi="d"), row(2, doi="d", type_id=2))

    def test_no_rule_without_category(self):
        assert rule_for(None) is None
        assert not matches(None, row(1), row(2))

    def test_find_matches(self):
        constant = row(1, doi="d")
        candidates = [row(2, doi="d"), row(3, title="other", authors="other"), row(4)]
        found = [r.research_item_id for r in find_matches(PUBLICATION, constant, candidates)]
        assert found == [2, 4]


@pytest.mark.parametrize(
    "category", [PUBLICATION, ORGANIZED_EVENT, AWARD, INVITED_TALK, PATENT]
)
def test_every_category_has_a_rule(category):
    assert rule_for(category) is not None
