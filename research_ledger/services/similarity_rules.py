"""Duplicate match rules per research item category.

Each category maps to a predicate over two projection rows: the item being
checked (the constant) and one candidate from the pool. Text fields are
compared with `similar`, which requires both a length ratio and a trigram
similarity above the category thresholds.
"""

from typing import Any, Callable, Dict, Iterable, Iterator, Optional

from research_ledger.models.category import (
    AccomplishmentKind,
    Category,
    CategoryType,
)
from research_ledger.models.projection import ProjectionRow
from research_ledger.utils.trigram import length_ratio, trigram_similarity

MatchRule = Callable[[Category, ProjectionRow, ProjectionRow], bool]


def similar(
    a: ProjectionRow,
    b: ProjectionRow,
    field: str,
    len_threshold: float,
    sim_threshold: float,
) -> bool:
    """Compare one text field ("title", "authors" or "event") of two rows.

    Both bounds are strict. Two empty strings never match.
    """
    ratio = length_ratio(
        getattr(a, f"{field}_string_length"), getattr(b, f"{field}_string_length")
    )
    if ratio <= len_threshold:
        return False
    return (
        trigram_similarity(getattr(a, f"{field}_string"), getattr(b, f"{field}_string"))
        > sim_threshold
    )


def null_safe_equal(a: Any, b: Any) -> bool:
    """SQL `IS NOT DISTINCT FROM`: two nulls are equal."""
    return a == b


def both_equal(a: Any, b: Any) -> bool:
    """Plain SQL equality: a null on either side never matches."""
    return a is not None and b is not None and a == b


def _title_and_authors(category: Category, a: ProjectionRow, b: ProjectionRow) -> bool:
    return similar(
        a, b, "title", category.title.length, category.title.similarity
    ) and similar(a, b, "authors", category.authors.length, category.authors.similarity)


def _publication(category: Category, a: ProjectionRow, b: ProjectionRow) -> bool:
    if a.origin_ids & b.origin_ids:
        return True
    if both_equal(a.doi, b.doi):
        return True
    return _title_and_authors(category, a, b)


def _organized_event(category: Category, a: ProjectionRow, b: ProjectionRow) -> bool:
    return (
        _title_and_authors(category, a, b)
        and null_safe_equal(a.year, b.year)
        and null_safe_equal(a.sub_type, b.sub_type)
    )


def _accomplishment(category: Category, a: ProjectionRow, b: ProjectionRow) -> bool:
    return _title_and_authors(category, a, b) and null_safe_equal(a.year, b.year)


def _invited_talk(category: Category, a: ProjectionRow, b: ProjectionRow) -> bool:
    event = category.event
    return (
        _title_and_authors(category, a, b)
        and both_equal(a.sub_type, b.sub_type)
        and event is not None
        and similar(a, b, "event", event.length, event.similarity)
        and null_safe_equal(a.year, b.year)
    )


def _patent(category: Category, a: ProjectionRow, b: ProjectionRow) -> bool:
    if both_equal(a.application_number, b.application_number):
        return True
    if both_equal(a.patent_number, b.patent_number):
        return True
    return _title_and_authors(category, a, b) and null_safe_equal(
        a.filing_date, b.filing_date
    )


_RULES: Dict[CategoryType, MatchRule] = {
    CategoryType.PUBLICATION: _publication,
    CategoryType.INVITED_TALK: _invited_talk,
    CategoryType.PATENT: _patent,
}

_ACCOMPLISHMENT_RULES: Dict[AccomplishmentKind, MatchRule] = {
    AccomplishmentKind.ORGANIZED_EVENT: _organized_event,
    AccomplishmentKind.AWARD_ACHIEVEMENT: _accomplishment,
    AccomplishmentKind.EDITORSHIP: _accomplishment,
}


def rule_for(category: Optional[Category]) -> Optional[MatchRule]:
    """Return the match predicate of a category, None when it has none."""
    if category is None:
        return None
    if category.type is CategoryType.ACCOMPLISHMENT:
        return _ACCOMPLISHMENT_RULES.get(category.kind) if category.kind else None
    return _RULES.get(category.type)


def matches(
    category: Optional[Category], constant: ProjectionRow, candidate: ProjectionRow
) -> bool:
    """Decide whether two projection rows of the same category are duplicates.

    Rows of different item types and a row compared with itself never match.
    """
    if constant.research_item_id == candidate.research_item_id:
        return False
    if constant.research_item_type_id != candidate.research_item_type_id:
        return False

    rule = rule_for(category)
    if rule is None:
        return False
    return rule(category, constant, candidate)


def find_matches(
    category: Optional[Category],
    constant: ProjectionRow,
    candidates: Iterable[ProjectionRow],
) -> Iterator[ProjectionRow]:
    """Yield the candidates that match the constant row."""
    for candidate in candidates:
        if matches(category, constant, candidate):
            yield candidate
