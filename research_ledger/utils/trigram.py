"""Text normalization and trigram similarity.

Similarity follows the PostgreSQL pg_trgm definition so that thresholds
tuned against the database function keep their meaning:

- the string is lowercased and split into words of alphanumeric characters
- every word is padded with two leading blanks and one trailing blank
- the distinct three-character windows of all padded words form a set
- similarity is the Jaccard index of the two sets
"""

import re
from typing import Optional, Set

_HTML_TAG = re.compile(r"<[^>]*>")
_WORD = re.compile(r"[^\W_]+")


def strip_html(value: Optional[str]) -> str:
    """Remove HTML tags, mapping None to an empty string."""
    if not value:
        return ""
    return _HTML_TAG.sub("", value)


def normalize_text(value: Optional[str]) -> str:
    """Lowercase and HTML-strip a free-text field for matching."""
    return strip_html(value).lower()


def trigrams(value: str) -> Set[str]:
    """Return the pg_trgm trigram set of a string."""
    result: Set[str] = set()
    for word in _WORD.findall(value.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            result.add(padded[i : i + 3])
    return result


def trigram_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the trigram sets of two strings.

    Returns:
        Score between 0.0 and 1.0; 0.0 when either string has no trigrams.
    """
    set_a = trigrams(a)
    set_b = trigrams(b)
    if not set_a or not set_b:
        return 0.0

    intersection = len(set_a & set_b)
    union = len(set_a) + len(set_b) - intersection
    return intersection / union


def length_ratio(len_a: int, len_b: int) -> float:
    """Ratio of the shorter to the longer length; 0.0 when both are empty."""
    longest = max(len_a, len_b)
    if longest <= 0:
        return 0.0
    return min(len_a, len_b) / longest
