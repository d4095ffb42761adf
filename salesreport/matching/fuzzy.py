"""Bounded fuzzy name search using RapidFuzz Levenshtein distance.

Similarity is ``(max_len - edit_distance) / max_len * 100`` on lower-cased
strings. The scan stops after ``max_comparisons`` catalog names, so a true
match beyond the cap is missed on very large catalogs; the cap keeps the
worst case at O(orders x cap) distance computations.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from rapidfuzz.distance import Levenshtein


def similarity(first: str, second: str) -> float:
    """Normalized edit-distance similarity in percent (0-100)."""
    first = first.lower()
    second = second.lower()
    longest = max(len(first), len(second))
    if longest == 0:
        return 100.0
    distance = Levenshtein.distance(first, second)
    return (longest - distance) / longest * 100


def find_fuzzy(
    name: str,
    by_name: Mapping[str, Mapping[str, Any]],
    threshold: float,
    max_comparisons: int = 1000,
) -> tuple[Mapping[str, Any] | None, float]:
    """First catalog entry (in catalog order) scoring at least ``threshold``.

    Returns:
        Tuple of (product or None, score of the accepted candidate or 0)
    """
    if not name:
        return None, 0.0

    for checked, (key, product) in enumerate(by_name.items()):
        if checked >= max_comparisons:
            break
        score = similarity(name, key)
        if score >= threshold:
            return product, score

    return None, 0.0
