"""
Merge, deduplicate and rank match results.

Pure and synchronous. Output order depends only on scores and discovery
order, never on dict/set iteration, so identical input yields identical
output.
"""

from dataclasses import dataclass, field
from typing import Iterable

from services.catalogs import CatalogDescriptor, SearchableRecord


@dataclass(frozen=True)
class MatchResult:
    """
    One scored candidate.

    sequence is the discovery order within a resolution and breaks score ties.
    """
    record: SearchableRecord
    score: float
    sequence: int = 0

    @property
    def category(self) -> str:
        return self.record.category

    @property
    def key(self) -> tuple[str, str]:
        return (self.record.category, self.record.id)


@dataclass
class RankedResults:
    """Flat ranked list plus the per-category display view."""
    flat: list[MatchResult] = field(default_factory=list)
    grouped: dict[str, list[MatchResult]] = field(default_factory=dict)
    unavailable_categories: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.flat

    @property
    def is_partial(self) -> bool:
        """True when some catalogs could not be searched."""
        return bool(self.unavailable_categories)


def deduplicate(matches: Iterable[MatchResult]) -> list[MatchResult]:
    """
    Keep one result per (category, id).

    The lowest score wins; on equal scores the first one seen is kept.
    Survivors keep the position of the first occurrence of their key.
    """
    best: dict[tuple[str, str], MatchResult] = {}
    order: list[tuple[str, str]] = []

    for match in matches:
        current = best.get(match.key)
        if current is None:
            best[match.key] = match
            order.append(match.key)
        elif match.score < current.score:
            best[match.key] = match

    return [best[key] for key in order]


def rank(matches: Iterable[MatchResult]) -> list[MatchResult]:
    """Sort ascending by score, ties by discovery order."""
    return sorted(matches, key=lambda m: (m.score, m.sequence))


def group_by_category(
    ranked: list[MatchResult],
    descriptors: Iterable[CatalogDescriptor]
) -> dict[str, list[MatchResult]]:
    """
    Group ranked results, capping each group at its display_cap.

    Groups appear in the order of each category's best result.
    """
    caps = {d.category: d.display_cap for d in descriptors}
    grouped: dict[str, list[MatchResult]] = {}

    for match in ranked:
        group = grouped.setdefault(match.category, [])
        if len(group) < caps.get(match.category, len(ranked)):
            group.append(match)

    return grouped


def rank_results(
    matches: Iterable[MatchResult],
    descriptors: Iterable[CatalogDescriptor]
) -> RankedResults:
    """
    Deduplicate, sort and group results from one resolution.

    Args:
        matches: All scored candidates, in discovery order
        descriptors: Catalogs that took part (for display caps)

    Returns:
        RankedResults with the full flat list and capped groups
    """
    ranked = rank(deduplicate(matches))
    return RankedResults(
        flat=ranked,
        grouped=group_by_category(ranked, descriptors),
    )
