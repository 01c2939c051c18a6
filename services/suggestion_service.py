"""
"Did you mean" suggestions for hand-typed customer/location text.

Contractors type free text such as "acme melb office" when they cannot pick
a site. Every active (customer, location) pair is flattened into one
searchable unit and the closest pairs come back with a confidence
percentage for display.

Also provides auto_match(), used by bulk imports to resolve a customer
first and then one of that customer's locations.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
import structlog

from config import get_supabase_client
from exceptions import DatabaseError
from services.similarity_scorer import (
    GLOBAL_SEARCH_PRESET,
    SUGGESTION_PRESET,
    SimilarityScorer,
)
from utils.text_utils import build_searchable_blob, tokenize

logger = structlog.get_logger(__name__)

SUGGESTION_LIMIT = 3

# Confidence badge bands
HIGH_CONFIDENCE = 80
MEDIUM_CONFIDENCE = 50

# Bulk import only links a customer at or above this confidence
MIN_AUTO_MATCH_CONFIDENCE = 60


# ===================
# DATA CLASSES
# ===================

@dataclass(frozen=True)
class FlattenedEntry:
    """One (parent, child) pair, e.g. a customer and one of its locations."""
    parent_key: str
    parent_label: str
    child_key: str
    child_label: str
    child_detail: Optional[str] = None

    @property
    def blob(self) -> str:
        return build_searchable_blob(
            (self.parent_label, self.child_label, self.child_detail)
        )


@dataclass(frozen=True)
class Suggestion:
    """A ranked pair with its display confidence."""
    parent_key: str
    parent_label: str
    child_key: str
    child_label: str
    child_detail: Optional[str]
    score: float
    confidence_percent: int

    @property
    def confidence_level(self) -> str:
        return confidence_level(self.confidence_percent)


@dataclass(frozen=True)
class AutoMatchResult:
    """Outcome of matching one imported row to a customer and location."""
    status: str  # "matched" or "pending"
    parent_key: Optional[str] = None
    child_key: Optional[str] = None
    confidence_percent: Optional[int] = None


# ===================
# CONFIDENCE
# ===================

def confidence_from_score(score: float) -> int:
    """
    Convert a score into a 0-100 display percentage.

    round((1 - score) * 100) with halves rounded up, clamped to [0, 100].
    """
    percent = math.floor((1.0 - score) * 100 + 0.5)
    return max(0, min(100, percent))


def confidence_level(percent: int) -> str:
    """Badge band: "high" (>= 80), "medium" (>= 50) or "low"."""
    if percent >= HIGH_CONFIDENCE:
        return "high"
    if percent >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


# ===================
# FLATTEN / SUGGEST
# ===================

def flatten_catalog(
    parents: Iterable[dict],
    children: Iterable[dict],
    parent_key: str = "id",
    parent_label: str = "name",
    child_key: str = "id",
    child_label: str = "name",
    child_parent_key: str = "customer_id",
    child_detail: Optional[str] = "address",
) -> list[FlattenedEntry]:
    """
    Join children to their parents.

    Children whose parent is not in `parents` are dropped. Output follows
    the order of `children`.
    """
    parents_by_key = {str(p[parent_key]): p for p in parents if p.get(parent_key) is not None}

    flat = []
    for child in children:
        parent = parents_by_key.get(str(child.get(child_parent_key)))
        if parent is None or child.get(child_key) is None:
            continue
        flat.append(FlattenedEntry(
            parent_key=str(parent[parent_key]),
            parent_label=parent.get(parent_label) or "",
            child_key=str(child[child_key]),
            child_label=child.get(child_label) or "",
            child_detail=child.get(child_detail) if child_detail else None,
        ))
    return flat


def suggest(
    free_text: Optional[str],
    flattened: Sequence[FlattenedEntry],
    limit: int = SUGGESTION_LIMIT,
    scorer: Optional[SimilarityScorer] = None,
) -> list[Suggestion]:
    """
    Closest (parent, child) pairs for a free-text entry.

    Args:
        free_text: What the user typed
        flattened: Pre-joined catalog (see flatten_catalog)
        limit: Maximum suggestions
        scorer: Defaults to the lenient, location-independent preset

    Returns:
        Up to `limit` suggestions, best first; [] for empty input
    """
    tokens = tokenize(free_text)
    if not tokens or not flattened or limit < 1:
        return []

    scorer = scorer or SimilarityScorer(SUGGESTION_PRESET)

    scored = []
    for index, entry in enumerate(flattened):
        score = scorer.score_tokens(tokens, entry.blob)
        if score is not None:
            scored.append((score, index, entry))

    scored.sort(key=lambda item: (item[0], item[1]))

    return [
        Suggestion(
            parent_key=entry.parent_key,
            parent_label=entry.parent_label,
            child_key=entry.child_key,
            child_label=entry.child_label,
            child_detail=entry.child_detail,
            score=score,
            confidence_percent=confidence_from_score(score),
        )
        for score, _, entry in scored[:limit]
    ]


# ===================
# AUTO-MATCH
# ===================

def _best_match(
    text: Optional[str],
    rows: Sequence[dict],
    label: str,
    scorer: SimilarityScorer
) -> Optional[tuple[dict, float]]:
    tokens = tokenize(text)
    if not tokens:
        return None

    best = None
    for row in rows:
        score = scorer.score_tokens(tokens, build_searchable_blob([row.get(label)]))
        if score is not None and (best is None or score < best[1]):
            best = (row, score)
    return best


def auto_match(
    parent_text: Optional[str],
    child_text: Optional[str],
    parents: Sequence[dict],
    children: Sequence[dict],
    min_confidence: int = MIN_AUTO_MATCH_CONFIDENCE,
    scorer: Optional[SimilarityScorer] = None,
    child_parent_key: str = "customer_id",
) -> AutoMatchResult:
    """
    Resolve an imported (customer text, site text) pair.

    The customer must reach `min_confidence`; the location is then looked up
    among that customer's locations only. Status is "matched" when both
    resolve, otherwise "pending" (with the customer filled in if found).
    """
    scorer = scorer or SimilarityScorer(GLOBAL_SEARCH_PRESET)

    parent_hit = _best_match(parent_text, parents, "name", scorer)
    if parent_hit is None:
        return AutoMatchResult(status="pending")

    parent, parent_score = parent_hit
    confidence = confidence_from_score(parent_score)
    if confidence < min_confidence:
        return AutoMatchResult(status="pending")

    parent_key = str(parent["id"])
    own_children = [c for c in children if str(c.get(child_parent_key)) == parent_key]
    child_hit = _best_match(child_text, own_children, "name", scorer)

    return AutoMatchResult(
        status="matched" if child_hit else "pending",
        parent_key=parent_key,
        child_key=str(child_hit[0]["id"]) if child_hit else None,
        confidence_percent=confidence,
    )


# ===================
# SERVICE
# ===================

class SuggestionService:
    """
    Loads the customer/location catalog and produces suggestions.

    The catalog is read fresh on each call; it is owned by the customer
    screens, not by this service.
    """

    def __init__(self, client=None, scorer: Optional[SimilarityScorer] = None):
        self._client = client
        self.scorer = scorer or SimilarityScorer(SUGGESTION_PRESET)

    @property
    def db(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def get_flattened_catalog(self) -> list[FlattenedEntry]:
        """
        Every active (customer, location) pair.

        Raises:
            DatabaseError: If either table cannot be read
        """
        try:
            customers = (
                self.db.table("customers")
                .select("id, name")
                .eq("is_active", True)
                .order("name")
                .execute()
            )
            locations = (
                self.db.table("customer_locations")
                .select("id, name, address, customer_id")
                .eq("is_active", True)
                .order("name")
                .execute()
            )
        except Exception as e:
            logger.error("load_customer_locations_failed", error=str(e))
            raise DatabaseError("select", str(e))

        flat = flatten_catalog(customers.data or [], locations.data or [])
        logger.debug("customer_locations_flattened", count=len(flat))
        return flat

    def suggest_for_entry(
        self,
        free_text: Optional[str],
        limit: int = SUGGESTION_LIMIT
    ) -> list[Suggestion]:
        """Suggestions for a manual location entry; no fetch for blank text."""
        if not tokenize(free_text):
            return []

        suggestions = suggest(free_text, self.get_flattened_catalog(), limit, self.scorer)

        logger.info(
            "suggestions_generated",
            entry=free_text,
            count=len(suggestions),
            top_confidence=suggestions[0].confidence_percent if suggestions else None
        )
        return suggestions


# Singleton instance
_suggestion_service: Optional[SuggestionService] = None


def get_suggestion_service() -> SuggestionService:
    """Get singleton instance of SuggestionService."""
    global _suggestion_service
    if _suggestion_service is None:
        _suggestion_service = SuggestionService()
    return _suggestion_service
