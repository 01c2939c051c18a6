"""
Search API routes.

Global search across catalogs and customer/location suggestions.
See routes/errors.py for error response format.
"""

from fastapi import APIRouter, Query
from typing import Optional
import structlog

from models.search import (
    SearchGroup,
    SearchResponse,
    SearchResultItem,
    SuggestionItem,
    SuggestionListResponse,
)
from routes.errors import handle_error
from services.catalogs import CatalogDescriptor, get_catalogs
from services.result_ranker import MatchResult, RankedResults
from services.search_service import get_search_service
from services.suggestion_service import Suggestion, get_suggestion_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/search", tags=["Search"])


# ===================
# CONVERTERS
# ===================

def _to_item(match: MatchResult, descriptor: CatalogDescriptor) -> SearchResultItem:
    shape = descriptor.to_result(match.record.row)
    return SearchResultItem(
        id=match.record.id,
        category=match.category,
        title=shape.title,
        subtitle=shape.subtitle,
        route=shape.route,
        score=match.score,
    )


def to_search_response(query: str, results: RankedResults) -> SearchResponse:
    """Convert ranked results to the API response."""
    descriptors = {d.category: d for d in get_catalogs()}
    totals: dict[str, int] = {}
    for match in results.flat:
        totals[match.category] = totals.get(match.category, 0) + 1

    return SearchResponse(
        query=query,
        results=[_to_item(m, descriptors[m.category]) for m in results.flat],
        groups=[
            SearchGroup(
                category=category,
                label=descriptors[category].label,
                total=totals.get(category, 0),
                items=[_to_item(m, descriptors[category]) for m in matches],
            )
            for category, matches in results.grouped.items()
        ],
        unavailable_categories=results.unavailable_categories,
    )


def to_suggestion_item(suggestion: Suggestion) -> SuggestionItem:
    return SuggestionItem(
        customer_id=suggestion.parent_key,
        customer_name=suggestion.parent_label,
        location_id=suggestion.child_key,
        location_name=suggestion.child_label,
        location_address=suggestion.child_detail,
        score=suggestion.score,
        confidence_percent=suggestion.confidence_percent,
        confidence_level=suggestion.confidence_level,
    )


# ===================
# ROUTES
# ===================

@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query("", max_length=200, description="Search text"),
    categories: Optional[list[str]] = Query(None, description="Limit to these categories")
):
    """
    Search every catalog (or the requested ones).

    Short queries return an empty result. Catalogs that fail to load are
    listed in unavailable_categories; the rest still return results.
    """
    try:
        descriptors = get_catalogs(categories)
        results = await get_search_service().resolve(q, descriptors)
        return to_search_response(q, results)

    except Exception as e:
        return handle_error(e)


@router.get("/suggestions", response_model=SuggestionListResponse)
async def suggest_locations(
    text: str = Query("", max_length=500, description="Free-text location entry")
):
    """
    Suggest the customer/location a contractor most likely meant.

    Returns up to three pairs with a confidence percentage.
    """
    try:
        suggestions = get_suggestion_service().suggest_for_entry(text)
        return SuggestionListResponse(
            entry=text,
            suggestions=[to_suggestion_item(s) for s in suggestions],
        )

    except Exception as e:
        return handle_error(e)
