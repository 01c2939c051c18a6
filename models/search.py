"""
Search and suggestion schemas for API responses.
"""

from pydantic import Field
from typing import Optional

from models.base import BaseSchema


class SearchResultItem(BaseSchema):
    """One ranked search hit, ready for display."""

    id: str = Field(..., description="Record ID")
    category: str = Field(..., description="Catalog tag", examples=["customer"])
    title: str = Field(..., description="Primary display text")
    subtitle: Optional[str] = Field(None, description="Secondary display text")
    route: str = Field(..., description="Navigation target", examples=["/customers/c1"])
    score: float = Field(..., ge=0, le=1, description="Distance score, lower is better")


class SearchGroup(BaseSchema):
    """Results for one category, capped for display."""

    category: str = Field(..., description="Catalog tag")
    label: str = Field(..., description="Group heading", examples=["Customers"])
    total: int = Field(..., ge=0, description="Matches in this category before the display cap")
    items: list[SearchResultItem]


class SearchResponse(BaseSchema):
    """Global search response."""

    query: str
    results: list[SearchResultItem] = Field(
        default_factory=list,
        description="All matches, best first"
    )
    groups: list[SearchGroup] = Field(
        default_factory=list,
        description="Matches grouped by category, best group first"
    )
    unavailable_categories: list[str] = Field(
        default_factory=list,
        description="Catalogs that could not be searched"
    )

    @property
    def partial(self) -> bool:
        return bool(self.unavailable_categories)


class SuggestionItem(BaseSchema):
    """Suggested customer/location pair."""

    customer_id: str
    customer_name: str
    location_id: str
    location_name: str
    location_address: Optional[str] = None
    score: float = Field(..., ge=0, le=1)
    confidence_percent: int = Field(..., ge=0, le=100)
    confidence_level: str = Field(..., pattern="^(high|medium|low)$")


class SuggestionListResponse(BaseSchema):
    """Top suggestions for a manual location entry."""

    entry: str
    suggestions: list[SuggestionItem]
