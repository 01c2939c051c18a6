"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.search import (
    SearchResultItem,
    SearchGroup,
    SearchResponse,
    SuggestionItem,
    SuggestionListResponse,
)
from models.column_mapping import (
    ColumnMappingItem,
    ClassifyHeadersRequest,
    ColumnMappingListResponse,
    ValidateMappingRequest,
    ValidateMappingResponse,
    LineItemOut,
    RowErrorOut,
    LineItemPreviewResponse,
)

__all__ = [
    # Base
    "BaseSchema",

    # Search
    "SearchResultItem",
    "SearchGroup",
    "SearchResponse",
    "SuggestionItem",
    "SuggestionListResponse",

    # Column mapping
    "ColumnMappingItem",
    "ClassifyHeadersRequest",
    "ColumnMappingListResponse",
    "ValidateMappingRequest",
    "ValidateMappingResponse",
    "LineItemOut",
    "RowErrorOut",
    "LineItemPreviewResponse",
]
