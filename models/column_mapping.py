"""
Column mapping schemas for spreadsheet imports.

Headers are echoed back verbatim, so these models do not strip whitespace
(BaseSchema would).
"""

from datetime import date
from pydantic import BaseModel, Field
from typing import Optional

from services.header_classifier import MappingMethod, RecurrenceFrequency, TargetField


class ColumnMappingItem(BaseModel):
    """Target field for one source column."""

    source_header: str = Field(..., description="Column name exactly as uploaded")
    target_field: TargetField = Field(..., description="Line-item field or 'ignore'")
    method: MappingMethod = Field(
        MappingMethod.HEURISTIC,
        description="heuristic or user_override"
    )


class ClassifyHeadersRequest(BaseModel):
    """Headers from an uploaded sheet."""

    headers: list[str] = Field(..., min_length=1)


class ColumnMappingListResponse(BaseModel):
    """Suggested mappings plus what is still missing."""

    mappings: list[ColumnMappingItem]
    required_fields: list[TargetField]
    missing_required: list[TargetField]
    row_count: Optional[int] = Field(None, description="Data rows in the uploaded sheet")


class ValidateMappingRequest(BaseModel):
    """Mappings after user review."""

    mappings: list[ColumnMappingItem] = Field(..., min_length=1)


class ValidateMappingResponse(BaseModel):
    """Mapping accepted for import."""

    valid: bool = True
    columns: dict[str, str] = Field(
        ...,
        description="Target field → source header used for it"
    )


# ===================
# LINE ITEM PREVIEW
# ===================

class LineItemOut(BaseModel):
    """Parsed line item, not yet saved."""

    item_order: int
    description: str
    quantity: float
    unit_price: float
    line_total: float
    estimated_hours: float
    frequency: RecurrenceFrequency
    first_date: Optional[date] = None
    next_date: Optional[date] = None
    item_code: Optional[str] = None
    unit: Optional[str] = None
    cost_price: Optional[float] = None
    location_name: Optional[str] = None
    key_number: Optional[str] = None
    notes: Optional[str] = None


class RowErrorOut(BaseModel):
    """Problem with one spreadsheet row."""

    row: int = Field(..., description="Spreadsheet row number (header is row 1)")
    field: str
    error: str


class LineItemPreviewResponse(BaseModel):
    """Line items parsed with the reviewed mapping."""

    valid: bool
    items: list[LineItemOut]
    errors: list[RowErrorOut]
