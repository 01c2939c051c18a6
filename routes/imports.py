"""
Import column mapping routes.

Suggest a target field for each uploaded column, then validate the
user-reviewed mapping before the import is allowed to run.
"""

from dataclasses import asdict
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile
from pydantic import TypeAdapter, ValidationError as PydanticValidationError
import structlog

from exceptions import ValidationError
from models.column_mapping import (
    ClassifyHeadersRequest,
    ColumnMappingItem,
    ColumnMappingListResponse,
    LineItemOut,
    LineItemPreviewResponse,
    RowErrorOut,
    ValidateMappingRequest,
    ValidateMappingResponse,
)
from parsers.line_item_parser import parse_line_items, read_sheet
from routes.errors import handle_error
from services.header_classifier import ColumnMapping, ImportMappingSession

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/import", tags=["Import"])

_mapping_list = TypeAdapter(list[ColumnMappingItem])


def _to_item(mapping: ColumnMapping) -> ColumnMappingItem:
    return ColumnMappingItem(
        source_header=mapping.source_header,
        target_field=mapping.target_field,
        method=mapping.method,
    )


@router.post("/column-mappings", response_model=ColumnMappingListResponse)
async def classify_columns(data: ClassifyHeadersRequest):
    """
    Suggest a target field for every header.

    Unrecognized headers map to "ignore". Nothing is saved.
    """
    try:
        session = ImportMappingSession.from_headers(data.headers)
        return ColumnMappingListResponse(
            mappings=[_to_item(m) for m in session.mappings],
            required_fields=list(session.required),
            missing_required=session.missing_required(),
        )

    except Exception as e:
        return handle_error(e)


@router.post("/column-mappings/validate", response_model=ValidateMappingResponse)
async def validate_columns(data: ValidateMappingRequest):
    """
    Check a reviewed mapping.

    Raises:
        422: MISSING_REQUIRED_FIELDS when a required field has no column
    """
    try:
        session = ImportMappingSession(
            ColumnMapping(
                source_header=item.source_header,
                target_field=item.target_field,
                method=item.method,
            )
            for item in data.mappings
        )
        columns = session.validate()
        return ValidateMappingResponse(
            columns={field.value: header for field, header in columns.items()}
        )

    except Exception as e:
        return handle_error(e)


# ===================
# UPLOADS
# ===================

def _apply_overrides(session: ImportMappingSession, mappings: Optional[str]) -> None:
    """Apply user-reviewed targets sent as a JSON list of ColumnMappingItem."""
    if not mappings:
        return
    try:
        items = _mapping_list.validate_json(mappings)
    except PydanticValidationError as e:
        raise ValidationError(
            message="Invalid mappings",
            code="INVALID_MAPPINGS",
            details={"errors": [err["msg"] for err in e.errors()]}
        )
    for item in items:
        session.override(item.source_header, item.target_field)


@router.post("/column-mappings/upload", response_model=ColumnMappingListResponse)
async def classify_uploaded_sheet(file: UploadFile = File(..., description="Line items (.xlsx or .csv)")):
    """
    Read a sheet's header row and suggest a target field per column.

    Raises:
        422: SPREADSHEET_PARSE_ERROR when the file cannot be read
    """
    logger.info(
        "sheet_upload_started",
        filename=file.filename,
        content_type=file.content_type
    )

    try:
        content = await file.read()
        sheet = read_sheet(BytesIO(content), file.filename)

        session = ImportMappingSession.from_headers(sheet.headers)
        return ColumnMappingListResponse(
            mappings=[_to_item(m) for m in session.mappings],
            required_fields=list(session.required),
            missing_required=session.missing_required(),
            row_count=sheet.row_count,
        )

    except Exception as e:
        return handle_error(e)


@router.post("/line-items/preview", response_model=LineItemPreviewResponse)
async def preview_line_items(
    file: UploadFile = File(..., description="Line items (.xlsx or .csv)"),
    mappings: Optional[str] = Form(None, description="JSON list of reviewed column mappings")
):
    """
    Parse every row with the reviewed mapping. Nothing is saved.

    Columns not listed in `mappings` keep their suggested target.

    Raises:
        422: MISSING_REQUIRED_FIELDS, UNKNOWN_COLUMN, INVALID_MAPPINGS
             or SPREADSHEET_PARSE_ERROR
    """
    try:
        content = await file.read()
        sheet = read_sheet(BytesIO(content), file.filename)

        session = ImportMappingSession.from_headers(sheet.headers)
        _apply_overrides(session, mappings)

        result = parse_line_items(sheet, session)
        return LineItemPreviewResponse(
            valid=result.success,
            items=[LineItemOut(**asdict(item)) for item in result.items],
            errors=[RowErrorOut(**asdict(error)) for error in result.errors],
        )

    except Exception as e:
        return handle_error(e)
