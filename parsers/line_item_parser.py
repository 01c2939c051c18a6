"""
Spreadsheet parser for contract line-item imports.

Reads an uploaded .xlsx or .csv, hands its headers to the header classifier,
then converts each row into a LineItem through the reviewed column mapping.
Row problems are collected, not raised, so the user sees every bad row at
once.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Union
import structlog

import pandas as pd

from exceptions import SpreadsheetParseError
from services.header_classifier import (
    ImportMappingSession,
    RecurrenceFrequency,
    TargetField,
    classify_frequency,
)

logger = structlog.get_logger(__name__)

CSV_EXTENSIONS = (".csv", ".txt")
DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%Y/%m/%d"]

# Row defaults for blank cells in optional numeric columns
DEFAULT_QUANTITY = 1.0
DEFAULT_UNIT_PRICE = 0.0
DEFAULT_ESTIMATED_HOURS = 0.0


@dataclass
class SheetData:
    """Headers and non-empty rows of the first sheet."""
    headers: list[str]
    rows: list[dict[str, Any]]

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass
class LineItem:
    """One contract line item ready for review."""
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


@dataclass
class RowError:
    """Single validation error from parsing."""
    row: int
    field: str
    error: str


@dataclass
class LineItemParseResult:
    """Result of parsing a sheet."""
    items: list[LineItem] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no errors occurred."""
        return len(self.errors) == 0


# ===================
# READING
# ===================

def read_sheet(file: Union[str, Path, BytesIO], filename: Optional[str] = None) -> SheetData:
    """
    Read the first sheet of an upload.

    Args:
        file: File path or file-like object
        filename: Original name, used to tell CSV from Excel

    Returns:
        SheetData with string headers and rows keyed by header

    Raises:
        SpreadsheetParseError: If the file cannot be read or has no header row
    """
    if filename is None and isinstance(file, (str, Path)):
        filename = str(file)
    is_csv = (filename or "").lower().endswith(CSV_EXTENSIONS)
    logger.info("reading_sheet", filename=filename, csv=is_csv)

    try:
        if is_csv:
            df = pd.read_csv(file, dtype=str, keep_default_na=False)
        else:
            excel = pd.ExcelFile(file, engine="openpyxl")
            df = excel.parse(excel.sheet_names[0])
    except Exception as e:
        logger.error("sheet_read_failed", filename=filename, error=str(e))
        raise SpreadsheetParseError(
            message="Failed to read spreadsheet",
            details={"original_error": str(e)}
        )

    df.columns = [str(col).strip() for col in df.columns]

    # Blank header cells come back as "Unnamed: N"; drop them when empty
    empty_unnamed = [
        col for col in df.columns
        if col.startswith("Unnamed:") and all(_is_blank(v) for v in df[col])
    ]
    df = df.drop(columns=empty_unnamed)

    headers = list(df.columns)
    if not headers:
        raise SpreadsheetParseError(message="Spreadsheet has no header row")

    rows = []
    for record in df.to_dict(orient="records"):
        row = {header: None if _is_blank(value) else value for header, value in record.items()}
        if any(value is not None for value in row.values()):
            rows.append(row)

    logger.info("sheet_read", columns=len(headers), rows=len(rows))
    return SheetData(headers=headers, rows=rows)


# ===================
# PARSING
# ===================

def parse_line_items(sheet: SheetData, session: ImportMappingSession) -> LineItemParseResult:
    """
    Convert sheet rows using a validated mapping.

    Args:
        sheet: Output of read_sheet
        session: Reviewed column mapping

    Returns:
        LineItemParseResult with items and per-row errors

    Raises:
        MissingRequiredFieldsError: If the mapping is incomplete
    """
    columns = session.validate()
    result = LineItemParseResult()

    for index, raw in enumerate(sheet.rows):
        row_num = index + 2  # Spreadsheet row (1-indexed + header)
        values = {target.value: raw.get(header) for target, header in columns.items()}
        row_errors: list[RowError] = []

        description = _text(values.get(TargetField.DESCRIPTION.value))
        if not description:
            row_errors.append(RowError(row_num, "description", "Required field is empty"))

        quantity = _number(values, TargetField.QUANTITY, DEFAULT_QUANTITY, row_num, row_errors)
        unit_price = _number(values, TargetField.UNIT_PRICE, DEFAULT_UNIT_PRICE, row_num, row_errors)
        estimated_hours = _number(
            values, TargetField.ESTIMATED_HOURS, DEFAULT_ESTIMATED_HOURS, row_num, row_errors
        )
        cost_price = _number(values, TargetField.COST_PRICE, None, row_num, row_errors)
        line_total = _number(values, TargetField.LINE_TOTAL, None, row_num, row_errors)

        first_date = _date(values, TargetField.FIRST_DATE, row_num, row_errors)
        next_date = _date(values, TargetField.NEXT_DATE, row_num, row_errors)

        if row_errors:
            result.errors.extend(row_errors)
            continue

        if line_total is None:
            line_total = round(quantity * unit_price, 2)

        result.items.append(LineItem(
            item_order=len(result.items),
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            line_total=line_total,
            estimated_hours=estimated_hours,
            frequency=classify_frequency(_text(values.get(TargetField.FREQUENCY.value))),
            first_date=first_date,
            next_date=next_date or first_date,
            item_code=_text(values.get(TargetField.ITEM_CODE.value)),
            unit=_text(values.get(TargetField.UNIT.value)),
            cost_price=cost_price,
            location_name=_text(values.get(TargetField.LOCATION_NAME.value)),
            key_number=_text(values.get(TargetField.KEY_NUMBER.value)),
            notes=_text(values.get(TargetField.NOTES.value)),
        ))

    logger.info(
        "line_items_parsed",
        items=len(result.items),
        errors=len(result.errors),
        success=result.success
    )
    return result


# ===================
# HELPERS
# ===================

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _text(value: Any) -> Optional[str]:
    """Cell as trimmed text; whole floats lose their ".0" (Excel key numbers)."""
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _number(
    values: dict,
    target: TargetField,
    default: Optional[float],
    row_num: int,
    errors: list[RowError]
) -> Optional[float]:
    value = values.get(target.value)
    if _is_blank(value):
        return default

    try:
        number = float(str(value).replace(",", "").replace("$", "").strip())
    except ValueError:
        errors.append(RowError(row_num, target.value, f"Not a number: {value}"))
        return default

    if number < 0:
        errors.append(RowError(row_num, target.value, "Must be a non-negative number"))
    return number


def _date(
    values: dict,
    target: TargetField,
    row_num: int,
    errors: list[RowError]
) -> Optional[date]:
    value = values.get(target.value)
    if _is_blank(value):
        return None

    parsed = _parse_date(value)
    if parsed is None:
        errors.append(RowError(row_num, target.value, "Invalid date (expected YYYY-MM-DD or DD/MM/YYYY)"))
    return parsed


def _parse_date(value: Any) -> Optional[date]:
    """Parse various date formats to date object."""
    # Already a date/datetime (pandas Timestamps are datetimes)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    value_str = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value_str, fmt).date()
        except ValueError:
            continue
    return None
