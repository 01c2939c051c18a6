"""
Spreadsheet parsers module.
"""

from parsers.line_item_parser import (
    read_sheet,
    parse_line_items,
    SheetData,
    LineItemParseResult,
)

__all__ = [
    "read_sheet",
    "parse_line_items",
    "SheetData",
    "LineItemParseResult",
]
