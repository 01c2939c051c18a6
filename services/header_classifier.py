"""
Spreadsheet header classification for bulk line-item imports.

Column headers are normalized (lowercase, no accents, no spaces or
underscores) and run through an ordered keyword table. The first rule with
a keyword contained in the header wins, so specific keywords ("itemcode",
"unitprice") sit above the general ones ("item", "unit") they contain.

Classifications are suggestions. ImportMappingSession lets the user
override any column and refuses to validate while a required field has
no column.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, TypeVar
import structlog

from exceptions import (
    ConfigurationError,
    MissingRequiredFieldsError,
    UnknownColumnError,
)
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class TargetField(str, Enum):
    """Line-item fields a column can feed."""
    ITEM_CODE = "item_code"
    DESCRIPTION = "description"
    QUANTITY = "quantity"
    UNIT = "unit"
    UNIT_PRICE = "unit_price"
    COST_PRICE = "cost_price"
    LINE_TOTAL = "line_total"
    ESTIMATED_HOURS = "estimated_hours"
    FREQUENCY = "frequency"
    FIRST_DATE = "first_date"
    NEXT_DATE = "next_date"
    LOCATION_NAME = "location_name"
    KEY_NUMBER = "key_number"
    NOTES = "notes"
    IGNORE = "ignore"


class MappingMethod(str, Enum):
    """How a column got its target field."""
    HEURISTIC = "heuristic"
    USER_OVERRIDE = "user_override"


class RecurrenceFrequency(str, Enum):
    """Service contract line-item recurrence."""
    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUALLY = "semi_annually"
    ANNUALLY = "annually"
    ONE_TIME = "one_time"


# ===================
# RULE TABLES
# ===================

# (keywords, target). Evaluated top to bottom; first containing keyword wins.
HEADER_RULES: tuple[tuple[tuple[str, ...], TargetField], ...] = (
    (("itemcode", "itemno", "sku", "partnumber", "partno", "productcode", "stockcode"), TargetField.ITEM_CODE),
    (("linetotal", "subtotal", "total", "amount", "extended"), TargetField.LINE_TOTAL),
    (("unitcost", "costprice", "buyprice", "cost"), TargetField.COST_PRICE),
    (("unitprice", "sellprice", "price", "rate"), TargetField.UNIT_PRICE),
    (("quantity", "qty"), TargetField.QUANTITY),
    (("unitofmeasure", "uom", "unit"), TargetField.UNIT),
    (("estimatedhours", "hours", "hrs"), TargetField.ESTIMATED_HOURS),
    (("frequency", "freq", "recurrence"), TargetField.FREQUENCY),
    (("firstdate", "startdate", "firstgeneration", "firstservice", "firstvisit"), TargetField.FIRST_DATE),
    (("nextdate", "nextgeneration", "duedate", "nextservice", "nextvisit", "nextdue"), TargetField.NEXT_DATE),
    (("keynumber", "keyno", "key"), TargetField.KEY_NUMBER),
    (("locationname", "location", "site"), TargetField.LOCATION_NAME),
    (("notes", "note", "comment", "remarks"), TargetField.NOTES),
    (("description", "item", "desc", "service", "product"), TargetField.DESCRIPTION),
)

REQUIRED_FIELDS: tuple[TargetField, ...] = (
    TargetField.DESCRIPTION,
    TargetField.QUANTITY,
    TargetField.UNIT_PRICE,
)

# Bi-weekly and semi-annual must come before weekly and annual.
FREQUENCY_RULES: tuple[tuple[tuple[str, ...], RecurrenceFrequency], ...] = (
    (("biweekly", "fortnight"), RecurrenceFrequency.BI_WEEKLY),
    (("semiannual", "halfyear", "biannual", "sixmonth"), RecurrenceFrequency.SEMI_ANNUALLY),
    (("onetime", "oneoff", "once", "adhoc"), RecurrenceFrequency.ONE_TIME),
    (("week",), RecurrenceFrequency.WEEKLY),
    (("month",), RecurrenceFrequency.MONTHLY),
    (("quarter",), RecurrenceFrequency.QUARTERLY),
    (("annual", "year"), RecurrenceFrequency.ANNUALLY),
    (("daily", "day"), RecurrenceFrequency.DAILY),
)

DEFAULT_FREQUENCY = RecurrenceFrequency.MONTHLY


def first_matching_rule(
    normalized: str,
    rules: Iterable[tuple[tuple[str, ...], T]],
    default: T
) -> T:
    """Target of the first rule with a keyword contained in `normalized`."""
    if not normalized:
        return default
    for keywords, target in rules:
        if any(keyword in normalized for keyword in keywords):
            return target
    return default


def validate_rule_coverage(
    required: Iterable[TargetField] = REQUIRED_FIELDS,
    rules: Iterable[tuple[tuple[str, ...], TargetField]] = HEADER_RULES
) -> None:
    """
    Check that every required field can be produced by some rule.

    Raises:
        ConfigurationError: If a required field has no rule
    """
    covered = {target for _, target in rules}
    uncovered = [f.value for f in required if f not in covered]
    if uncovered:
        logger.error("header_rules_incomplete", uncovered=uncovered)
        raise ConfigurationError(
            f"No header rule produces required fields: {', '.join(uncovered)}",
            details={"fields": uncovered}
        )


# ===================
# CLASSIFIERS
# ===================

def classify_header(header: Optional[str]) -> TargetField:
    """
    Guess the target field for a column header.

    classify_header("Qty") → TargetField.QUANTITY
    classify_header("Total Amount") → TargetField.LINE_TOTAL
    classify_header("Random Column") → TargetField.IGNORE
    """
    return first_matching_rule(normalize_header(header), HEADER_RULES, TargetField.IGNORE)


def classify_frequency(value: Optional[str]) -> RecurrenceFrequency:
    """
    Map free-text recurrence ("Bi-Weekly", "Half yearly") to a frequency.

    Unrecognized or empty values default to monthly.
    """
    return first_matching_rule(normalize_header(value), FREQUENCY_RULES, DEFAULT_FREQUENCY)


# ===================
# IMPORT SESSION
# ===================

@dataclass
class ColumnMapping:
    """Target field chosen for one source column."""
    source_header: str
    target_field: TargetField
    method: MappingMethod = MappingMethod.HEURISTIC

    @property
    def is_ignored(self) -> bool:
        return self.target_field == TargetField.IGNORE


class ImportMappingSession:
    """
    Column mappings for one upload, editable until the import is committed.

    Usage:
        session = ImportMappingSession.from_headers(["Item", "Qty", "Rate"])
        session.override("Rate", TargetField.COST_PRICE)
        session.validate()   # raises MissingRequiredFieldsError (unit_price)
    """

    def __init__(
        self,
        mappings: Iterable[ColumnMapping],
        required: Iterable[TargetField] = REQUIRED_FIELDS
    ):
        # Duplicate headers collapse onto the last mapping given
        self._mappings: dict[str, ColumnMapping] = {m.source_header: m for m in mappings}
        self.required = tuple(required)

    @classmethod
    def from_headers(
        cls,
        headers: Iterable[str],
        required: Iterable[TargetField] = REQUIRED_FIELDS
    ) -> "ImportMappingSession":
        """Classify every header heuristically."""
        mappings = [
            ColumnMapping(source_header=header, target_field=classify_header(header))
            for header in headers
        ]
        logger.info(
            "import_headers_classified",
            columns=len(mappings),
            ignored=sum(1 for m in mappings if m.is_ignored)
        )
        return cls(mappings, required)

    @property
    def mappings(self) -> list[ColumnMapping]:
        return list(self._mappings.values())

    def mapping_for(self, header: str) -> ColumnMapping:
        try:
            return self._mappings[header]
        except KeyError:
            raise UnknownColumnError(header) from None

    def override(self, header: str, target: TargetField) -> ColumnMapping:
        """
        Replace a column's target with the user's choice.

        Raises:
            UnknownColumnError: If the header is not part of this upload
        """
        mapping = self.mapping_for(header)
        mapping.target_field = TargetField(target)
        mapping.method = MappingMethod.USER_OVERRIDE
        logger.debug("column_mapping_overridden", header=header, target=mapping.target_field.value)
        return mapping

    def mapped_fields(self) -> set[TargetField]:
        return {m.target_field for m in self._mappings.values() if not m.is_ignored}

    def missing_required(self) -> list[TargetField]:
        mapped = self.mapped_fields()
        return [f for f in self.required if f not in mapped]

    def validate(self) -> dict[TargetField, str]:
        """
        Confirm every required field has a column.

        Returns:
            Target field → source header (first column wins per field)

        Raises:
            MissingRequiredFieldsError: Listing each unmapped required field
        """
        missing = self.missing_required()
        if missing:
            logger.warning("import_mapping_incomplete", missing=[f.value for f in missing])
            raise MissingRequiredFieldsError([f.value for f in missing])

        columns: dict[TargetField, str] = {}
        for mapping in self._mappings.values():
            if not mapping.is_ignored:
                columns.setdefault(mapping.target_field, mapping.source_header)
        return columns

    def map_row(self, row: dict) -> dict[str, object]:
        """Project a raw spreadsheet row onto target field names."""
        columns = self.validate()
        return {field.value: row.get(header) for field, header in columns.items()}


# Fail at import time rather than on the first upload
validate_rule_coverage()
