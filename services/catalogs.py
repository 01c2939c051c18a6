"""
Catalog descriptors for global search.

One CatalogDescriptor per searchable entity type. Adding a searchable type
means adding one descriptor to CATALOGS; the search service has no
per-entity code.
"""

import math
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional
import structlog

from config import settings
from exceptions import ConfigurationError, UnknownCategoryError
from utils.text_utils import build_searchable_blob

logger = structlog.get_logger(__name__)

DEFAULT_RESULT_CAP = settings.search_default_result_cap
DEFAULT_DISPLAY_CAP = settings.search_default_display_cap

# Any single character, in ilike patterns and in hint fragments. Also stands
# in for characters PostgREST filter syntax cannot carry.
WILDCARD = "_"

_HINT_UNSAFE = re.compile(r"[^\w@'\-]|_")


@dataclass(frozen=True)
class ResultShape:
    """Display-ready projection of a matched row."""
    title: str
    subtitle: Optional[str]
    route: str


@dataclass(frozen=True)
class CatalogDescriptor:
    """
    Static configuration for one searchable entity type.

    Attributes:
        category: Result tag, e.g. "customer"
        label: Group heading, e.g. "Customers"
        table: Supabase table name
        select: PostgREST select clause (may embed joins)
        fields: Field paths forming the blob, in order ("customers.name"
            reads an embedded join)
        to_result: Maps a row to title/subtitle/route
        result_cap: Max raw rows requested from the catalog
        display_cap: Max results shown for this category
    """
    category: str
    label: str
    table: str
    select: str
    fields: tuple[str, ...]
    to_result: Callable[[dict], ResultShape]
    result_cap: int = DEFAULT_RESULT_CAP
    display_cap: int = DEFAULT_DISPLAY_CAP

    def blob_for(self, row: dict) -> str:
        """Normalized concatenation of the configured fields."""
        return build_searchable_blob(resolve_field(row, path) for path in self.fields)

    @property
    def own_columns(self) -> tuple[str, ...]:
        """Blob fields stored on the catalog table itself."""
        return tuple(path for path in self.fields if "." not in path)

    @property
    def related_columns(self) -> dict[str, tuple[str, ...]]:
        """Blob fields read through embedded joins: {"customers": ("name",)}."""
        related: dict[str, tuple[str, ...]] = {}
        for path in self.fields:
            if "." in path:
                relation, column = path.split(".", 1)
                related[relation] = related.get(relation, ()) + (column,)
        return related

    def inner_select(self, relation: str) -> str:
        """Select clause that drops parent rows whose `relation` embed is filtered out."""
        return self.select.replace(f"{relation}(", f"{relation}!inner(", 1)


@dataclass(frozen=True)
class SearchableRecord:
    """A fetched row prepared for scoring. Lives for one query only."""
    id: str
    category: str
    blob: str
    row: dict = field(compare=False, hash=False)


def resolve_field(row: dict, path: str) -> Any:
    """
    Read a dotted field path from a row.

    resolve_field({"customers": {"name": "Acme"}}, "customers.name") → "Acme"
    Missing keys and null joins resolve to None.
    """
    value: Any = row
    for part in path.split("."):
        if isinstance(value, list):
            # One-to-many embeds come back as lists; use the first entry
            value = value[0] if value else None
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def build_record(descriptor: CatalogDescriptor, row: dict) -> Optional[SearchableRecord]:
    """Build a SearchableRecord, or None for rows without an id."""
    row_id = row.get("id")
    if row_id is None:
        return None
    return SearchableRecord(
        id=str(row_id),
        category=descriptor.category,
        blob=descriptor.blob_for(row),
        row=row,
    )


# ===================
# PRE-FILTER
# ===================

@dataclass(frozen=True)
class QueryHint:
    """
    Over-inclusive pre-filter for one query.

    A fragment is one or two characters: "ac" reads "an a, later a c" and
    WILDCARD is any character. Text passes when it contains any fragment or
    is shorter than short_text_length. A hint without fragments lets every
    row through.
    """
    fragments: tuple[str, ...] = ()
    short_text_length: int = 0

    @property
    def unrestricted(self) -> bool:
        return not self.fragments


def min_shared_characters(length: int, threshold: float) -> int:
    """
    Fewest in-order characters a token must share with a blob to score
    within `threshold`.

    partial_ratio is 2 * common / (token length + window length) and the
    window is never shorter than the common run, so
    common >= r * length / (2 - r) with r = 1 - threshold.

    min_shared_characters(4, 0.4) → 2
    min_shared_characters(5, 0.4) → 3
    """
    similarity = 1.0 - threshold
    bound = similarity * length / (2.0 - similarity)
    # Round toward the looser bound on float noise
    return max(0, math.ceil(bound - 1e-9))


def _token_fragments(token: str, shared: int) -> list[str]:
    chars = [WILDCARD if _HINT_UNSAFE.fullmatch(c) else c for c in token]
    if shared == 1:
        return chars

    # `shared` characters spread over the token leave two consecutive ones
    # at most `gap` positions apart.
    gap = (len(chars) - 1) // (shared - 1)
    return [
        chars[i] + chars[j]
        for i in range(len(chars))
        for j in range(i + 1, min(i + gap, len(chars) - 1) + 1)
    ]


def build_query_hint(tokens: list[str], threshold: float) -> QueryHint:
    """
    Pre-filter that keeps every row the scorer could accept.

    A record's score is the mean token error, so at least one token must
    score within the threshold on its own. For that token the blob holds
    `min_shared_characters` of its characters in order, two of them close
    together in the token; the fragments are those close pairs. Blobs
    shorter than a token are aligned the other way round and always pass.

    Args:
        tokens: Normalized query tokens
        threshold: Scorer threshold the hint must stay looser than

    Returns:
        QueryHint (unrestricted when no filter can be derived)
    """
    fragments: list[str] = []
    for token in tokens:
        shared = min_shared_characters(len(token), threshold)
        if shared == 0:
            return QueryHint()
        for fragment in _token_fragments(token, shared):
            if fragment not in fragments:
                fragments.append(fragment)

    if not fragments:
        return QueryHint()
    return QueryHint(
        fragments=tuple(fragments),
        short_text_length=max(len(t) for t in tokens),
    )


def _like_pattern(fragment: str) -> str:
    return "%" + "%".join(fragment) + "%"


@lru_cache(maxsize=1024)
def _fragment_regex(fragment: str) -> re.Pattern:
    parts = ["." if c == WILDCARD else re.escape(c) for c in fragment]
    return re.compile(".*?".join(parts), re.DOTALL)


def prefilter_expression(columns: Iterable[str], hint: QueryHint) -> str:
    """
    PostgREST `or` expression for the pre-filter, one clause per column.

    prefilter_expression(["name"], QueryHint(("ac",), 4))
        → "name.ilike.%a%c%,name.not.ilike.____%"
    """
    columns = list(columns)
    clauses = [
        f"{column}.ilike.{_like_pattern(fragment)}"
        for fragment in hint.fragments
        for column in columns
    ]
    if hint.short_text_length > 1:
        too_long = WILDCARD * hint.short_text_length + "%"
        clauses.extend(f"{column}.not.ilike.{too_long}" for column in columns)
    return ",".join(clauses)


def passes_prefilter(text: str, hint: QueryHint) -> bool:
    """Python twin of prefilter_expression, applied to a normalized blob."""
    if hint.unrestricted or len(text) < hint.short_text_length:
        return True
    return any(_fragment_regex(fragment).search(text) for fragment in hint.fragments)


# ===================
# RESULT SHAPES
# ===================

def _customer_name(row: dict) -> Optional[str]:
    return resolve_field(row, "customers.name")


def _customer(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("name") or "Unnamed Customer",
        subtitle=row.get("email"),
        route=f"/customers/{row['id']}",
    )


def _location(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("name") or "Unnamed Location",
        subtitle=_customer_name(row),
        route=f"/customer-locations/{row['id']}",
    )


def _quote(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("quote_number") or "Quote",
        subtitle=_customer_name(row),
        route=f"/quotes/{row['id']}",
    )


def _invoice(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("invoice_number") or "Invoice",
        subtitle=_customer_name(row),
        route=f"/invoices/{row['id']}",
    )


def _project(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("name") or "Project",
        subtitle=_customer_name(row),
        route=f"/projects/{row['id']}",
    )


def _service_order(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("order_number") or "Service Order",
        subtitle=_customer_name(row),
        route=f"/service-orders/{row['id']}",
    )


def _contract(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("contract_number") or "Contract",
        subtitle=row.get("title") or _customer_name(row),
        route=f"/service-contracts/{row['id']}",
    )


def _helpdesk(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("ticket_number") or "Ticket",
        subtitle=row.get("subject") or row.get("sender_name"),
        route=f"/helpdesk?ticket={row['id']}",
    )


def _supplier(row: dict) -> ResultShape:
    return ResultShape(
        title=row.get("name") or "Unnamed Supplier",
        subtitle=row.get("trading_name") or row.get("email"),
        route=f"/suppliers/{row['id']}",
    )


# ===================
# REGISTRY
# ===================

CATALOGS: tuple[CatalogDescriptor, ...] = (
    CatalogDescriptor(
        category="customer",
        label="Customers",
        table="customers",
        select="id, name, email",
        fields=("name", "email"),
        to_result=_customer,
    ),
    CatalogDescriptor(
        category="location",
        label="Locations",
        table="customer_locations",
        select="id, name, address, customer_id, customers(name)",
        fields=("name", "customers.name", "address"),
        to_result=_location,
    ),
    CatalogDescriptor(
        category="quote",
        label="Quotes",
        table="quotes",
        select="id, quote_number, customer_id, customers(name)",
        fields=("quote_number", "customers.name"),
        to_result=_quote,
    ),
    CatalogDescriptor(
        category="invoice",
        label="Invoices",
        table="invoices",
        select="id, invoice_number, customer_id, customers(name)",
        fields=("invoice_number", "customers.name"),
        to_result=_invoice,
    ),
    CatalogDescriptor(
        category="project",
        label="Projects",
        table="projects",
        select="id, name, customer_id, customers(name)",
        fields=("name", "customers.name"),
        to_result=_project,
    ),
    CatalogDescriptor(
        category="service-order",
        label="Service Orders",
        table="service_orders",
        select="id, order_number, customer_id, customers(name)",
        fields=("order_number", "customers.name"),
        to_result=_service_order,
    ),
    CatalogDescriptor(
        category="contract",
        label="Contracts",
        table="service_contracts",
        select="id, contract_number, title, customer_id, customers(name)",
        fields=("contract_number", "title", "customers.name"),
        to_result=_contract,
    ),
    CatalogDescriptor(
        category="helpdesk",
        label="Help Desk",
        table="helpdesk_tickets",
        select="id, ticket_number, subject, sender_name",
        fields=("ticket_number", "subject", "sender_name"),
        to_result=_helpdesk,
    ),
    CatalogDescriptor(
        category="supplier",
        label="Suppliers",
        table="suppliers",
        select="id, name, trading_name, email, abn",
        fields=("name", "trading_name", "email", "abn"),
        to_result=_supplier,
    ),
)


def validate_catalogs(descriptors: Iterable[CatalogDescriptor]) -> None:
    """
    Check a descriptor set before it is used.

    Raises:
        ConfigurationError: Duplicate categories, empty field lists,
            joined fields missing from select, or non-positive caps
    """
    seen: set[str] = set()
    for descriptor in descriptors:
        problem = None
        if descriptor.category in seen:
            problem = "duplicate category"
        elif not descriptor.fields:
            problem = "no blob fields"
        elif any(f"{relation}(" not in descriptor.select for relation in descriptor.related_columns):
            problem = "joined field without an embed in select"
        elif descriptor.result_cap < 1 or descriptor.display_cap < 1:
            problem = "caps must be positive"

        if problem:
            logger.error(
                "catalog_config_invalid",
                category=descriptor.category,
                problem=problem
            )
            raise ConfigurationError(
                f"Catalog '{descriptor.category}' is misconfigured: {problem}",
                details={"category": descriptor.category}
            )
        seen.add(descriptor.category)


def get_catalogs(categories: Optional[Iterable[str]] = None) -> list[CatalogDescriptor]:
    """
    Look up registered descriptors by category, keeping registry order.

    Args:
        categories: Category tags; None or empty means all catalogs

    Raises:
        UnknownCategoryError: If any tag is not registered
    """
    if not categories:
        return list(CATALOGS)

    wanted = list(dict.fromkeys(categories))
    known = {d.category for d in CATALOGS}
    unknown = [c for c in wanted if c not in known]
    if unknown:
        raise UnknownCategoryError(unknown)

    return [d for d in CATALOGS if d.category in wanted]


# Fail at import time rather than on the first query
validate_catalogs(CATALOGS)
