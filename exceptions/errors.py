"""
Custom exception classes for the application.

Only configuration defects propagate as hard failures. Catalog outages are
absorbed by the search service; short queries and stale results are not
errors at all.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "CATALOG_UNAVAILABLE")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


class ConfigurationError(AppError):
    """
    Setup-time defect (500).

    Raised while building catalogs, scorer presets or classifier rules,
    never while answering a query.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CONFIGURATION_ERROR",
            message=message,
            status_code=500,
            details=details
        )


# ===================
# SEARCH
# ===================

class CatalogUnavailableError(ExternalServiceError):
    """A single catalog could not be fetched (timeout, transport error)."""

    def __init__(self, category: str, reason: str):
        super().__init__(
            service="catalog",
            message=f"Catalog '{category}' is unavailable",
            code="CATALOG_UNAVAILABLE",
            details={"category": category, "reason": reason}
        )
        self.category = category


class UnknownCategoryError(ValidationError):
    """Requested search category is not registered."""

    def __init__(self, categories: list[str]):
        super().__init__(
            message=f"Unknown search categories: {', '.join(categories)}",
            code="UNKNOWN_CATEGORY",
            details={"categories": categories}
        )


# ===================
# IMPORT MAPPING
# ===================

class UnknownColumnError(ValidationError):
    """Column header is not part of the import session."""

    def __init__(self, header: str):
        super().__init__(
            message=f"Column '{header}' is not part of this import",
            code="UNKNOWN_COLUMN",
            details={"header": header}
        )


class MissingRequiredFieldsError(ValidationError):
    """One or more required import fields have no mapped column."""

    def __init__(self, fields: list[str]):
        super().__init__(
            message=f"Missing required fields: {', '.join(fields)}",
            code="MISSING_REQUIRED_FIELDS",
            details={"fields": fields}
        )
        self.fields = fields


class SpreadsheetParseError(ValidationError):
    """Uploaded spreadsheet could not be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="SPREADSHEET_PARSE_ERROR",
            message=message,
            details=details
        )
