"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    ExternalServiceError,
    DatabaseError,
    ConfigurationError,

    # Search
    CatalogUnavailableError,
    UnknownCategoryError,

    # Import mapping
    UnknownColumnError,
    MissingRequiredFieldsError,
    SpreadsheetParseError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "ExternalServiceError",
    "DatabaseError",
    "ConfigurationError",

    # Search
    "CatalogUnavailableError",
    "UnknownCategoryError",

    # Import mapping
    "UnknownColumnError",
    "MissingRequiredFieldsError",
    "SpreadsheetParseError",
]
