"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.search import router as search_router
from routes.imports import router as imports_router

__all__ = [
    "search_router",
    "imports_router",
]
