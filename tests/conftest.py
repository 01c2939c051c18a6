"""
Shared test fixtures.

The mock Supabase client is read-only: it supports the query builder
methods the engine calls (select, or_, eq, order, limit) and can be told
to fail for a given table.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest
from unittest.mock import patch
from typing import Generator, Optional

from tests.factories import CustomerFactory, LocationFactory

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(
        self,
        table_name: str,
        data: list = None,
        count: int = None,
        error: Optional[Exception] = None,
        calls: Optional[list] = None
    ):
        self._table_name = table_name
        self._data = list(data or [])
        self._count = count
        self._error = error
        self._calls = calls if calls is not None else []
        self._limit = None

    def _record(self, method: str, *args):
        self._calls.append((self._table_name, method, args))

    def select(self, *args, **kwargs):
        self._record("select", *args)
        return self

    def or_(self, filters: str, reference_table: Optional[str] = None):
        # Recorded, not applied: the service re-checks rows itself
        if reference_table:
            self._record("or_", filters, reference_table)
        else:
            self._record("or_", filters)
        return self

    def ilike(self, column, pattern):
        self._record("ilike", column, pattern)
        return self

    def eq(self, column, value):
        self._record("eq", column, value)
        self._data = [row for row in self._data if row.get(column, value) == value]
        return self

    def order(self, column, **kwargs):
        self._record("order", column)
        return self

    def limit(self, count):
        self._record("limit", count)
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        self._record("execute")
        if self._error is not None:
            raise self._error
        data = self._data if self._limit is None else self._data[:self._limit]
        return MockSupabaseResponse(
            data=data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, name: str, config: dict, calls: list):
        self._name = name
        self._config = config
        self._calls = calls

    def select(self, *args, **kwargs):
        query = MockSupabaseQuery(
            self._name,
            self._config["data"],
            self._config["count"],
            self._config["error"],
            self._calls
        )
        return query.select(*args, **kwargs)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self.calls: list[tuple] = []

    def _config(self, table_name: str) -> dict:
        return self._tables.setdefault(
            table_name, {"data": [], "count": None, "error": None}
        )

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        config = self._config(table_name)
        config["data"] = data
        config["count"] = count

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query against a table raise `error`."""
        self._config(table_name)["error"] = error

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        return MockSupabaseTable(name, self._config(name), self.calls)

    def calls_for(self, table_name: str) -> list[tuple]:
        """(method, args) pairs issued against one table."""
        return [(method, args) for name, method, args in self.calls if name == table_name]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("customers", [
                {"id": "c1", "name": "Acme Cleaning Co", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def reset_services() -> Generator:
    """Drop the service singletons so each test builds fresh ones."""
    import services.search_service as search_module
    import services.suggestion_service as suggestion_module

    search_module._search_service = None
    suggestion_module._suggestion_service = None
    yield
    search_module._search_service = None
    suggestion_module._suggestion_service = None


@pytest.fixture
def mock_db(mock_supabase, reset_services) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("customers", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.search_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.suggestion_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def sample_customers() -> list:
    """Customers used across search and suggestion tests."""
    return [
        CustomerFactory.create(id="c1", name="Acme Cleaning Co", email="ops@acme.test"),
        CustomerFactory.create(id="c2", name="Bright Office Services", email="hello@bright.test"),
        CustomerFactory.create(id="c3", name="Harbour Facilities", email="admin@harbour.test"),
    ]


@pytest.fixture
def sample_locations() -> list:
    """Locations belonging to sample_customers."""
    return [
        LocationFactory.create(
            id="l1", customer_id="c1", name="Melbourne Office",
            address="12 Collins St Melbourne", customer_name="Acme Cleaning Co"
        ),
        LocationFactory.create(
            id="l2", customer_id="c1", name="Sydney Warehouse",
            address="4 Dock Rd Sydney", customer_name="Acme Cleaning Co"
        ),
        LocationFactory.create(
            id="l3", customer_id="c2", name="Brisbane Depot",
            address="88 Queen St Brisbane", customer_name="Bright Office Services"
        ),
    ]


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("customers", [...])
            response = test_client_with_mock_db.get("/api/search?q=acme")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
