"""
Shared test fixtures.

The Supabase mock keeps rows in memory per table, so imports can be run
repeatedly against it and checked for idempotency.
"""

import os
import re
import sys
from copy import deepcopy
from pathlib import Path

# Add project directory to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Settings are required at import time by main.py
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Optional
from uuid import uuid4

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseError(Exception):
    """Raised by the mock client for injected failures."""


class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else 1)


def like_to_regex(pattern: str) -> str:
    """Translate a LIKE pattern (% and _ wildcards, backslash escapes) to a regex."""
    parts = ["^"]
    chars = iter(pattern)
    for char in chars:
        if char == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    parts.append("$")
    return "".join(parts)


class MockSupabaseQuery:
    """
    Chainable query against one in-memory table.

    Supports the filters the services use: eq, neq, ilike, in_,
    order and limit.
    """

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._operation = "select"
        self._payload: Any = None
        self._filters: list[Callable[[dict], bool]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None

    # Operations

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        self._operation = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._operation = "update"
        self._payload = data
        return self

    def delete(self):
        self._operation = "delete"
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def ilike(self, column, pattern):
        regex = re.compile(like_to_regex(pattern), re.IGNORECASE | re.DOTALL)
        self._filters.append(lambda row: bool(regex.match(str(row.get(column) or ""))))
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    # Execution

    def execute(self) -> MockSupabaseResponse:
        self._client.calls.append((self._table, self._operation))
        if self._operation == "insert":
            return self._execute_insert()

        rows = self._client.rows(self._table)
        matched = [row for row in rows if all(f(row) for f in self._filters)]

        if self._operation == "update":
            self._client.check_failure(self._table, "update", self._payload)
            for row in matched:
                row.update(deepcopy(self._payload))
            return MockSupabaseResponse(deepcopy(matched))

        if self._operation == "delete":
            self._client.check_failure(self._table, "delete", None)
            self._client.tables[self._table] = [row for row in rows if row not in matched]
            return MockSupabaseResponse(deepcopy(matched))

        self._client.check_failure(self._table, "select", None)
        if self._order:
            column, desc = self._order
            matched.sort(key=lambda row: str(row.get(column) or ""), reverse=desc)
        count = len(matched)
        if self._limit is not None:
            matched = matched[:self._limit]

        return MockSupabaseResponse(deepcopy(matched), count)

    def _execute_insert(self) -> MockSupabaseResponse:
        records = self._payload if isinstance(self._payload, list) else [self._payload]
        inserted = []
        for record in records:
            self._client.check_failure(self._table, "insert", record)
            row = deepcopy(record)
            row.setdefault("id", str(uuid4()))
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            self._client.rows(self._table).append(row)
            inserted.append(deepcopy(row))
        return MockSupabaseResponse(inserted)


class MockRpcCall:
    def __init__(self, client: "MockSupabaseClient", name: str, params: dict):
        self._client = client
        self._name = name
        self._params = params

    def execute(self) -> MockSupabaseResponse:
        self._client.check_failure(self._name, "rpc", self._params)
        self._client.rpc_calls.append((self._name, self._params))
        return MockSupabaseResponse([])


class MockSupabaseClient:
    """
    In-memory Supabase client.

    Usage:
        mock_supabase.set_table_data("orders", [{"id": "1", ...}])
        mock_supabase.fail("product_variants", "insert", when=lambda r: r["sku"] == "BAD")
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.rpc_calls: list[tuple[str, dict]] = []
        self._failures: list[tuple[str, str, Optional[Callable]]] = []

    def set_table_data(self, table_name: str, data: list):
        """Replace the rows of a table."""
        self.tables[table_name] = deepcopy(data)

    def rows(self, table_name: str) -> list[dict]:
        return self.tables.setdefault(table_name, [])

    def fail(self, table_name: str, operation: str, when: Optional[Callable[[Any], bool]] = None):
        """Make matching operations raise MockSupabaseError."""
        self._failures.append((table_name, operation, when))

    def check_failure(self, table_name: str, operation: str, payload: Any):
        for failing_table, failing_op, when in self._failures:
            if failing_table == table_name and failing_op == operation:
                if when is None or when(payload):
                    raise MockSupabaseError(f"{operation} on {table_name} failed")

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, name)

    def rpc(self, name: str, params: dict) -> MockRpcCall:
        return MockRpcCall(self, name, params)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create an empty in-memory Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "handle": "candle-a", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any code calling get_supabase_client() gets the mock.
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.import_writer_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.tracking_import_service.get_supabase_client", return_value=mock_supabase):
                with patch("services.shipping_export_service.get_supabase_client", return_value=mock_supabase):
                    yield mock_supabase


@pytest.fixture
def test_settings():
    """Settings with defaults only (no .env files)."""
    from config.settings import Settings

    return Settings(
        _env_file=None,
        SUPABASE_URL="http://localhost:54321",
        SUPABASE_SERVICE_KEY="test-service-key",
    )


@pytest.fixture
def echo_lines() -> list[str]:
    """Collects reporter output instead of printing it."""
    return []


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client backed by the in-memory database.

    Service singletons are reset so they pick up the mock.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("orders", [...])
            response = test_client_with_mock_db.post("/api/orders/export-csv", json={})
    """
    from fastapi.testclient import TestClient
    import services.shipping_export_service as export_module
    import services.tracking_import_service as tracking_module
    from main import app

    export_module._shipping_export_service = None
    tracking_module._tracking_import_service = None
    try:
        yield TestClient(app)
    finally:
        export_module._shipping_export_service = None
        tracking_module._tracking_import_service = None
