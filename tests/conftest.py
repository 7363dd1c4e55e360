"""Pytest configuration and shared fixtures."""

import copy
from collections import defaultdict
from types import SimpleNamespace

import pytest

from vehicle_alerts.config import RateSettings
from vehicle_alerts.db import Database
from vehicle_alerts.models import ParsedDetail
from vehicle_alerts.outcomes import ParseIncompleteError


# ============================================================================
# IN-MEMORY SUPABASE CLIENT
# ============================================================================

# Tables whose primary key is a bigserial "id"
SERIAL_TABLES = {"listings", "vehicle_categories", "subscribers", "alert_filters"}


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """The subset of the PostgREST query builder that Database uses."""

    def __init__(self, client: "FakeSupabaseClient", table: str):
        self.client = client
        self.table = table
        self.operation = "select"
        self.columns = "*"
        self.payload = None
        self.on_conflict = ""
        self.ignore_duplicates = False
        self.filters = []
        self.orders = []
        self.row_limit = None

    # Operations
    def select(self, columns="*"):
        self.operation = "select"
        self.columns = columns
        return self

    def insert(self, data):
        self.operation = "insert"
        self.payload = data
        return self

    def upsert(self, data, on_conflict="", ignore_duplicates=False):
        self.operation = "upsert"
        self.payload = data
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, data):
        self.operation = "update"
        self.payload = data
        return self

    def delete(self):
        self.operation = "delete"
        return self

    # Modifiers
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def execute(self):
        failure = self.client.failures.get(self.table)
        if failure is not None:
            raise failure
        self.client.calls.append((self.table, self.operation))
        return FakeResponse(getattr(self, f"_{self.operation}")())

    # Execution
    def _rows(self):
        return self.client.tables[self.table]

    def _matching(self):
        return [row for row in self._rows() if all(f(row) for f in self.filters)]

    def _select(self):
        rows = self._matching()
        for column, desc in reversed(self.orders):
            rows = sorted(rows, key=lambda row: row.get(column), reverse=desc)
        if self.row_limit is not None:
            rows = rows[: self.row_limit]
        if self.columns == "*":
            return [copy.deepcopy(row) for row in rows]
        wanted = [c.strip() for c in self.columns.split(",")]
        return [{c: row.get(c) for c in wanted} for row in rows]

    def _insert(self):
        return [copy.deepcopy(self.client.add_row(self.table, self.payload))]

    def _upsert(self):
        keys = [k for k in self.on_conflict.split(",") if k] or ["id"]
        for row in self._rows():
            if all(row.get(k) == self.payload.get(k) for k in keys):
                if self.ignore_duplicates:
                    return []
                row.update(copy.deepcopy(self.payload))
                return [copy.deepcopy(row)]
        return self._insert()

    def _update(self):
        updated = []
        for row in self._matching():
            row.update(copy.deepcopy(self.payload))
            updated.append(copy.deepcopy(row))
        return updated

    def _delete(self):
        doomed = self._matching()
        self.client.tables[self.table] = [r for r in self._rows() if r not in doomed]
        return doomed


class FakeSupabaseClient:
    """Stores rows per table in memory; failures[table] makes execute() raise."""

    def __init__(self):
        self.tables = defaultdict(list)
        self.failures = {}
        self.calls = []
        self._next_id = defaultdict(int)
        self.closed = False
        self.postgrest = SimpleNamespace(session=SimpleNamespace(close=self._close))

    def _close(self):
        self.closed = True

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def add_row(self, table: str, data: dict) -> dict:
        row = copy.deepcopy(data)
        if table in SERIAL_TABLES and row.get("id") is None:
            self._next_id[table] += 1
            row["id"] = self._next_id[table]
        elif "id" in row:
            self._next_id[table] = max(self._next_id[table], row["id"])
        self.tables[table].append(row)
        return row

    def rows(self, table: str) -> list[dict]:
        return self.tables[table]


@pytest.fixture
def supabase_client() -> FakeSupabaseClient:
    return FakeSupabaseClient()


@pytest.fixture
def db(supabase_client) -> Database:
    return Database(supabase_client)


# ============================================================================
# SOURCE ADAPTER
# ============================================================================

class FakeAdapter:
    """
    Scripted source adapter.

    pages: one entry per discover_page() call, either a list of
        (external_id, detail_url) pairs or an exception to raise
    details: detail_url -> ParsedDetail, exception, or a list of those
        consumed one per fetch
    """

    name = "test-source"

    def __init__(self, pages=None, details=None):
        self.pages = list(pages or [])
        self.details = dict(details or {})
        self.fetched = []
        self._page_pairs = {}

    def discover_page(self) -> str:
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        key = f"page-{len(self._page_pairs)}"
        self._page_pairs[key] = page
        return key

    def parse_listing_page(self, raw: str) -> list[tuple[str, str]]:
        return self._page_pairs[raw]

    def _next_detail(self, url):
        value = self.details[url]
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        return value

    def fetch_detail(self, detail_url: str) -> str:
        self.fetched.append(detail_url)
        value = self._next_detail(detail_url)
        if isinstance(value, Exception) and not isinstance(value, ParseIncompleteError):
            raise value
        self._last = value
        return detail_url

    def parse_detail(self, raw: str) -> ParsedDetail:
        value = self._last
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def fast_rate() -> RateSettings:
    return RateSettings(interval=1.0, floor=0.5, ceiling=2.0, speed_up_step=0.5, slow_down_step=0.5)


def make_detail(**overrides) -> ParsedDetail:
    fields = dict(
        make="Volkswagen",
        model="Golf",
        age_years=2015,
        price=8000,
        mileage=150000,
        power=85,
        engine_displacement=1598,
        fuel_type="Dízel",
        transmission="Manuális",
        city="Budapest",
        postal_code=1117,
    )
    fields.update(overrides)
    return ParsedDetail(**fields)
