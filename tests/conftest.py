"""
Pytest configuration and shared fixtures for scopedsql tests.
"""

import sqlite3

import pytest

from scopedsql.access import DataAccess
from scopedsql.config import Settings
from scopedsql.models import AccessLevel, ExecutionContext, PermissionGrant


ORDERS_SCHEMA = """
    CREATE TABLE orders (
        id TEXT PRIMARY KEY,
        total REAL,
        status TEXT,
        creatorId TEXT,
        businessUnitId TEXT
    )
"""

ORDERS_ROWS = [
    ("o1", 10.0, "open", "u1", "b1"),
    ("o2", 20.0, "open", "u2", "b2"),
    ("o3", 30.0, "closed", "u3", "b3"),
    ("o4", 40.0, "closed", "u1", "b4"),
]


# =============================================================================
# Fake DB-API driver
# =============================================================================

class FakeCursor:
    """Minimal DB-API cursor returning canned rows."""

    def __init__(self, columns=(), rows=(), error=None, lastrowid=None, rowcount=-1):
        self.description = [(name, None, None, None, None, None, None) for name in columns] or None
        self._rows = list(rows)
        self._error = error
        self.lastrowid = lastrowid
        self.rowcount = rowcount
        self.executed = []
        self.closed = False

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        if self._error is not None:
            raise self._error

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)

    def close(self):
        self.closed = True


class FakeConnection:
    """Hands out FakeCursors and remembers them for assertions."""

    def __init__(self, **cursor_kwargs):
        self.cursor_kwargs = cursor_kwargs
        self.cursors = []
        self.closed = False

    def cursor(self):
        cursor = FakeCursor(**self.cursor_kwargs)
        self.cursors.append(cursor)
        return cursor

    def close(self):
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings():
    """Settings for the sqlite3 driver."""
    return Settings(paramstyle="named")


@pytest.fixture
def connection():
    """In-memory sqlite database with a seeded orders table."""
    conn = sqlite3.connect(":memory:")
    conn.execute(ORDERS_SCHEMA)
    conn.executemany(
        "INSERT INTO orders (id, total, status, creatorId, businessUnitId) VALUES (?, ?, ?, ?, ?)",
        ORDERS_ROWS,
    )
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def access(settings):
    return DataAccess(settings=settings)


@pytest.fixture
def make_context(connection):
    """Build an ExecutionContext for user u1 in business unit b1."""

    def _make(*levels, business_units=None, user_id="u1", business_unit="b1", conn=None, **kwargs):
        business_units = business_units or [business_unit] * len(levels)
        grants = [
            PermissionGrant(
                user_id=user_id,
                business_unit_id=unit,
                read_level=level,
                entity_name="orders",
            )
            for level, unit in zip(levels, business_units)
        ]
        return ExecutionContext(
            connection=conn if conn is not None else connection,
            user_id=user_id,
            business_unit=business_unit,
            grants=grants,
            **kwargs,
        )

    return _make


@pytest.fixture
def owner_context(make_context):
    return make_context(AccessLevel.OWNER)


@pytest.fixture
def fake_connection():
    """Factory for FakeConnection; kwargs configure every cursor it hands out."""
    return FakeConnection
