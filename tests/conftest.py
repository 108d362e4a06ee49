"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
- Store fixtures: in-memory SQLite store seeded with a small configuration
- Mock fixtures: DataStore / ExpressionResolver mocks for call-count checks
- Resolver fixtures: referencers wired to either of the above
"""

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from referencer.config import ResolverConfig
from referencer.core.resolver import ImportReferencer
from referencer.store.base import DataStore, ExpressionResolver
from referencer.store.conditions import matches
from referencer.store.sqlite import SQLiteStore

# =============================================================================
# Store Fixtures
# =============================================================================

SEED_SQL = """
INSERT INTO hstgrp (groupid, name, uuid) VALUES
    (1, 'Linux servers', 'a571c0d144b14fd4a87a9d9b2aa9fcd6'),
    (2, 'Discovered hosts', '');

INSERT INTO hosts (hostid, host, status, flags, uuid) VALUES
    (10001, 'Template OS Linux', 3, 0, '7df96b18c230490a9a0a9e2307226338'),
    (10002, 'Template App Nginx', 3, 0, ''),
    (10084, 'Host A', 0, 0, ''),
    (10085, 'Host C', 1, 0, ''),
    (10090, 'Discovered host', 0, 4, ''),
    (10100, 'Proxy 1', 5, 0, ''),
    (10101, '{#VM.NAME}', 0, 2, 'f1c9b1e2a3d44c5e8f7a6b5c4d3e2f10');

INSERT INTO items (itemid, hostid, key_, flags, uuid) VALUES
    (23001, 10084, 'system.cpu.load', 0, ''),
    (23002, 10001, 'system.cpu.load', 0, '0a4d1e9c8d3b4fd0a8d2f3e1b5c6d7e8'),
    (23003, 10001, 'vm.discovery', 1, 'c0ffee00c0ffee00c0ffee00c0ffee00'),
    (23004, 10084, 'net.if.in[eth0]', 0, '');

INSERT INTO valuemap (valuemapid, hostid, name) VALUES
    (301, 10001, 'Service state');

INSERT INTO triggers (triggerid, description, expression, recovery_expression, flags, uuid)
VALUES
    (13001, 'High CPU load', '{50001}>5', '', 0, '1b2c3d4e5f60718293a4b5c6d7e8f901'),
    (13002, 'High CPU load', '{50002}>5', '{50003}<2', 0, ''),
    (13003, 'Rule level problem', '{50004}=0', '', 1, '');

INSERT INTO functions (functionid, itemid, triggerid, name, parameter) VALUES
    (50001, 23002, 13001, 'avg', '$,5m'),
    (50002, 23001, 13002, 'last', '$'),
    (50003, 23001, 13002, 'last', '$'),
    (50004, 23001, 13003, 'last', '$');

INSERT INTO graphs (graphid, name, flags, uuid) VALUES
    (700, 'CPU load', 0, '9e8d7c6b5a4f3e2d1c0b9a8f7e6d5c4b'),
    (701, 'Network traffic', 0, '');

INSERT INTO graphs_items (gitemid, graphid, itemid) VALUES
    (1, 700, 23001),
    (2, 700, 23002),
    (3, 701, 23004);

INSERT INTO icon_map (iconmapid, name) VALUES (1, 'Default icons');
INSERT INTO images (imageid, name) VALUES (5, 'Server_(96)');
INSERT INTO sysmaps (sysmapid, name) VALUES (3, 'Local network');

INSERT INTO dashboard (dashboardid, name, templateid, uuid) VALUES
    (40, 'System performance', 10001, 'd0d0d0d0d0d0d0d0d0d0d0d0d0d0d0d0'),
    (41, 'Global view', NULL, '');

INSERT INTO hostmacro (hostmacroid, hostid, macro) VALUES (900, 10084, '{$CPU.HIGH}');

INSERT INTO httptest (httptestid, hostid, name, uuid) VALUES
    (60, 10084, 'Login check', 'e5e5e5e5e5e5e5e5e5e5e5e5e5e5e5e5');

INSERT INTO httpstep (httpstepid, httptestid, name, no) VALUES
    (61, 60, 'Open page', 1),
    (62, 60, 'Submit', 2);

INSERT INTO host_discovery (hostid, parent_itemid) VALUES (10101, 23003);
"""


@pytest.fixture
def store() -> SQLiteStore:
    """In-memory SQLite store seeded with a small monitored configuration."""
    sqlite_store = SQLiteStore(":memory:")
    sqlite_store.conn.executescript(SEED_SQL)
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def seeded_db(tmp_path: Path) -> Path:
    """SQLite file with the same seed data, for CLI runs."""
    db_path = tmp_path / "monitoring.db"
    with SQLiteStore(db_path) as sqlite_store:
        sqlite_store.conn.executescript(SEED_SQL)
        sqlite_store.conn.commit()
    return db_path


@pytest.fixture
def referencer(store: SQLiteStore) -> ImportReferencer:
    """Referencer over the seeded store, with metrics disabled."""
    return ImportReferencer(store, config=ResolverConfig(enable_metrics=False))


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def store_rows() -> dict[str, dict[str, dict[str, Any]]]:
    """Rows the mock store returns per kind; tests fill this in."""
    return {}


@pytest.fixture
def mock_store(store_rows: dict[str, dict[str, dict[str, Any]]]) -> MagicMock:
    """Create a mock Data Store.

    ``select`` returns the rows of ``store_rows[kind]`` that match the
    filter (and the flag set, for rows carrying ``flags``), so tests check
    both the query count and the condition each batch builds.

    Example:
        def test_something(mock_store, store_rows):
            store_rows["host"] = {"10084": {"host": "Host A"}}
    """
    data_store = MagicMock(spec=DataStore)

    def select(kind, output, where, flags=None):
        return {
            db_id: dict(row)
            for db_id, row in store_rows.get(kind, {}).items()
            if matches(where, row)
            and (flags is None or "flags" not in row or int(row["flags"]) in flags)
        }

    data_store.select.side_effect = select
    return data_store


@pytest.fixture
def mock_expressions() -> MagicMock:
    """Expression resolver mock returning the triggers unchanged."""
    resolver = MagicMock(spec=ExpressionResolver)
    resolver.resolve_trigger_expressions.side_effect = lambda triggers, sources: triggers
    return resolver


@pytest.fixture
def mock_referencer(mock_store: MagicMock, mock_expressions: MagicMock) -> ImportReferencer:
    """Referencer over the mock store."""
    return ImportReferencer(
        mock_store, expressions=mock_expressions, config=ResolverConfig(enable_metrics=False)
    )
