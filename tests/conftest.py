"""Pytest configuration and fixtures for mes-ingest tests.

The fake pool below stands in for psycopg2's ThreadedConnectionPool. It keeps
committed rows per table, stages inserts per connection until commit, applies
ON CONFLICT ... DO NOTHING against a unique key, and can be told to fail on
the N-th INSERT statement.
"""
import json
import re
from typing import Dict, List, Optional

import psycopg2
import psycopg2.pool
import pytest

from mes_ingest.config import IngestConfig
from mes_ingest.database import DatabaseManager
from mes_ingest.metrics import MetricsCollector


_INSERT_RE = re.compile(r'INSERT INTO (\w+) \(([^)]*)\) VALUES')
_CONFLICT_RE = re.compile(r'ON CONFLICT \("?(\w+)"?\) DO NOTHING')
_COUNT_RE = re.compile(r'SELECT COUNT\(\*\) AS total FROM (\w+)')


class FakeServer:
    """Shared committed state behind every fake connection."""

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.statements: List[tuple] = []
        self.fail_on_insert: Optional[int] = None
        self.insert_calls = 0
        self.commits = 0
        self.rollbacks = 0

    def rows(self, table: str) -> List[dict]:
        return self.tables.setdefault(table, [])

    def count(self, table: str) -> int:
        return len(self.tables.get(table, []))

    def seed(self, table: str, n: int):
        self.rows(table).extend({"id": f"seed-{i}"} for i in range(n))

    @property
    def inserts(self) -> List[tuple]:
        return [s for s in self.statements if s[0].startswith("INSERT")]


class FakeCursor:
    def __init__(self, conn: "FakeConnection"):
        self.conn = conn
        self.description = None
        self.rowcount = -1
        self._result: List[tuple] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def execute(self, query, params=None):
        server = self.conn.server
        server.statements.append((query, params))

        if query.startswith("INSERT"):
            self._insert(query, params or [])
            return

        match = _COUNT_RE.search(query)
        if match:
            self.description = [("total",)]
            self._result = [(server.count(match.group(1)),)]
            self.rowcount = 1
            return

        if query.startswith("SELECT version()"):
            self.description = [("version",)]
            self._result = [("PostgreSQL 16.0 (fake)",)]
            self.rowcount = 1
            return

        raise psycopg2.ProgrammingError(f"fake server cannot run: {query}")

    def _insert(self, query, params):
        server = self.conn.server
        server.insert_calls += 1
        if server.fail_on_insert == server.insert_calls:
            raise psycopg2.OperationalError("simulated failure")

        match = _INSERT_RE.search(query)
        table = match.group(1)
        columns = [c.strip().strip('"') for c in match.group(2).split(",")]
        assert query.count("%s") == len(params)
        assert len(params) % len(columns) == 0

        conflict = _CONFLICT_RE.search(query)
        key = conflict.group(1) if conflict else None
        staged = self.conn.pending.setdefault(table, [])
        seen = {r[key] for r in server.rows(table) + staged} if key else set()

        inserted = 0
        for start in range(0, len(params), len(columns)):
            row = dict(zip(columns, params[start:start + len(columns)]))
            if key:
                if row[key] in seen:
                    continue
                seen.add(row[key])
            staged.append(row)
            inserted += 1

        self.description = None
        self.rowcount = inserted

    def fetchall(self):
        return list(self._result)


class FakeConnection:
    def __init__(self, server: FakeServer):
        self.server = server
        self.autocommit = True
        self.pending: Dict[str, List[dict]] = {}
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        for table, rows in self.pending.items():
            self.server.rows(table).extend(rows)
        self.pending = {}
        self.server.commits += 1

    def rollback(self):
        self.pending = {}
        self.server.rollbacks += 1


class FakePool:
    """Minimal psycopg2 pool interface: getconn / putconn / closeall."""

    def __init__(self, server: FakeServer, maxconn: int = 4):
        self.server = server
        self.maxconn = maxconn
        self.checked_out: List[FakeConnection] = []
        self.closed = False

    def getconn(self):
        if self.closed:
            raise psycopg2.pool.PoolError("connection pool is closed")
        if len(self.checked_out) >= self.maxconn:
            raise psycopg2.pool.PoolError("connection pool exhausted")
        conn = FakeConnection(self.server)
        self.checked_out.append(conn)
        return conn

    def putconn(self, conn):
        self.checked_out.remove(conn)

    def closeall(self):
        self.closed = True


@pytest.fixture
def config():
    return IngestConfig(db_name="mes_test", pool_min=1, pool_max=4)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def fake_pool(server):
    return FakePool(server)


@pytest.fixture
def database(config, fake_pool):
    return DatabaseManager(config, connection_pool=fake_pool, metrics=MetricsCollector())


@pytest.fixture
def sequential_ids():
    """Deterministic identifier factory: id-1, id-2, ..."""
    counter = {"n": 0}

    def factory():
        counter["n"] += 1
        return f"id-{counter['n']}"

    return factory


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON document to a temporary file and return its path."""

    def _write(data, name="records.json"):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def pool_factory(server):
    """Build extra fake pools sharing the same server state."""

    def _make(maxconn=4):
        return FakePool(server, maxconn=maxconn)

    return _make


ENV_VARS = [
    "DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD", "DATABASE_URL",
    "DB_CONNECT_TIMEOUT", "DB_POOL_MIN", "DB_POOL_MAX", "BATCH_SIZE", "DATA_DIR",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Empty environment and a working directory without .env files."""
    for name in ENV_VARS:
        # setenv first so variables written by load_dotenv are undone at teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return monkeypatch
