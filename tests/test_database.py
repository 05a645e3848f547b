"""Tests for the database manager and load transaction."""

import psycopg2
import psycopg2.pool
import pytest

from mes_ingest.config import STATUS_COMPLETE, STATUS_PROCESSING, STATUS_ROLLED_BACK
from mes_ingest.database import DatabaseManager
from mes_ingest.errors import DatabaseError
from mes_ingest.loader import build_insert
from mes_ingest.tables import TABLES
from mes_ingest.transaction import LoadTransaction


MATERIAL = ("a", "M-1", "", "", "", "", "{}", "", "")


class TestDatabaseManager:
    def test_count_rows(self, database, server):
        server.seed("materials", 4)
        assert database.count_rows("materials") == 4
        assert database.count_rows("equipment_events") == 0

    def test_run_returns_rows(self, database):
        rows = database.run("SELECT version()")
        assert rows[0][0].startswith("PostgreSQL")

    def test_run_wraps_driver_errors(self, database, fake_pool):
        with pytest.raises(DatabaseError) as exc_info:
            database.run("DROP TABLE materials")
        assert isinstance(exc_info.value.__cause__, psycopg2.Error)
        assert fake_pool.checked_out == []

    def test_acquire_disables_autocommit(self, database, fake_pool):
        conn = database.acquire()
        assert conn.autocommit is False
        database.release(conn)
        assert fake_pool.checked_out == []

    def test_exclusive_connections(self, database):
        first = database.acquire()
        second = database.acquire()
        assert first is not second
        database.release(first)
        database.release(second)

    def test_pool_exhaustion_is_database_error(self, config, pool_factory):
        database = DatabaseManager(config, connection_pool=pool_factory(maxconn=1))
        held = database.acquire()
        with pytest.raises(DatabaseError, match="exhausted"):
            database.acquire()
        database.release(held)

    def test_get_connection_rolls_back_on_error(self, database, server, fake_pool):
        with pytest.raises(RuntimeError):
            with database.get_connection():
                raise RuntimeError("boom")
        assert server.rollbacks == 1
        assert server.commits == 0
        assert fake_pool.checked_out == []

    def test_test_connection(self, database):
        assert database.test_connection() is True

    def test_test_connection_fails_when_closed(self, database):
        database.close()
        assert database.test_connection() is False

    def test_close_is_idempotent(self, database, fake_pool):
        database.close()
        database.close()
        assert fake_pool.closed is True
        assert database.pool is None


def insert_materials(tx, rows):
    params = [value for row in rows for value in row]
    return tx.execute(build_insert(TABLES["materials"], len(rows)), params)


class TestLoadTransaction:
    def test_commit_on_success(self, database, server, fake_pool):
        with LoadTransaction(database) as tx:
            assert tx.status == STATUS_PROCESSING
            count = insert_materials(tx, [MATERIAL])
        assert count == 1
        assert tx.status == STATUS_COMPLETE
        assert server.count("materials") == 1
        assert fake_pool.checked_out == []

    def test_rollback_on_error(self, database, server, fake_pool):
        with pytest.raises(ValueError):
            with LoadTransaction(database) as tx:
                insert_materials(tx, [MATERIAL])
                raise ValueError("stop")
        assert tx.status == STATUS_ROLLED_BACK
        assert server.count("materials") == 0
        assert fake_pool.checked_out == []

    def test_rollback_on_interrupt(self, database, server, fake_pool):
        with pytest.raises(KeyboardInterrupt):
            with LoadTransaction(database) as tx:
                insert_materials(tx, [MATERIAL])
                raise KeyboardInterrupt
        assert server.count("materials") == 0
        assert fake_pool.checked_out == []

    def test_statement_error_is_wrapped(self, database, server):
        server.fail_on_insert = 1
        with pytest.raises(DatabaseError) as exc_info:
            with LoadTransaction(database) as tx:
                insert_materials(tx, [MATERIAL])
        assert isinstance(exc_info.value.__cause__, psycopg2.OperationalError)
        assert tx.statements == 0

    def test_execute_after_close(self, database):
        with LoadTransaction(database) as tx:
            pass
        with pytest.raises(DatabaseError, match="not open"):
            tx.execute("SELECT 1")

    def test_release_failure_keeps_statement_error(self, database, server, fake_pool, monkeypatch):
        def broken_putconn(conn):
            raise psycopg2.pool.PoolError("unkeyed connection")

        monkeypatch.setattr(fake_pool, "putconn", broken_putconn)
        server.fail_on_insert = 1

        with pytest.raises(DatabaseError, match="simulated failure"):
            with LoadTransaction(database) as tx:
                insert_materials(tx, [MATERIAL])
        assert tx.status == STATUS_ROLLED_BACK
        assert server.rollbacks == 1

    def test_release_failure_raised_after_commit(self, database, server, fake_pool, monkeypatch):
        def broken_putconn(conn):
            raise psycopg2.pool.PoolError("unkeyed connection")

        monkeypatch.setattr(fake_pool, "putconn", broken_putconn)

        with pytest.raises(DatabaseError, match="Could not release connection"):
            with LoadTransaction(database) as tx:
                insert_materials(tx, [MATERIAL])
        assert tx.status == STATUS_COMPLETE
        assert server.count("materials") == 1
