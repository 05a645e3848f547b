"""
Database manager with connection pooling.
Lends exclusive connections for load transactions and runs one-off queries.
"""
import time
from typing import Any, List, Optional, Sequence, Tuple
from contextlib import contextmanager
import psycopg2
from psycopg2 import pool
from psycopg2.extensions import connection as Connection

from .config import IngestConfig, ERR_CONNECTION_FAILED
from .errors import DatabaseError
from .logger import get_logger
from .metrics import MetricsCollector


class DatabaseManager:
    """
    Manages database connections with connection pooling.

    The pool can be passed in (tests substitute a fake); otherwise a
    ThreadedConnectionPool is built from the configuration.
    """

    def __init__(
        self,
        config: IngestConfig,
        connection_pool: Optional[pool.AbstractConnectionPool] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self.metrics = metrics or MetricsCollector()
        self.logger = get_logger()

        if connection_pool is not None:
            self.pool = connection_pool
            return

        try:
            self.pool = pool.ThreadedConnectionPool(
                minconn=config.pool_min,
                maxconn=config.pool_max,
                **config.connection_kwargs()
            )
        except psycopg2.Error as e:
            self.logger.error(ERR_CONNECTION_FAILED, error=str(e))
            raise DatabaseError(f"{ERR_CONNECTION_FAILED}: {e}") from e

        self.logger.info(
            "Database connection pool created",
            min=config.pool_min,
            max=config.pool_max,
        )

    def acquire(self) -> Connection:
        """
        Check out an exclusive connection with explicit transactions.
        Caller must hand it back with release().
        """
        if self.pool is None:
            raise DatabaseError("Database connection pool is closed")
        try:
            conn = self.pool.getconn()
            conn.autocommit = False
        except psycopg2.Error as e:
            raise DatabaseError(f"Could not acquire connection: {e}") from e
        self.logger.debug("Connection acquired from pool")
        return conn

    def release(self, conn: Connection):
        """Return a connection to the pool."""
        if self.pool is None:
            return
        try:
            self.pool.putconn(conn)
        except psycopg2.Error as e:
            raise DatabaseError(f"Could not release connection: {e}") from e
        self.logger.debug("Connection released back to pool")

    @contextmanager
    def get_connection(self) -> Connection:
        """
        Get connection from pool as context manager.
        Commits on success, rolls back on error, always returns it to the pool.
        """
        conn = self.acquire()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.release(conn)

    def run(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[List[Tuple]]:
        """
        Execute one statement on a pooled connection.

        Args:
            query: SQL query
            params: Query parameters

        Returns:
            Fetched rows, or None for statements without a result set
        """
        start = time.perf_counter()
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall() if cur.description else None
                    rowcount = cur.rowcount
        except psycopg2.Error as e:
            self.logger.error("Query execution failed", error=str(e))
            raise DatabaseError(f"Query failed: {e}") from e

        duration_ms = (time.perf_counter() - start) * 1000
        self.logger.debug("Query executed", ms=f"{duration_ms:.0f}", rows=rowcount)
        return rows

    def count_rows(self, table_name: str) -> int:
        """Return the number of rows in a table."""
        rows = self.run(f"SELECT COUNT(*) AS total FROM {table_name}")
        return int(rows[0][0]) if rows else 0

    def test_connection(self) -> bool:
        """Test database connection."""
        try:
            rows = self.run("SELECT version()")
        except DatabaseError as e:
            self.logger.error("Database connection failed", error=str(e))
            return False
        version = rows[0][0] if rows else "unknown"
        self.logger.info("Database connected", version=str(version)[:50])
        return True

    def close(self):
        """Close all connections in pool."""
        if self.pool is not None:
            self.pool.closeall()
            self.pool = None
            self.logger.info("Database connection pool closed")
