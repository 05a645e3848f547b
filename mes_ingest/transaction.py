"""
Load transaction: one exclusive connection and one database transaction
spanning every batch of a file load.
"""
from typing import Any, Optional, Sequence

import psycopg2

from .config import (
    MSG_ROLLBACK,
    STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETE, STATUS_ROLLED_BACK,
)
from .database import DatabaseManager
from .errors import DatabaseError
from .logger import get_logger


class LoadTransaction:
    """
    Scoped transaction for a file load.

        with LoadTransaction(database) as tx:
            tx.execute(insert_sql, params)   # batch 1
            tx.execute(insert_sql, params)   # batch 2
        # committed here; any exception rolls back every batch

    The connection goes back to the pool on every exit path.
    """

    def __init__(self, database: DatabaseManager):
        self.database = database
        self.logger = get_logger()

        self.status = STATUS_PENDING
        self.statements = 0
        self._conn = None

    def __enter__(self):
        # autocommit is off: psycopg2 issues BEGIN before the first statement
        self._conn = self.database.acquire()
        self.status = STATUS_PROCESSING
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                self.rollback()
                return False
            self.commit()
        finally:
            if self._conn is not None:
                self._release(failing=exc_type is not None)
        return False

    def _release(self, failing: bool):
        conn, self._conn = self._conn, None
        try:
            self.database.release(conn)
        except DatabaseError as e:
            if not failing:
                raise
            # keep the error that aborted the load
            self.logger.error("Connection release failed after rollback", error=e.message)

    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        """
        Execute a statement inside the transaction.

        Returns:
            Number of rows the statement affected
        """
        if self.status != STATUS_PROCESSING:
            raise DatabaseError(f"Transaction is not open (status={self.status})")
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                rowcount = cur.rowcount
        except psycopg2.Error as e:
            raise DatabaseError(f"Statement failed: {e}") from e
        self.statements += 1
        return max(rowcount, 0)

    def commit(self):
        try:
            self._conn.commit()
        except psycopg2.Error as e:
            self.logger.error("Commit failed, rolling back", error=str(e))
            self.rollback()
            raise DatabaseError(f"Commit failed: {e}") from e
        self.status = STATUS_COMPLETE

    def rollback(self):
        self.logger.warning(MSG_ROLLBACK, statements=self.statements)
        try:
            self._conn.rollback()
        except psycopg2.Error as e:
            # the exception that triggered the rollback still propagates
            self.logger.error("Database rollback failed", error=str(e))
        self.status = STATUS_ROLLED_BACK
