"""
Batch loader shared by every record type.

Records are split into fixed-size batches, each batch becomes one multi-row
INSERT, and all batches of a file run inside a single transaction.
"""
import math
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .config import DEFAULT_BATCH_SIZE, SKIP_THRESHOLD
from .database import DatabaseManager
from .logger import get_logger
from .metrics import MetricsCollector
from .source import read_json_records
from .tables import TableSchema, get_table
from .transaction import LoadTransaction


def generate_uuid() -> str:
    """Default row identifier factory."""
    return str(uuid.uuid4())


@dataclass
class LoadResult:
    """Summary of one file load."""
    total: int
    inserted: int
    duration: float
    skipped: bool = False
    table: str = ""
    batches: int = 0
    ignores_conflicts: bool = False

    @property
    def duplicates(self) -> int:
        """Rows dropped on a unique-key collision (insert-or-ignore tables only)."""
        if self.skipped or not self.ignores_conflicts:
            return 0
        return self.total - self.inserted

    @property
    def rate(self) -> float:
        """Inserted records per second."""
        if self.inserted > 0 and self.duration > 0:
            return self.inserted / self.duration
        return 0.0


def chunked(records: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    """Yield consecutive slices of at most size items, in order."""
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    for start in range(0, len(records), size):
        yield records[start:start + size]


def build_insert(table: TableSchema, row_count: int) -> str:
    """
    Build a multi-row INSERT with one placeholder group per row.

    Args:
        table: Destination table
        row_count: Number of rows in the batch

    Returns:
        SQL with psycopg2 %s placeholders
    """
    columns = table.columns
    group = "(" + ", ".join(["%s"] * len(columns)) + ")"
    columns_str = ", ".join(f'"{c}"' for c in columns)
    query = (
        f"INSERT INTO {table.name} ({columns_str}) "
        f"VALUES {', '.join([group] * row_count)}"
    )
    if table.conflict_key:
        query += f' ON CONFLICT ("{table.conflict_key}") DO NOTHING'
    return query


class BatchLoader:
    """
    Idempotent batch loader for one destination table.

    Skips the load when the table already holds more than SKIP_THRESHOLD rows;
    otherwise inserts every record of the file or none of them.
    """

    def __init__(
        self,
        database: DatabaseManager,
        table: Union[TableSchema, str],
        id_factory: Callable[[], str] = generate_uuid,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.database = database
        self.table = get_table(table) if isinstance(table, str) else table
        self.id_factory = id_factory
        self.metrics = metrics or database.metrics
        self.logger = get_logger()

    def get_count(self) -> int:
        """Total rows currently in the destination table."""
        return self.database.count_rows(self.table.name)

    def process_file(self, file_path: Union[str, Path], batch_size: int = DEFAULT_BATCH_SIZE) -> LoadResult:
        """
        Load a JSON array file unless the table is already populated.

        Args:
            file_path: Source JSON file
            batch_size: Rows per INSERT statement
        """
        existing = self.get_count()
        if existing > SKIP_THRESHOLD:
            self.logger.info(
                f"Database already has {existing} records. Skipping insert.",
                table=self.table.name,
            )
            return LoadResult(
                total=0, inserted=0, duration=0.0, skipped=True,
                table=self.table.name, ignores_conflicts=self.table.ignores_conflicts,
            )

        records = read_json_records(file_path)
        return self.insert_many(records, batch_size)

    def build_rows(self, batch: Sequence[Dict[str, Any]]) -> List[tuple]:
        """Map raw records to table rows, each with a fresh identifier."""
        return [self.table.build_row(record, self.id_factory()) for record in batch]

    def insert_many(self, records: Sequence[Dict[str, Any]], batch_size: int = DEFAULT_BATCH_SIZE) -> LoadResult:
        """
        Insert records in batches inside one transaction.

        Any failing batch rolls back every batch of this call and the error
        propagates.
        """
        if batch_size < 1:
            raise ValueError(f"batch size must be at least 1, got {batch_size}")

        result = LoadResult(
            total=len(records), inserted=0, duration=0.0,
            table=self.table.name, ignores_conflicts=self.table.ignores_conflicts,
        )
        if not records:
            self.logger.info("No records to insert", table=self.table.name)
            return result

        total_batches = math.ceil(len(records) / batch_size)
        start = time.perf_counter()
        self.metrics.start_timer("load_transaction")

        try:
            with LoadTransaction(self.database) as tx:
                for batch_num, batch in enumerate(chunked(records, batch_size), start=1):
                    inserted, ignored = self._insert_batch(tx, batch)
                    result.inserted += inserted
                    result.batches = batch_num

                    percent = round(batch_num / total_batches * 100)
                    details: Dict[str, int] = {"rows": inserted}
                    if ignored:
                        details["ignored"] = ignored
                    self.logger.info(f"Batch {batch_num}/{total_batches} ({percent}%)", **details)
        finally:
            self.metrics.stop_timer("load_transaction")

        result.duration = round(time.perf_counter() - start, 2)
        self.logger.success(
            "Transaction committed",
            table=self.table.name,
            inserted=result.inserted,
            seconds=result.duration,
        )
        return result

    def _insert_batch(self, tx: LoadTransaction, batch: Sequence[Dict[str, Any]]) -> Tuple[int, int]:
        rows = self.build_rows(batch)
        params = [value for row in rows for value in row]
        query = build_insert(self.table, len(rows))

        started = time.perf_counter()
        inserted = tx.execute(query, params)
        elapsed = time.perf_counter() - started

        ignored = len(rows) - inserted if self.table.ignores_conflicts else 0
        self.metrics.record_batch(self.table.name, inserted, elapsed, ignored=ignored)
        self.metrics.record_count("rows_inserted", inserted)
        if ignored:
            self.metrics.record_count("rows_ignored", ignored)
        return inserted, ignored
