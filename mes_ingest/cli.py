#!/usr/bin/env python3
"""
Command line entry points for the MES ingestion system.

    mes-ingest load materials --file ./data/Materials.json
    mes-ingest count
    mes-ingest status

Each record type also has its own console script (load-materials, ...).
"""
import sys
import argparse
from pathlib import Path
from typing import List, Optional

from .config import IngestConfig, MSG_LOADING_ENV, MSG_CONNECTING_DB, MSG_CLEANUP
from .database import DatabaseManager
from .errors import IngestError
from .loader import BatchLoader, LoadResult
from .logger import StructuredLogger, LogLevel, get_logger, set_logger
from .metrics import MetricsCollector
from .tables import TABLES


def _setup_logger(args, config: Optional[IngestConfig] = None):
    if getattr(args, "verbose", False):
        level = LogLevel.DEBUG
    elif config is not None:
        level = LogLevel.from_name(config.log_level)
    else:
        level = LogLevel.INFO
    set_logger(StructuredLogger(min_level=level))


def _load_config(args) -> IngestConfig:
    env_file = Path(args.env_file) if getattr(args, "env_file", None) else None
    config = IngestConfig.from_env(env_file=env_file)
    _setup_logger(args, config)
    return config


def print_summary(result: LoadResult):
    """Print the end-of-load summary block."""
    lines = [
        "",
        "═" * 40,
        "PROCESSING COMPLETE".center(40),
        "═" * 40,
        f"   Total Records:    {result.total}",
        f"   Inserted:         {result.inserted}",
    ]
    if result.ignores_conflicts:
        lines.append(f"   Duplicates:       {result.duplicates}")
    lines.append(f"   Duration:         {result.duration}s")
    if result.rate > 0:
        lines.append(f"   Records/Second:   {round(result.rate)}")
    lines.extend(["═" * 40, ""])
    print("\n".join(lines))


def load_command(args) -> int:
    """Load one record type from its JSON file."""
    logger = get_logger()
    table = TABLES[args.record_type]

    try:
        logger.info(MSG_LOADING_ENV)
        config = _load_config(args)
    except IngestError as e:
        logger.error("Configuration error", error=e.message)
        return 1

    logger = get_logger()
    logger.banner(f"{table.label} - PostgreSQL Loader")

    file_path = Path(args.file) if args.file else config.default_file(args.record_type)
    batch_size = args.batch_size or config.batch_size

    logger.info(
        "Configuration",
        database=config.database_label,
        file=str(file_path),
        batch_size=batch_size,
    )

    metrics = MetricsCollector()
    database = None
    try:
        logger.info(MSG_CONNECTING_DB)
        database = DatabaseManager(config, metrics=metrics)
        loader = BatchLoader(database, table, metrics=metrics)

        result = loader.process_file(file_path, batch_size)
        print_summary(result)

        count = loader.get_count()
        logger.info(f"Total records in {table.name}", count=count)
        print(metrics.format_summary())
        return 0

    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 0
    except IngestError as e:
        logger.error("Load failed", error=e.message)
        return 1
    except Exception as e:
        logger.error("Load failed", error=str(e))
        return 1
    finally:
        if database is not None:
            logger.debug(MSG_CLEANUP)
            database.close()


def count_command(args) -> int:
    """Print row counts for the given record types (all by default)."""
    logger = get_logger()
    try:
        config = _load_config(args)
    except IngestError as e:
        logger.error("Configuration error", error=e.message)
        return 1

    logger = get_logger()
    record_types = args.record_types or list(TABLES)
    database = None
    try:
        database = DatabaseManager(config)
        for record_type in record_types:
            table = TABLES[record_type]
            count = database.count_rows(table.name)
            print(f"{table.name:<24} {count:>10,}")
        return 0
    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 0
    except IngestError as e:
        logger.error("Count failed", error=e.message)
        return 1
    finally:
        if database is not None:
            database.close()


def status_command(args) -> int:
    """Check database connectivity."""
    logger = get_logger()
    try:
        config = _load_config(args)
    except IngestError as e:
        logger.error("Configuration error", error=e.message)
        return 1

    logger = get_logger()
    logger.section("SYSTEM STATUS")
    database = None
    try:
        database = DatabaseManager(config)
        if not database.test_connection():
            return 1
        logger.success("Database operational", database=config.database_label)
        return 0
    except IngestError as e:
        logger.error("Status check failed", error=e.message)
        return 1
    finally:
        if database is not None:
            database.close()


def _add_common_options(parser: argparse.ArgumentParser):
    parser.add_argument(
        '--env-file',
        type=str,
        help='Path to a .env file (default: .env.local or .env)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )


def _add_load_options(parser: argparse.ArgumentParser):
    parser.add_argument(
        '--file',
        type=str,
        help='JSON file to load (default: the record type\'s file in DATA_DIR)'
    )
    parser.add_argument(
        '--batch-size',
        type=int,
        help='Rows per INSERT statement (default: BATCH_SIZE or 500)'
    )


def _validate_args(parser: argparse.ArgumentParser, args):
    if getattr(args, "batch_size", None) is not None and args.batch_size < 1:
        parser.error("--batch-size must be at least 1")
    for record_type in getattr(args, "record_types", None) or []:
        if record_type not in TABLES:
            parser.error(f"unknown record type: {record_type}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mes-ingest",
        description="Load MES JSON exports into PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    load_parser = subparsers.add_parser('load', help='Load one record type')
    load_parser.add_argument('record_type', choices=sorted(TABLES), help='Record type')
    _add_load_options(load_parser)
    _add_common_options(load_parser)

    count_parser = subparsers.add_parser('count', help='Show table row counts')
    count_parser.add_argument(
        'record_types',
        nargs='*',
        metavar='record_type',
        help='Record types (default: all): ' + ', '.join(sorted(TABLES))
    )
    _add_common_options(count_parser)

    status_parser = subparsers.add_parser('status', help='Check database connectivity')
    _add_common_options(status_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _validate_args(parser, args)
    _setup_logger(args)

    if args.command == 'load':
        return load_command(args)
    elif args.command == 'count':
        return count_command(args)
    elif args.command == 'status':
        return status_command(args)
    parser.print_help()
    return 1


def run_record_type(record_type: str, argv: Optional[List[str]] = None) -> int:
    """Entry point for a single record type loader."""
    parser = argparse.ArgumentParser(
        prog=f"load-{record_type.replace('_', '-')}",
        description=f"Load {TABLES[record_type].label} into PostgreSQL"
    )
    _add_load_options(parser)
    _add_common_options(parser)
    args = parser.parse_args(argv)
    _validate_args(parser, args)
    args.record_type = record_type
    _setup_logger(args)
    return load_command(args)


def assembly_lots_main() -> int:
    return run_record_type("assembly_lots")


def assembly_split_lots_main() -> int:
    return run_record_type("assembly_split_lots")


def equipment_events_main() -> int:
    return run_record_type("equipment_events")


def equipment_status_main() -> int:
    return run_record_type("equipment_status")


def final_test_lots_main() -> int:
    return run_record_type("final_test_lots")


def materials_main() -> int:
    return run_record_type("materials")


if __name__ == '__main__':
    sys.exit(main())
