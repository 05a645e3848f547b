"""
Exception hierarchy for the ingestion system.
Every failure that aborts a load derives from IngestError.
"""
from typing import Any, Dict, Optional


class IngestError(Exception):
    """Base exception for all ingestion failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(IngestError):
    """Missing or invalid configuration."""


class RecordFileNotFoundError(IngestError, FileNotFoundError):
    """Input file does not exist or is not a regular file."""


class RecordParseError(IngestError, ValueError):
    """Input file is not valid UTF-8 JSON."""


class RecordSchemaError(IngestError, ValueError):
    """Input has the wrong shape (top-level not an array, uncoercible field)."""


class DatabaseError(IngestError):
    """Connection, pool, statement or transaction failure."""
