"""
Configuration management for the MES ingestion system.
Handles environment variables, constants, and runtime parameters.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
from dotenv import load_dotenv

from .errors import ConfigError


# Defaults
DEFAULT_BATCH_SIZE = 500
DEFAULT_DATA_DIR = "./data"

# A table holding more rows than this is treated as already loaded
SKIP_THRESHOLD = 5

# Source file per record type, relative to the data directory
DEFAULT_FILES: Dict[str, str] = {
    "assembly_lots": "Assembly Lots.json",
    "assembly_split_lots": "Assembly Split Lots.json",
    "equipment_events": "Equipment Events.json",
    "equipment_status": "Equipment Status.json",
    "final_test_lots": "FT.json",
    "materials": "Materials.json",
}


def _env_int(name: str, default: int) -> int:
    """Read an integer variable, falling back to default when unset or invalid."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass
class IngestConfig:
    """Central configuration for data ingestion."""

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    database_url: Optional[str] = None
    db_connect_timeout: int = 2

    # Pool
    pool_min: int = 2
    pool_max: int = 10

    # Loading
    batch_size: int = DEFAULT_BATCH_SIZE
    data_dir: Path = Path(DEFAULT_DATA_DIR)

    log_level: str = "INFO"

    def __post_init__(self):
        if not self.database_url and not self.db_name:
            raise ConfigError("Missing required environment variable: DB_NAME (or DATABASE_URL)")
        if self.pool_min > self.pool_max:
            raise ConfigError(
                "DB_POOL_MIN must not exceed DB_POOL_MAX",
                {"pool_min": self.pool_min, "pool_max": self.pool_max},
            )
        if self.batch_size < 1:
            raise ConfigError("BATCH_SIZE must be at least 1", {"batch_size": self.batch_size})
        self.data_dir = Path(self.data_dir)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "IngestConfig":
        """
        Load configuration from environment variables.

        Args:
            env_file: Explicit .env file. When omitted, .env.local and then
                .env in the working directory are tried.
        """
        if env_file is not None:
            if not Path(env_file).exists():
                raise ConfigError(f"Environment file not found: {env_file}")
            load_dotenv(env_file)
        else:
            for candidate in (Path.cwd() / ".env.local", Path.cwd() / ".env"):
                if candidate.exists():
                    load_dotenv(candidate)
                    break

        return cls(
            db_host=os.getenv("DB_HOST") or "localhost",
            db_port=_env_int("DB_PORT", 5432),
            db_name=os.getenv("DB_NAME") or None,
            db_user=os.getenv("DB_USER") or None,
            db_password=os.getenv("DB_PASSWORD") or None,
            database_url=os.getenv("DATABASE_URL") or None,
            db_connect_timeout=_env_int("DB_CONNECT_TIMEOUT", 2),
            pool_min=_env_int("DB_POOL_MIN", 2),
            pool_max=_env_int("DB_POOL_MAX", 10),
            batch_size=_env_int("BATCH_SIZE", DEFAULT_BATCH_SIZE),
            data_dir=Path(os.getenv("DATA_DIR") or DEFAULT_DATA_DIR),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    def connection_kwargs(self) -> Dict[str, object]:
        """Keyword arguments for psycopg2.connect / the connection pool."""
        if self.database_url:
            return {"dsn": self.database_url, "connect_timeout": self.db_connect_timeout}

        kwargs: Dict[str, object] = {
            "host": self.db_host,
            "port": self.db_port,
            "dbname": self.db_name,
            "connect_timeout": self.db_connect_timeout,
        }
        if self.db_user:
            kwargs["user"] = self.db_user
        if self.db_password:
            kwargs["password"] = self.db_password
        return kwargs

    def default_file(self, record_type: str) -> Path:
        """Default source file for a record type."""
        try:
            return self.data_dir / DEFAULT_FILES[record_type]
        except KeyError:
            raise ConfigError(f"No default file for record type: {record_type}") from None

    @property
    def database_label(self) -> str:
        """Database name for display, without credentials."""
        if self.db_name:
            return self.db_name
        return "from DATABASE_URL"


# Message constants
MSG_LOADING_ENV = "Loading environment configuration"
MSG_CONNECTING_DB = "Establishing database connection"
MSG_ROLLBACK = "Rolling back transaction"
MSG_CLEANUP = "Cleaning up resources"

# Error messages
ERR_FILE_NOT_FOUND = "File not found"
ERR_CONNECTION_FAILED = "Failed to establish connection"

# Status indicators
STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETE = "complete"
STATUS_ROLLED_BACK = "rolled_back"
