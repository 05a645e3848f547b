"""
Record source: reads a JSON file holding a single top-level array.
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Union

from .config import ERR_FILE_NOT_FOUND
from .errors import RecordFileNotFoundError, RecordParseError, RecordSchemaError
from .logger import get_logger


def read_json_records(file_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Read and parse a JSON array file.

    Args:
        file_path: Path to a UTF-8 encoded JSON document

    Returns:
        Parsed records, in file order

    Raises:
        RecordFileNotFoundError: path is missing or not a regular file
        RecordParseError: content is not valid UTF-8 JSON
        RecordSchemaError: top-level value is not an array of objects
    """
    logger = get_logger()
    absolute_path = Path(file_path).resolve()
    logger.info("Reading JSON file", path=str(absolute_path))

    if not absolute_path.is_file():
        raise RecordFileNotFoundError(
            f"{ERR_FILE_NOT_FOUND}: {absolute_path}",
            {"path": str(absolute_path)},
        )

    size_mb = absolute_path.stat().st_size / (1024 * 1024)
    logger.info("File size", mb=f"{size_mb:.2f}")

    try:
        with open(absolute_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except UnicodeDecodeError as e:
        raise RecordParseError(
            f"File is not valid UTF-8: {absolute_path}",
            {"path": str(absolute_path), "position": e.start},
        ) from e
    except json.JSONDecodeError as e:
        raise RecordParseError(
            f"Invalid JSON in {absolute_path}: {e.msg} (line {e.lineno}, column {e.colno})",
            {"path": str(absolute_path), "line": e.lineno, "column": e.colno},
        ) from e

    if not isinstance(data, list):
        raise RecordSchemaError(
            "JSON file must contain an array",
            {"path": str(absolute_path), "found": type(data).__name__},
        )

    for index, record in enumerate(data):
        if not isinstance(record, dict):
            raise RecordSchemaError(
                f"Record {index} is not an object",
                {"path": str(absolute_path), "index": index, "found": type(record).__name__},
            )

    logger.success("Parsed objects from JSON file", count=len(data))
    return data
