"""
Infrastructure layer: reading and writing fetched data to local files.

Supported formats are ``json``, ``json.gz``, ``csv`` and ``txt``. ``auto``
picks the format from the file extension.
"""
import csv
import gzip
import io
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)

FILE_FORMATS = ("json", "json.gz", "csv", "txt", "auto")

PathLike = Union[str, Path]


def get_file_extension(file_format: str) -> str:
    """Output extension (with the dot) for a --format value."""
    if file_format == "json.gz":
        return ".json.gz"
    if file_format == "csv":
        return ".csv"
    return ".json"


def detect_format(filepath: PathLike) -> str:
    """Infer the file format from the file name."""
    name = str(filepath).lower()
    if name.endswith(".csv"):
        return "csv"
    if name.endswith(".json"):
        return "json"
    if name.endswith(".json.gz"):
        return "json.gz"
    return "txt"


def _resolve_format(filepath: PathLike, file_format: str) -> str:
    if file_format not in FILE_FORMATS:
        raise ValueError(f"Unsupported file format: {file_format}")
    if file_format == "auto":
        return detect_format(filepath)
    return file_format


def _csv_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return value


def _to_csv(data: Any) -> str:
    if not isinstance(data, (list, tuple)) or not data or not isinstance(data[0], Mapping):
        raise ValueError("CSV format requires a non-empty list of objects")

    headers = list(data[0].keys())
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in data:
        if not isinstance(row, Mapping):
            raise ValueError("CSV format requires a non-empty list of objects")
        writer.writerow({header: _csv_cell(row.get(header)) for header in headers})
    return buffer.getvalue()


def write_to_file(data: Any, filepath: PathLike, file_format: str = "auto") -> Path:
    """
    Write data to a file, creating parent directories as needed.

    Args:
        data: Data to write (dict, list, str, ...)
        filepath: Destination path
        file_format: One of 'json', 'json.gz', 'csv', 'txt', 'auto'

    Returns:
        The path written

    Raises:
        ValueError: If filepath is empty, the format is unknown, or CSV data
            is not a non-empty list of mappings
    """
    if not filepath:
        raise ValueError("Filepath is required")

    path = Path(filepath)
    resolved = _resolve_format(path, file_format)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        if resolved == "json.gz":
            text = json.dumps(data, indent=2, ensure_ascii=False)
            path.write_bytes(gzip.compress(text.encode("utf-8")))
        elif resolved == "json":
            path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        elif resolved == "csv":
            path.write_text(_to_csv(data), encoding="utf-8", newline="")
        else:
            path.write_text(str(data), encoding="utf-8")

    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Error writing to file {path}: {e}")
        raise

    logger.info(f"Successfully wrote data to {path}")
    return path


def read_from_file(filepath: PathLike, file_format: str = "auto") -> Any:
    """
    Read data written by ``write_to_file``.

    CSV files come back as a list of dicts with string values.

    Raises:
        ValueError: If filepath is empty or the format is unknown
        FileNotFoundError: If the file does not exist
    """
    if not filepath:
        raise ValueError("Filepath is required")

    path = Path(filepath)
    resolved = _resolve_format(path, file_format)

    if not path.exists():
        logger.error(f"Error reading from file {path}: file does not exist")
        raise FileNotFoundError(f"File not found: {path}")

    if resolved == "json.gz":
        result = json.loads(gzip.decompress(path.read_bytes()).decode("utf-8"))
    elif resolved == "json":
        result = json.loads(path.read_text(encoding="utf-8"))
    elif resolved == "csv":
        with path.open(encoding="utf-8", newline="") as handle:
            result = list(csv.DictReader(handle))
    else:
        result = path.read_text(encoding="utf-8")

    logger.info(f"Successfully read data from {path}")
    return result
