"""
Input file parsing.

Turns an uploaded CSV, TSV, TXT or JSON file into a list of row mappings
and profiles its columns.
"""

import csv
import io
import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 100 * 1024 * 1024
ALLOWED_EXTENSIONS = (".csv", ".tsv", ".txt", ".json")
SNIFF_DELIMITERS = ",\t;|"
ANALYSIS_SAMPLE_ROWS = 100


class UploadRejected(ValueError):
    """Raised when an upload fails validation or cannot be parsed."""


@dataclass
class ParsedFile:
    """Rows read from an uploaded file."""
    filename: str
    source_format: str
    rows: List[Dict[str, Any]]
    columns: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ColumnAnalysis:
    """Profile of a single column."""
    original_name: str
    suggested_name: str
    data_type: str
    sample_values: List[Any]
    unique_count: int
    null_count: int


def file_extension(filename: str) -> str:
    return Path(filename).suffix.lower()


def validate_upload(
    filename: str,
    size_bytes: int,
    max_size_bytes: int = MAX_UPLOAD_BYTES,
    allowed_extensions: Sequence[str] = ALLOWED_EXTENSIONS
) -> str:
    """Check size and extension of an upload.

    Returns:
        The lower-cased extension

    Raises:
        UploadRejected: If the file is too large or of an unsupported type
    """
    if size_bytes > max_size_bytes:
        raise UploadRejected(
            f"File size ({size_bytes / 1024 / 1024:.1f}MB) exceeds the "
            f"{max_size_bytes / 1024 / 1024:.0f}MB limit."
        )
    extension = file_extension(filename)
    if extension not in allowed_extensions:
        allowed = ", ".join(sorted(ext.lstrip(".").upper() for ext in allowed_extensions))
        raise UploadRejected(f"File type not supported. Please upload {allowed} files.")
    return extension


def sniff_delimiter(text: str) -> str:
    """Guess the delimiter of a delimited text sample, defaulting to a comma."""
    sample = text[:4096]
    try:
        return csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _unique_headers(names: Sequence[str]) -> List[str]:
    """Suffix repeated header names: name, name_2, name_3."""
    columns: List[str] = []
    for name in names:
        candidate, suffix = name, 1
        while candidate in columns:
            suffix += 1
            candidate = f"{name}_{suffix}"
        columns.append(candidate)
    return columns


def from_csv(text: str, delimiter: str = ",", header: bool = True) -> List[Dict[str, Any]]:
    """Parse delimited text into rows; blank lines are skipped.

    Without a header row, columns are named column_1, column_2, ...
    Repeated header names get numeric suffixes.
    """
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    records = [record for record in reader if any(cell.strip() for cell in record)]
    if not records:
        return []

    if header:
        columns, records = _unique_headers(records[0]), records[1:]
    else:
        width = max(len(record) for record in records)
        columns = [f"column_{i + 1}" for i in range(width)]

    overflow = sum(1 for record in records if len(record) > len(columns))
    if overflow:
        logger.warning(
            "Dropped cells beyond the %d header columns in %d row(s)", len(columns), overflow
        )

    rows = []
    for record in records:
        row = {}
        for index, column in enumerate(columns):
            row[column] = record[index] if index < len(record) else ""
        rows.append(row)
    return rows


def from_json(text: str) -> List[Dict[str, Any]]:
    """Parse a JSON array of objects (or a single object) into rows.

    An object with a ``data`` array is unwrapped.

    Raises:
        UploadRejected: If the document is not tabular
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise UploadRejected(f"Invalid JSON: {e}") from e

    if isinstance(data, dict):
        data = data["data"] if isinstance(data.get("data"), list) else [data]
    if not isinstance(data, list):
        raise UploadRejected("JSON must be an array of objects")
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise UploadRejected(f"JSON item {index + 1} is not an object")
    return data


def _collect_columns(rows: Iterable[Dict[str, Any]]) -> List[str]:
    columns: List[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    return columns


def parse_text(filename: str, text: str) -> ParsedFile:
    """Parse file contents according to the file's extension.

    Raises:
        UploadRejected: If the extension is unknown or content is invalid
    """
    extension = file_extension(filename)
    if text.startswith("\ufeff"):
        text = text[1:]

    if extension == ".json":
        rows = from_json(text)
        source_format = "json"
    elif extension == ".tsv":
        rows = from_csv(text, delimiter="\t")
        source_format = "tsv"
    elif extension == ".csv":
        rows = from_csv(text, delimiter=",")
        source_format = "csv"
    elif extension == ".txt":
        rows = from_csv(text, delimiter=sniff_delimiter(text))
        source_format = "txt"
    else:
        raise UploadRejected(f"Unsupported file type: {extension or filename}")

    logger.info("Parsed %s: %d rows", filename, len(rows))
    return ParsedFile(
        filename=filename,
        source_format=source_format,
        rows=rows,
        columns=_collect_columns(rows)
    )


def parse_file(
    path: str,
    max_size_bytes: int = MAX_UPLOAD_BYTES,
    allowed_extensions: Sequence[str] = ALLOWED_EXTENSIONS
) -> ParsedFile:
    """Validate and parse a file from disk.

    Raises:
        FileNotFoundError: If the file doesn't exist
        UploadRejected: If validation or parsing fails
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    validate_upload(file_path.name, file_path.stat().st_size, max_size_bytes, allowed_extensions)
    try:
        text = file_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise UploadRejected(f"File is not valid UTF-8 text: {e}") from e
    return parse_text(file_path.name, text)


_NUMBER = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_URL = re.compile(r"https?://.+")
_DATE_FORMATS = ("%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y", "%b %d %Y", "%d %b %Y", "%B %d, %Y")


def _looks_like_date(text: str) -> bool:
    if len(text) <= 4:
        return False
    try:
        datetime.fromisoformat(text)
        return True
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            datetime.strptime(text, fmt)
            return True
        except ValueError:
            continue
    return False


def infer_data_type(value: Any) -> str:
    """Classify a cell as empty, boolean, integer, decimal, date, email, url or text."""
    if value is None or value == "":
        return "empty"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "decimal"

    text = str(value).strip()
    if text.lower() in ("true", "false", "yes", "no", "1", "0"):
        return "boolean"
    if _NUMBER.fullmatch(text):
        return "decimal" if "." in text else "integer"
    if _looks_like_date(text):
        return "date"
    if _EMAIL.fullmatch(text):
        return "email"
    if _URL.fullmatch(text):
        return "url"
    return "text"


def analyze_columns(rows: Sequence[Dict[str, Any]]) -> Dict[str, ColumnAnalysis]:
    """Profile each column over the first 100 rows."""
    if not rows:
        return {}

    sample = rows[:ANALYSIS_SAMPLE_ROWS]
    analysis = {}
    for column in _collect_columns(sample):
        values = [row.get(column) for row in sample]
        types = Counter(infer_data_type(value) for value in values)
        analysis[column] = ColumnAnalysis(
            original_name=column,
            suggested_name=re.sub(r"[^a-z0-9]", "_", column.lower()),
            data_type=types.most_common(1)[0][0],
            sample_values=values[:5],
            unique_count=len({json.dumps(value, sort_keys=True, default=str) for value in values}),
            null_count=sum(1 for value in values if value is None or value == "")
        )
    return analysis
