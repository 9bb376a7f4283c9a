# app/tabular.py
"""
CSV plumbing around the normalizer: read an upload, pick the medication
column, pull out the unique names, and join generic names back onto rows.
"""
import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from app.normalizers.types import NormalizationResult
from app.settings import MAX_UPLOAD_BYTES

log = logging.getLogger(__name__)

GENERIC_NAME_COLUMN = "GENERIC_NAME"
NOT_FOUND = "NOT_FOUND"

# Common medication column names in healthcare extracts, best first
MEDICATION_COLUMN_KEYWORDS = [
    "medication",
    "drug",
    "medicine",
    "description",
    "name",
    "med",
    "rx",
    "prescription",
]

Row = Dict[str, Any]


class CSVProcessingError(ValueError):
    def __init__(self, message: str, code: str, details: Any = None):
        super().__init__(message)
        self.code = code
        self.details = details


@dataclass
class ParsedTable:
    rows: List[Row]
    columns: List[str]


# -----------------------------
# Reading
# -----------------------------
def parse_csv(content: str) -> ParsedTable:
    """Parse CSV text with a header row. Every value is read as a string."""
    if not content or not content.strip():
        raise CSVProcessingError("CSV content is empty", "EMPTY_CONTENT")

    try:
        df = pd.read_csv(
            io.StringIO(content),
            dtype=str,
            keep_default_na=False,  # keep "NA"/"None" drug strings as-is
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        raise CSVProcessingError("No column headers found in CSV file", "NO_HEADERS")
    except pd.errors.ParserError as e:
        raise CSVProcessingError(f"CSV parsing errors: {e}", "PARSE_ERROR", str(e))

    columns = [str(c) for c in df.columns]
    if not columns:
        raise CSVProcessingError("No column headers found in CSV file", "NO_HEADERS")
    if df.empty:
        raise CSVProcessingError("No data found in CSV file", "NO_DATA")

    df.columns = columns
    return ParsedTable(rows=df.to_dict(orient="records"), columns=columns)


def read_csv_upload(filename: Optional[str], content_type: Optional[str], data: bytes) -> ParsedTable:
    """Validate an uploaded file (type, size, encoding) and parse it."""
    name = (filename or "").lower()
    if not name.endswith(".csv") and content_type != "text/csv":
        raise CSVProcessingError(
            "File must be a CSV file (.csv)",
            "INVALID_FILE_TYPE",
            {"fileName": filename, "fileType": content_type},
        )
    if len(data) > MAX_UPLOAD_BYTES:
        raise CSVProcessingError(
            f"File size exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit",
            "FILE_TOO_LARGE",
            {"fileSize": len(data), "maxSize": MAX_UPLOAD_BYTES},
        )
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CSVProcessingError(f"Failed to read CSV file: {e}", "FILE_READ_ERROR")

    table = parse_csv(text)
    log.info("parsed %s: %d rows, %d columns", filename, len(table.rows), len(table.columns))
    return table


def validate_column(columns: List[str], column: str) -> bool:
    if column not in columns:
        raise CSVProcessingError(
            f'Column "{column}" not found in CSV file',
            "COLUMN_NOT_FOUND",
            {"availableColumns": columns, "requestedColumn": column},
        )
    return True


def cell_text(row: Row, column: str) -> str:
    """Trimmed string value of a cell ('' for missing/None)."""
    v = row.get(column)
    return "" if v is None else str(v).strip()


def extract_column_values(rows: Iterable[Row], column: str) -> List[str]:
    """Unique, trimmed, non-empty values of `column` in first-seen order."""
    seen: Dict[str, None] = {}
    for row in rows:
        v = cell_text(row, column)
        if v:
            seen.setdefault(v, None)
    return list(seen)


# -----------------------------
# Joining results back
# -----------------------------
def build_generic_name_map(results: Iterable[NormalizationResult]) -> Dict[str, str]:
    """original name -> generic name, or NOT_FOUND for anything unresolved."""
    return {r.original_name: (r.generic_name or NOT_FOUND) for r in results}


def add_generic_name_column(rows: Iterable[Row], column: str, generic_names: Dict[str, str]) -> List[Row]:
    """Return copies of `rows` with GENERIC_NAME filled from `generic_names`."""
    out = []
    for row in rows:
        new = dict(row)
        new[GENERIC_NAME_COLUMN] = generic_names.get(cell_text(row, column)) or NOT_FOUND
        out.append(new)
    return out


# -----------------------------
# Writing
# -----------------------------
def generate_csv(rows: List[Row]) -> str:
    if not rows:
        raise CSVProcessingError("No data to generate CSV", "NO_DATA")
    return pd.DataFrame(rows).to_csv(index=False)


# -----------------------------
# Inspection
# -----------------------------
def detect_medication_column(columns: List[str]) -> Optional[str]:
    """Guess which column holds drug names: exact keyword match, then substring."""
    lowered = [c.lower() for c in columns]
    for kw in MEDICATION_COLUMN_KEYWORDS:
        if kw in lowered:
            return columns[lowered.index(kw)]
    for kw in MEDICATION_COLUMN_KEYWORDS:
        for i, col in enumerate(lowered):
            if kw in col:
                return columns[i]
    return None


def csv_stats(table: ParsedTable) -> Dict[str, Any]:
    return {
        "rowCount": len(table.rows),
        "columnCount": len(table.columns),
        "columns": table.columns,
        "hasHeaders": bool(table.columns),
        "isEmpty": not table.rows,
    }


def validate_csv_structure(table: ParsedTable) -> Dict[str, Any]:
    errors: List[str] = []
    warnings: List[str] = []

    if not table.rows:
        errors.append("CSV file contains no data rows")
    if not table.columns:
        errors.append("CSV file contains no columns")
    elif detect_medication_column(table.columns) is None:
        warnings.append("Could not auto-detect medication column - manual selection required")

    if len(table.rows) > 1000:
        warnings.append(
            f"Large file detected ({len(table.rows)} rows) - processing may take several minutes"
        )

    return {"isValid": not errors, "errors": errors, "warnings": warnings}
