"""Decode uploaded CSV and spreadsheet buffers into raw field/value rows."""

from __future__ import annotations

import csv
import logging
from io import BytesIO, StringIO
from pathlib import PurePath
from typing import Dict, List, Literal, Optional

import pandas as pd

from agentdist.errors import MalformedInput, UnsupportedFormat


logger = logging.getLogger(__name__)

TabularFormat = Literal["csv", "xls", "xlsx"]
RawRecord = Dict[str, str]

CSV_MIME = "text/csv"
XLS_MIME = "application/vnd.ms-excel"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ALLOWED_MIME_TYPES = frozenset({CSV_MIME, XLS_MIME, XLSX_MIME})
ALLOWED_EXTENSIONS = frozenset({".csv", ".xls", ".xlsx"})

_EXTENSION_FORMATS: dict[str, TabularFormat] = {
    ".csv": "csv",
    ".xls": "xls",
    ".xlsx": "xlsx",
}

# application/vnd.ms-excel is also what several browsers send for .csv files,
# so it only decides the format when the filename cannot.
_UNAMBIGUOUS_MIME_FORMATS: dict[str, TabularFormat] = {
    CSV_MIME: "csv",
    XLSX_MIME: "xlsx",
}


def _extension(filename: Optional[str]) -> str:
    if not filename:
        return ""
    return PurePath(filename).suffix.lower()


def _base_mime(content_type: Optional[str]) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_allowed_upload(content_type: Optional[str], filename: Optional[str]) -> bool:
    """Return True when either the MIME type or the extension is accepted."""

    return _base_mime(content_type) in ALLOWED_MIME_TYPES or _extension(filename) in ALLOWED_EXTENSIONS


def detect_format(content_type: Optional[str], filename: Optional[str]) -> TabularFormat:
    """Resolve the tabular format from the declared media type and filename."""

    mime = _base_mime(content_type)
    if mime in _UNAMBIGUOUS_MIME_FORMATS:
        return _UNAMBIGUOUS_MIME_FORMATS[mime]
    by_extension = _EXTENSION_FORMATS.get(_extension(filename))
    if by_extension is not None:
        return by_extension
    if mime == XLS_MIME:
        return "xls"
    raise UnsupportedFormat(
        f"Unsupported file type (content type {content_type or 'unknown'!r}, filename {filename or 'unknown'!r})"
    )


def decode_csv(buffer: bytes) -> List[RawRecord]:
    try:
        text = buffer.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MalformedInput(f"CSV file is not valid UTF-8: {exc}") from exc

    records: List[RawRecord] = []
    try:
        reader = csv.DictReader(StringIO(text, newline=""), restval="")
        for row in reader:
            # Values beyond the header row land under the ``None`` key.
            records.append({key: value for key, value in row.items() if key is not None})
    except csv.Error as exc:
        raise MalformedInput(f"CSV file could not be parsed: {exc}") from exc
    return records


def decode_spreadsheet(buffer: bytes) -> List[RawRecord]:
    """Read the first sheet of an XLS/XLSX workbook with its first row as header."""

    try:
        frame = pd.read_excel(
            BytesIO(buffer),
            sheet_name=0,
            header=0,
            dtype=str,
            keep_default_na=False,
        )
    except pd.errors.EmptyDataError:
        return []
    except ImportError:
        raise
    except Exception as exc:
        # openpyxl, xlrd and zipfile each raise their own error types for corrupt workbooks.
        raise MalformedInput(f"Spreadsheet could not be read: {exc}") from exc

    records: List[RawRecord] = []
    for row in frame.to_dict(orient="records"):
        record = {
            str(column): "" if value is None or pd.isna(value) else str(value)
            for column, value in row.items()
        }
        # Blank sheet rows are skipped, as csv.DictReader skips blank lines.
        if not any(value.strip() for value in record.values()):
            continue
        records.append(record)
    return records


def decode(
    buffer: bytes,
    format_hint: Optional[TabularFormat] = None,
    *,
    filename: Optional[str] = None,
) -> List[RawRecord]:
    """Decode ``buffer`` into an ordered list of raw records.

    ``format_hint`` wins when given; otherwise the format is inferred from
    ``filename``. A header-only file decodes to an empty list.
    """

    tabular_format = format_hint or detect_format(None, filename)
    if tabular_format == "csv":
        records = decode_csv(buffer)
    elif tabular_format in ("xls", "xlsx"):
        records = decode_spreadsheet(buffer)
    else:
        raise UnsupportedFormat(f"Unsupported format hint {tabular_format!r}")
    logger.debug("Decoded %s rows from %s buffer (%s bytes)", len(records), tabular_format, len(buffer))
    return records
