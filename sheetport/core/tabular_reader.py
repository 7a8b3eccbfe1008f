"""Tabular Reader — turns an uploaded CSV or Excel file into headers + rows.

Excel files are read with openpyxl (first sheet, first row is the header).
Rows are cleaned: strings trimmed, empty strings become None, completely
empty rows are dropped.
"""

import csv
import io
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

import openpyxl

from sheetport.core.models import CellValue, ContentRow, ParsedFile

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm")
CSV_SUFFIXES = (".csv",)


def _cell_value(value: Any) -> CellValue:
    """Narrow an openpyxl cell value to the scalar kinds rows carry."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def clean_rows(rows: list[ContentRow], headers: list[str]) -> list[ContentRow]:
    """Trim strings, map "" to None and drop rows with no values at all."""
    cleaned = []
    for row in rows:
        out: ContentRow = {}
        for header in headers:
            value = row.get(header)
            if isinstance(value, str):
                value = value.strip() or None
            out[header] = value
        if any(v is not None for v in out.values()):
            cleaned.append(out)
    return cleaned


def parse_csv_text(text: str, file_name: str = "upload.csv") -> ParsedFile:
    """Parse CSV text with a header row; all cell values stay text."""
    reader = csv.reader(io.StringIO(text))
    errors: list[str] = []
    try:
        header_row = next(reader)
    except StopIteration:
        return ParsedFile(file_name=file_name, headers=[], rows=[], total_rows=0)

    headers = [h.strip() for h in header_row]
    rows: list[ContentRow] = []
    for line_no, values in enumerate(reader, start=2):
        if len(values) > len(headers):
            errors.append(f"Row {line_no}: {len(values)} values for {len(headers)} columns")
        rows.append({h: (values[i] if i < len(values) else None) for i, h in enumerate(headers)})

    return ParsedFile(
        file_name=file_name,
        headers=headers,
        rows=clean_rows(rows, headers),
        total_rows=len(rows),
        errors=errors,
    )


def parse_excel(file_path: Path) -> ParsedFile:
    """Parse the first worksheet of an Excel workbook."""
    wb = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
    try:
        if not wb.sheetnames:
            raise ValueError("Excel file contains no sheets")
        ws = wb.worksheets[0]
        all_rows = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()

    if not all_rows or all(h is None for h in all_rows[0]):
        raise ValueError("Excel sheet is empty")

    headers = ["" if h is None else str(h).strip() for h in all_rows[0]]
    rows: list[ContentRow] = []
    for values in all_rows[1:]:
        rows.append({
            h: (_cell_value(values[i]) if i < len(values) else None)
            for i, h in enumerate(headers)
        })

    return ParsedFile(
        file_name=file_path.name,
        headers=headers,
        rows=clean_rows(rows, headers),
        total_rows=len(rows),
    )


def parse_file(file_path: Path) -> ParsedFile:
    """Parse a CSV or Excel file based on its extension."""
    suffix = file_path.suffix.lower()
    if suffix in CSV_SUFFIXES:
        parsed = parse_csv_text(file_path.read_text(encoding="utf-8-sig"), file_path.name)
    elif suffix in EXCEL_SUFFIXES:
        parsed = parse_excel(file_path)
    else:
        raise ValueError("Unsupported file format. Please upload a CSV or Excel file.")

    parsed.errors.extend(validate_structure(parsed))
    logger.info(f"Parsed {len(parsed.rows)} rows from {file_path.name}")
    return parsed


def validate_structure(parsed: ParsedFile) -> list[str]:
    """Report structural problems: missing headers/rows, duplicate or empty headers."""
    errors: list[str] = []

    if not parsed.headers:
        errors.append("No column headers found in the file")
    if not parsed.rows:
        errors.append("No data rows found in the file")

    seen: set[str] = set()
    for index, header in enumerate(parsed.headers):
        if not header:
            errors.append(f"Empty column header at position {index + 1}")
            continue
        if header.lower() in seen:
            errors.append(f'Duplicate column header: "{header}"')
        seen.add(header.lower())

    return errors
