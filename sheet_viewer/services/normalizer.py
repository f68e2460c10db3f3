"""
Payload normalizer.

Every transport hands back a different shape:

  typed cells   {"table": {"cols": [...], "rows": [{"c": [{"v": .., "f": ..}]}]}}
  CSV text      header line followed by data lines
  records       [{"Header": "value", ...}, ...]

All of them are turned into the same Table of Columns and string Rows here.
Nothing in this module touches the network.
"""

import csv
import json
import re
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Sequence

from sheet_viewer.config import DATE_FORMAT
from sheet_viewer.errors import EmptyTableError, MalformedResponseError
from sheet_viewer.schemas import Column, Table

_DATE_LITERAL = re.compile(r"^Date\((\d+),(\d+),(\d+)")

_COLUMN_TYPES = {
    "string": "string",
    "number": "number",
    "boolean": "boolean",
    "date": "date",
    "datetime": "date",
    "timeofday": "other",
}


def normalize_header(value: Any) -> str:
    """Slug header text: lowercase, alphanumerics and single spaces only."""
    text = "" if value is None else str(value)
    text = text.strip().lower()
    text = re.sub(r"[()]", " ", text)
    text = re.sub(r"[^a-z0-9\s]", " ", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def build_columns(
    labels: Iterable[Any], types: Sequence[str] | None = None
) -> list[Column]:
    """
    Build columns from header labels.

    Blank slugs fall back to "column N" and repeated slugs get the 1-based
    column position appended, so keys stay unique and deterministic.
    """
    columns: list[Column] = []
    used: set[str] = set()

    for index, label in enumerate(labels):
        position = index + 1
        text = "" if label is None else str(label).strip()

        key = normalize_header(text) or f"column {position}"
        if key in used:
            key = f"{key} {position}"
            while key in used:
                key = f"{key} {position}"
        used.add(key)

        column_type = "string"
        if types is not None and index < len(types):
            column_type = _COLUMN_TYPES.get(types[index] or "string", "other")

        columns.append(
            Column(key=key, label=text or f"Column {position}", type=column_type)
        )

    return columns


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def format_date_literal(text: str) -> str | None:
    """
    Format a "Date(Y,M,D...)" literal, M being zero-based.

    Out-of-range months and days roll over into the following year/month.
    Returns None when the text is not a date literal or falls outside the
    calendar range.
    """
    match = _DATE_LITERAL.match(text)
    if not match:
        return None

    year, month, day = (int(part) for part in match.groups())
    year += month // 12
    try:
        first_of_month = date(year, month % 12 + 1, 1)
        return (first_of_month + timedelta(days=day - 1)).strftime(DATE_FORMAT)
    except (ValueError, OverflowError):
        return None


def format_cell_value(cell: Mapping[str, Any] | None, column_type: str) -> str:
    """Render one typed cell, preferring its precomputed display value."""
    if not cell:
        return ""

    display = cell.get("f")
    if isinstance(display, str) and display.strip():
        return display

    raw = cell.get("v")
    if raw is None:
        return ""

    if column_type == "date" and isinstance(raw, str):
        formatted = format_date_literal(raw)
        if formatted is not None:
            return formatted

    return _stringify(raw)


def parse_wrapped_json(text: str) -> dict[str, Any]:
    """
    Pull the JSON object out of a wrapped response such as
    "/*O_o*/ google.visualization.Query.setResponse({...});".
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise MalformedResponseError("Invalid response from Google Sheets.")

    try:
        payload = json.loads(text[start : end + 1])
    except ValueError as exc:
        raise MalformedResponseError("Invalid response from Google Sheets.") from exc

    if not isinstance(payload, dict):
        raise MalformedResponseError("Invalid response from Google Sheets.")
    return payload


def from_typed_payload(payload: Mapping[str, Any]) -> Table:
    """Normalize a visualization query payload (the "table" cols/rows shape)."""
    table = payload.get("table") or {}
    if not isinstance(table, dict):
        raise MalformedResponseError("Response table has an unexpected shape.")

    cols = table.get("cols") or []
    raw_rows = table.get("rows") or []
    if not isinstance(cols, list) or not isinstance(raw_rows, list):
        raise MalformedResponseError("Response table has an unexpected shape.")
    if not all(isinstance(col, dict) for col in cols):
        raise MalformedResponseError("Response columns have an unexpected shape.")

    columns = build_columns(
        [col.get("label") for col in cols],
        [col.get("type") or "string" for col in cols],
    )

    rows = []
    for raw_row in raw_rows:
        if raw_row is None:
            raw_row = {}
        if not isinstance(raw_row, dict):
            raise MalformedResponseError("Response rows have an unexpected shape.")
        cells = raw_row.get("c") or []
        if not isinstance(cells, list):
            raise MalformedResponseError("Response rows have an unexpected shape.")

        mapped = {}
        for index, column in enumerate(columns):
            cell = cells[index] if index < len(cells) else None
            if cell is not None and not isinstance(cell, dict):
                raise MalformedResponseError("Response cells have an unexpected shape.")
            mapped[column.key] = format_cell_value(cell, column.type)
        rows.append(mapped)

    return Table(columns=columns, rows=rows)


def parse_csv_line(line: str) -> list[str]:
    """Split one CSV line, honouring quoted fields and doubled quotes."""
    return next(csv.reader([line]), [""])


def from_csv_text(csv_text: str | None) -> Table:
    """Normalize a CSV export; every column is typed as a plain string."""
    text = csv_text or ""
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = [line for line in re.split(r"\r?\n|\r", text) if line.strip()]
    if not lines:
        raise EmptyTableError("No rows found in CSV export.")

    columns = build_columns(parse_csv_line(lines[0]))

    rows = []
    for line in lines[1:]:
        values = parse_csv_line(line)
        rows.append(
            {
                column.key: (values[index] if index < len(values) else "").strip()
                for index, column in enumerate(columns)
            }
        )

    return Table(columns=columns, rows=rows)


def from_records(records: Sequence[Mapping[str, Any]]) -> Table:
    """Normalize an array of uniform records keyed by header text."""
    if not records:
        raise EmptyTableError("No rows found in the selected sheet.")

    headers = list(records[0].keys())
    columns = build_columns(headers)

    rows = []
    for record in records:
        rows.append(
            {
                column.key: _stringify(record.get(header)).strip()
                for header, column in zip(headers, columns)
            }
        )

    return Table(columns=columns, rows=rows)
