"""Render research data as JSON, CSV, Markdown or plain text."""

import csv
import io
import json
from typing import Any, List, Mapping

EXPORT_FORMATS = ("json", "csv", "markdown", "txt")


def _headers(rows: List[Mapping[str, Any]]) -> List[str]:
    headers: List[str] = []
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)
    return headers


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _to_csv(data: Any) -> str:
    if not isinstance(data, list) or not data or not all(isinstance(r, Mapping) for r in data):
        raise ValueError("CSV export requires a non-empty list of objects")
    headers = _headers(data)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in data:
        writer.writerow([_cell(row.get(h)) for h in headers])
    return buffer.getvalue().rstrip("\n")


def _to_markdown(data: Any) -> str:
    if isinstance(data, Mapping):
        return "\n".join(f"**{key}:** {_cell(value)}" for key, value in data.items())
    if isinstance(data, list):
        if not data:
            return "No data to export"
        if not all(isinstance(r, Mapping) for r in data):
            return "\n".join(f"- {_cell(item)}" for item in data)
        headers = _headers(data)
        lines = [
            f"| {' | '.join(headers)} |",
            f"| {' | '.join('---' for _ in headers)} |",
        ]
        for row in data:
            cells = [_cell(row.get(h)).replace("|", "\\|") for h in headers]
            lines.append(f"| {' | '.join(cells)} |")
        return "\n".join(lines)
    return _cell(data)


def export_data(data: Any, fmt: str = "json") -> str:
    """
    Export data in the requested format.

    Raises:
        ValueError: unsupported format, or data shape the format cannot render
    """
    fmt = (fmt or "json").strip().lower()
    if fmt in ("json", "txt"):
        return json.dumps(data, ensure_ascii=False, indent=2)
    if fmt == "csv":
        return _to_csv(data)
    if fmt == "markdown":
        return _to_markdown(data)
    raise ValueError(f"unsupported export format: {fmt}")
