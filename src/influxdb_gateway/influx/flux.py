"""Helpers for InfluxDB annotated CSV results and Flux string literals."""

from __future__ import annotations

import csv
import io


def parse_flux_csv(text: str) -> list[dict[str, str]]:
    """Parse annotated CSV into one dict per data row.

    ``#`` annotation rows are skipped, each table's header row starts a new
    column set, and blank lines between tables are ignored. The unnamed
    leading column Flux emits is dropped.
    """
    records: list[dict[str, str]] = []
    header: list[str] | None = None

    for row in csv.reader(io.StringIO(text)):
        if not row or all(not cell.strip() for cell in row):
            header = None  # Tables are separated by blank lines
            continue
        if row[0].startswith("#"):
            header = None
            continue
        if header is None:
            header = row
            continue
        if row == header:
            continue
        records.append({key: value for key, value in zip(header, row, strict=False) if key})

    return records


def column_values(text: str, column: str) -> list[str]:
    """Distinct non-empty values of ``column``, in first-seen order."""
    seen: dict[str, None] = {}
    for record in parse_flux_csv(text):
        value = record.get(column, "").strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)


def flux_string(value: str) -> str:
    """Quote ``value`` as a Flux string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("${", "\\${")
    )
    return f'"{escaped}"'
