"""Lenient CSV parsing for submission and ground-truth files.

Submissions come from untrusted users, so parsing never raises: malformed rows
are dropped and empty input yields an empty table.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal

PredictionType = Literal["numeric", "classification", "text"]

DEFAULT_REQUIRED_COLUMNS = ("id", "prediction")
DEFAULT_MAX_CONTENT_BYTES = 10 * 1024 * 1024
MAX_REPORTED_ERRORS = 5


@dataclass(slots=True)
class Table:
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(slots=True)
class ValidationReport:
    valid: bool
    errors: list[str]
    row_count: int
    headers: list[str]


def _split_lines(text: str) -> list[str]:
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return [line for line in normalized.split("\n") if line.strip()]


def split_fields(line: str) -> list[str]:
    """Split one line on commas that sit outside double-quoted spans."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    index = 0
    while index < len(line):
        char = line[index]
        if char == '"':
            if in_quotes and index + 1 < len(line) and line[index + 1] == '"':
                current.append('"')
                index += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1
    fields.append("".join(current))
    return fields


def parse_csv(text: str | None) -> Table:
    lines = _split_lines(text or "")
    if not lines:
        return Table()

    headers = [h.strip().lower() for h in split_fields(lines[0])]
    rows: list[dict[str, str]] = []
    for line in lines[1:]:
        values = split_fields(line)
        # Quoted fields with embedded newlines arrive here as fragments with
        # the wrong width.
        if len(values) != len(headers):
            continue
        rows.append({header: value.strip().lower() for header, value in zip(headers, values)})

    return Table(headers=headers, rows=rows)


def _quote(value: str, sole_field: bool) -> str:
    if any(ch in value for ch in ',"') or (sole_field and value == ""):
        return '"' + value.replace('"', '""') + '"'
    return value


def serialize_csv(table: Table) -> str:
    if not table.headers:
        return ""
    sole = len(table.headers) == 1
    lines = [",".join(_quote(h, sole) for h in table.headers)]
    for row in table.rows:
        lines.append(",".join(_quote(row.get(h, ""), sole) for h in table.headers))
    return "\n".join(lines) + "\n"


def _is_number(value: str) -> bool:
    try:
        return math.isfinite(float(value))
    except ValueError:
        return False


def validate_submission(
    text: str,
    required_columns: tuple[str, ...] | list[str] = DEFAULT_REQUIRED_COLUMNS,
    prediction_type: PredictionType = "numeric",
    max_bytes: int = DEFAULT_MAX_CONTENT_BYTES,
) -> ValidationReport:
    """Pre-upload check of a submission file, reporting problems instead of raising."""
    if len(text.encode("utf-8")) > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        return ValidationReport(False, [f"File size must be less than {limit_mb:g}MB"], 0, [])

    lines = _split_lines(text)
    if len(lines) < 2:
        return ValidationReport(
            False, ["CSV must contain at least a header row and one data row"], 0, []
        )

    headers = [h.strip().lower() for h in split_fields(lines[0])]
    missing = [col for col in required_columns if col.lower() not in headers]
    if missing:
        return ValidationReport(
            False, [f"Missing required columns: {', '.join(missing)}"], 0, headers
        )

    errors: list[str] = []
    prediction_index = headers.index("prediction") if "prediction" in headers else None
    for number, line in enumerate(lines[1:], start=1):
        values = [v.strip().lower() for v in split_fields(line)]
        if len(values) != len(headers):
            errors.append(
                f"Row {number}: Column count mismatch "
                f"(expected {len(headers)}, got {len(values)})"
            )
            continue
        if prediction_index is None:
            continue
        prediction = values[prediction_index]
        if prediction_type == "numeric" and not _is_number(prediction):
            errors.append(f'Row {number}: Prediction must be a number, got "{prediction}"')
        elif prediction_type == "classification" and not prediction:
            errors.append(f"Row {number}: Prediction cannot be empty")

    if len(errors) > MAX_REPORTED_ERRORS:
        total = len(errors)
        errors = errors[:MAX_REPORTED_ERRORS]
        errors.append(f"... and {total - MAX_REPORTED_ERRORS} more errors")

    return ValidationReport(
        valid=not errors,
        errors=errors,
        row_count=len(lines) - 1,
        headers=headers,
    )
