"""CSV export utilities."""

from __future__ import annotations

import csv
import io
from typing import Iterable

from flask import Response, stream_with_context


def _serialize_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def export_rows_to_csv(
    rows: Iterable[dict],
    columns: Iterable[tuple[str, str]],
    filename: str,
) -> Response:
    columns = list(columns)
    headers = [header for _, header in columns]

    def generate():
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(headers)
        yield output.getvalue()
        output.seek(0)
        output.truncate(0)
        for row in rows:
            writer.writerow([_serialize_value(row.get(key)) for key, _ in columns])
            yield output.getvalue()
            output.seek(0)
            output.truncate(0)

    response = Response(stream_with_context(generate()), mimetype="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response
