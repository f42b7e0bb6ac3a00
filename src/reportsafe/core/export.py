"""
Report Export

Renders report lists as CSV (one row per report, fixed columns) or as a
pretty-printed JSON array of full report documents.
"""

import csv
import io
import json
from datetime import datetime
from typing import Iterable, Optional

from reportsafe.models.report import Report
from reportsafe.models.requests import ExportFormat

CSV_HEADER = ["Case ID", "Status", "Severity", "Incident Types", "Submitted At", "Resolved At", "Admin Notes"]


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def export_csv(reports: Iterable[Report]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for report in reports:
        writer.writerow([
            report.case_id or "",
            report.status.value,
            report.severity.value,
            ", ".join(t.value for t in report.incident_types),
            _iso(report.submitted_at),
            _iso(report.resolved_at),
            "; ".join(note.text for note in report.admin_notes),
        ])

    return buffer.getvalue().encode("utf-8")


def export_json(reports: Iterable[Report]) -> bytes:
    documents = [report.model_dump(mode="json") for report in reports]
    return json.dumps(documents, indent=2).encode("utf-8")


def render(reports: Iterable[Report], export_format: ExportFormat) -> bytes:
    if export_format == ExportFormat.JSON:
        return export_json(reports)
    return export_csv(reports)
