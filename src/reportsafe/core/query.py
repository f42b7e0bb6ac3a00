"""
In-memory report query evaluation

Filter, sort and paginate semantics shared by repositories that cannot push
queries down to a database engine. The SQL repository implements the same
predicates as SQL expressions.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from reportsafe.models.query import ReportFilter, ReportSort, SortField
from reportsafe.models.report import Report, Severity

SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


def search_haystack(report: Report) -> str:
    """Lower-cased text the free-text search runs against"""
    parts = [
        report.case_id,
        report.incident.description,
        report.reporter.name if report.reporter else None,
        report.reporter.email if report.reporter else None,
        report.action_taken,
    ]
    return " ".join(part for part in parts if part).lower()


def matches(report: Report, report_filter: ReportFilter) -> bool:
    f = report_filter

    if f.status is not None and report.status != f.status:
        return False
    if f.status_in is not None and report.status not in f.status_in:
        return False
    if f.severity is not None and report.severity != f.severity:
        return False
    if f.severity_in is not None and report.severity not in f.severity_in:
        return False
    if f.incident_type is not None and f.incident_type not in report.incident_types:
        return False
    if f.assigned_to is not None and report.assigned_to != f.assigned_to:
        return False
    if f.resolved_by is not None and report.resolved_by != f.resolved_by:
        return False
    if f.is_emergency is not None and report.is_emergency != f.is_emergency:
        return False

    if f.date_from is not None or f.date_to is not None:
        if report.submitted_at is None:
            return False
        if f.date_from is not None and report.submitted_at < f.date_from:
            return False
        if f.date_to is not None and report.submitted_at > f.date_to:
            return False

    if f.reporter_email is not None:
        if report.reporter is None or report.reporter.email.lower() != f.reporter_email.lower():
            return False

    if f.search is not None and f.search.lower() not in search_haystack(report):
        return False

    return True


def _sort_key(report: Report, field: SortField):
    if field == SortField.SEVERITY:
        primary = SEVERITY_RANK[report.severity]
    elif field == SortField.STATUS:
        primary = report.status.value
    elif field == SortField.CASE_ID:
        primary = report.case_id or ""
    elif field == SortField.UPDATED_AT:
        primary = report.updated_at or datetime.min
    else:
        primary = report.submitted_at or datetime.min
    return primary, report.case_id or ""


def select(
    reports: Iterable[Report],
    report_filter: ReportFilter,
    sort: ReportSort,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Tuple[List[Report], int]:
    """
    Filter, sort and paginate reports

    Returns:
        Tuple of (page of reports, total matching count)
    """
    matching = [report for report in reports if matches(report, report_filter)]
    matching.sort(key=lambda r: _sort_key(r, sort.field), reverse=sort.descending)

    total = len(matching)
    if page_size is None:
        return matching, total

    offset = (max(page, 1) - 1) * page_size
    return matching[offset:offset + page_size], total
