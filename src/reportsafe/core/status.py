"""
Report Status Lifecycle

Status transition rules and the timestamp bookkeeping they drive. The
functions here mutate the report they are given; repositories hand them a
fresh copy inside their atomic read-modify-write.
"""

from datetime import datetime
from typing import Dict, List, Optional

from reportsafe.core.errors import InvalidStatusError, ValidationError
from reportsafe.models.query import ReportPatch
from reportsafe.models.report import Report, ReportStatus

CLOSING_STATUSES = frozenset({ReportStatus.RESOLVED, ReportStatus.REJECTED, ReportStatus.ARCHIVED})

# Advisory next steps offered to admins; transitions outside this map are still allowed.
SUGGESTED_TRANSITIONS: Dict[ReportStatus, List[ReportStatus]] = {
    ReportStatus.PENDING: [ReportStatus.UNDER_REVIEW, ReportStatus.RESOLVED, ReportStatus.REJECTED],
    ReportStatus.UNDER_REVIEW: [
        ReportStatus.INVESTIGATING,
        ReportStatus.RESOLVED,
        ReportStatus.PENDING,
        ReportStatus.REJECTED,
    ],
    ReportStatus.INVESTIGATING: [ReportStatus.RESOLVED, ReportStatus.UNDER_REVIEW, ReportStatus.REJECTED],
    ReportStatus.RESOLVED: [ReportStatus.UNDER_REVIEW, ReportStatus.ARCHIVED],
    ReportStatus.REJECTED: [ReportStatus.PENDING, ReportStatus.ARCHIVED],
    ReportStatus.ARCHIVED: [ReportStatus.PENDING],
}

STATUS_LABELS: Dict[ReportStatus, str] = {
    ReportStatus.PENDING: "Pending Review",
    ReportStatus.UNDER_REVIEW: "Under Review",
    ReportStatus.INVESTIGATING: "Investigating",
    ReportStatus.RESOLVED: "Resolved",
    ReportStatus.REJECTED: "Rejected",
    ReportStatus.ARCHIVED: "Archived",
}


def parse_status(value: object) -> ReportStatus:
    """Coerce a raw value into a ReportStatus

    Raises:
        InvalidStatusError: If the value is not in the status vocabulary
    """
    if isinstance(value, ReportStatus):
        return value
    try:
        return ReportStatus(value)
    except ValueError:
        raise InvalidStatusError(value) from None


def suggested_transitions(status: ReportStatus) -> List[ReportStatus]:
    return list(SUGGESTED_TRANSITIONS.get(status, []))


def apply_status_transition(
    report: Report,
    new_status: object,
    actor_id: Optional[str],
    now: datetime,
) -> Report:
    """
    Move a report to `new_status`

    Dependent fields are stamped only the first time the corresponding state
    is entered and are never cleared, so re-opening and re-reviewing a case
    keeps its original review and resolution times.

    Raises:
        InvalidStatusError: If new_status is not a known status
    """
    status = parse_status(new_status)

    report.status = status
    report.updated_at = now

    if status == ReportStatus.UNDER_REVIEW and report.reviewed_at is None:
        report.reviewed_at = now
        report.reviewed_by = actor_id

    if status == ReportStatus.RESOLVED and report.resolved_at is None:
        report.resolved_at = now
        report.resolved_by = actor_id

    if status in CLOSING_STATUSES and report.closed_at is None:
        report.closed_at = now
        report.closed_by = actor_id

    return report


# Patch fields that may be cleared with an explicit null
NULLABLE_PATCH_FIELDS = frozenset({"assigned_to", "action_taken", "resolution"})


def check_patch(patch: ReportPatch) -> None:
    """
    Reject explicit nulls for fields a report must always carry

    Raises:
        ValidationError: Listing every field that cannot be cleared
    """
    errors = [
        f"{field} cannot be null"
        for field in sorted(patch.model_fields_set - NULLABLE_PATCH_FIELDS)
        if getattr(patch, field) is None
    ]
    if errors:
        raise ValidationError(errors)


def apply_patch(report: Report, patch: ReportPatch, actor_id: Optional[str], now: datetime) -> Report:
    """Apply the explicitly set fields of `patch`, routing status through the state machine"""
    check_patch(patch)
    changes = patch.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)

    for field in changes:
        setattr(report, field, getattr(patch, field))

    if new_status is not None:
        apply_status_transition(report, new_status, actor_id, now)

    report.updated_at = now
    return report
