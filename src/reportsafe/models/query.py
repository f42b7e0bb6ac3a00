"""
Query, Patch and Aggregation Models

Store-agnostic shapes passed to and returned from report repositories.
"""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .report import IncidentType, ReportFlag, ReportStatus, Severity


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class SortField(str, Enum):
    SUBMITTED_AT = "submitted_at"
    UPDATED_AT = "updated_at"
    SEVERITY = "severity"
    STATUS = "status"
    CASE_ID = "case_id"


class ReportFilter(BaseModel):
    """Predicate over reports; unset fields match everything"""

    status: Optional[ReportStatus] = None
    status_in: Optional[List[ReportStatus]] = Field(None, description="Match any of these statuses")
    severity: Optional[Severity] = None
    severity_in: Optional[List[Severity]] = Field(None, description="Match any of these severities")
    incident_type: Optional[IncidentType] = None
    date_from: Optional[datetime] = Field(None, description="Inclusive lower bound on submitted_at")
    date_to: Optional[datetime] = Field(
        None,
        description="Inclusive upper bound on submitted_at; a bare date means the end of that day"
    )
    search: Optional[str] = Field(None, description="Case-insensitive substring search")
    assigned_to: Optional[str] = None
    resolved_by: Optional[str] = None
    is_emergency: Optional[bool] = None
    reporter_email: Optional[str] = Field(None, description="Exact reporter email, case-insensitive")

    @field_validator("date_to", mode="before")
    @classmethod
    def _date_only_is_end_of_day(cls, value):
        if isinstance(value, str) and len(value) == 10:
            value = date.fromisoformat(value)
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time.max)
        return value

    @field_validator("date_from", "date_to")
    @classmethod
    def _strip_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)

    @field_validator("search", "reporter_email")
    @classmethod
    def _blank_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value.strip() if value is not None else None


class ReportSort(BaseModel):
    field: SortField = SortField.SUBMITTED_AT
    descending: bool = True


class ReportPatch(BaseModel):
    """Partial admin update. Only explicitly set fields are applied."""

    status: Optional[ReportStatus] = None
    severity: Optional[Severity] = None
    assigned_to: Optional[str] = None
    action_taken: Optional[str] = None
    resolution: Optional[str] = None
    tags: Optional[List[str]] = None
    flags: Optional[List[ReportFlag]] = None


class BulkUpdateFailure(BaseModel):
    case_id: str
    error: str


class BulkUpdateResult(BaseModel):
    """Outcome of a batch update; never all-or-nothing"""

    matched: int = 0
    modified: int = 0
    failures: List[BulkUpdateFailure] = Field(default_factory=list)


class DailyCount(BaseModel):
    date: date
    count: int = 0


class ReportStatistics(BaseModel):
    """Dashboard statistics over the whole report collection"""

    total_reports: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_severity: Dict[str, int] = Field(default_factory=dict)
    by_type: Dict[str, int] = Field(default_factory=dict)
    daily_counts: List[DailyCount] = Field(default_factory=list)
    anonymous_count: int = 0
    emergency_count: int = 0
    today_count: int = 0
    last_7_days: int = 0


class TypeCount(BaseModel):
    type: str
    count: int


class PublicStatistics(BaseModel):
    """Non-sensitive subset of statistics for the public site"""

    total_reports: int = 0
    resolved_reports: int = 0
    reports_by_type: List[TypeCount] = Field(default_factory=list)
    recent_trends: List[DailyCount] = Field(default_factory=list, description="Reports per day over the statistics window")


class ReportSummary(BaseModel):
    """Dashboard row: enough to recognise a case without opening it"""

    case_id: str
    incident_types: List[IncidentType]
    status: ReportStatus
    severity: Severity
    submitted_at: Optional[datetime] = None


class DashboardSummary(BaseModel):
    statistics: ReportStatistics
    recent_reports: List[ReportSummary] = Field(default_factory=list)
    priority_cases: List[ReportSummary] = Field(
        default_factory=list,
        description="High or critical reports still pending or under review"
    )


class MonthlyCount(BaseModel):
    year: int
    month: int
    count: int = 0


class ReportAnalytics(BaseModel):
    """Review performance over a trailing period"""

    period_days: int
    by_type: Dict[str, int] = Field(default_factory=dict, description="Reports submitted within the period")
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_severity: Dict[str, int] = Field(default_factory=dict)
    monthly_trends: List[MonthlyCount] = Field(default_factory=list)
    resolved_count: int = 0
    average_response_hours: Optional[float] = Field(
        None,
        description="Mean hours from submission to resolution; null when nothing is resolved"
    )


class ModeratorStatistics(BaseModel):
    admin_id: str
    assigned_reports: int = 0
    resolved_by_me: int = 0
    pending_assigned: int = 0


class CaseIdComponents(BaseModel):
    """Decoded case identifier"""

    full_id: str
    prefix: str
    type_code: str
    type_name: str
    year_month: str
    year: int
    month: int
    unique_code: str
    approximate_created_at: date = Field(
        ...,
        description="First day of the month embedded in the ID; not the true submission time"
    )
