"""
API Request and Response Models

Pydantic models for API input/output validation.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import BinaryIO, List, Optional

from pydantic import BaseModel, Field

from .activity import Activity
from .report import Report, ReportStatus, utcnow


class ReportSubmission(BaseModel):
    """Incident report form as submitted by the reporter.

    Fields are deliberately loose; ReportManager.submit checks every rule and
    reports all violations together.
    """

    incident_types: List[str] = Field(default_factory=list, description="Selected incident types")
    description: str = Field(default="", description="What happened")
    incident_date: Optional[str] = Field(None, description="ISO date the incident occurred (YYYY-MM-DD)")
    incident_time: Optional[str] = Field(None, description="Approximate time of day")
    platforms: List[str] = Field(default_factory=list, description="Platforms where it happened")
    other_platform: Optional[str] = None

    anonymous: bool = False
    emergency: bool = False

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    contact_preference: str = "email"

    delete_after_resolution: bool = False
    no_data_sharing: bool = True
    allow_follow_up: bool = True

    model_config = {
        "json_schema_extra": {
            "example": {
                "incident_types": ["harassment"],
                "description": "Someone is sending me threatening messages",
                "incident_date": "2024-01-15",
                "platforms": ["instagram"],
                "anonymous": False,
                "name": "Jane Doe",
                "email": "jane@example.com"
            }
        }
    }


class UploadedFile(BaseModel):
    """Metadata of a file already written by the storage provider"""

    storage_path: str
    filename: str
    original_name: str
    size: int = Field(..., ge=0)
    mime_type: str = "application/octet-stream"


@dataclass
class IncomingFile:
    """Raw upload before it is stored"""

    filename: str
    content_type: str
    size: int
    stream: BinaryIO


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="Target status")
    notes: Optional[str] = Field(None, description="Optional admin note recorded with the change")


class BulkStatusUpdateRequest(BaseModel):
    case_ids: List[str] = Field(..., min_length=1)
    status: str
    notes: Optional[str] = None


class AdminNoteRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = Field(default=True, description="Internal notes are never shown to the reporter")


class AssignRequest(BaseModel):
    assignee_id: Optional[str] = Field(None, description="Admin ID, or null to unassign")


class DeletionRequest(BaseModel):
    """Reporter self-service deletion request"""

    email: str = Field(..., description="Email the report was submitted with")
    reason: Optional[str] = Field(None, max_length=1000)


class DeletionStatus(str, Enum):
    DELETED = "deleted"
    PENDING_REVIEW = "pending_review"


class DeletionOutcome(BaseModel):
    case_id: str
    status: DeletionStatus
    message: str


class SubmissionResponse(BaseModel):
    """Response after successful report submission"""

    case_id: str = Field(..., description="Case ID to quote in follow-ups")
    message: str = Field(default="Report submitted successfully")


class ReportListResponse(BaseModel):
    """Paginated list of reports"""

    reports: List[Report] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


class ReportDetailResponse(BaseModel):
    report: Report
    next_actions: List[ReportStatus] = Field(default_factory=list, description="Suggested status changes")


class PublicNote(BaseModel):
    text: str
    created_at: datetime


class PublicReportStatus(BaseModel):
    """What a reporter may see about their own case"""

    case_id: str
    status: ReportStatus
    status_label: str
    submitted_at: Optional[datetime]
    updated_at: Optional[datetime]
    resolved_at: Optional[datetime] = None
    action_taken: Optional[str] = None
    evidence_count: int = 0
    public_notes: List[PublicNote] = Field(default_factory=list)


class TimelineEntry(BaseModel):
    status: ReportStatus
    label: str
    timestamp: Optional[datetime] = None
    actor_id: Optional[str] = None
    completed: bool = False


class CaseIdDecodeResponse(BaseModel):
    case_id: str
    valid: bool
    type_code: Optional[str] = None
    type_name: Optional[str] = None
    year: Optional[int] = None
    month: Optional[int] = None
    approximate_created_at: Optional[date] = None


class ActivityListResponse(BaseModel):
    activities: List[Activity] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = Field(default="healthy")
    service: str = Field(default="reportsafe-service")
    timestamp: datetime = Field(default_factory=utcnow)
    storage_available: bool = Field(default=True)
    database_available: bool = Field(default=True)


class TagRequest(BaseModel):
    tag: str = Field(..., min_length=1, max_length=50)


class FlagRequest(BaseModel):
    flag: str = Field(..., description="sensitive, urgent, legal, follow_up or external")
