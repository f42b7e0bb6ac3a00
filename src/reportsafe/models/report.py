"""
Report Data Models

Core domain models for incident reports, their evidence and admin annotations.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every persisted datetime uses"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ReportStatus(str, Enum):
    """Report lifecycle status"""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class Severity(str, Enum):
    """Report severity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentType(str, Enum):
    """Incident classification selected by the reporter"""
    HARASSMENT = "harassment"
    THREATS = "threats"
    IMAGE_ABUSE = "image_abuse"
    CYBERSTALKING = "cyberstalking"
    DOXXING = "doxxing"
    DEEPFAKE = "deepfake"
    CHILD_EXPLOITATION = "child_exploitation"
    OTHER = "other"


class EvidenceKind(str, Enum):
    """Evidence attachment classification"""
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


class ContactPreference(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    NONE = "none"


class ReportFlag(str, Enum):
    """Triage flags set by admins"""
    SENSITIVE = "sensitive"
    URGENT = "urgent"
    LEGAL = "legal"
    FOLLOW_UP = "follow_up"
    EXTERNAL = "external"


class EvidenceItem(BaseModel):
    """One evidence file attached to a report"""

    kind: EvidenceKind = Field(..., description="Evidence classification")
    storage_path: str = Field(..., description="Storage key returned by the storage provider")
    filename: str = Field(..., description="Stored filename")
    original_name: str = Field(..., description="Filename as uploaded")
    size: int = Field(..., ge=0, description="File size in bytes")
    mime_type: str = Field(..., description="MIME type")
    uploaded_at: datetime = Field(default_factory=utcnow, description="Upload timestamp")


class Reporter(BaseModel):
    """Contact details of a non-anonymous reporter"""

    name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    contact_preference: ContactPreference = ContactPreference.EMAIL


class PrivacySettings(BaseModel):
    delete_after_resolution: bool = False
    no_data_sharing: bool = True
    allow_follow_up: bool = True


class SubmissionMetadata(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    source: str = "web"


class AdminNote(BaseModel):
    """Admin annotation; internal notes are never shown to the reporter"""

    text: str
    author_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    is_internal: bool = True


class IncidentDetails(BaseModel):
    description: str
    date_occurred: date
    time_occurred: Optional[str] = None
    platforms: List[str] = Field(default_factory=list)
    other_platform: Optional[str] = None


class Report(BaseModel):
    """An incident report and its admin lifecycle state"""

    case_id: Optional[str] = Field(None, description="Case identifier, assigned once at creation")
    status: ReportStatus = Field(default=ReportStatus.PENDING)
    severity: Severity = Field(default=Severity.MEDIUM)
    is_anonymous: bool = Field(default=False)
    is_emergency: bool = Field(default=False)

    incident_types: List[IncidentType] = Field(..., min_length=1)
    incident: IncidentDetails
    evidence: List[EvidenceItem] = Field(default_factory=list)

    reporter: Optional[Reporter] = None
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)

    # Weak references to admin accounts
    assigned_to: Optional[str] = None
    reviewed_by: Optional[str] = None
    resolved_by: Optional[str] = None
    closed_by: Optional[str] = None

    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    admin_notes: List[AdminNote] = Field(default_factory=list)
    action_taken: Optional[str] = None
    resolution: Optional[str] = None

    viewed_count: int = Field(default=0, ge=0)
    last_viewed_at: Optional[datetime] = None

    flags: List[ReportFlag] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    deletion_requested_at: Optional[datetime] = None
    deletion_reason: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "case_id": "RS-HR-202401-000042",
                "status": "pending",
                "severity": "medium",
                "is_anonymous": False,
                "incident_types": ["harassment"],
                "incident": {
                    "description": "Someone is sending me threatening messages",
                    "date_occurred": "2024-01-15",
                    "platforms": ["instagram"]
                },
                "reporter": {"name": "Jane Doe", "email": "jane@example.com"},
                "submitted_at": "2024-01-16T09:30:00"
            }
        }
    }

    @model_validator(mode="after")
    def _reporter_matches_anonymity(self) -> "Report":
        if self.is_anonymous and self.reporter is not None:
            raise ValueError("Anonymous reports cannot carry reporter details")
        if not self.is_anonymous and self.reporter is None:
            raise ValueError("Non-anonymous reports require reporter details")
        return self

    @property
    def public_notes(self) -> List[AdminNote]:
        return [note for note in self.admin_notes if not note.is_internal]
