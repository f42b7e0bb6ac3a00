"""
Submission Validation

Rule checks for incident report submissions and evidence uploads. Every
check appends to one error list so the reporter sees all problems at once.
"""

import re
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional

from reportsafe.config.settings import Settings
from reportsafe.models.report import ContactPreference, EvidenceKind, IncidentType, Severity
from reportsafe.models.requests import ReportSubmission

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

HIGH_RISK_TYPES = frozenset({IncidentType.THREATS, IncidentType.CYBERSTALKING})


def normalize_incident_type(value: str) -> Optional[IncidentType]:
    """Map form spellings ("Image Abuse", "image-abuse") onto IncidentType"""
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return IncidentType(key)
    except ValueError:
        return None


def derive_severity(incident_types: Iterable[IncidentType], is_emergency: bool) -> Severity:
    types = set(incident_types)
    if IncidentType.CHILD_EXPLOITATION in types:
        return Severity.CRITICAL
    if is_emergency or types & HIGH_RISK_TYPES:
        return Severity.HIGH
    return Severity.MEDIUM


def classify_evidence_kind(mime_type: Optional[str], filename: str = "") -> EvidenceKind:
    """Classify an upload as image, video or document from its MIME type"""
    mime_type = (mime_type or "").lower()
    extension = Path(filename).suffix.lower()

    if mime_type.startswith("image/") or extension in (".png", ".jpg", ".jpeg", ".gif", ".webp"):
        return EvidenceKind.IMAGE
    if mime_type.startswith("video/") or extension in (".mp4", ".mov", ".webm"):
        return EvidenceKind.VIDEO
    return EvidenceKind.DOCUMENT


def max_size_for(kind: EvidenceKind, config: Settings) -> int:
    if kind == EvidenceKind.IMAGE:
        return config.max_image_size_bytes
    if kind == EvidenceKind.VIDEO:
        return config.max_video_size_bytes
    return config.max_document_size_bytes


class SubmissionValidator:
    """Collects every violated submission rule"""

    def __init__(self, config: Settings):
        self.config = config

    def check_submission(self, submission: ReportSubmission, today: date) -> List[str]:
        errors: List[str] = []

        if not submission.incident_types:
            errors.append("At least one incident type is required")
        for value in submission.incident_types:
            if normalize_incident_type(value) is None:
                errors.append(f"Unknown incident type: {value}")

        length = len(submission.description.strip())
        if not self.config.min_description_length <= length <= self.config.max_description_length:
            errors.append(
                f"Description must be between {self.config.min_description_length} "
                f"and {self.config.max_description_length} characters"
            )

        if not submission.incident_date:
            errors.append("Incident date is required")
        else:
            try:
                occurred = date.fromisoformat(submission.incident_date[:10])
            except ValueError:
                errors.append("Incident date must be a valid date (YYYY-MM-DD)")
            else:
                if occurred > today:
                    errors.append("Incident date cannot be in the future")

        has_platform = any(p.strip() for p in submission.platforms)
        if not has_platform and not (submission.other_platform or "").strip():
            errors.append("At least one platform is required")

        if not submission.anonymous:
            errors.extend(self._check_contact(submission))

        return errors

    def _check_contact(self, submission: ReportSubmission) -> List[str]:
        errors = []
        email = (submission.email or "").strip()

        if not email:
            errors.append("Email is required for non-anonymous reports")
        elif not EMAIL_PATTERN.match(email):
            errors.append("A valid email address is required")

        try:
            preference = ContactPreference(submission.contact_preference)
        except ValueError:
            errors.append(f"Invalid contact preference: {submission.contact_preference}")
        else:
            if preference == ContactPreference.PHONE and not (submission.phone or "").strip():
                errors.append("Phone number is required when contact preference is phone")

        return errors

    def check_file(self, filename: str, mime_type: Optional[str], size: int) -> List[str]:
        errors = []

        extension = Path(filename).suffix.lower()
        if extension not in self.config.allowed_extensions:
            errors.append(f"File type not allowed: {filename}")

        kind = classify_evidence_kind(mime_type, filename)
        limit = max_size_for(kind, self.config)
        if size > limit:
            errors.append(f"File too large: {filename} (max {limit // (1024 * 1024)}MB for {kind.value} files)")

        return errors
