"""Data models for ReportSafe"""

from .activity import Activity, ActivityAction, ActivityDetails
from .query import (
    BulkUpdateFailure,
    BulkUpdateResult,
    CaseIdComponents,
    PublicStatistics,
    ReportFilter,
    ReportPatch,
    ReportSort,
    ReportStatistics,
    SortField,
)
from .report import (
    AdminNote,
    EvidenceItem,
    EvidenceKind,
    IncidentType,
    Report,
    ReportFlag,
    ReportStatus,
    Severity,
)
from .requests import (
    DeletionOutcome,
    DeletionStatus,
    ExportFormat,
    HealthResponse,
    IncomingFile,
    ReportSubmission,
    UploadedFile,
)

__all__ = [
    "Activity",
    "ActivityAction",
    "ActivityDetails",
    "AdminNote",
    "BulkUpdateFailure",
    "BulkUpdateResult",
    "CaseIdComponents",
    "DeletionOutcome",
    "DeletionStatus",
    "EvidenceItem",
    "EvidenceKind",
    "ExportFormat",
    "HealthResponse",
    "IncidentType",
    "IncomingFile",
    "PublicStatistics",
    "Report",
    "ReportFilter",
    "ReportFlag",
    "ReportPatch",
    "ReportSort",
    "ReportStatistics",
    "ReportStatus",
    "ReportSubmission",
    "Severity",
    "SortField",
    "UploadedFile",
]
