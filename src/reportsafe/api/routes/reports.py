"""
Public Report API Routes

Endpoints used by reporters: submission, status lookup, follow-up evidence
and self-service deletion.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from reportsafe.api.dependencies import (
    ServiceContainer,
    get_container,
    get_report_manager,
    get_submission_metadata,
    to_incoming_files,
)
from reportsafe.core.report_manager import ReportManager
from reportsafe.models.query import PublicStatistics
from reportsafe.models.report import SubmissionMetadata
from reportsafe.models.requests import (
    DeletionOutcome,
    DeletionRequest,
    HealthResponse,
    PublicReportStatus,
    ReportSubmission,
    SubmissionResponse,
)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])
logger = logging.getLogger(__name__)


@router.post(
    "",
    response_model=SubmissionResponse,
    status_code=201,
    summary="Submit Incident Report",
    description="""
Submit a new incident report with optional evidence files.

**Workflow**:
1. Client sends multipart/form-data with the report fields and files
2. Service checks every rule and returns all violations together (422)
3. Evidence files are stored through the configured storage provider
4. Severity is derived from the incident types and emergency flag
5. A case ID is assigned (e.g. `RS-HR-202401-000042`) and returned

**Evidence Limits**: images 10MB, videos 100MB, documents 25MB (configurable)

**Authorization**: None required (public endpoint)
    """,
    responses={
        201: {"description": "Report created"},
        422: {"description": "One or more validation rules failed; see `errors`"},
        500: {"description": "Storage failure"}
    }
)
async def submit_report(
    incident_types: List[str] = Form(default=[], description="Incident types"),
    description: str = Form(default=""),
    incident_date: Optional[str] = Form(None, description="YYYY-MM-DD"),
    incident_time: Optional[str] = Form(None),
    platforms: List[str] = Form(default=[]),
    other_platform: Optional[str] = Form(None),
    anonymous: bool = Form(False),
    emergency: bool = Form(False),
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    contact_preference: str = Form("email"),
    delete_after_resolution: bool = Form(False),
    no_data_sharing: bool = Form(True),
    allow_follow_up: bool = Form(True),
    files: Optional[List[UploadFile]] = File(None, description="Evidence files"),
    metadata: SubmissionMetadata = Depends(get_submission_metadata),
    manager: ReportManager = Depends(get_report_manager)
) -> SubmissionResponse:
    """Submit a report"""
    submission = ReportSubmission(
        incident_types=incident_types,
        description=description,
        incident_date=incident_date,
        incident_time=incident_time,
        platforms=platforms,
        other_platform=other_platform,
        anonymous=anonymous,
        emergency=emergency,
        name=name,
        email=email,
        phone=phone,
        contact_preference=contact_preference,
        delete_after_resolution=delete_after_resolution,
        no_data_sharing=no_data_sharing,
        allow_follow_up=allow_follow_up,
    )

    case_id = await manager.submit_with_files(submission, to_incoming_files(files), metadata)
    return SubmissionResponse(case_id=case_id)


@router.get(
    "/status",
    response_model=PublicReportStatus,
    summary="Check Report Status",
    description="""
Look up the status of a report by case ID. If the case ID is unknown and an
email is given, the reporter's most recent report is returned instead.

Non-anonymous reports are only shown when `email` matches the reporter.
Internal admin notes are never included.
    """,
    responses={
        200: {"description": "Status returned"},
        403: {"description": "Email does not match the report"},
        404: {"description": "Report not found"}
    }
)
async def check_status(
    case_id: Optional[str] = Query(None, description="Case ID"),
    email: Optional[str] = Query(None, description="Reporter email"),
    manager: ReportManager = Depends(get_report_manager)
) -> PublicReportStatus:
    return await manager.check_status(case_id=case_id, email=email)


@router.get(
    "/statistics",
    response_model=PublicStatistics,
    summary="Public Statistics",
    description="Total and resolved report counts plus the five most reported incident types.",
)
async def public_statistics(manager: ReportManager = Depends(get_report_manager)) -> PublicStatistics:
    return await manager.get_public_statistics()


@router.post(
    "/{case_id}/evidence",
    status_code=201,
    summary="Add Evidence",
    description="""
Attach additional evidence files to an existing report. Evidence is only ever
appended; earlier files are kept.
    """,
    responses={
        201: {"description": "Evidence attached"},
        404: {"description": "Report not found"},
        422: {"description": "File type or size not allowed"}
    }
)
async def add_evidence(
    case_id: str,
    files: List[UploadFile] = File(..., description="Evidence files"),
    manager: ReportManager = Depends(get_report_manager)
):
    incoming = to_incoming_files(files)
    report = await manager.add_evidence_files(case_id, incoming)

    logger.info(f"Reporter added {len(incoming)} evidence file(s) to {case_id}")
    return {
        "message": f"Uploaded {len(incoming)} file(s)",
        "case_id": case_id,
        "evidence_count": len(report.evidence)
    }


@router.post(
    "/{case_id}/deletion-request",
    response_model=DeletionOutcome,
    summary="Request Report Deletion",
    description="""
Ask for a report to be deleted. The email must match the one the report was
submitted with.

- Resolved reports whose privacy settings request deletion after resolution
  are deleted immediately (`status: deleted`).
- Otherwise the report is marked for admin review (`status: pending_review`).
    """,
    responses={
        200: {"description": "Request handled"},
        403: {"description": "Email does not match"},
        404: {"description": "Report not found"}
    }
)
async def request_deletion(
    case_id: str,
    request: DeletionRequest,
    manager: ReportManager = Depends(get_report_manager)
) -> DeletionOutcome:
    return await manager.request_user_deletion(case_id, request.email, request.reason)


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Detailed Health Check",
    description="""
Checks the evidence storage backend and the report repository.

**Health Status Values**:
- healthy: storage and repository reachable
- degraded: one or more unavailable
    """,
)
async def health_check(container: ServiceContainer = Depends(get_container)) -> HealthResponse:
    storage_ok = await container.storage.health_check()
    db_ok = await container.reports.health_check()

    return HealthResponse(
        status="healthy" if (storage_ok and db_ok) else "degraded",
        service=container.config.service_name,
        storage_available=storage_ok,
        database_available=db_ok
    )
