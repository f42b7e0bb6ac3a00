"""
Admin API Routes

Report review workflow for administrators. The acting admin is identified by
the X-Admin-ID header set by the API gateway.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response, StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from reportsafe.api.dependencies import get_admin_context, get_report_manager
from reportsafe.core.activity_log import RequestContext
from reportsafe.core.errors import MalformedCaseIdError, ValidationError
from reportsafe.core.report_manager import ReportManager
from reportsafe.core.status import suggested_transitions
from reportsafe.models.activity import ActivityAction
from reportsafe.models.query import (
    BulkUpdateResult,
    DashboardSummary,
    ModeratorStatistics,
    ReportAnalytics,
    ReportFilter,
    ReportPatch,
    ReportSort,
    ReportStatistics,
    SortField,
)
from reportsafe.models.report import IncidentType, Report, ReportStatus, Severity
from reportsafe.models.requests import (
    ActivityListResponse,
    AdminNoteRequest,
    AssignRequest,
    BulkStatusUpdateRequest,
    CaseIdDecodeResponse,
    ExportFormat,
    FlagRequest,
    ReportDetailResponse,
    ReportListResponse,
    StatusUpdateRequest,
    TagRequest,
    TimelineEntry,
)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])
logger = logging.getLogger(__name__)


def report_filter_params(
    status: Optional[ReportStatus] = Query(None),
    severity: Optional[Severity] = Query(None),
    incident_type: Optional[IncidentType] = Query(None),
    date_from: Optional[datetime] = Query(None, description="Submitted on or after"),
    date_to: Optional[str] = Query(
        None,
        description="Submitted on or before; a bare YYYY-MM-DD includes that whole day"
    ),
    search: Optional[str] = Query(None, description="Search case ID, description, reporter, action taken"),
    assigned_to: Optional[str] = Query(None),
    is_emergency: Optional[bool] = Query(None),
    reporter_email: Optional[str] = Query(None, description="Exact reporter email, case-insensitive"),
) -> ReportFilter:
    try:
        return ReportFilter(
            status=status,
            severity=severity,
            incident_type=incident_type,
            date_from=date_from,
            date_to=date_to,
            search=search,
            assigned_to=assigned_to,
            is_emergency=is_emergency,
            reporter_email=reporter_email,
        )
    except PydanticValidationError as e:
        raise ValidationError(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ) from e


@router.get(
    "/reports",
    response_model=ReportListResponse,
    summary="List Reports",
    description="""
List reports with filtering, sorting and pagination.

**Filters**: status, severity, incident_type, date range on submission time,
free-text search, assignee, emergency flag, reporter email.

**Sorting**: `sort` is one of submitted_at (default), updated_at, severity,
status, case_id; newest/highest first unless `descending=false`.
    """,
)
async def list_reports(
    report_filter: ReportFilter = Depends(report_filter_params),
    sort: SortField = Query(SortField.SUBMITTED_AT),
    descending: bool = Query(True),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> ReportListResponse:
    reports, total = await manager.list_reports(
        report_filter, ReportSort(field=sort, descending=descending), page, page_size
    )

    return ReportListResponse(
        reports=reports,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total > 0 else 0
    )


@router.get(
    "/reports/export",
    summary="Export Reports",
    description="""
Download every report matching the filters.

- `format=csv`: header `Case ID, Status, Severity, Incident Types, Submitted At, Resolved At, Admin Notes`, all cells quoted
- `format=json`: pretty-printed array of full report objects
    """,
    responses={200: {"description": "Export file", "content": {"text/csv": {}, "application/json": {}}}}
)
async def export_reports(
    export_format: ExportFormat = Query(ExportFormat.CSV, alias="format"),
    report_filter: ReportFilter = Depends(report_filter_params),
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> Response:
    content = await manager.export_reports(report_filter, export_format, ctx)

    media_type = "application/json" if export_format == ExportFormat.JSON else "text/csv"
    filename = f"reports-export-{datetime.now():%Y%m%d}.{export_format.value}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.post(
    "/reports/bulk-status",
    response_model=BulkUpdateResult,
    summary="Bulk Status Update",
    description="""
Move many reports to one status. Each report is updated independently:
unknown case IDs are listed in `failures` and do not stop the others.
    """,
)
async def bulk_update_status(
    request: BulkStatusUpdateRequest,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> BulkUpdateResult:
    return await manager.bulk_update_status(request.case_ids, request.status, ctx, request.notes)


@router.get(
    "/reports/{case_id}",
    response_model=ReportDetailResponse,
    summary="View Report",
    description="Full report with suggested next status changes. Each call counts as a view.",
    responses={404: {"description": "Report not found"}}
)
async def view_report(
    case_id: str,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> ReportDetailResponse:
    report = await manager.view_report(case_id, ctx)
    return ReportDetailResponse(report=report, next_actions=suggested_transitions(report.status))


@router.patch(
    "/reports/{case_id}",
    response_model=Report,
    summary="Update Report",
    description="Partial update of status, severity, assignee, action taken, resolution, tags or flags.",
    responses={404: {"description": "Report not found"}}
)
async def update_report(
    case_id: str,
    patch: ReportPatch,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> Report:
    return await manager.update_report(case_id, patch, ctx)


@router.put(
    "/reports/{case_id}/status",
    response_model=Report,
    summary="Update Report Status",
    description="""
Move a report to a new status. Backward moves (e.g. resolved -> pending) are
allowed. Review and resolution timestamps are stamped the first time the
report enters those states and are never cleared.
    """,
    responses={
        400: {"description": "Unknown status"},
        404: {"description": "Report not found"}
    }
)
async def update_status(
    case_id: str,
    request: StatusUpdateRequest,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> Report:
    return await manager.update_status(case_id, request.status, ctx, request.notes)


@router.put("/reports/{case_id}/assign", response_model=Report, summary="Assign Report")
async def assign_report(
    case_id: str,
    request: AssignRequest,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> Report:
    return await manager.assign(case_id, request.assignee_id, ctx)


@router.post("/reports/{case_id}/notes", response_model=Report, status_code=201, summary="Add Admin Note")
async def add_note(
    case_id: str,
    request: AdminNoteRequest,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> Report:
    return await manager.add_admin_note(case_id, request.text, ctx, request.is_internal)


@router.post("/reports/{case_id}/tags", response_model=Report, summary="Tag Report")
async def add_tag(
    case_id: str,
    request: TagRequest,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> Report:
    return await manager.add_tag(case_id, request.tag, ctx)


@router.post("/reports/{case_id}/flags", response_model=Report, summary="Flag Report")
async def add_flag(
    case_id: str,
    request: FlagRequest,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> Report:
    return await manager.add_flag(case_id, request.flag, ctx)


@router.get("/reports/{case_id}/timeline", response_model=List[TimelineEntry], summary="Status Timeline")
async def status_timeline(
    case_id: str,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> List[TimelineEntry]:
    return await manager.status_timeline(case_id)


@router.get(
    "/reports/{case_id}/evidence/{filename}",
    summary="Download Evidence",
    description="""
Stream one evidence file attached to a report. `filename` is the stored
filename listed on the report's evidence entries. The download is audited.
    """,
    responses={
        200: {"description": "File content"},
        404: {"description": "Report or evidence file not found"}
    }
)
async def download_evidence(
    case_id: str,
    filename: str,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> StreamingResponse:
    item, stream = await manager.open_evidence(case_id, filename, ctx)

    return StreamingResponse(
        stream,
        media_type=item.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{item.original_name}"'}
    )


@router.delete(
    "/reports/{case_id}",
    summary="Delete Report",
    description="""
Delete a report and its evidence files. File removal is best effort: a file
that cannot be removed is logged and does not block deleting the record.
    """,
    responses={
        200: {"description": "Report deleted"},
        404: {"description": "Report not found"}
    }
)
async def delete_report(
    case_id: str,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
):
    files_removed = await manager.delete_report(case_id, ctx)

    logger.info(f"Admin {ctx.actor_id} deleted report {case_id}")
    return {"message": "Report deleted successfully", "case_id": case_id, "files_removed": files_removed}


@router.get("/statistics", response_model=ReportStatistics, summary="Dashboard Statistics")
async def statistics(
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> ReportStatistics:
    return await manager.get_statistics()


@router.get(
    "/dashboard",
    response_model=DashboardSummary,
    summary="Dashboard Overview",
    description="""
Statistics plus the `limit` most recent reports and the high or critical
reports still pending or under review.
    """,
)
async def dashboard(
    limit: int = Query(5, ge=1, le=50, description="Rows per list"),
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> DashboardSummary:
    return await manager.get_dashboard(limit)


@router.get(
    "/analytics",
    response_model=ReportAnalytics,
    summary="Report Analytics",
    description="""
Incident type counts and monthly trends over the trailing `period` days,
status and severity counts over all reports, and the average hours from
submission to resolution (null while nothing is resolved).
    """,
)
async def analytics(
    period: Optional[int] = Query(None, ge=1, le=3650, description="Trailing period in days"),
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> ReportAnalytics:
    return await manager.get_analytics(period)


@router.get("/moderator-stats", response_model=ModeratorStatistics, summary="Moderator Workload")
async def moderator_stats(
    admin_id: Optional[str] = Query(None, description="Defaults to the calling admin"),
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> ModeratorStatistics:
    return await manager.get_moderator_stats(admin_id or ctx.actor_id)


@router.get(
    "/case-ids/{case_id}",
    response_model=CaseIdDecodeResponse,
    summary="Decode Case ID",
    description="""
Decode the parts of a case ID. `approximate_created_at` is the first day of
the month embedded in the ID, not the real submission time.
    """,
)
async def decode_case_id(
    case_id: str,
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> CaseIdDecodeResponse:
    try:
        parts = manager.decode_case_id(case_id)
    except MalformedCaseIdError:
        return CaseIdDecodeResponse(case_id=case_id, valid=False)

    return CaseIdDecodeResponse(
        case_id=case_id,
        valid=True,
        type_code=parts.type_code,
        type_name=parts.type_name,
        year=parts.year,
        month=parts.month,
        approximate_created_at=parts.approximate_created_at
    )


@router.get("/activities", response_model=ActivityListResponse, summary="Activity Log")
async def list_activities(
    actor_id: Optional[str] = Query(None),
    action: Optional[ActivityAction] = Query(None),
    case_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    ctx: RequestContext = Depends(get_admin_context),
    manager: ReportManager = Depends(get_report_manager)
) -> ActivityListResponse:
    activities, total = await manager.activity_log.list(
        page=page, page_size=page_size, actor_id=actor_id, action=action, target_case_id=case_id
    )
    return ActivityListResponse(activities=activities, total=total, page=page, page_size=page_size)
