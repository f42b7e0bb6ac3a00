"""
Report Manager

Core business logic for report intake, the admin review workflow, reporter
self-service and exports.
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import AsyncGenerator, Callable, Iterable, List, Optional, Tuple
from uuid import uuid4

from reportsafe.config.settings import Settings, settings
from reportsafe.core import export
from reportsafe.core.activity_log import ActivityLog, RequestContext
from reportsafe.core.errors import AuthorizationError, NotFoundError, ReportSafeError, StorageError, ValidationError
from reportsafe.core.statistics import public_view
from reportsafe.core.status import STATUS_LABELS, apply_status_transition, parse_status
from reportsafe.core.validation import (
    SubmissionValidator,
    classify_evidence_kind,
    derive_severity,
    normalize_incident_type,
)
from reportsafe.infrastructure.repository.provider import ReportRepository
from reportsafe.infrastructure.storage.provider import StorageProvider
from reportsafe.models.activity import ActivityAction
from reportsafe.models.query import (
    BulkUpdateResult,
    CaseIdComponents,
    DashboardSummary,
    ModeratorStatistics,
    PublicStatistics,
    ReportAnalytics,
    ReportFilter,
    ReportPatch,
    ReportSort,
    ReportStatistics,
    ReportSummary,
)
from reportsafe.models.report import (
    AdminNote,
    ContactPreference,
    EvidenceItem,
    IncidentDetails,
    PrivacySettings,
    Report,
    ReportFlag,
    Reporter,
    ReportStatus,
    Severity,
    SubmissionMetadata,
    utcnow,
)
from reportsafe.models.requests import (
    DeletionOutcome,
    DeletionStatus,
    ExportFormat,
    IncomingFile,
    PublicNote,
    PublicReportStatus,
    ReportSubmission,
    TimelineEntry,
    UploadedFile,
)

logger = logging.getLogger(__name__)

# Statuses that still need moderator attention
OPEN_STATUSES = [ReportStatus.PENDING, ReportStatus.UNDER_REVIEW]
PRIORITY_SEVERITIES = [Severity.HIGH, Severity.CRITICAL]


def _summarize(report: Report) -> ReportSummary:
    return ReportSummary(
        case_id=report.case_id,
        incident_types=report.incident_types,
        status=report.status,
        severity=report.severity,
        submitted_at=report.submitted_at,
    )


def _storage_name(filename: str) -> str:
    """Basename of an upload with path separators and spaces removed"""
    name = Path(filename.replace("\\", "/")).name or "upload"
    return name.replace(" ", "_")


class ReportManager:
    """Business logic for incident reports"""

    def __init__(
        self,
        repository: ReportRepository,
        activity_log: ActivityLog,
        storage: StorageProvider,
        config: Settings = settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.activity_log = activity_log
        self.storage = storage
        self.config = config
        self.clock = clock
        self.validator = SubmissionValidator(config)

    def _validate_submission(
        self,
        submission: ReportSubmission,
        files: Iterable[Tuple[str, Optional[str], int]] = (),
    ) -> None:
        errors = self.validator.check_submission(submission, self.clock().date())
        for filename, mime_type, size in files:
            errors.extend(self.validator.check_file(filename, mime_type, size))

        if errors:
            logger.info(f"Rejected submission with {len(errors)} validation error(s)")
            raise ValidationError(errors)

    def _build_evidence(self, uploaded_files: Iterable[UploadedFile]) -> List[EvidenceItem]:
        now = self.clock()
        return [
            EvidenceItem(
                kind=classify_evidence_kind(f.mime_type, f.original_name),
                storage_path=f.storage_path,
                filename=f.filename,
                original_name=f.original_name,
                size=f.size,
                mime_type=f.mime_type,
                uploaded_at=now,
            )
            for f in uploaded_files
        ]

    def _build_report(
        self,
        submission: ReportSubmission,
        evidence: List[EvidenceItem],
        metadata: Optional[SubmissionMetadata],
    ) -> Report:
        incident_types = list(dict.fromkeys(normalize_incident_type(t) for t in submission.incident_types))

        reporter = None
        if not submission.anonymous:
            reporter = Reporter(
                name=(submission.name or "").strip() or None,
                email=submission.email.strip(),
                phone=(submission.phone or "").strip() or None,
                contact_preference=ContactPreference(submission.contact_preference),
            )

        return Report(
            severity=derive_severity(incident_types, submission.emergency),
            is_anonymous=submission.anonymous,
            is_emergency=submission.emergency,
            incident_types=incident_types,
            incident=IncidentDetails(
                description=submission.description.strip(),
                date_occurred=date.fromisoformat(submission.incident_date[:10]),
                time_occurred=submission.incident_time,
                platforms=[p.strip() for p in submission.platforms if p.strip()],
                other_platform=(submission.other_platform or "").strip() or None,
            ),
            evidence=evidence,
            reporter=reporter,
            privacy=PrivacySettings(
                delete_after_resolution=submission.delete_after_resolution,
                no_data_sharing=submission.no_data_sharing,
                allow_follow_up=submission.allow_follow_up,
            ),
            metadata=metadata or SubmissionMetadata(),
        )

    async def submit(
        self,
        submission: ReportSubmission,
        uploaded_files: Optional[List[UploadedFile]] = None,
        metadata: Optional[SubmissionMetadata] = None,
    ) -> str:
        """
        Validate and create a new report

        Args:
            submission: Form input
            uploaded_files: Metadata of evidence files the upload layer already stored
            metadata: Requester IP / user agent / channel

        Returns:
            The new case ID

        Raises:
            ValidationError: Listing every violated rule; nothing is created
        """
        uploaded_files = uploaded_files or []
        self._validate_submission(
            submission,
            [(f.original_name, f.mime_type, f.size) for f in uploaded_files],
        )

        report = self._build_report(submission, self._build_evidence(uploaded_files), metadata)
        created = await self.repository.create(report)

        logger.info(
            f"Report submitted: {created.case_id} "
            f"(severity={created.severity.value}, evidence={len(created.evidence)})"
        )
        return created.case_id

    async def _store_files(self, files: List[IncomingFile], folder: str) -> List[UploadedFile]:
        """Write raw uploads through the storage provider; all or nothing"""
        stored: List[UploadedFile] = []

        try:
            for incoming in files:
                filename = f"{uuid4().hex[:12]}_{_storage_name(incoming.filename)}"
                mime_type = incoming.content_type or "application/octet-stream"
                storage_path = await self.storage.upload(incoming.stream, f"{folder}/{filename}", mime_type)
                stored.append(UploadedFile(
                    storage_path=storage_path,
                    filename=filename,
                    original_name=incoming.filename,
                    size=incoming.size,
                    mime_type=mime_type,
                ))
        except StorageError:
            await self._remove_files([f.storage_path for f in stored])
            raise

        return stored

    async def _remove_files(self, storage_paths: Iterable[str]) -> int:
        """Best-effort deletion; each file is attempted independently"""
        removed = 0
        for path in storage_paths:
            try:
                if await self.storage.delete(path):
                    removed += 1
            except StorageError as e:
                logger.warning(f"Could not delete evidence file {path}: {e}")
        return removed

    async def submit_with_files(
        self,
        submission: ReportSubmission,
        files: Optional[List[IncomingFile]] = None,
        metadata: Optional[SubmissionMetadata] = None,
    ) -> str:
        """Store raw uploads, then submit. Stored files are removed if the report is not created."""
        files = files or []
        self._validate_submission(submission, [(f.filename, f.content_type, f.size) for f in files])

        stored = await self._store_files(files, f"submissions/{self.clock():%Y%m}")
        try:
            return await self.submit(submission, stored, metadata)
        except ReportSafeError:
            await self._remove_files([f.storage_path for f in stored])
            raise

    async def get_report(self, case_id: str) -> Report:
        report = await self.repository.find_by_case_id(case_id)
        if report is None:
            raise NotFoundError(case_id)
        return report

    async def list_reports(
        self,
        report_filter: Optional[ReportFilter] = None,
        sort: Optional[ReportSort] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[Report], int]:
        page_size = min(page_size or self.config.default_page_size, self.config.max_page_size)
        return await self.repository.find_many(report_filter, sort, max(page, 1), page_size)

    async def view_report(self, case_id: str, ctx: RequestContext) -> Report:
        """Load a report for an admin, counting the view"""
        now = self.clock()

        def record_view(report: Report) -> None:
            report.viewed_count += 1
            report.last_viewed_at = now
            report.updated_at = now

        report = await self.repository.mutate(case_id, record_view)
        await self.activity_log.record(ctx, ActivityAction.VIEW_REPORT, case_id)
        return report

    def decode_case_id(self, case_id: str) -> CaseIdComponents:
        return self.repository.case_ids.parse(case_id)

    async def update_status(
        self,
        case_id: str,
        new_status: object,
        ctx: RequestContext,
        notes: Optional[str] = None,
    ) -> Report:
        """
        Move a report to a new status

        Raises:
            InvalidStatusError: Status outside the vocabulary
            NotFoundError: Unknown case ID
        """
        status = parse_status(new_status)
        now = self.clock()
        previous = {}

        def transition(report: Report) -> None:
            previous["status"] = report.status.value
            apply_status_transition(report, status, ctx.actor_id, now)
            if notes:
                report.admin_notes.append(AdminNote(text=notes, author_id=ctx.actor_id, created_at=now))

        report = await self.repository.mutate(case_id, transition)
        logger.info(f"Report {case_id} status {previous['status']} -> {status.value} by {ctx.actor_id}")

        await self.activity_log.record(
            ctx,
            ActivityAction.UPDATE_STATUS,
            case_id,
            kind="status_change",
            payload={"from": previous["status"], "to": status.value, "notes": notes},
        )
        return report

    async def bulk_update_status(
        self,
        case_ids: List[str],
        new_status: object,
        ctx: RequestContext,
        notes: Optional[str] = None,
    ) -> BulkUpdateResult:
        """Apply one status to many reports; per-report failures are reported, not raised"""
        status = parse_status(new_status)
        result = await self.repository.update_many(case_ids, ReportPatch(status=status), ctx.actor_id)

        await self.activity_log.record(
            ctx,
            ActivityAction.BULK_UPDATE_STATUS,
            kind="bulk_status_change",
            payload={
                "status": status.value,
                "case_ids": list(case_ids),
                "modified": result.modified,
                "failed": [f.case_id for f in result.failures],
                "notes": notes,
            },
        )
        return result

    async def update_report(self, case_id: str, patch: ReportPatch, ctx: RequestContext) -> Report:
        report = await self.repository.update_by_case_id(case_id, patch, ctx.actor_id)
        await self.activity_log.record(
            ctx,
            ActivityAction.UPDATE_REPORT,
            case_id,
            kind="patch",
            payload=patch.model_dump(mode="json", exclude_unset=True),
        )
        return report

    async def assign(self, case_id: str, assignee_id: Optional[str], ctx: RequestContext) -> Report:
        report = await self.repository.update_by_case_id(case_id, ReportPatch(assigned_to=assignee_id), ctx.actor_id)
        await self.activity_log.record(
            ctx,
            ActivityAction.ASSIGN_REPORT,
            case_id,
            kind="assignment",
            payload={"assigned_to": assignee_id},
        )
        return report

    async def add_admin_note(
        self,
        case_id: str,
        text: str,
        ctx: RequestContext,
        is_internal: bool = True,
    ) -> Report:
        now = self.clock()
        note = AdminNote(text=text, author_id=ctx.actor_id, created_at=now, is_internal=is_internal)

        def append_note(report: Report) -> None:
            report.admin_notes.append(note)
            report.updated_at = now

        report = await self.repository.mutate(case_id, append_note)
        await self.activity_log.record(
            ctx,
            ActivityAction.ADD_NOTE,
            case_id,
            kind="note",
            payload={"is_internal": is_internal},
        )
        return report

    async def add_tag(self, case_id: str, tag: str, ctx: RequestContext) -> Report:
        tag = tag.strip()
        if not tag:
            raise ValidationError(["Tag must not be empty"])
        now = self.clock()

        def append_tag(report: Report) -> None:
            if tag not in report.tags:
                report.tags.append(tag)
            report.updated_at = now

        report = await self.repository.mutate(case_id, append_tag)
        await self.activity_log.record(ctx, ActivityAction.UPDATE_REPORT, case_id, kind="tag", payload={"tag": tag})
        return report

    async def add_flag(self, case_id: str, flag: object, ctx: RequestContext) -> Report:
        try:
            flag = ReportFlag(flag)
        except ValueError:
            raise ValidationError([f"Unknown flag: {flag}"]) from None
        now = self.clock()

        def append_flag(report: Report) -> None:
            if flag not in report.flags:
                report.flags.append(flag)
            report.updated_at = now

        report = await self.repository.mutate(case_id, append_flag)
        await self.activity_log.record(
            ctx, ActivityAction.UPDATE_REPORT, case_id, kind="flag", payload={"flag": flag.value}
        )
        return report

    async def delete_report(self, case_id: str, ctx: RequestContext) -> int:
        """
        Delete a report and its evidence files

        Returns:
            Number of evidence files removed

        Raises:
            NotFoundError: Unknown case ID (nothing is touched)
        """
        report = await self.get_report(case_id)
        removed = await self._delete_with_files(report)

        await self.activity_log.record(
            ctx,
            ActivityAction.DELETE_REPORT,
            case_id,
            kind="deletion",
            payload={"evidence_count": len(report.evidence), "files_removed": removed},
        )
        return removed

    async def _delete_with_files(self, report: Report) -> int:
        removed = await self._remove_files(item.storage_path for item in report.evidence)
        if removed < len(report.evidence):
            logger.warning(f"Removed {removed}/{len(report.evidence)} evidence files of {report.case_id}")
        await self.repository.delete_by_case_id(report.case_id)
        return removed

    async def add_evidence(self, case_id: str, uploaded_files: List[UploadedFile]) -> Report:
        """Append already stored files to a report's evidence"""
        errors = []
        for f in uploaded_files:
            errors.extend(self.validator.check_file(f.original_name, f.mime_type, f.size))
        if errors:
            raise ValidationError(errors)

        items = self._build_evidence(uploaded_files)
        now = self.clock()

        def append_evidence(report: Report) -> None:
            report.evidence.extend(items)
            report.updated_at = now

        report = await self.repository.mutate(case_id, append_evidence)
        logger.info(f"Added {len(items)} evidence file(s) to {case_id}")
        return report

    async def add_evidence_files(self, case_id: str, files: List[IncomingFile]) -> Report:
        """Store raw uploads under the case and attach them"""
        await self.get_report(case_id)

        errors = []
        for f in files:
            errors.extend(self.validator.check_file(f.filename, f.content_type, f.size))
        if errors:
            raise ValidationError(errors)

        stored = await self._store_files(files, case_id)
        try:
            return await self.add_evidence(case_id, stored)
        except ReportSafeError:
            await self._remove_files([f.storage_path for f in stored])
            raise

    def _check_owner(self, report: Report, email: Optional[str]) -> None:
        if report.reporter is None or not email:
            raise AuthorizationError("Email does not match this report")
        if report.reporter.email.strip().lower() != email.strip().lower():
            raise AuthorizationError("Email does not match this report")

    async def request_user_deletion(
        self,
        case_id: str,
        email: str,
        reason: Optional[str] = None,
    ) -> DeletionOutcome:
        """
        Handle a reporter's request to delete their report

        Resolved reports whose privacy settings ask for deletion after
        resolution are deleted immediately; anything else is marked for admin
        review.

        Raises:
            NotFoundError: Unknown case ID
            AuthorizationError: Email does not match the reporter
        """
        report = await self.get_report(case_id)
        self._check_owner(report, email)

        if report.status == ReportStatus.RESOLVED and report.privacy.delete_after_resolution:
            await self._delete_with_files(report)
            logger.info(f"Report {case_id} deleted at reporter request")
            return DeletionOutcome(
                case_id=case_id,
                status=DeletionStatus.DELETED,
                message="Report deleted as per your privacy settings",
            )

        now = self.clock()

        def mark_for_deletion(report: Report) -> None:
            report.deletion_requested_at = now
            report.deletion_reason = reason or "User requested deletion"
            report.updated_at = now

        await self.repository.mutate(case_id, mark_for_deletion)
        logger.info(f"Report {case_id} marked for deletion review")
        return DeletionOutcome(
            case_id=case_id,
            status=DeletionStatus.PENDING_REVIEW,
            message="Deletion request submitted. An admin will review your request.",
        )

    async def check_status(self, case_id: Optional[str] = None, email: Optional[str] = None) -> PublicReportStatus:
        """
        Reporter-facing status view

        Lookup is by case ID, falling back to the reporter's most recent report
        when only an email is given. Non-anonymous reports are only shown to
        the matching email. Internal notes are never included.
        """
        if not case_id and not email:
            raise ValidationError(["Case ID or email is required"])

        report = await self.repository.find_by_case_id(case_id) if case_id else None
        if report is None and email:
            matches, _ = await self.repository.find_many(
                ReportFilter(reporter_email=email), ReportSort(), page=1, page_size=1
            )
            report = matches[0] if matches else None

        if report is None:
            raise NotFoundError(case_id or "", "Report not found. Please check your Case ID.")

        if not report.is_anonymous:
            self._check_owner(report, email)

        return PublicReportStatus(
            case_id=report.case_id,
            status=report.status,
            status_label=STATUS_LABELS[report.status],
            submitted_at=report.submitted_at,
            updated_at=report.updated_at,
            resolved_at=report.resolved_at,
            action_taken=report.action_taken,
            evidence_count=len(report.evidence),
            public_notes=[PublicNote(text=n.text, created_at=n.created_at) for n in report.public_notes],
        )

    async def status_timeline(self, case_id: str) -> List[TimelineEntry]:
        """Lifecycle milestones built from the recorded timestamps"""
        report = await self.get_report(case_id)

        timeline = [
            TimelineEntry(
                status=ReportStatus.PENDING,
                label="Submitted",
                timestamp=report.submitted_at,
                completed=True,
            ),
            TimelineEntry(
                status=ReportStatus.UNDER_REVIEW,
                label=STATUS_LABELS[ReportStatus.UNDER_REVIEW],
                timestamp=report.reviewed_at,
                actor_id=report.reviewed_by,
                completed=report.reviewed_at is not None,
            ),
            TimelineEntry(
                status=ReportStatus.RESOLVED,
                label=STATUS_LABELS[ReportStatus.RESOLVED],
                timestamp=report.resolved_at,
                actor_id=report.resolved_by,
                completed=report.resolved_at is not None,
            ),
        ]

        if report.status not in (ReportStatus.PENDING, ReportStatus.UNDER_REVIEW, ReportStatus.RESOLVED):
            closed = report.status in (ReportStatus.REJECTED, ReportStatus.ARCHIVED)
            timeline.append(TimelineEntry(
                status=report.status,
                label=STATUS_LABELS[report.status],
                timestamp=report.closed_at if closed else report.updated_at,
                actor_id=report.closed_by if closed else None,
                completed=True,
            ))

        return timeline

    async def export_reports(
        self,
        report_filter: Optional[ReportFilter] = None,
        export_format: ExportFormat = ExportFormat.CSV,
        ctx: Optional[RequestContext] = None,
    ) -> bytes:
        """Render every matching report as CSV or JSON"""
        reports, total = await self.repository.find_many(report_filter, ReportSort(), page=1, page_size=None)
        content = export.render(reports, export_format)

        if ctx is not None:
            await self.activity_log.record(
                ctx,
                ActivityAction.EXPORT_REPORTS,
                kind="export",
                payload={"format": export_format.value, "count": total},
            )
        return content

    async def get_statistics(self) -> ReportStatistics:
        return await self.repository.aggregate_statistics(self.config.statistics_window_days, self.clock())

    async def get_public_statistics(self) -> PublicStatistics:
        return public_view(await self.get_statistics())

    async def get_analytics(self, period_days: Optional[int] = None) -> ReportAnalytics:
        return await self.repository.aggregate_analytics(
            period_days or self.config.statistics_window_days,
            self.clock(),
        )

    async def get_dashboard(self, limit: int = 5) -> DashboardSummary:
        """Statistics plus the newest reports and the open high-severity cases"""
        recent, _ = await self.repository.find_many(None, ReportSort(), page=1, page_size=limit)
        priority, _ = await self.repository.find_many(
            ReportFilter(severity_in=PRIORITY_SEVERITIES, status_in=OPEN_STATUSES),
            ReportSort(),
            page=1,
            page_size=limit,
        )
        return DashboardSummary(
            statistics=await self.get_statistics(),
            recent_reports=[_summarize(r) for r in recent],
            priority_cases=[_summarize(r) for r in priority],
        )

    async def get_moderator_stats(self, admin_id: str) -> ModeratorStatistics:
        return ModeratorStatistics(
            admin_id=admin_id,
            assigned_reports=await self.repository.count(ReportFilter(assigned_to=admin_id)),
            resolved_by_me=await self.repository.count(ReportFilter(resolved_by=admin_id)),
            pending_assigned=await self.repository.count(
                ReportFilter(assigned_to=admin_id, status_in=OPEN_STATUSES)
            ),
        )

    async def open_evidence(
        self,
        case_id: str,
        filename: str,
        ctx: RequestContext,
    ) -> Tuple[EvidenceItem, AsyncGenerator[bytes, None]]:
        """Find an evidence file on a report and open it for streaming

        Raises:
            NotFoundError: If the report, the evidence entry or the stored file is missing
        """
        report = await self.get_report(case_id)
        item = next((e for e in report.evidence if e.filename == filename), None)
        if item is None:
            raise NotFoundError(case_id, f"Evidence file not found: {filename}")
        if not await self.storage.file_exists(item.storage_path):
            logger.warning(f"Evidence {item.storage_path} for {case_id} is missing from storage")
            raise NotFoundError(case_id, f"Evidence file not found: {filename}")

        await self.activity_log.record(
            ctx,
            ActivityAction.DOWNLOAD_EVIDENCE,
            case_id,
            kind="evidence",
            payload={"filename": filename},
        )
        return item, self.storage.download_stream(item.storage_path)
