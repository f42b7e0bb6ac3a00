"""Unit tests for the report manager workflow"""

import io

import pytest

from reportsafe.core.activity_log import ActivityLog
from reportsafe.core.errors import (
    AuthorizationError,
    InvalidStatusError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from reportsafe.infrastructure.repository.provider import ActivityRepository
from reportsafe.models.activity import ActivityAction
from reportsafe.models.query import ReportFilter, ReportPatch
from reportsafe.models.report import EvidenceKind, IncidentType, ReportFlag, ReportStatus, Severity
from reportsafe.models.requests import DeletionStatus, ExportFormat, IncomingFile


def _png(name: str = "screenshot.png", payload: bytes = b"\x89PNG fake image") -> IncomingFile:
    return IncomingFile(filename=name, content_type="image/png", size=len(payload), stream=io.BytesIO(payload))


class FailingActivityRepository(ActivityRepository):
    """Audit store whose writes always fail"""

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def append(self, activity) -> None:
        raise StorageError("audit store offline")

    async def list_activities(self, page=1, page_size=50, actor_id=None, action=None, target_case_id=None):
        return [], 0


@pytest.mark.unit
class TestSubmission:

    async def test_harassment_report(self, manager, make_submission):
        case_id = await manager.submit(make_submission())
        report = await manager.get_report(case_id)

        assert case_id.startswith("RS-HR-")
        assert report.status == ReportStatus.PENDING
        assert report.severity == Severity.MEDIUM
        assert report.incident_types == [IncidentType.HARASSMENT]
        assert report.reporter.email == "jane@example.com"
        assert report.reporter.name == "Jane Doe"

    async def test_anonymous_report_has_no_reporter(self, manager, make_submission):
        case_id = await manager.submit(make_submission(anonymous=True, email="ignored@example.com"))
        report = await manager.get_report(case_id)

        assert report.is_anonymous
        assert report.reporter is None

    async def test_severity_is_derived(self, manager, make_submission):
        case_id = await manager.submit(make_submission(incident_types=["child_exploitation"]))
        report = await manager.get_report(case_id)

        assert report.severity == Severity.CRITICAL
        assert case_id.startswith("RS-GN-")

    async def test_validation_lists_every_error(self, manager, make_submission):
        with pytest.raises(ValidationError) as exc_info:
            await manager.submit(make_submission(description="short", platforms=[]))

        assert len(exc_info.value.errors) == 2
        reports, total = await manager.list_reports()
        assert total == 0

    async def test_submit_with_files_stores_evidence(self, manager, storage, make_submission):
        case_id = await manager.submit_with_files(make_submission(), [_png(), _png("chat log.pdf")])
        report = await manager.get_report(case_id)

        assert len(report.evidence) == 2
        assert report.evidence[0].kind == EvidenceKind.IMAGE
        assert report.evidence[1].original_name == "chat log.pdf"
        assert " " not in report.evidence[1].filename
        for item in report.evidence:
            assert item.storage_path.startswith("submissions/")
            assert await storage.file_exists(item.storage_path)

    async def test_rejected_files_are_not_stored(self, manager, storage, make_submission):
        with pytest.raises(ValidationError) as exc_info:
            await manager.submit_with_files(make_submission(), [_png("malware.exe")])

        assert exc_info.value.errors == ["File type not allowed: malware.exe"]
        assert not any(storage.base_path.rglob("*malware*"))


@pytest.mark.unit
class TestAdminWorkflow:

    async def test_resolve_from_pending_skips_review(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        report = await manager.update_status(case_id, "resolved", admin_ctx)

        assert report.status == ReportStatus.RESOLVED
        assert report.resolved_at is not None
        assert report.resolved_by == "admin-1"
        assert report.reviewed_at is None

    async def test_reentering_review_keeps_first_timestamp(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        first = await manager.update_status(case_id, ReportStatus.UNDER_REVIEW, admin_ctx)
        await manager.update_status(case_id, ReportStatus.PENDING, admin_ctx)
        second = await manager.update_status(case_id, ReportStatus.UNDER_REVIEW, admin_ctx)

        assert second.reviewed_at == first.reviewed_at

    async def test_status_note_is_recorded(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        report = await manager.update_status(case_id, "under_review", admin_ctx, notes="Escalated to trust team")

        assert report.admin_notes[-1].text == "Escalated to trust team"
        assert report.admin_notes[-1].author_id == "admin-1"

    async def test_invalid_status(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        with pytest.raises(InvalidStatusError):
            await manager.update_status(case_id, "reviewed", admin_ctx)

    async def test_unknown_case_id(self, manager, admin_ctx):
        with pytest.raises(NotFoundError):
            await manager.update_status("RS-HR-202401-999999", "resolved", admin_ctx)

    async def test_bulk_update_continues_past_missing(self, manager, make_submission, admin_ctx):
        case_ids = [await manager.submit(make_submission()) for _ in range(3)]

        result = await manager.bulk_update_status(
            case_ids + ["RS-HR-202401-999999"], "archived", admin_ctx, notes="Quarterly cleanup"
        )

        assert result.modified == 3
        assert [f.case_id for f in result.failures] == ["RS-HR-202401-999999"]
        archived, _ = await manager.list_reports(ReportFilter(status=ReportStatus.ARCHIVED))
        assert len(archived) == 3
        assert all(r.admin_notes == [] for r in archived)

    async def test_view_counts(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        await manager.view_report(case_id, admin_ctx)
        report = await manager.view_report(case_id, admin_ctx)

        assert report.viewed_count == 2
        assert report.last_viewed_at is not None

    async def test_assign_tag_and_flag(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        await manager.assign(case_id, "admin-7", admin_ctx)
        await manager.add_tag(case_id, " repeat-offender ", admin_ctx)
        await manager.add_tag(case_id, "repeat-offender", admin_ctx)
        report = await manager.add_flag(case_id, "urgent", admin_ctx)

        assert report.assigned_to == "admin-7"
        assert report.tags == ["repeat-offender"]
        assert report.flags == [ReportFlag.URGENT]

    async def test_unknown_flag(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        with pytest.raises(ValidationError):
            await manager.add_flag(case_id, "spicy", admin_ctx)

    async def test_update_report_patch(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        report = await manager.update_report(
            case_id, ReportPatch(severity=Severity.HIGH, action_taken="Reported to platform"), admin_ctx
        )

        assert report.severity == Severity.HIGH
        assert report.action_taken == "Reported to platform"
        assert report.status == ReportStatus.PENDING

    async def test_delete_removes_evidence_files(self, manager, storage, make_submission, admin_ctx):
        case_id = await manager.submit_with_files(make_submission(), [_png(), _png("second.png")])
        paths = [item.storage_path for item in (await manager.get_report(case_id)).evidence]

        removed = await manager.delete_report(case_id, admin_ctx)

        assert removed == 2
        for path in paths:
            assert not await storage.file_exists(path)
        with pytest.raises(NotFoundError):
            await manager.get_report(case_id)

    async def test_delete_missing_report(self, manager, admin_ctx):
        with pytest.raises(NotFoundError):
            await manager.delete_report("RS-HR-202401-999999", admin_ctx)

    async def test_actions_are_audited(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())

        await manager.update_status(case_id, "resolved", admin_ctx)
        await manager.add_admin_note(case_id, "Closed after platform takedown", admin_ctx)

        activities, total = await manager.activity_log.list(target_case_id=case_id)
        assert total == 2
        status_change = next(a for a in activities if a.action == ActivityAction.UPDATE_STATUS)
        assert status_change.actor_id == "admin-1"
        assert status_change.ip_address == "127.0.0.1"
        assert status_change.details.kind == "status_change"
        assert status_change.details.payload["from"] == "pending"
        assert status_change.details.payload["to"] == "resolved"

    async def test_audit_failure_does_not_fail_action(
        self, report_repository, storage, config, make_submission, admin_ctx
    ):
        from reportsafe.core.report_manager import ReportManager

        manager = ReportManager(report_repository, ActivityLog(FailingActivityRepository()), storage, config)
        case_id = await manager.submit(make_submission())

        report = await manager.update_status(case_id, "under_review", admin_ctx)

        assert report.status == ReportStatus.UNDER_REVIEW


@pytest.mark.unit
class TestReporterSelfService:

    async def test_deletion_after_resolution_is_immediate(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission(delete_after_resolution=True))
        await manager.update_status(case_id, "resolved", admin_ctx)

        outcome = await manager.request_user_deletion(case_id, "JANE@example.com")

        assert outcome.status == DeletionStatus.DELETED
        with pytest.raises(NotFoundError):
            await manager.get_report(case_id)

    async def test_deletion_otherwise_needs_review(self, manager, make_submission):
        case_id = await manager.submit(make_submission(delete_after_resolution=True))

        outcome = await manager.request_user_deletion(case_id, "jane@example.com", reason="Resolved privately")

        assert outcome.status == DeletionStatus.PENDING_REVIEW
        report = await manager.get_report(case_id)
        assert report.deletion_requested_at is not None
        assert report.deletion_reason == "Resolved privately"
        assert report.status == ReportStatus.PENDING

    async def test_deletion_requires_matching_email(self, manager, make_submission):
        case_id = await manager.submit(make_submission())

        with pytest.raises(AuthorizationError):
            await manager.request_user_deletion(case_id, "someone@else.com")

    async def test_anonymous_report_cannot_be_deleted_by_reporter(self, manager, make_submission):
        case_id = await manager.submit(make_submission(anonymous=True))

        with pytest.raises(AuthorizationError):
            await manager.request_user_deletion(case_id, "jane@example.com")

    async def test_check_status_hides_internal_notes(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())
        await manager.add_admin_note(case_id, "Reporter seems credible", admin_ctx, is_internal=True)
        await manager.add_admin_note(case_id, "We have contacted the platform", admin_ctx, is_internal=False)

        status = await manager.check_status(case_id=case_id, email="jane@example.com")

        assert status.status == ReportStatus.PENDING
        assert status.status_label == "Pending Review"
        assert [n.text for n in status.public_notes] == ["We have contacted the platform"]

    async def test_check_status_requires_matching_email(self, manager, make_submission):
        case_id = await manager.submit(make_submission())

        with pytest.raises(AuthorizationError):
            await manager.check_status(case_id=case_id)

    async def test_check_status_falls_back_to_latest_by_email(self, manager, make_submission):
        await manager.submit(make_submission())
        latest = await manager.submit(make_submission(incident_types=["threats"]))

        status = await manager.check_status(email="jane@example.com")

        assert status.case_id == latest

    async def test_check_status_anonymous_by_case_id(self, manager, make_submission):
        case_id = await manager.submit(make_submission(anonymous=True))

        status = await manager.check_status(case_id=case_id)

        assert status.case_id == case_id

    async def test_check_status_needs_an_identifier(self, manager):
        with pytest.raises(ValidationError):
            await manager.check_status()

    async def test_add_evidence_to_existing_report(self, manager, make_submission):
        case_id = await manager.submit(make_submission())

        report = await manager.add_evidence_files(case_id, [_png()])

        assert len(report.evidence) == 1
        assert report.evidence[0].storage_path.startswith(f"{case_id}/")

    async def test_add_evidence_to_unknown_report(self, manager, storage):
        with pytest.raises(NotFoundError):
            await manager.add_evidence_files("RS-HR-202401-999999", [_png()])
        assert not any(storage.base_path.rglob("*.png"))


@pytest.mark.unit
class TestReporting:

    async def test_timeline(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())
        await manager.update_status(case_id, "under_review", admin_ctx)
        await manager.update_status(case_id, "rejected", admin_ctx)

        timeline = await manager.status_timeline(case_id)

        assert [entry.status for entry in timeline] == [
            ReportStatus.PENDING, ReportStatus.UNDER_REVIEW, ReportStatus.RESOLVED, ReportStatus.REJECTED
        ]
        assert [entry.completed for entry in timeline] == [True, True, False, True]
        assert timeline[3].actor_id == "admin-1"

    async def test_export_csv_is_audited(self, manager, make_submission, admin_ctx):
        await manager.submit(make_submission())
        await manager.submit(make_submission(incident_types=["threats"]))

        content = await manager.export_reports(export_format=ExportFormat.CSV, ctx=admin_ctx)

        assert len(content.decode("utf-8").splitlines()) == 3
        activities, _ = await manager.activity_log.list(action=ActivityAction.EXPORT_REPORTS)
        assert activities[0].details.payload == {"format": "csv", "count": 2}

    async def test_public_statistics(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())
        await manager.submit(make_submission(incident_types=["threats", "harassment"]))
        await manager.update_status(case_id, "resolved", admin_ctx)

        stats = await manager.get_public_statistics()

        assert stats.total_reports == 2
        assert stats.resolved_reports == 1
        assert stats.reports_by_type[0].type == "harassment"
        assert stats.reports_by_type[0].count == 2

    async def test_statistics_on_empty_store(self, manager):
        stats = await manager.get_statistics()

        assert stats.total_reports == 0
        assert len(stats.daily_counts) == manager.config.statistics_window_days


@pytest.mark.unit
class TestPatchValidation:

    @pytest.mark.parametrize("body", [{"severity": None}, {"tags": None}, {"flags": None, "status": None}])
    async def test_null_for_required_field_is_rejected(self, manager, make_submission, admin_ctx, body):
        case_id = await manager.submit(make_submission())

        with pytest.raises(ValidationError):
            await manager.update_report(case_id, ReportPatch.model_validate(body), admin_ctx)

        report = await manager.get_report(case_id)
        assert report.severity == Severity.MEDIUM
        assert report.status == ReportStatus.PENDING

    async def test_null_clears_optional_field(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())
        await manager.assign(case_id, "admin-7", admin_ctx)

        report = await manager.update_report(case_id, ReportPatch.model_validate({"assigned_to": None}), admin_ctx)

        assert report.assigned_to is None


@pytest.mark.unit
class TestDashboardAndAnalytics:

    async def test_dashboard_lists_recent_and_priority_cases(self, manager, make_submission, admin_ctx):
        routine = await manager.submit(make_submission())
        threat = await manager.submit(make_submission(incident_types=["threats"]))
        handled = await manager.submit(make_submission(incident_types=["threats"]))
        await manager.update_status(handled, "resolved", admin_ctx)

        dashboard = await manager.get_dashboard(limit=2)

        assert dashboard.statistics.total_reports == 3
        assert [r.case_id for r in dashboard.recent_reports] == [handled, threat]
        assert [r.case_id for r in dashboard.priority_cases] == [threat]
        assert dashboard.priority_cases[0].severity == Severity.HIGH
        assert routine not in [r.case_id for r in dashboard.priority_cases]

    async def test_analytics_defaults_to_statistics_window(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit(make_submission())
        await manager.update_status(case_id, "resolved", admin_ctx)

        analytics = await manager.get_analytics()

        assert analytics.period_days == manager.config.statistics_window_days
        assert analytics.by_type == {"harassment": 1}
        assert analytics.resolved_count == 1
        assert analytics.average_response_hours is not None

    async def test_analytics_period(self, manager, make_submission):
        await manager.submit(make_submission())

        analytics = await manager.get_analytics(period_days=7)

        assert analytics.period_days == 7
        assert analytics.average_response_hours is None

    async def test_moderator_stats(self, manager, make_submission, admin_ctx):
        first = await manager.submit(make_submission())
        second = await manager.submit(make_submission())
        await manager.submit(make_submission())
        await manager.assign(first, "admin-1", admin_ctx)
        await manager.assign(second, "admin-1", admin_ctx)
        await manager.update_status(second, "resolved", admin_ctx)

        stats = await manager.get_moderator_stats("admin-1")

        assert stats.admin_id == "admin-1"
        assert stats.assigned_reports == 2
        assert stats.resolved_by_me == 1
        assert stats.pending_assigned == 1

    async def test_moderator_stats_for_idle_admin(self, manager, make_submission):
        await manager.submit(make_submission())

        stats = await manager.get_moderator_stats("admin-2")

        assert (stats.assigned_reports, stats.resolved_by_me, stats.pending_assigned) == (0, 0, 0)

    async def test_public_statistics_include_recent_trend(self, manager, make_submission):
        await manager.submit(make_submission())

        stats = await manager.get_public_statistics()

        assert len(stats.recent_trends) == manager.config.statistics_window_days
        assert stats.recent_trends[-1].count == 1


@pytest.mark.unit
class TestEvidenceDownload:

    async def test_open_evidence_streams_file(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit_with_files(make_submission(), [_png(payload=b"\x89PNG evidence bytes")])
        filename = (await manager.get_report(case_id)).evidence[0].filename

        item, stream = await manager.open_evidence(case_id, filename, admin_ctx)
        content = b"".join([chunk async for chunk in stream])

        assert item.original_name == "screenshot.png"
        assert item.mime_type == "image/png"
        assert content == b"\x89PNG evidence bytes"
        activities, _ = await manager.activity_log.list(action=ActivityAction.DOWNLOAD_EVIDENCE)
        assert activities[0].target_case_id == case_id
        assert activities[0].details.payload == {"filename": filename}

    async def test_unknown_filename(self, manager, make_submission, admin_ctx):
        case_id = await manager.submit_with_files(make_submission(), [_png()])

        with pytest.raises(NotFoundError):
            await manager.open_evidence(case_id, "nothing-here.png", admin_ctx)

    async def test_file_missing_from_storage(self, manager, storage, make_submission, admin_ctx):
        case_id = await manager.submit_with_files(make_submission(), [_png()])
        item = (await manager.get_report(case_id)).evidence[0]
        await storage.delete(item.storage_path)

        with pytest.raises(NotFoundError):
            await manager.open_evidence(case_id, item.filename, admin_ctx)

    async def test_unknown_report(self, manager, admin_ctx):
        with pytest.raises(NotFoundError):
            await manager.open_evidence("RS-HR-202401-999999", "screenshot.png", admin_ctx)
