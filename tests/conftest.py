"""
ReportSafe - Test Configuration and Fixtures
"""
from datetime import date
from typing import Callable

import pytest

from reportsafe.config.settings import Settings
from reportsafe.core.activity_log import ActivityLog, RequestContext
from reportsafe.core.report_manager import ReportManager
from reportsafe.infrastructure.database.client import DatabaseClient
from reportsafe.infrastructure.repository import (
    JsonActivityRepository,
    JsonReportRepository,
    SqlActivityRepository,
    SqlReportRepository,
)
from reportsafe.infrastructure.storage import LocalStorage
from reportsafe.models.report import (
    IncidentDetails,
    IncidentType,
    Report,
    Reporter,
)
from reportsafe.models.requests import ReportSubmission


@pytest.fixture
def config(tmp_path) -> Settings:
    """Settings pointing every store at the test's temp directory"""
    return Settings(
        environment="testing",
        repository_backend="json",
        json_data_dir=str(tmp_path / "data"),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'reportsafe.db'}",
        storage_provider="local",
        storage_local_path=str(tmp_path / "uploads"),
    )


@pytest.fixture(params=["json", "sql"])
async def repositories(request, tmp_path):
    """Report and activity repositories for each backend"""
    if request.param == "json":
        reports = JsonReportRepository(str(tmp_path / "data"))
        activities = JsonActivityRepository(str(tmp_path / "data"))
    else:
        db = DatabaseClient(f"sqlite+aiosqlite:///{tmp_path / 'reports.db'}")
        reports = SqlReportRepository(db)
        activities = SqlActivityRepository(db)

    await reports.initialize()
    await activities.initialize()

    yield reports, activities

    await activities.close()
    await reports.close()


@pytest.fixture
def report_repository(repositories):
    return repositories[0]


@pytest.fixture
def activity_repository(repositories):
    return repositories[1]


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(base_path=str(tmp_path / "uploads"))


@pytest.fixture
def manager(report_repository, activity_repository, storage, config) -> ReportManager:
    return ReportManager(report_repository, ActivityLog(activity_repository), storage, config)


@pytest.fixture
def admin_ctx() -> RequestContext:
    return RequestContext(actor_id="admin-1", ip_address="127.0.0.1", user_agent="pytest")


@pytest.fixture
def make_submission() -> Callable[..., ReportSubmission]:
    """Valid submission matching the reference harassment report, with overrides"""

    def factory(**overrides) -> ReportSubmission:
        fields = {
            "incident_types": ["harassment"],
            "description": "Someone is sending me threatening messages",
            "incident_date": "2024-01-15",
            "platforms": ["instagram"],
            "anonymous": False,
            "name": "Jane Doe",
            "email": "jane@example.com",
        }
        fields.update(overrides)
        return ReportSubmission(**fields)

    return factory


@pytest.fixture
def make_report() -> Callable[..., Report]:
    """Unsaved report model, for repository tests"""

    def factory(**overrides) -> Report:
        fields = {
            "incident_types": [IncidentType.HARASSMENT],
            "incident": IncidentDetails(
                description=overrides.pop("description", "Repeated abusive messages in my DMs"),
                date_occurred=date(2024, 1, 15),
                platforms=["instagram"],
            ),
            "reporter": Reporter(name="Jane Doe", email="jane@example.com"),
        }
        if overrides.get("is_anonymous"):
            fields["reporter"] = None
        fields.update(overrides)
        return Report(**fields)

    return factory
