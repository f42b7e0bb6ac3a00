"""Report and activity persistence"""

from reportsafe.infrastructure.repository.factory import create_repositories
from reportsafe.infrastructure.repository.json_repository import JsonActivityRepository, JsonReportRepository
from reportsafe.infrastructure.repository.provider import ActivityRepository, ReportRepository
from reportsafe.infrastructure.repository.sql_repository import SqlActivityRepository, SqlReportRepository

__all__ = [
    "create_repositories",
    "ReportRepository",
    "ActivityRepository",
    "JsonReportRepository",
    "JsonActivityRepository",
    "SqlReportRepository",
    "SqlActivityRepository",
]
