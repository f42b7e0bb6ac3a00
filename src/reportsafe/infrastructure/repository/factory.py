"""Repository Factory

Chooses the report/activity persistence backend from the REPOSITORY_BACKEND setting.
"""

import logging
from typing import Tuple

from reportsafe.config.settings import Settings
from reportsafe.core.case_id import CaseIdGenerator
from reportsafe.infrastructure.database.client import DatabaseClient
from reportsafe.infrastructure.repository.json_repository import JsonActivityRepository, JsonReportRepository
from reportsafe.infrastructure.repository.provider import ActivityRepository, ReportRepository
from reportsafe.infrastructure.repository.sql_repository import SqlActivityRepository, SqlReportRepository

logger = logging.getLogger(__name__)


def create_repositories(config: Settings) -> Tuple[ReportRepository, ActivityRepository]:
    """Build the report and activity repositories (not yet initialized).

    REPOSITORY_BACKEND:
        "sql" (default): DATABASE_URL via SQLAlchemy async
        "json": JSON documents under JSON_DATA_DIR
    """
    backend = config.repository_backend.lower()
    case_ids = CaseIdGenerator(strict=config.strict_incident_types)
    logger.info(f"Initializing repository backend: {backend}")

    if backend == "json":
        return (
            JsonReportRepository(config.json_data_dir, case_ids),
            JsonActivityRepository(config.json_data_dir),
        )

    if backend != "sql":
        raise ValueError(f"Unknown repository backend: {config.repository_backend}")

    db = DatabaseClient(config.database_url)
    return SqlReportRepository(db, case_ids), SqlActivityRepository(db)
