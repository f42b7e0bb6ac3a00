"""
API Dependencies

Service container built once per process and FastAPI dependencies that hand
its parts to route handlers.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends, Header, Request, UploadFile

from reportsafe.config.settings import Settings
from reportsafe.core.activity_log import ActivityLog, RequestContext
from reportsafe.core.report_manager import ReportManager
from reportsafe.infrastructure.repository import ActivityRepository, ReportRepository, create_repositories
from reportsafe.infrastructure.storage import StorageProvider, create_storage_provider
from reportsafe.models.report import SubmissionMetadata
from reportsafe.models.requests import IncomingFile

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything a request handler needs, wired together at startup"""

    config: Settings
    reports: ReportRepository
    activities: ActivityRepository
    storage: StorageProvider
    activity_log: ActivityLog
    manager: ReportManager

    @classmethod
    def from_settings(cls, config: Settings) -> "ServiceContainer":
        reports, activities = create_repositories(config)
        storage = create_storage_provider(config)
        activity_log = ActivityLog(activities)
        manager = ReportManager(reports, activity_log, storage, config)
        return cls(config, reports, activities, storage, activity_log, manager)

    async def initialize(self) -> None:
        await self.reports.initialize()
        await self.activities.initialize()

    async def close(self) -> None:
        await self.activities.close()
        await self.reports.close()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_report_manager(container: ServiceContainer = Depends(get_container)) -> ReportManager:
    """Dependency for getting the ReportManager instance"""
    return container.manager


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_admin_context(
    request: Request,
    x_admin_id: str = Header(..., alias="X-Admin-ID"),
) -> RequestContext:
    """Acting admin, as authenticated by the API gateway"""
    return RequestContext(
        actor_id=x_admin_id,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_submission_metadata(request: Request) -> SubmissionMetadata:
    return SubmissionMetadata(
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        source="web",
    )


def to_incoming_files(uploads: Optional[List[UploadFile]]) -> List[IncomingFile]:
    """Wrap FastAPI uploads, measuring each spooled file"""
    incoming = []
    for upload in uploads or []:
        if not upload.filename:
            continue
        upload.file.seek(0, os.SEEK_END)
        size = upload.file.tell()
        upload.file.seek(0)
        incoming.append(IncomingFile(
            filename=upload.filename,
            content_type=upload.content_type or "application/octet-stream",
            size=size,
            stream=upload.file,
        ))
    return incoming
