"""JSON File Repository Implementation

Report and activity persistence as flat JSON documents on disk, for development
and small single-process deployments. Uses aiofiles for non-blocking I/O.

Each collection is one file. All writes to a file go through that file's
asyncio.Lock and are committed by writing a temp file and renaming it over
the original, so readers never observe a half-written document.
"""

import asyncio
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple

import aiofiles
from pydantic import ValidationError as ModelValidationError

from reportsafe.core import query
from reportsafe.core.case_id import CaseIdGenerator
from reportsafe.core.errors import NotFoundError, StorageError
from reportsafe.core.statistics import AnalyticsAccumulator, StatisticsAccumulator
from reportsafe.infrastructure.repository.provider import (
    ActivityRepository,
    ReportMutator,
    ReportRepository,
)
from reportsafe.models.activity import Activity, ActivityAction
from reportsafe.models.query import ReportAnalytics, ReportFilter, ReportSort, ReportStatistics
from reportsafe.models.report import Report, utcnow

logger = logging.getLogger(__name__)


class JsonDocumentStore:
    """One JSON document on disk guarded by a lock"""

    def __init__(self, path: Path, default_factory):
        self.path = path
        self.default_factory = default_factory
        self.lock = asyncio.Lock()

    async def ensure(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.path.parent}: {e}") from e

        if not self.path.exists():
            await self.write(self.default_factory())
            logger.info(f"Initialized document store: {self.path}")

    async def read(self) -> Any:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as in_file:
                raw = await in_file.read()
        except FileNotFoundError:
            return self.default_factory()
        except OSError as e:
            logger.error(f"Failed to read {self.path}: {e}")
            raise StorageError(f"Failed to read {self.path.name}") from e

        if not raw.strip():
            return self.default_factory()

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt document store {self.path}: {e}")
            raise StorageError(f"Corrupt document store {self.path.name}") from e

    async def write(self, data: Any) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as out_file:
                await out_file.write(json.dumps(data, indent=2))
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to write {self.path}: {e}")
            raise StorageError(f"Failed to write {self.path.name}") from e


def _load_reports(documents: List[dict]) -> List[Report]:
    try:
        return [Report.model_validate(doc) for doc in documents]
    except ModelValidationError as e:
        raise StorageError(f"Stored report document is invalid: {e}") from e


class JsonReportRepository(ReportRepository):
    """Report repository backed by reports.json and counters.json"""

    def __init__(self, data_dir: str, case_ids: Optional[CaseIdGenerator] = None):
        super().__init__(case_ids)
        self.data_dir = Path(data_dir).resolve()
        self.reports = JsonDocumentStore(self.data_dir / "reports.json", list)
        self.counters = JsonDocumentStore(self.data_dir / "counters.json", dict)

    async def initialize(self) -> None:
        await self.reports.ensure()
        await self.counters.ensure()
        logger.info(f"JSON report repository initialized at: {self.data_dir}")

    async def close(self) -> None:
        pass

    async def health_check(self) -> bool:
        try:
            await self.reports.read()
            return True
        except StorageError as e:
            logger.error(f"JSON repository health check failed: {e}")
            return False

    async def next_sequence(self, scope: str) -> int:
        async with self.counters.lock:
            counters = await self.counters.read()
            counters[scope] = int(counters.get(scope, 0)) + 1
            await self.counters.write(counters)
            return counters[scope]

    async def _insert(self, report: Report) -> None:
        async with self.reports.lock:
            documents = await self.reports.read()
            if any(doc.get("case_id") == report.case_id for doc in documents):
                raise StorageError(f"Duplicate case ID: {report.case_id}")
            documents.append(report.model_dump(mode="json"))
            await self.reports.write(documents)

    async def find_by_case_id(self, case_id: str) -> Optional[Report]:
        documents = await self.reports.read()
        for doc in documents:
            if doc.get("case_id") == case_id:
                return _load_reports([doc])[0]
        return None

    async def find_many(
        self,
        report_filter: Optional[ReportFilter] = None,
        sort: Optional[ReportSort] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[Report], int]:
        reports = _load_reports(await self.reports.read())
        return query.select(reports, report_filter or ReportFilter(), sort or ReportSort(), page, page_size)

    async def mutate(self, case_id: str, mutator: ReportMutator) -> Report:
        async with self.reports.lock:
            documents = await self.reports.read()
            for index, doc in enumerate(documents):
                if doc.get("case_id") == case_id:
                    break
            else:
                raise NotFoundError(case_id)

            report = _load_reports([doc])[0]
            mutator(report)
            # Round-trip through validation so mutations cannot break model invariants
            report = Report.model_validate(report.model_dump())
            documents[index] = report.model_dump(mode="json")
            await self.reports.write(documents)
            return report

    async def delete_by_case_id(self, case_id: str) -> bool:
        async with self.reports.lock:
            documents = await self.reports.read()
            remaining = [doc for doc in documents if doc.get("case_id") != case_id]
            if len(remaining) == len(documents):
                raise NotFoundError(case_id)
            await self.reports.write(remaining)

        logger.info(f"Deleted report {case_id}")
        return True

    async def aggregate_statistics(self, window_days: int = 30, now: Optional[datetime] = None) -> ReportStatistics:
        accumulator = StatisticsAccumulator(now or utcnow(), window_days)
        for report in _load_reports(await self.reports.read()):
            accumulator.add(
                status=report.status.value,
                severity=report.severity.value,
                incident_types=[t.value for t in report.incident_types],
                submitted_at=report.submitted_at,
                is_anonymous=report.is_anonymous,
                is_emergency=report.is_emergency,
            )
        return accumulator.build()

    async def aggregate_analytics(self, period_days: int = 30, now: Optional[datetime] = None) -> ReportAnalytics:
        accumulator = AnalyticsAccumulator(now or utcnow(), period_days)
        for report in _load_reports(await self.reports.read()):
            accumulator.add(
                status=report.status.value,
                severity=report.severity.value,
                incident_types=[t.value for t in report.incident_types],
                submitted_at=report.submitted_at,
                resolved_at=report.resolved_at,
            )
        return accumulator.build()

    async def count(self, report_filter: Optional[ReportFilter] = None) -> int:
        report_filter = report_filter or ReportFilter()
        return sum(1 for report in _load_reports(await self.reports.read()) if query.matches(report, report_filter))


class JsonActivityRepository(ActivityRepository):
    """Append-only activity log backed by activities.json"""

    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir).resolve()
        self.activities = JsonDocumentStore(self.data_dir / "activities.json", list)

    async def initialize(self) -> None:
        await self.activities.ensure()

    async def close(self) -> None:
        pass

    async def append(self, activity: Activity) -> None:
        async with self.activities.lock:
            documents = await self.activities.read()
            documents.append(activity.model_dump(mode="json"))
            await self.activities.write(documents)

    async def list_activities(
        self,
        page: int = 1,
        page_size: int = 50,
        actor_id: Optional[str] = None,
        action: Optional[ActivityAction] = None,
        target_case_id: Optional[str] = None,
    ) -> Tuple[List[Activity], int]:
        activities = [Activity.model_validate(doc) for doc in await self.activities.read()]

        if actor_id is not None:
            activities = [a for a in activities if a.actor_id == actor_id]
        if action is not None:
            activities = [a for a in activities if a.action == action]
        if target_case_id is not None:
            activities = [a for a in activities if a.target_case_id == target_case_id]

        activities.sort(key=lambda a: a.timestamp, reverse=True)
        offset = (max(page, 1) - 1) * page_size
        return activities[offset:offset + page_size], len(activities)
