"""SQL Repository Implementation

Report and activity persistence through SQLAlchemy's async ORM. Works with
SQLite (aiosqlite) for development and any RETURNING-capable database in
production.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from reportsafe.core.case_id import CaseIdGenerator
from reportsafe.core.errors import NotFoundError, StorageError
from reportsafe.core.query import SEVERITY_RANK
from reportsafe.core.statistics import AnalyticsAccumulator, StatisticsAccumulator
from reportsafe.infrastructure.database.client import DatabaseClient
from reportsafe.infrastructure.database.models import ActivityDB, CounterDB, ReportDB
from reportsafe.infrastructure.repository.provider import (
    ActivityRepository,
    ReportMutator,
    ReportRepository,
)
from reportsafe.models.activity import Activity, ActivityAction, ActivityDetails
from reportsafe.models.query import ReportAnalytics, ReportFilter, ReportSort, ReportStatistics, SortField
from reportsafe.models.report import Report, utcnow

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    SortField.SUBMITTED_AT: ReportDB.submitted_at,
    SortField.UPDATED_AT: ReportDB.updated_at,
    SortField.SEVERITY: ReportDB.severity_rank,
    SortField.STATUS: ReportDB.status,
    SortField.CASE_ID: ReportDB.case_id,
}

_COUNTER_RETRIES = 3


def _row_values(report: Report) -> Dict[str, Any]:
    """Scalar columns mirrored from the report document"""
    return {
        "case_id": report.case_id,
        "status": report.status.value,
        "severity": report.severity.value,
        "severity_rank": SEVERITY_RANK[report.severity],
        "is_anonymous": report.is_anonymous,
        "is_emergency": report.is_emergency,
        "incident_types": "," + ",".join(t.value for t in report.incident_types) + ",",
        "description": report.incident.description,
        "reporter_name": report.reporter.name if report.reporter else None,
        "reporter_email": report.reporter.email if report.reporter else None,
        "action_taken": report.action_taken,
        "assigned_to": report.assigned_to,
        "resolved_by": report.resolved_by,
        "resolved_at": report.resolved_at,
        "submitted_at": report.submitted_at,
        "updated_at": report.updated_at,
        "document": report.model_dump(mode="json"),
    }


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _conditions(report_filter: ReportFilter) -> list:
    f = report_filter
    conditions = []

    if f.status is not None:
        conditions.append(ReportDB.status == f.status.value)
    if f.status_in is not None:
        conditions.append(ReportDB.status.in_([s.value for s in f.status_in]))
    if f.severity is not None:
        conditions.append(ReportDB.severity == f.severity.value)
    if f.severity_in is not None:
        conditions.append(ReportDB.severity.in_([s.value for s in f.severity_in]))
    if f.incident_type is not None:
        conditions.append(ReportDB.incident_types.like(f"%,{f.incident_type.value},%"))
    if f.assigned_to is not None:
        conditions.append(ReportDB.assigned_to == f.assigned_to)
    if f.resolved_by is not None:
        conditions.append(ReportDB.resolved_by == f.resolved_by)
    if f.is_emergency is not None:
        conditions.append(ReportDB.is_emergency == f.is_emergency)
    if f.date_from is not None:
        conditions.append(ReportDB.submitted_at >= f.date_from)
    if f.date_to is not None:
        conditions.append(ReportDB.submitted_at <= f.date_to)
    if f.reporter_email is not None:
        conditions.append(func.lower(ReportDB.reporter_email) == f.reporter_email.lower())
    if f.search is not None:
        pattern = f"%{_escape_like(f.search)}%"
        conditions.append(
            or_(
                ReportDB.case_id.ilike(pattern, escape="\\"),
                ReportDB.description.ilike(pattern, escape="\\"),
                ReportDB.reporter_name.ilike(pattern, escape="\\"),
                ReportDB.reporter_email.ilike(pattern, escape="\\"),
                ReportDB.action_taken.ilike(pattern, escape="\\"),
            )
        )

    return conditions


class SqlReportRepository(ReportRepository):
    """Report repository backed by the reports and counters tables"""

    def __init__(self, db: DatabaseClient, case_ids: Optional[CaseIdGenerator] = None):
        super().__init__(case_ids)
        self.db = db

    async def initialize(self) -> None:
        if self.db.engine is None:
            await self.db.initialize()

    async def close(self) -> None:
        await self.db.close()

    async def health_check(self) -> bool:
        return await self.db.health_check()

    async def next_sequence(self, scope: str) -> int:
        increment = (
            update(CounterDB)
            .where(CounterDB.scope == scope)
            .values(value=CounterDB.value + 1)
            .returning(CounterDB.value)
            .execution_options(synchronize_session=False)
        )

        for _ in range(_COUNTER_RETRIES):
            try:
                async with self.db.get_session() as session:
                    async with session.begin():
                        value = (await session.execute(increment)).scalar_one_or_none()
                        if value is None:
                            session.add(CounterDB(scope=scope, value=1))
                            value = 1
                return value
            except IntegrityError:
                # Another request created the counter row first; increment it instead
                logger.debug(f"Counter {scope} created concurrently, retrying")
            except SQLAlchemyError as e:
                logger.error(f"Counter increment failed for {scope}: {e}")
                raise StorageError("Failed to allocate case number") from e

        raise StorageError(f"Failed to allocate case number for {scope}")

    async def _insert(self, report: Report) -> None:
        try:
            async with self.db.get_session() as session:
                async with session.begin():
                    session.add(ReportDB(**_row_values(report)))
        except IntegrityError as e:
            raise StorageError(f"Duplicate case ID: {report.case_id}") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert report {report.case_id}: {e}")
            raise StorageError("Failed to save report") from e

    async def find_by_case_id(self, case_id: str) -> Optional[Report]:
        try:
            async with self.db.get_session() as session:
                row = await session.get(ReportDB, case_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load report {case_id}: {e}")
            raise StorageError("Failed to load report") from e

        if row is None:
            return None
        return Report.model_validate(row.document)

    async def find_many(
        self,
        report_filter: Optional[ReportFilter] = None,
        sort: Optional[ReportSort] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[Report], int]:
        conditions = _conditions(report_filter or ReportFilter())
        sort = sort or ReportSort()
        column = _SORT_COLUMNS[sort.field]
        ordering = [column.desc(), ReportDB.case_id.desc()] if sort.descending else [column.asc(), ReportDB.case_id.asc()]

        stmt = select(ReportDB.document).where(*conditions).order_by(*ordering)
        if page_size is not None:
            stmt = stmt.offset((max(page, 1) - 1) * page_size).limit(page_size)
        count_stmt = select(func.count()).select_from(ReportDB).where(*conditions)

        try:
            async with self.db.get_session() as session:
                total = (await session.execute(count_stmt)).scalar_one()
                documents = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Report query failed: {e}")
            raise StorageError("Failed to query reports") from e

        return [Report.model_validate(doc) for doc in documents], total

    async def mutate(self, case_id: str, mutator: ReportMutator) -> Report:
        stmt = select(ReportDB).where(ReportDB.case_id == case_id).with_for_update()

        try:
            async with self.db.get_session() as session:
                async with session.begin():
                    row = (await session.execute(stmt)).scalar_one_or_none()
                    if row is None:
                        raise NotFoundError(case_id)

                    report = Report.model_validate(row.document)
                    mutator(report)
                    report = Report.model_validate(report.model_dump())

                    for column, value in _row_values(report).items():
                        setattr(row, column, value)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update report {case_id}: {e}")
            raise StorageError("Failed to update report") from e

        return report

    async def delete_by_case_id(self, case_id: str) -> bool:
        try:
            async with self.db.get_session() as session:
                async with session.begin():
                    result = await session.execute(delete(ReportDB).where(ReportDB.case_id == case_id))
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete report {case_id}: {e}")
            raise StorageError("Failed to delete report") from e

        if result.rowcount == 0:
            raise NotFoundError(case_id)

        logger.info(f"Deleted report {case_id}")
        return True

    async def aggregate_statistics(self, window_days: int = 30, now: Optional[datetime] = None) -> ReportStatistics:
        accumulator = StatisticsAccumulator(now or utcnow(), window_days)
        stmt = select(
            ReportDB.status,
            ReportDB.severity,
            ReportDB.incident_types,
            ReportDB.submitted_at,
            ReportDB.is_anonymous,
            ReportDB.is_emergency,
        )

        try:
            async with self.db.get_session() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error(f"Statistics query failed: {e}")
            raise StorageError("Failed to aggregate statistics") from e

        for row in rows:
            accumulator.add(
                status=row.status,
                severity=row.severity,
                incident_types=[t for t in row.incident_types.split(",") if t],
                submitted_at=row.submitted_at,
                is_anonymous=row.is_anonymous,
                is_emergency=row.is_emergency,
            )
        return accumulator.build()

    async def aggregate_analytics(self, period_days: int = 30, now: Optional[datetime] = None) -> ReportAnalytics:
        accumulator = AnalyticsAccumulator(now or utcnow(), period_days)
        stmt = select(
            ReportDB.status,
            ReportDB.severity,
            ReportDB.incident_types,
            ReportDB.submitted_at,
            ReportDB.resolved_at,
        )

        try:
            async with self.db.get_session() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error(f"Analytics query failed: {e}")
            raise StorageError("Failed to aggregate analytics") from e

        for row in rows:
            accumulator.add(
                status=row.status,
                severity=row.severity,
                incident_types=[t for t in row.incident_types.split(",") if t],
                submitted_at=row.submitted_at,
                resolved_at=row.resolved_at,
            )
        return accumulator.build()

    async def count(self, report_filter: Optional[ReportFilter] = None) -> int:
        stmt = select(func.count()).select_from(ReportDB).where(*_conditions(report_filter or ReportFilter()))
        try:
            async with self.db.get_session() as session:
                return (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Report count failed: {e}")
            raise StorageError("Failed to count reports") from e


class SqlActivityRepository(ActivityRepository):
    """Append-only activity log backed by the activities table"""

    def __init__(self, db: DatabaseClient):
        self.db = db

    async def initialize(self) -> None:
        if self.db.engine is None:
            await self.db.initialize()

    async def close(self) -> None:
        # The database client is owned and disposed by the report repository
        pass

    async def append(self, activity: Activity) -> None:
        row = ActivityDB(
            activity_id=activity.activity_id,
            actor_id=activity.actor_id,
            action=activity.action.value,
            target_case_id=activity.target_case_id,
            details=activity.details.model_dump(mode="json") if activity.details else None,
            ip_address=activity.ip_address,
            user_agent=activity.user_agent,
            timestamp=activity.timestamp,
        )
        try:
            async with self.db.get_session() as session:
                async with session.begin():
                    session.add(row)
        except SQLAlchemyError as e:
            raise StorageError("Failed to write activity record") from e

    async def list_activities(
        self,
        page: int = 1,
        page_size: int = 50,
        actor_id: Optional[str] = None,
        action: Optional[ActivityAction] = None,
        target_case_id: Optional[str] = None,
    ) -> Tuple[List[Activity], int]:
        conditions = []
        if actor_id is not None:
            conditions.append(ActivityDB.actor_id == actor_id)
        if action is not None:
            conditions.append(ActivityDB.action == action.value)
        if target_case_id is not None:
            conditions.append(ActivityDB.target_case_id == target_case_id)

        stmt = (
            select(ActivityDB)
            .where(*conditions)
            .order_by(ActivityDB.timestamp.desc())
            .offset((max(page, 1) - 1) * page_size)
            .limit(page_size)
        )
        count_stmt = select(func.count()).select_from(ActivityDB).where(*conditions)

        try:
            async with self.db.get_session() as session:
                total = (await session.execute(count_stmt)).scalar_one()
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Activity query failed: {e}")
            raise StorageError("Failed to query activities") from e

        activities = [
            Activity(
                activity_id=row.activity_id,
                actor_id=row.actor_id,
                action=ActivityAction(row.action),
                target_case_id=row.target_case_id,
                details=ActivityDetails.model_validate(row.details) if row.details else None,
                ip_address=row.ip_address,
                user_agent=row.user_agent,
                timestamp=row.timestamp,
            )
            for row in rows
        ]
        return activities, total
