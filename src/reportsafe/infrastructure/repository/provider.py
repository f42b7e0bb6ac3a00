"""Report Repository Interface

Abstract base classes defining the contract for report and activity persistence.
Supports both a SQL database (SQLAlchemy) and flat JSON documents on disk.

Business rules that do not depend on the backing store (case ID assignment,
patch application, bulk semantics) live on the base class so every backend
behaves identically.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from reportsafe.core.case_id import CaseIdGenerator, sequence_scope
from reportsafe.core.errors import NotFoundError, StorageError, ValidationError
from reportsafe.core.status import apply_patch, check_patch
from reportsafe.models.activity import Activity, ActivityAction
from reportsafe.models.query import (
    BulkUpdateFailure,
    BulkUpdateResult,
    ReportAnalytics,
    ReportFilter,
    ReportPatch,
    ReportSort,
    ReportStatistics,
)
from reportsafe.models.report import Report, utcnow

logger = logging.getLogger(__name__)

ReportMutator = Callable[[Report], None]


class ReportRepository(ABC):
    """Abstract report store"""

    def __init__(self, case_ids: Optional[CaseIdGenerator] = None):
        self.case_ids = case_ids or CaseIdGenerator()

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backing store (create tables, files, directories)"""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the backing store is reachable"""
        pass

    @abstractmethod
    async def next_sequence(self, scope: str) -> int:
        """Atomically increment the counter for `scope` and return the new value.

        Raises:
            StorageError: If the counter cannot be updated
        """
        pass

    @abstractmethod
    async def _insert(self, report: Report) -> None:
        """Persist a fully prepared new report"""
        pass

    @abstractmethod
    async def find_by_case_id(self, case_id: str) -> Optional[Report]:
        pass

    @abstractmethod
    async def find_many(
        self,
        report_filter: Optional[ReportFilter] = None,
        sort: Optional[ReportSort] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[Report], int]:
        """Query reports.

        Args:
            report_filter: Predicate (default: match all)
            sort: Ordering (default: submitted_at descending)
            page: Page number (1-indexed)
            page_size: Items per page; None returns every match

        Returns:
            Tuple of (reports, total_count)
        """
        pass

    @abstractmethod
    async def mutate(self, case_id: str, mutator: ReportMutator) -> Report:
        """Atomically load, mutate and save one report.

        The mutator receives a working copy; if it raises, nothing is saved.

        Raises:
            NotFoundError: If no report has this case ID
            StorageError: If the store cannot be read or written
        """
        pass

    @abstractmethod
    async def delete_by_case_id(self, case_id: str) -> bool:
        """Remove a report record. Evidence files are the caller's concern.

        Raises:
            NotFoundError: If no report has this case ID
        """
        pass

    @abstractmethod
    async def aggregate_statistics(self, window_days: int = 30, now: Optional[datetime] = None) -> ReportStatistics:
        """Aggregate counts over all reports. Never fails on an empty store."""
        pass

    @abstractmethod
    async def aggregate_analytics(self, period_days: int = 30, now: Optional[datetime] = None) -> ReportAnalytics:
        """Type counts and monthly trends over the trailing period, plus average response time"""
        pass

    @abstractmethod
    async def count(self, report_filter: Optional[ReportFilter] = None) -> int:
        pass

    async def create(self, report: Report) -> Report:
        """Assign a case ID and submission time, then persist.

        Raises:
            ValidationError: If the report already carries a case ID
        """
        if report.case_id is not None:
            raise ValidationError(["case_id is assigned on creation and must not be provided"])

        report = report.model_copy(deep=True)
        now = self.case_ids.clock()
        primary_type = report.incident_types[0] if report.incident_types else None

        sequence = await self.next_sequence(sequence_scope(now))
        report.case_id = self.case_ids.generate(primary_type, sequence=sequence)
        report.submitted_at = now
        report.updated_at = now

        await self._insert(report)
        logger.info(f"Created report {report.case_id}")
        return report

    async def update_by_case_id(self, case_id: str, patch: ReportPatch, actor_id: Optional[str] = None) -> Report:
        check_patch(patch)
        now = utcnow()
        return await self.mutate(case_id, lambda report: apply_patch(report, patch, actor_id, now))

    async def update_many(
        self,
        case_ids: Iterable[str],
        patch: ReportPatch,
        actor_id: Optional[str] = None,
    ) -> BulkUpdateResult:
        """Apply one patch to many reports, one independent update per report"""
        check_patch(patch)
        result = BulkUpdateResult()

        for case_id in dict.fromkeys(case_ids):
            try:
                await self.update_by_case_id(case_id, patch, actor_id)
            except NotFoundError as e:
                result.failures.append(BulkUpdateFailure(case_id=case_id, error=str(e)))
                continue
            except StorageError as e:
                logger.error(f"Bulk update failed for {case_id}: {e}")
                result.matched += 1
                result.failures.append(BulkUpdateFailure(case_id=case_id, error="storage failure"))
                continue
            result.matched += 1
            result.modified += 1

        logger.info(f"Bulk update: {result.modified} modified, {len(result.failures)} failed")
        return result


class ActivityRepository(ABC):
    """Abstract append-only audit trail store"""

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def append(self, activity: Activity) -> None:
        """Persist one activity record.

        Raises:
            StorageError: If the record cannot be written
        """
        pass

    @abstractmethod
    async def list_activities(
        self,
        page: int = 1,
        page_size: int = 50,
        actor_id: Optional[str] = None,
        action: Optional[ActivityAction] = None,
        target_case_id: Optional[str] = None,
    ) -> Tuple[List[Activity], int]:
        """List activities, newest first.

        Returns:
            Tuple of (activities, total_count)
        """
        pass
