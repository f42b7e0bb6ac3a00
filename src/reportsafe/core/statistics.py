"""
Report statistics aggregation

Read-side counters fed one report at a time so every repository produces
identical dashboards regardless of how it scans its records.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from reportsafe.models.query import (
    DailyCount,
    MonthlyCount,
    PublicStatistics,
    ReportAnalytics,
    ReportStatistics,
    TypeCount,
)
from reportsafe.models.report import ReportStatus, Severity


class StatisticsAccumulator:
    """Builds a ReportStatistics from a stream of report summaries"""

    def __init__(self, now: datetime, window_days: int = 30):
        self.now = now
        self.window_days = max(window_days, 1)
        self.today = now.date()
        self.window_start = self.today - timedelta(days=self.window_days - 1)
        self.week_ago = now - timedelta(days=7)

        self.total = 0
        self.by_status: Counter = Counter()
        self.by_severity: Counter = Counter()
        self.by_type: Counter = Counter()
        self.daily: Counter = Counter()
        self.anonymous = 0
        self.emergency = 0
        self.today_count = 0
        self.last_7_days = 0

    def add(
        self,
        status: str,
        severity: str,
        incident_types: Iterable[str],
        submitted_at: Optional[datetime],
        is_anonymous: bool = False,
        is_emergency: bool = False,
    ) -> None:
        self.total += 1
        self.by_status[status] += 1
        self.by_severity[severity] += 1
        for incident_type in incident_types:
            self.by_type[incident_type] += 1

        if is_anonymous:
            self.anonymous += 1
        if is_emergency:
            self.emergency += 1

        if submitted_at is not None:
            day = submitted_at.date()
            if self.window_start <= day <= self.today:
                self.daily[day] += 1
            if day == self.today:
                self.today_count += 1
            if submitted_at >= self.week_ago:
                self.last_7_days += 1

    def build(self) -> ReportStatistics:
        by_status = {status.value: self.by_status.get(status.value, 0) for status in ReportStatus}
        by_severity = {severity.value: self.by_severity.get(severity.value, 0) for severity in Severity}

        daily_counts: List[DailyCount] = []
        for offset in range(self.window_days):
            day = self.window_start + timedelta(days=offset)
            daily_counts.append(DailyCount(date=day, count=self.daily.get(day, 0)))

        return ReportStatistics(
            total_reports=self.total,
            by_status=by_status,
            by_severity=by_severity,
            by_type=dict(self.by_type.most_common()),
            daily_counts=daily_counts,
            anonymous_count=self.anonymous,
            emergency_count=self.emergency,
            today_count=self.today_count,
            last_7_days=self.last_7_days,
        )


def public_view(stats: ReportStatistics, top_types: int = 5) -> PublicStatistics:
    """Strip a statistics snapshot down to what the public site may show"""
    ranked = sorted(stats.by_type.items(), key=lambda item: (-item[1], item[0]))
    return PublicStatistics(
        total_reports=stats.total_reports,
        resolved_reports=stats.by_status.get(ReportStatus.RESOLVED.value, 0),
        reports_by_type=[TypeCount(type=name, count=count) for name, count in ranked[:top_types]],
        recent_trends=list(stats.daily_counts),
    )


# Statuses whose resolution time counts towards the average response time
RESPONDED_STATUSES = frozenset({ReportStatus.RESOLVED.value, ReportStatus.ARCHIVED.value})


class AnalyticsAccumulator:
    """Builds ReportAnalytics for the trailing `period_days`"""

    def __init__(self, now: datetime, period_days: int = 30):
        self.period_days = max(period_days, 1)
        self.start = now - timedelta(days=self.period_days)

        self.by_status: Counter = Counter()
        self.by_severity: Counter = Counter()
        self.by_type: Counter = Counter()
        self.monthly: Counter = Counter()
        self.resolved = 0
        self.response_hours = 0.0

    def add(
        self,
        status: str,
        severity: str,
        incident_types: Iterable[str],
        submitted_at: Optional[datetime],
        resolved_at: Optional[datetime] = None,
    ) -> None:
        self.by_status[status] += 1
        self.by_severity[severity] += 1

        if submitted_at is not None and submitted_at >= self.start:
            for incident_type in incident_types:
                self.by_type[incident_type] += 1
            self.monthly[(submitted_at.year, submitted_at.month)] += 1

        if status in RESPONDED_STATUSES and resolved_at is not None and submitted_at is not None:
            self.resolved += 1
            self.response_hours += (resolved_at - submitted_at).total_seconds() / 3600

    def build(self) -> ReportAnalytics:
        average = round(self.response_hours / self.resolved, 2) if self.resolved else None

        return ReportAnalytics(
            period_days=self.period_days,
            by_type=dict(self.by_type.most_common()),
            by_status={status.value: self.by_status.get(status.value, 0) for status in ReportStatus},
            by_severity={severity.value: self.by_severity.get(severity.value, 0) for severity in Severity},
            monthly_trends=[
                MonthlyCount(year=year, month=month, count=count)
                for (year, month), count in sorted(self.monthly.items())
            ],
            resolved_count=self.resolved,
            average_response_hours=average,
        )
