"""
Database Models

SQLAlchemy ORM models for report, activity and counter storage.

Reports are stored document-style: the full report lives in the `document`
JSON column and the fields the repository filters, sorts or aggregates on are
mirrored into indexed scalar columns.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ReportDB(Base):
    """Report database model"""

    __tablename__ = "reports"

    case_id = Column(String(32), primary_key=True, index=True)
    status = Column(String(32), nullable=False, index=True)
    severity = Column(String(16), nullable=False, index=True)
    severity_rank = Column(Integer, nullable=False, default=1)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    is_emergency = Column(Boolean, nullable=False, default=False)
    # Comma-delimited with leading/trailing commas (",harassment,threats,") for LIKE membership tests
    incident_types = Column(Text, nullable=False, default=",")
    description = Column(Text, nullable=False)
    reporter_name = Column(String(255), nullable=True)
    reporter_email = Column(String(255), nullable=True, index=True)
    action_taken = Column(Text, nullable=True)
    assigned_to = Column(String(100), nullable=True, index=True)
    resolved_by = Column(String(100), nullable=True, index=True)
    submitted_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    document = Column(JSON, nullable=False)

    def __repr__(self):
        return f"<ReportDB(case_id='{self.case_id}', status='{self.status}')>"


class ActivityDB(Base):
    """Admin activity audit record"""

    __tablename__ = "activities"

    activity_id = Column(String(36), primary_key=True)
    actor_id = Column(String(100), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)
    target_case_id = Column(String(32), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityDB(activity_id='{self.activity_id}', action='{self.action}')>"


class CounterDB(Base):
    """Monotonic sequence per scope, e.g. case_id:202401"""

    __tablename__ = "counters"

    scope = Column(String(64), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
