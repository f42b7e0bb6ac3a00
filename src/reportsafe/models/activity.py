"""
Activity Data Models

Audit trail records for admin actions against reports.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .report import utcnow


class ActivityAction(str, Enum):
    """Audited admin action kinds"""
    LOGIN = "login"
    LOGOUT = "logout"
    VIEW_REPORT = "view_report"
    UPDATE_REPORT = "update_report"
    UPDATE_STATUS = "update_status"
    BULK_UPDATE_STATUS = "bulk_update_status"
    ASSIGN_REPORT = "assign_report"
    ADD_NOTE = "add_note"
    DELETE_REPORT = "delete_report"
    EXPORT_REPORTS = "export_reports"
    DOWNLOAD_EVIDENCE = "download_evidence"


class ActivityDetails(BaseModel):
    """Tagged detail payload; `kind` names the shape of `payload`"""

    kind: str = Field(..., description="Payload discriminator, e.g. status_change")
    payload: Dict[str, Any] = Field(default_factory=dict)


class Activity(BaseModel):
    """One audited admin action. Never updated once written."""

    activity_id: str = Field(default_factory=lambda: str(uuid4()))
    actor_id: str = Field(..., description="Admin who performed the action")
    action: ActivityAction
    target_case_id: Optional[str] = None
    details: Optional[ActivityDetails] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}
