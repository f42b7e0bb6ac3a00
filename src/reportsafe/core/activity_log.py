"""
Activity Log

Append-only audit trail of admin actions. Audit writes are best effort: a
failed write is logged and never fails the action being audited.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from reportsafe.core.errors import StorageError
from reportsafe.infrastructure.repository.provider import ActivityRepository
from reportsafe.models.activity import Activity, ActivityAction, ActivityDetails

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Who is acting and from where"""

    actor_id: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class ActivityLog:
    """Records and lists audited admin actions"""

    def __init__(self, repository: ActivityRepository):
        self.repository = repository

    async def record(
        self,
        ctx: RequestContext,
        action: ActivityAction,
        target_case_id: Optional[str] = None,
        kind: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[Activity]:
        """
        Append one activity record

        Returns:
            The stored activity, or None if the write failed
        """
        details = ActivityDetails(kind=kind or action.value, payload=payload or {})
        activity = Activity(
            actor_id=ctx.actor_id,
            action=action,
            target_case_id=target_case_id,
            details=details,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )

        try:
            await self.repository.append(activity)
        except StorageError as e:
            logger.warning(f"Failed to record {action.value} by {ctx.actor_id}: {e}")
            return None

        return activity

    async def list(
        self,
        page: int = 1,
        page_size: int = 50,
        actor_id: Optional[str] = None,
        action: Optional[ActivityAction] = None,
        target_case_id: Optional[str] = None,
    ) -> Tuple[List[Activity], int]:
        return await self.repository.list_activities(
            page=page,
            page_size=page_size,
            actor_id=actor_id,
            action=action,
            target_case_id=target_case_id,
        )
