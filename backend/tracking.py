# tracking.py - Client analytics recorder (views and downloads)
import logging
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from database import get_db_context
from models import ClientView, FileDownload

logger = logging.getLogger("handoff.tracking")


class EventKind(str, Enum):
    VIEW = "view"
    DOWNLOAD = "download"


class TrackingRecorder:
    """Appends tracking events, each in its own short-lived session.

    The request's session is never touched, so a failed append cannot
    expire objects the route is still using. Failures are logged and
    reported as False; callers never see them. Only client-facing routes
    hold a recorder, freelancer reads are not tracked.
    """

    def __init__(self, session_context=get_db_context):
        self.session_context = session_context

    async def record(self, kind: EventKind, subject_id: str, context: Optional[Dict[str, Any]] = None) -> bool:
        context = context or {}
        if kind == EventKind.VIEW:
            event = ClientView(
                client_id=subject_id,
                project_id=context.get("project_id"),
                page=context["page"],
            )
        else:
            event = FileDownload(
                file_id=subject_id,
                client_id=context.get("client_id"),
                ip_address=context.get("ip_address"),
            )

        try:
            async with self.session_context() as session:
                session.add(event)
        except SQLAlchemyError as e:
            logger.warning(f"Dropped {kind.value} event for {subject_id}: {e}")
            return False
        return True

    async def view(self, client_id: str, page: str, project_id: Optional[str] = None) -> bool:
        return await self.record(EventKind.VIEW, client_id, {"page": page, "project_id": project_id})

    async def download(self, file_id: str, client_id: str, ip_address: Optional[str]) -> bool:
        return await self.record(
            EventKind.DOWNLOAD, file_id, {"client_id": client_id, "ip_address": ip_address}
        )


async def get_tracker() -> TrackingRecorder:
    return TrackingRecorder()
