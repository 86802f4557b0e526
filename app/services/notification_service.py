"""
Notification trigger: queues user-facing messages during a unit of work and
writes them to the outbox once the work has committed.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.config.constants import NOTIFICATION_TITLES
from app.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db
        self._pending: List[Dict[str, Any]] = []

    def emit(
        self,
        user_id: Optional[int],
        type: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
        is_admin: bool = False
    ) -> None:
        """Queue a message; nothing is written until flush()"""
        self._pending.append({
            "user_id": user_id,
            "type": type,
            "title": title or NOTIFICATION_TITLES.get(type, type),
            "message": message,
            "data": data or {},
            "is_admin": is_admin,
        })

    def emit_admins(self, type: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Admin broadcast (user_id NULL, picked up by every admin)"""
        self.emit(None, type, message, data=data, is_admin=True)

    def discard(self) -> None:
        self._pending.clear()

    def flush(self) -> int:
        """
        Persist queued messages, one commit each.

        A failure is logged and dropped: the transition that triggered the
        message has already committed and must not be undone by it.

        Returns:
            Number of messages written
        """
        pending, self._pending = self._pending, []
        written = 0

        for payload in pending:
            try:
                self.db.add(Notification(**payload))
                self.db.commit()
                written += 1
            except Exception:
                self.db.rollback()
                logger.exception(
                    f"[Notifications] Failed to write {payload['type']} for user {payload['user_id']}"
                )

        return written
