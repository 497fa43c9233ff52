"""Notification delivery for quiz events"""

import logging
from typing import Any, Callable, Dict, Optional

import sentry_sdk
from fastapi import BackgroundTasks

from app.core.config import settings
from app.core.database import SessionLocal, get_db_session
from app.models import Notification

logger = logging.getLogger(__name__)


class DatabaseNotificationSender:
    """Stores notifications in the notifications table, one session per message"""

    def __init__(self, session_factory: Callable = SessionLocal):
        self.session_factory = session_factory

    def send(self, user_id: int, payload: Dict[str, Any]) -> None:
        with get_db_session(self.session_factory) as db:
            db.add(
                Notification(
                    user_id=user_id,
                    type=payload["type"],
                    title=payload["title"],
                    message=payload.get("message"),
                    priority=payload.get("priority", "NORMAL"),
                    data=payload.get("data", {}),
                )
            )


class NotificationQueue:
    """
    Best-effort fan-out.

    Every recipient is its own task; a failed delivery is logged and never
    reaches the caller or the other recipients. With ``background_tasks``
    the tasks run after the response has been sent.
    """

    def __init__(
        self,
        sender,
        background_tasks: Optional[BackgroundTasks] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.sender = sender
        self.background_tasks = background_tasks
        self.logger = log or logger

    def enqueue(self, user_id: int, payload: Dict[str, Any]) -> None:
        if self.background_tasks is not None:
            self.background_tasks.add_task(self._deliver, user_id, payload)
        else:
            self._deliver(user_id, payload)

    def _deliver(self, user_id: int, payload: Dict[str, Any]) -> None:
        try:
            self.sender.send(user_id, payload)
        except Exception as e:
            self.logger.error(
                f"Failed to deliver {payload.get('type')} notification: {e}",
                extra={"recipient_id": user_id, "notification_data": payload.get("data")},
            )
            if settings.SENTRY_DSN:
                sentry_sdk.capture_exception(e)
