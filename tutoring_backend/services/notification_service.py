"""Fire-and-forget notification delivery into the notifications collection."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from tutoring_backend.domain.models import Notification, NotificationType, UserRole
from tutoring_backend.repository.document_store import Collections, DocumentStore, StoreError
from tutoring_backend.utils.identifiers import generate_id, now_iso
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)


class NotificationDispatcher:
    """Creates notification documents; delivery failures never fail the caller."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def notify(
        self,
        *,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        link: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[Notification]:
        notification = Notification(
            id=generate_id("notif"),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            created_at=now_iso(),
            metadata=dict(metadata or {}),
        )
        try:
            self._store.create(Collections.NOTIFICATIONS, notification.to_document())
        except StoreError:
            logger.exception(
                "Notification delivery failed | user_id=%s | type=%s",
                user_id,
                type.value,
            )
            return None
        logger.debug("Notification created | user_id=%s | type=%s", user_id, type.value)
        return notification

    def notify_many(
        self,
        user_ids: Iterable[str],
        **kwargs: Any,
    ) -> list[Notification]:
        delivered: list[Notification] = []
        for user_id in dict.fromkeys(user_ids):
            notification = self.notify(user_id=user_id, **kwargs)
            if notification is not None:
                delivered.append(notification)
        return delivered

    def management_user_ids(self, exclude: Optional[str] = None) -> list[str]:
        return [
            str(user["id"])
            for user in self._store.find(
                Collections.USERS,
                lambda u: u.get("role") == UserRole.MANAGEMENT.value,
            )
            if user.get("id") and user.get("id") != exclude
        ]
