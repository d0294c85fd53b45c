# servicemarket/notifications.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from servicemarket.audit import AuditLog
from servicemarket.documents import Collections, Notification, User
from servicemarket.errors import NotFound, Unauthorized
from servicemarket.store.base import DocumentStore


logger = logging.getLogger(__name__)


class Notifier:
    """Per-user notification records read by the notification bell."""

    def __init__(self, store: DocumentStore, audit: Optional[AuditLog] = None):
        self.store = store
        self.audit = audit

    def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
    ) -> Optional[str]:
        """Best-effort: returns None instead of raising when the write fails."""
        note = Notification(user_id=user_id, type=type, title=title, message=message, link=link)
        try:
            return self.store.add(Collections.NOTIFICATIONS, note.to_data())
        except Exception:
            logger.exception("failed to notify %s (%s)", user_id, title)
            return None

    def notify_many(
        self,
        user_ids: Iterable[str],
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
    ) -> int:
        """One batch write for every recipient; returns how many were queued."""
        batch = self.store.batch()
        for uid in user_ids:
            note = Notification(user_id=uid, type=type, title=title, message=message, link=link)
            batch.set(Collections.NOTIFICATIONS, None, note.to_data())
        if len(batch):
            batch.commit()
        return len(batch)

    def list_for_user(self, user_id: str) -> List[Notification]:
        docs = self.store.query(
            Collections.NOTIFICATIONS,
            {"userId": user_id},
            order_by="timestamp",
            descending=True,
        )
        return [Notification.from_document(d) for d in docs]

    def unread_count(self, user_id: str) -> int:
        return len(self.store.query(Collections.NOTIFICATIONS, {"userId": user_id, "read": False}))

    def mark_read(self, notification_id: str, user_id: Optional[str] = None) -> None:
        doc = self.store.get(Collections.NOTIFICATIONS, notification_id)
        if doc is None:
            raise NotFound(f"notification {notification_id} does not exist", code="notification_not_found")
        if user_id is not None and doc.data.get("userId") != user_id:
            raise Unauthorized("notification belongs to another user", code="not_notification_owner")
        self.store.update(Collections.NOTIFICATIONS, notification_id, {"read": True})

    def mark_all_read(self, user_id: str) -> int:
        unread = self.store.query(Collections.NOTIFICATIONS, {"userId": user_id, "read": False})
        with self.store.batch() as batch:
            for d in unread:
                batch.update(Collections.NOTIFICATIONS, d.id, {"read": True})
        return len(unread)

    def broadcast(self, title: str, message: str, actor_id: str = "admin") -> int:
        users = [User.from_document(d) for d in self.store.query(Collections.USERS)]
        sent = self.notify_many([u.id for u in users], title, message)
        if self.audit is not None:
            self.audit.record(actor_id, "BROADCAST", f"Sent broadcast: {title}", "ADMIN", "warning")
        return sent
