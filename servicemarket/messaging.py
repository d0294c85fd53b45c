# servicemarket/messaging.py
from __future__ import annotations

from typing import Dict, List, Optional

from servicemarket.audit import AuditLog
from servicemarket.documents import Collections, Conversation, DirectMessage, User, UserRole
from servicemarket.errors import ValidationFailed
from servicemarket.notifications import Notifier
from servicemarket.store.base import DocumentStore


class Messenger:
    """Direct messages between a customer and a provider (or anyone else)."""

    def __init__(
        self,
        store: DocumentStore,
        notifier: Optional[Notifier] = None,
        audit: Optional[AuditLog] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.audit = audit

    def _user(self, user_id: str) -> Optional[User]:
        doc = self.store.get(Collections.USERS, user_id)
        return User.from_document(doc) if doc is not None else None

    def send_message(self, sender_id: str, recipient_id: str, content: str) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationFailed("message is empty", code="empty_message")
        if sender_id == recipient_id:
            raise ValidationFailed("cannot message yourself", code="self_message")

        msg = DirectMessage(sender_id=sender_id, recipient_id=recipient_id, content=content)
        message_id = self.store.add(Collections.MESSAGES, msg.to_data())

        sender = self._user(sender_id)
        if self.notifier is not None:
            self.notifier.notify(
                recipient_id,
                "New Message",
                f"Message from {sender.name if sender else 'User'}",
                link="messages",
            )
        if self.audit is not None:
            self.audit.record(
                sender_id,
                "SEND_MESSAGE",
                f"Sent message to user {recipient_id}",
                sender.role if sender else UserRole.USER,
            )
        return message_id

    def get_messages(self, user_id: str, other_user_id: str) -> List[DirectMessage]:
        sent = self.store.query(Collections.MESSAGES, {"senderId": user_id, "recipientId": other_user_id})
        received = self.store.query(Collections.MESSAGES, {"senderId": other_user_id, "recipientId": user_id})
        msgs = [DirectMessage.from_document(d) for d in [*sent, *received]]
        return sorted(msgs, key=lambda m: m.timestamp)

    def get_conversations(self, user_id: str) -> List[Conversation]:
        sent = self.store.query(Collections.MESSAGES, {"senderId": user_id})
        received = self.store.query(Collections.MESSAGES, {"recipientId": user_id})
        msgs = sorted(
            (DirectMessage.from_document(d) for d in [*sent, *received]),
            key=lambda m: m.timestamp,
            reverse=True,
        )

        threads: Dict[str, List[DirectMessage]] = {}
        for m in msgs:
            other = m.recipient_id if m.sender_id == user_id else m.sender_id
            threads.setdefault(other, []).append(m)

        conversations = []
        for other_id, thread in threads.items():
            last = thread[0]
            other = self._user(other_id)
            conversations.append(
                Conversation(
                    other_user_id=other_id,
                    other_user_name=other.name if other else "Unknown",
                    last_message=last.content,
                    timestamp=last.timestamp,
                    unread_count=sum(1 for m in thread if m.recipient_id == user_id and not m.read),
                )
            )
        return sorted(conversations, key=lambda c: c.timestamp, reverse=True)

    def mark_conversation_read(self, user_id: str, other_user_id: str) -> int:
        unread = self.store.query(
            Collections.MESSAGES,
            {"senderId": other_user_id, "recipientId": user_id, "read": False},
        )
        with self.store.batch() as batch:
            for d in unread:
                batch.update(Collections.MESSAGES, d.id, {"read": True})
        return len(unread)
