# servicemarket/audit.py
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from servicemarket.documents import AiInteraction, AuditLogEntry, Collections, now_ms
from servicemarket.store.base import DocumentStore


logger = logging.getLogger(__name__)

AI_QUERY = "AI_QUERY"


def _log_id(prefix: str) -> str:
    return f"{prefix}_{now_ms()}_{uuid.uuid4().hex[:9]}"


class AuditLog:
    """
    Append-only action log shared by every role.

    Recording is fire-and-forget: a failing store is logged and swallowed so
    the action that triggered the entry still succeeds.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def record(
        self,
        actor_id: str,
        action: str,
        details: str = "",
        role: Optional[str] = None,
        severity: str = "info",
    ) -> Optional[str]:
        entry = AuditLogEntry(
            action=action,
            details=details,
            actor_id=actor_id or "system",
            user_role=role or "UNKNOWN",
            severity=severity,
        )
        log_id = _log_id("log")
        try:
            self.store.set(Collections.AUDIT_LOGS, log_id, entry.to_data())
        except Exception:
            logger.exception("failed to record audit action %s for %s", action, actor_id)
            return None
        return log_id

    def list_entries(self, action: Optional[str] = None, limit: Optional[int] = None) -> List[AuditLogEntry]:
        filters = {"action": action} if action else None
        docs = self.store.query(
            Collections.AUDIT_LOGS,
            filters,
            order_by="timestamp",
            descending=True,
            limit=limit,
        )
        return [AuditLogEntry.from_document(d) for d in docs]

    def record_ai_query(self, user_id: str, user_name: str, query: str) -> Optional[str]:
        role = "GUEST" if str(user_id).startswith("guest_") else "USER"
        entry = AuditLogEntry(
            action=AI_QUERY,
            details=query,
            actor_id=user_id,
            user_name=user_name,
            user_role=role,
            severity="info",
        )
        log_id = _log_id("ai")
        try:
            self.store.set(Collections.AUDIT_LOGS, log_id, entry.to_data())
        except Exception:
            logger.exception("failed to record assistant query for %s", user_id)
            return None
        return log_id

    def ai_interactions(self) -> List[AiInteraction]:
        out = []
        for e in self.list_entries(action=AI_QUERY):
            name = e.user_name or ("Guest User" if e.user_role == "GUEST" else "User")
            out.append(
                AiInteraction(
                    id=e.id,
                    user_id=e.actor_id,
                    user_name=name,
                    query=e.details,
                    timestamp=e.timestamp,
                )
            )
        return out
