# servicemarket/site.py
from __future__ import annotations

import logging
import re
from typing import List, Optional

from servicemarket.audit import AuditLog
from servicemarket.documents import Collections, ServiceType, SiteSettings
from servicemarket.errors import NotFound, ValidationFailed
from servicemarket.lifecycle.constants import ServiceCategory
from servicemarket.store.base import DocumentStore


logger = logging.getLogger(__name__)

SETTINGS_ID = "global"


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class SiteConfig:
    """Admin-managed site settings and the catalogue of service categories."""

    def __init__(self, store: DocumentStore, audit: Optional[AuditLog] = None):
        self.store = store
        self.audit = audit

    def get_settings(self) -> SiteSettings:
        try:
            doc = self.store.get(Collections.SETTINGS, SETTINGS_ID)
        except Exception:
            logger.exception("could not read site settings; using defaults")
            return SiteSettings()
        return SiteSettings.model_validate(doc.data) if doc is not None else SiteSettings()

    def update_settings(self, settings: SiteSettings, actor_id: str = "admin") -> SiteSettings:
        self.store.set(Collections.SETTINGS, SETTINGS_ID, settings.to_data())
        self._audit(actor_id, "UPDATE_SETTINGS", "Updated site settings", "warning")
        return settings

    def list_service_types(self, active_only: bool = False) -> List[ServiceType]:
        types = [ServiceType.from_document(d) for d in self.store.query(Collections.SERVICE_TYPES, order_by="name")]
        return [t for t in types if t.is_active] if active_only else types

    def save_service_type(self, service_type: ServiceType, action: str = "add", actor_id: str = "admin") -> ServiceType:
        if not service_type.name.strip():
            raise ValidationFailed("service type needs a name", code="service_type_name_required")
        if action not in ("add", "update"):
            raise ValidationFailed(f"unknown action: {action}", code="invalid_action")

        type_id = service_type.id or _slug(service_type.name)
        if action == "update" and self.store.get(Collections.SERVICE_TYPES, type_id) is None:
            raise NotFound(f"service type {type_id} does not exist", code="service_type_not_found")

        saved = service_type.model_copy(update={"id": type_id})
        self.store.set(Collections.SERVICE_TYPES, type_id, saved.to_data())
        self._audit(
            actor_id,
            "ADD_SERVICE" if action == "add" else "UPDATE_SERVICE",
            f"Service type: {saved.name}",
        )
        return saved

    def delete_service_type(self, type_id: str, actor_id: str = "admin") -> None:
        if not self.store.delete(Collections.SERVICE_TYPES, type_id):
            raise NotFound(f"service type {type_id} does not exist", code="service_type_not_found")
        self._audit(actor_id, "DELETE_SERVICE", f"Deleted service type {type_id}", "warning")

    def category_names(self) -> List[str]:
        names = list(ServiceCategory.BUILT_IN)
        seen = {n.casefold() for n in names}
        for t in self.list_service_types(active_only=True):
            if t.name.casefold() not in seen:
                names.append(t.name)
                seen.add(t.name.casefold())
        return names

    def _audit(self, actor_id: str, action: str, details: str, severity: str = "info") -> None:
        if self.audit is not None:
            self.audit.record(actor_id, action, details, "ADMIN", severity)
