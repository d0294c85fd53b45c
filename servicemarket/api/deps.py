from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from servicemarket.accounts import AccountService, normalize_role
from servicemarket.audit import AuditLog
from servicemarket.config import Settings
from servicemarket.documents import Actor, Collections, User, UserRole
from servicemarket.lifecycle import RequestLifecycleManager
from servicemarket.llm import DubaiAssistant
from servicemarket.messaging import Messenger
from servicemarket.notifications import Notifier
from servicemarket.site import SiteConfig
from servicemarket.store import DocumentStore, build_store


logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    audit: AuditLog
    notifier: Notifier
    site: SiteConfig
    manager: RequestLifecycleManager
    accounts: AccountService
    messenger: Messenger
    assistant: DubaiAssistant


def build_services(
    settings: Settings,
    store: Optional[DocumentStore] = None,
    assistant: Optional[DubaiAssistant] = None,
) -> Services:
    store = store or build_store(settings)
    audit = AuditLog(store)
    notifier = Notifier(store, audit=audit)
    site = SiteConfig(store, audit=audit)
    return Services(
        settings=settings,
        store=store,
        audit=audit,
        notifier=notifier,
        site=site,
        manager=RequestLifecycleManager(
            store,
            audit=audit,
            notifier=notifier,
            settings=settings,
            categories=site.category_names,
        ),
        accounts=AccountService(store, audit=audit, site=site),
        messenger=Messenger(store, notifier=notifier, audit=audit),
        assistant=assistant or DubaiAssistant(api_key=settings.google_api_key, model=settings.gemini_model),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def _known_user(services: Services, user_id: str) -> Optional[User]:
    doc = services.store.get(Collections.USERS, user_id)
    return User.from_document(doc) if doc is not None else None


def get_optional_actor(
    services: Services = Depends(get_services),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[Actor]:
    """
    Caller identity as forwarded by the auth gateway.
    A registered user's stored role wins over the header.
    """
    if not x_user_id:
        return None

    user = _known_user(services, x_user_id)
    if user is None:
        return Actor(user_id=x_user_id, role=normalize_role(x_user_role))

    AccountService.ensure_active(user)
    return user.to_actor()


def get_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise HTTPException(status_code=401, detail="authentication_required")
    return actor


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="admin_required")
    return actor


def require_provider(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role != UserRole.PROVIDER:
        raise HTTPException(status_code=403, detail="provider_required")
    return actor


def guest_id() -> str:
    return f"guest_{uuid.uuid4().hex[:12]}"
