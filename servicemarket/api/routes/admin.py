from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends

from servicemarket.api.deps import Services, get_services, require_admin
from servicemarket.api.schemas import AdminUserBody, BlockBody, BroadcastBody, ServiceTypeBody, to_public
from servicemarket.documents import Actor, ServiceType, SiteSettings

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ---------------- users & providers

@router.get("/users", response_model=List[dict])
def list_users(services: Services = Depends(get_services)):
    return [to_public(u) for u in services.accounts.list_users()]


@router.post("/users", response_model=dict)
def create_user(body: AdminUserBody, admin: Actor = Depends(require_admin), services: Services = Depends(get_services)):
    # the only way to mint another admin
    user = services.accounts.register_user(
        name=body.name,
        email=body.email,
        role=body.role,
        company_name=body.company_name,
        user_id=body.id,
        created_by=admin.user_id,
    )
    return to_public(user)


@router.post("/users/{user_id}/block", response_model=dict)
def block_user(
    user_id: str,
    body: BlockBody,
    admin: Actor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return to_public(services.accounts.set_blocked(user_id, body.blocked, actor_id=admin.user_id))


@router.delete("/users/{user_id}", response_model=dict)
def delete_user(user_id: str, admin: Actor = Depends(require_admin), services: Services = Depends(get_services)):
    services.accounts.delete_user(user_id, actor_id=admin.user_id)
    return {"id": user_id, "deleted": True}


@router.post("/providers/{provider_id}/verify", response_model=dict)
def toggle_verification(
    provider_id: str,
    admin: Actor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return to_public(services.accounts.toggle_provider_verification(provider_id, actor_id=admin.user_id))


@router.post("/broadcast", response_model=dict)
def broadcast(body: BroadcastBody, admin: Actor = Depends(require_admin), services: Services = Depends(get_services)):
    return {"sent": services.notifier.broadcast(body.title, body.message, actor_id=admin.user_id)}


# ---------------- site

@router.get("/settings", response_model=dict)
def get_settings(services: Services = Depends(get_services)):
    return to_public(services.site.get_settings())


@router.put("/settings", response_model=dict)
def update_settings(
    body: SiteSettings,
    admin: Actor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return to_public(services.site.update_settings(body, actor_id=admin.user_id))


@router.get("/service-types", response_model=List[dict])
def list_service_types(services: Services = Depends(get_services)):
    return [to_public(t) for t in services.site.list_service_types()]


@router.post("/service-types", response_model=dict)
def add_service_type(
    body: ServiceTypeBody,
    admin: Actor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    st = ServiceType(name=body.name, description=body.description, is_active=body.is_active)
    return to_public(services.site.save_service_type(st, action="add", actor_id=admin.user_id))


@router.put("/service-types/{type_id}", response_model=dict)
def update_service_type(
    type_id: str,
    body: ServiceTypeBody,
    admin: Actor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    st = ServiceType(id=type_id, name=body.name, description=body.description, is_active=body.is_active)
    return to_public(services.site.save_service_type(st, action="update", actor_id=admin.user_id))


@router.delete("/service-types/{type_id}", response_model=dict)
def delete_service_type(
    type_id: str,
    admin: Actor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    services.site.delete_service_type(type_id, actor_id=admin.user_id)
    return {"id": type_id, "deleted": True}


# ---------------- logs

@router.get("/audit-logs", response_model=List[dict])
def audit_logs(
    action: Optional[str] = None,
    limit: Optional[int] = None,
    services: Services = Depends(get_services),
):
    return [to_public(e) for e in services.audit.list_entries(action=action, limit=limit)]


@router.get("/ai-interactions", response_model=List[dict])
def ai_interactions(services: Services = Depends(get_services)):
    return [i.model_dump() for i in services.audit.ai_interactions()]
