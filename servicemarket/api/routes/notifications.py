from __future__ import annotations

from fastapi import APIRouter, Depends

from servicemarket.api.deps import Services, get_actor, get_services
from servicemarket.api.schemas import to_public
from servicemarket.documents import Actor

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=dict)
def list_notifications(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    items = services.notifier.list_for_user(actor.user_id)
    return {
        "items": [to_public(n) for n in items],
        "unread": sum(1 for n in items if not n.read),
    }


@router.post("/read-all", response_model=dict)
def mark_all_read(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return {"updated": services.notifier.mark_all_read(actor.user_id)}


@router.post("/{notification_id}/read", response_model=dict)
def mark_read(notification_id: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    services.notifier.mark_read(notification_id, user_id=actor.user_id)
    return {"id": notification_id, "read": True}
