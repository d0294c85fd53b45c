from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends

from servicemarket.api.deps import Services, get_optional_actor, get_services, guest_id
from servicemarket.api.schemas import AssistantQuery
from servicemarket.documents import Actor

router = APIRouter(prefix="/assistant", tags=["assistant"])


@router.post("/insights", response_model=dict)
def insights(
    body: AssistantQuery,
    actor: Optional[Actor] = Depends(get_optional_actor),
    services: Services = Depends(get_services),
):
    if actor is None:
        services.audit.record_ai_query(guest_id(), body.user_name or "Guest User", body.query)
    else:
        services.audit.record_ai_query(actor.user_id, actor.name or body.user_name or "User", body.query)
    return services.assistant.get_insights(body.query).to_dict()


@router.post("/places", response_model=List[dict])
def places(body: AssistantQuery, services: Services = Depends(get_services)):
    return [p.to_dict() for p in services.assistant.get_place_suggestions(body.query)]
