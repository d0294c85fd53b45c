from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from servicemarket.api.deps import Services, get_actor, get_services, require_provider
from servicemarket.api.schemas import CreateRequestBody, SubmitQuoteBody, to_public
from servicemarket.documents import Actor, UserRole
from servicemarket.lifecycle import PriceFields

router = APIRouter(prefix="/requests", tags=["requests"])


def _ensure_visible(req, actor: Actor) -> None:
    # customers only see their own requests; providers and admins see all
    if actor.role == UserRole.USER and req.user_id != actor.user_id:
        raise HTTPException(status_code=403, detail="not_request_owner")


@router.post("", response_model=dict)
def create_new_request(
    body: CreateRequestBody,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    request_id = services.manager.create_request(
        actor,
        category=body.category,
        title=body.title,
        description=body.description,
        locality=body.locality,
        coordinates=body.coordinates,
    )
    return {"id": request_id, "status": "open"}


@router.get("", response_model=List[dict])
def list_requests(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return [to_public(r) for r in services.manager.list_requests(actor)]


@router.get("/leads", response_model=List[dict])
def list_leads(actor: Actor = Depends(require_provider), services: Services = Depends(get_services)):
    return [to_public(r) for r in services.manager.provider_leads(actor.user_id)]


@router.get("/{request_id}", response_model=dict)
def get_request(request_id: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    req = services.manager.get_request(request_id)
    _ensure_visible(req, actor)
    return to_public(req)


@router.delete("/{request_id}", response_model=dict)
def delete_request(request_id: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    services.manager.delete_request(request_id, actor)
    return {"id": request_id, "deleted": True}


@router.post("/{request_id}/quotes", response_model=dict)
def submit_quote(
    request_id: str,
    body: SubmitQuoteBody,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    updated = services.manager.submit_quote(
        request_id,
        actor,
        provider_id=actor.user_id,
        provider_profile=None,
        price_fields=PriceFields(
            price=body.price,
            timeline=body.timeline,
            description=body.description,
            currency=body.currency,
        ),
    )
    return to_public(updated)


@router.post("/{request_id}/quotes/{quote_id}/accept", response_model=dict)
def accept_quote(
    request_id: str,
    quote_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    return to_public(services.manager.accept_quote(request_id, quote_id, actor))


@router.post("/{request_id}/complete", response_model=dict)
def complete_order(request_id: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return to_public(services.manager.complete_order(request_id, actor))


@router.get("/{request_id}/refine-hint", response_model=dict)
def refine_hint(request_id: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    req = services.manager.get_request(request_id)
    _ensure_visible(req, actor)
    return {
        "id": request_id,
        "status": req.status,
        "should_refine": services.manager.should_notify_to_refine_criteria(req),
    }
