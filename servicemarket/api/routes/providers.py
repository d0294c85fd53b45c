from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from servicemarket.api.deps import Services, get_actor, get_services, require_admin
from servicemarket.api.schemas import ProviderUpdateBody, ReviewBody, changes, to_public
from servicemarket.documents import Actor

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("", response_model=List[dict])
def list_providers(services: Services = Depends(get_services)):
    return [to_public(p) for p in services.accounts.list_providers()]


@router.get("/{provider_id}", response_model=dict)
def get_provider(provider_id: str, services: Services = Depends(get_services)):
    return to_public(services.accounts.get_provider(provider_id))


@router.patch("/{provider_id}", response_model=dict)
def update_provider(
    provider_id: str,
    body: ProviderUpdateBody,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    if actor.user_id != provider_id and not actor.is_admin:
        raise HTTPException(status_code=403, detail="not_storefront_owner")
    return to_public(services.accounts.update_provider(provider_id, changes(body)))


@router.post("/{provider_id}/reviews", response_model=dict)
def add_review(
    provider_id: str,
    body: ReviewBody,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    if actor.user_id == provider_id:
        raise HTTPException(status_code=403, detail="cannot_review_self")
    profile = services.accounts.add_review(
        provider_id,
        author=body.author or actor.name or actor.user_id,
        rating=body.rating,
        content=body.content,
        actor_id=actor.user_id,
    )
    return to_public(profile)


@router.delete("/{provider_id}/reviews/{review_id}", response_model=dict)
def delete_review(
    provider_id: str,
    review_id: str,
    admin: Actor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return to_public(services.accounts.delete_review(provider_id, review_id, actor_id=admin.user_id))
