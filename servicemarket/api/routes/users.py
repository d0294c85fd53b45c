from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header

from servicemarket.api.deps import Services, get_actor, get_services
from servicemarket.api.schemas import RegisterBody, UserUpdateBody, changes, to_public
from servicemarket.documents import Actor

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=dict)
def register(
    body: RegisterBody,
    x_user_id: Optional[str] = Header(None),
    services: Services = Depends(get_services),
):
    # the gateway uid becomes the account id when present
    user = services.accounts.register_user(
        name=body.name,
        email=body.email,
        role=body.role,
        company_name=body.company_name,
        user_id=x_user_id,
    )
    return to_public(user)


@router.get("/me", response_model=dict)
def me(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return to_public(services.accounts.get_user(actor.user_id))


@router.patch("/me", response_model=dict)
def update_me(
    body: UserUpdateBody,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    return to_public(services.accounts.update_user(actor.user_id, changes(body)))
