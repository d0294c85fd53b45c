from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from servicemarket.api.deps import Services, get_actor, get_services
from servicemarket.api.schemas import MessageBody, to_public
from servicemarket.documents import Actor

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=dict)
def send_message(body: MessageBody, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    message_id = services.messenger.send_message(actor.user_id, body.recipient_id, body.content)
    return {"id": message_id}


@router.get("/conversations", response_model=List[dict])
def conversations(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return [c.model_dump() for c in services.messenger.get_conversations(actor.user_id)]


@router.get("/{other_user_id}", response_model=List[dict])
def thread(other_user_id: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return [to_public(m) for m in services.messenger.get_messages(actor.user_id, other_user_id)]


@router.post("/{other_user_id}/read", response_model=dict)
def mark_read(other_user_id: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return {"updated": services.messenger.mark_conversation_read(actor.user_id, other_user_id)}
