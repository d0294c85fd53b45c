from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from servicemarket.documents import Coordinates


def to_public(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def changes(body: BaseModel) -> Dict[str, Any]:
    """Only the fields the client actually sent, keyed as stored."""
    return body.model_dump(mode="json", by_alias=True, exclude_unset=True)


class CreateRequestBody(BaseModel):
    category: str
    title: str
    description: str = ""
    locality: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class SubmitQuoteBody(BaseModel):
    price: float
    timeline: str
    description: str = ""
    currency: Optional[str] = None


class RegisterBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    role: str = "USER"
    company_name: Optional[str] = Field(None, alias="companyName")


class AdminUserBody(RegisterBody):
    id: Optional[str] = None


class UserUpdateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    company_name: Optional[str] = Field(None, alias="companyName")
    profile_image: Optional[str] = Field(None, alias="profileImage")


class ProviderUpdateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    tagline: Optional[str] = None
    description: Optional[str] = None
    badges: Optional[List[str]] = None
    services: Optional[List[str]] = None
    service_types: Optional[List[str]] = Field(None, alias="serviceTypes")
    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    profile_image: Optional[str] = Field(None, alias="profileImage")


class ReviewBody(BaseModel):
    rating: int = Field(ge=1, le=5)
    content: str = ""
    author: Optional[str] = None


class MessageBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient_id: str = Field(alias="recipientId")
    content: str


class BlockBody(BaseModel):
    blocked: bool = True


class BroadcastBody(BaseModel):
    title: str
    message: str


class ServiceTypeBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    is_active: bool = Field(True, alias="isActive")


class AssistantQuery(BaseModel):
    query: str
    user_name: Optional[str] = None
