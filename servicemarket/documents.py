"""
Document schemas for the marketplace.

Each Pydantic model maps onto one document-store collection. Documents are
persisted with camelCase keys (aliases); Python code uses snake_case.
"""

from __future__ import annotations

import datetime as dt
import time
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from servicemarket.store.base import Document


class Collections:
    USERS = "users"
    PROVIDERS = "providers"
    REQUESTS = "requests"
    NOTIFICATIONS = "notifications"
    MESSAGES = "messages"
    SETTINGS = "settings"
    SERVICE_TYPES = "service_types"
    AUDIT_LOGS = "audit_logs"


class UserRole:
    USER = "USER"
    PROVIDER = "PROVIDER"
    ADMIN = "ADMIN"

    ALL = (USER, PROVIDER, ADMIN)


class RequestStatus:
    OPEN = "open"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    CLOSED = "closed"


class QuoteStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


Severity = Literal["info", "warning", "critical"]
NotificationType = Literal["info", "success", "warning"]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def now_ms() -> int:
    return int(time.time() * 1000)


class StoredModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""

    @classmethod
    def from_document(cls, doc: Document):
        return cls.model_validate({**doc.data, "id": doc.id})

    def to_data(self) -> Dict[str, Any]:
        """Document body as stored (camelCase, JSON-safe, without the id)."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class Coordinates(BaseModel):
    lat: float
    lng: float


class Actor(BaseModel):
    """Authenticated caller as asserted by the auth provider."""

    user_id: str
    role: str = UserRole.USER
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Quote(StoredModel):
    provider_id: str = Field(alias="providerId")
    provider_name: str = Field(alias="providerName")
    price: float
    currency: str = "AED"
    timeline: str
    description: str = ""
    rating: float = 0.0
    verified: bool = False
    status: Literal["pending", "accepted", "rejected"] = QuoteStatus.PENDING

    def to_data(self) -> Dict[str, Any]:
        # quotes are embedded, so the id travels with the body
        return self.model_dump(mode="json", by_alias=True)


class ServiceRequest(StoredModel):
    user_id: str = Field(alias="userId")
    category: str
    title: str
    description: str = ""
    locality: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    status: Literal["open", "quoted", "accepted", "closed"] = RequestStatus.OPEN
    created_at: dt.datetime = Field(default_factory=utcnow, alias="createdAt")
    quotes: List[Quote] = []
    is_deleted: bool = Field(False, alias="isDeleted")


class Review(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    author: str
    rating: int = Field(ge=1, le=5)
    content: str = ""
    date: dt.datetime = Field(default_factory=utcnow)


class ProviderProfile(StoredModel):
    name: str
    tagline: str = "New Service Provider"
    rating: float = 0.0
    review_count: int = Field(0, alias="reviewCount")
    badges: List[str] = []
    description: str = "No description yet."
    services: List[str] = []
    service_types: List[str] = Field(default_factory=list, alias="serviceTypes")
    is_verified: bool = Field(False, alias="isVerified")
    location: str = "Downtown Dubai"
    coordinates: Optional[Coordinates] = None
    reviews: List[Review] = []
    profile_image: Optional[str] = Field(None, alias="profileImage")


class User(StoredModel):
    name: str
    email: str
    role: str = UserRole.USER
    company_name: Optional[str] = Field(None, alias="companyName")
    is_blocked: bool = Field(False, alias="isBlocked")
    join_date: Optional[dt.datetime] = Field(None, alias="joinDate")
    profile_image: Optional[str] = Field(None, alias="profileImage")

    def to_actor(self) -> Actor:
        return Actor(user_id=self.id, role=self.role, name=self.name)


class Notification(StoredModel):
    user_id: str = Field(alias="userId")
    type: NotificationType = "info"
    title: str
    message: str
    timestamp: int = Field(default_factory=now_ms)
    read: bool = False
    link: Optional[str] = None


class AuditLogEntry(StoredModel):
    action: str
    details: str = ""
    # field name kept from the persisted format; it holds any actor id
    actor_id: str = Field(alias="adminId")
    user_role: str = Field("UNKNOWN", alias="userRole")
    user_name: Optional[str] = Field(None, alias="userName")
    timestamp: int = Field(default_factory=now_ms)
    severity: Severity = "info"


class AiInteraction(BaseModel):
    id: str
    user_id: str
    user_name: str
    query: str
    timestamp: int


class DirectMessage(StoredModel):
    sender_id: str = Field(alias="senderId")
    recipient_id: str = Field(alias="recipientId")
    content: str
    timestamp: int = Field(default_factory=now_ms)
    read: bool = False


class Conversation(BaseModel):
    other_user_id: str
    other_user_name: str
    last_message: str
    timestamp: int
    unread_count: int = 0


class SiteSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    site_name: str = Field("DubaiLink", alias="siteName")
    contact_email: str = Field("support@dubailink.ae", alias="contactEmail")
    maintenance_mode: bool = Field(False, alias="maintenanceMode")
    allow_new_registrations: bool = Field(True, alias="allowNewRegistrations")
    hero_title: Optional[str] = Field(None, alias="heroTitle")
    hero_subtitle: Optional[str] = Field(None, alias="heroSubtitle")
    hero_button_text: Optional[str] = Field(None, alias="heroButtonText")
    hero_image: Optional[str] = Field(None, alias="heroImage")

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ServiceType(StoredModel):
    name: str
    description: str = ""
    is_active: bool = Field(True, alias="isActive")
