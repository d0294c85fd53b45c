# servicemarket/accounts.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from servicemarket.audit import AuditLog
from servicemarket.documents import (
    Collections,
    ProviderProfile,
    Review,
    User,
    UserRole,
    utcnow,
)
from servicemarket.errors import NotFound, Unauthorized, ValidationFailed
from servicemarket.lifecycle.constants import DEFAULT_PROVIDER_COORDINATES, DEFAULT_PROVIDER_LOCATION
from servicemarket.site import SiteConfig
from servicemarket.store.base import DocumentStore


logger = logging.getLogger(__name__)

# fields owned by the service itself, never taken from an update payload
_PROTECTED_USER_FIELDS = {"id", "role", "isBlocked", "joinDate"}
_PROTECTED_PROVIDER_FIELDS = {"id", "rating", "reviewCount", "reviews", "isVerified"}


def normalize_role(role: Optional[str]) -> str:
    upper = (role or "").strip().upper()
    return upper if upper in UserRole.ALL else UserRole.USER


def normalize_email(email: Optional[str]) -> str:
    email = (email or "").strip().lower()
    if "@" not in email:
        raise ValidationFailed("a valid email is required", code="invalid_email")
    return email


class AccountService:
    """User accounts, provider storefronts and provider reviews."""

    def __init__(
        self,
        store: DocumentStore,
        audit: Optional[AuditLog] = None,
        site: Optional[SiteConfig] = None,
    ):
        self.store = store
        self.audit = audit
        self.site = site

    # ---------------- users

    def register_user(
        self,
        name: str,
        email: str,
        role: str = UserRole.USER,
        company_name: Optional[str] = None,
        user_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> User:
        """
        Create an account, plus a default storefront for providers.

        Self-service registration (created_by=None) honours the site's
        registration switch and can only produce USER or PROVIDER accounts.
        Admin accounts are created by an existing admin via created_by.
        """
        if created_by is None and self.site is not None and not self.site.get_settings().allow_new_registrations:
            raise Unauthorized("registrations are closed", code="registrations_closed")
        if not (name or "").strip() or "@" not in (email or ""):
            raise ValidationFailed("name and a valid email are required", code="invalid_registration")

        role = normalize_role(role)
        if role == UserRole.ADMIN and created_by is None:
            raise Unauthorized("admin accounts cannot be self-registered", code="admin_registration_forbidden")

        if user_id and self.store.get(Collections.USERS, user_id) is not None:
            raise ValidationFailed(f"user {user_id} already exists", code="user_exists")

        email = normalize_email(email)
        self._ensure_email_free(email)

        user = User(
            id=user_id or uuid.uuid4().hex,
            name=name.strip(),
            email=email,
            role=role,
            company_name=company_name or "",
            join_date=utcnow(),
        )
        self.store.set(Collections.USERS, user.id, user.to_data())

        if user.role == UserRole.PROVIDER:
            profile = ProviderProfile(
                id=user.id,
                name=company_name or user.name,
                badges=["New"],
                location=DEFAULT_PROVIDER_LOCATION,
                coordinates=DEFAULT_PROVIDER_COORDINATES,
            )
            self.store.set(Collections.PROVIDERS, user.id, profile.to_data())

        logger.info("registered %s as %s", user.id, user.role)
        if created_by is None:
            self._audit(user.id, "REGISTER", f"New user registered as {user.role}", user.role)
        else:
            self._audit(created_by, "CREATE_USER", f"User {user.id} created as {user.role}", UserRole.ADMIN, "warning")
        return user

    def get_user(self, user_id: str) -> User:
        doc = self.store.get(Collections.USERS, user_id)
        if doc is None:
            raise NotFound(f"user {user_id} does not exist", code="user_not_found")
        return User.from_document(doc)

    def list_users(self) -> List[User]:
        return [User.from_document(d) for d in self.store.query(Collections.USERS, order_by="name")]

    def update_user(self, user_id: str, updates: Dict[str, Any]) -> User:
        user = self.get_user(user_id)
        fields = {k: v for k, v in updates.items() if k not in _PROTECTED_USER_FIELDS}
        if fields.get("email") is not None:
            fields["email"] = normalize_email(fields["email"])
            if fields["email"] != user.email:
                self._ensure_email_free(fields["email"], exclude_id=user_id)
        if fields:
            self.store.update(Collections.USERS, user_id, fields)
        self._audit(user_id, "UPDATE_PROFILE", "User profile updated", user.role)
        return self.get_user(user_id)

    def set_blocked(self, user_id: str, blocked: bool, actor_id: str = "admin") -> User:
        self.get_user(user_id)
        self.store.update(Collections.USERS, user_id, {"isBlocked": bool(blocked)})
        self._audit(
            actor_id,
            "BLOCK_USER" if blocked else "UNBLOCK_USER",
            f"User {user_id} {'blocked' if blocked else 'unblocked'}",
            UserRole.ADMIN,
            "warning",
        )
        return self.get_user(user_id)

    def delete_user(self, user_id: str, actor_id: str = "system") -> None:
        if not self.store.delete(Collections.USERS, user_id):
            raise NotFound(f"user {user_id} does not exist", code="user_not_found")
        self.store.delete(Collections.PROVIDERS, user_id)
        logger.info("user %s deleted by %s", user_id, actor_id)
        self._audit(actor_id, "DELETE_USER", f"User {user_id} deleted by Admin", UserRole.ADMIN, "critical")

    def _ensure_email_free(self, email: str, exclude_id: Optional[str] = None) -> None:
        for doc in self.store.query(Collections.USERS, {"email": email}):
            if doc.id != exclude_id:
                raise ValidationFailed("email already registered", code="email_taken")

    @staticmethod
    def ensure_active(user: User) -> User:
        if user.is_blocked:
            raise Unauthorized("Your account has been blocked. Please contact support.", code="account_blocked")
        return user

    # ---------------- providers

    def get_provider(self, provider_id: str) -> ProviderProfile:
        doc = self.store.get(Collections.PROVIDERS, provider_id)
        if doc is None:
            raise NotFound(f"provider {provider_id} does not exist", code="provider_not_found")
        return ProviderProfile.from_document(doc)

    def list_providers(self) -> List[ProviderProfile]:
        return [ProviderProfile.from_document(d) for d in self.store.query(Collections.PROVIDERS, order_by="name")]

    def update_provider(self, provider_id: str, updates: Dict[str, Any]) -> ProviderProfile:
        current = self.get_provider(provider_id)
        fields = {k: v for k, v in updates.items() if k not in _PROTECTED_PROVIDER_FIELDS}
        # validate the merged storefront before it is written
        merged = ProviderProfile.model_validate({**current.to_data(), **fields, "id": provider_id})
        self.store.set(Collections.PROVIDERS, provider_id, merged.to_data())
        self._audit(provider_id, "UPDATE_STOREFRONT", "Provider updated storefront details", UserRole.PROVIDER)
        return merged

    def toggle_provider_verification(self, provider_id: str, actor_id: str = "admin") -> ProviderProfile:
        current = self.get_provider(provider_id)
        flipped = not current.is_verified
        self.store.update(Collections.PROVIDERS, provider_id, {"isVerified": flipped})
        self._audit(
            actor_id,
            "TOGGLE_VERIFY",
            f"Provider {provider_id} verification toggled to {flipped}",
            UserRole.ADMIN,
        )
        return current.model_copy(update={"is_verified": flipped})

    # ---------------- reviews

    @staticmethod
    def _rated(reviews: List[Review]) -> Dict[str, Any]:
        count = len(reviews)
        rating = sum(r.rating for r in reviews) / count if count else 0.0
        return {
            "reviews": [r.model_dump(mode="json") for r in reviews],
            "reviewCount": count,
            "rating": rating,
        }

    def add_review(
        self,
        provider_id: str,
        author: str,
        rating: int,
        content: str = "",
        actor_id: Optional[str] = None,
    ) -> ProviderProfile:
        current = self.get_provider(provider_id)
        try:
            review = Review(id=f"r_{uuid.uuid4().hex[:12]}", author=author, rating=rating, content=content)
        except ValueError as e:
            raise ValidationFailed(str(e), code="invalid_review") from e

        self.store.update(Collections.PROVIDERS, provider_id, self._rated([review, *current.reviews]))
        self._audit(actor_id or author, "ADD_REVIEW", f"Review added for provider {current.name}", UserRole.USER)
        return self.get_provider(provider_id)

    def delete_review(self, provider_id: str, review_id: str, actor_id: str = "admin") -> ProviderProfile:
        current = self.get_provider(provider_id)
        remaining = [r for r in current.reviews if r.id != review_id]
        if len(remaining) == len(current.reviews):
            raise NotFound(f"review {review_id} does not exist", code="review_not_found")

        self.store.update(Collections.PROVIDERS, provider_id, self._rated(remaining))
        self._audit(actor_id, "DELETE_REVIEW", f"Review {review_id} removed", UserRole.ADMIN, "warning")
        return self.get_provider(provider_id)

    def _audit(
        self,
        actor_id: str,
        action: str,
        details: str,
        role: Optional[str] = None,
        severity: str = "info",
    ) -> None:
        if self.audit is not None:
            self.audit.record(actor_id, action, details, role, severity)
