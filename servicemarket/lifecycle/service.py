# servicemarket/lifecycle/service.py
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from servicemarket.audit import AuditLog
from servicemarket.config import Settings
from servicemarket.documents import (
    Actor,
    Collections,
    Coordinates,
    ProviderProfile,
    RequestStatus,
    ServiceRequest,
    UserRole,
    utcnow,
)
from servicemarket.errors import ConcurrentModification, NotFound, Unauthorized, ValidationFailed
from servicemarket.notifications import Notifier
from servicemarket.store.base import DocumentStore, VersionConflict

from . import engine, rules
from .constants import AUDIT_ACTIONS


logger = logging.getLogger(__name__)


@dataclass
class PriceFields:
    price: float
    timeline: str
    description: str = ""
    currency: Optional[str] = None


class RequestLifecycleManager:
    """
    Single point of mutation for service requests and their embedded quotes.

    Every transition is read (document + version) -> pure transition from
    `engine` -> conditional write on the version that was read. Losing the
    write to a concurrent caller re-runs the transition on fresh state, so a
    second acceptance fails validation instead of overwriting the first one.
    Audit and notification side effects run after the write and never undo it.
    """

    def __init__(
        self,
        store: DocumentStore,
        audit: Optional[AuditLog] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
        categories: Optional[Callable[[], Iterable[str]]] = None,
        clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.store = store
        self.audit = audit
        self.notifier = notifier
        self.settings = settings or Settings()
        self.categories = categories
        self.clock = clock

    # ---------------------------------------------------------------- reads

    def get_request(self, request_id: str) -> ServiceRequest:
        doc = self.store.get(Collections.REQUESTS, request_id)
        if doc is None:
            raise NotFound(f"request {request_id} does not exist", code="request_not_found")
        return ServiceRequest.from_document(doc)

    def list_requests(self, actor: Actor) -> List[ServiceRequest]:
        if actor.role == UserRole.PROVIDER:
            # providers browse open requests only; a quoted request stays reachable by id
            filters = {"status": RequestStatus.OPEN}
        elif actor.role == UserRole.ADMIN:
            filters = None
        else:
            filters = {"userId": actor.user_id}

        docs = self.store.query(Collections.REQUESTS, filters)
        requests = [ServiceRequest.from_document(d) for d in docs]
        requests = [r for r in requests if not r.is_deleted]
        return sorted(requests, key=lambda r: rules.as_utc(r.created_at), reverse=True)

    def provider_leads(self, provider_id: str) -> List[ServiceRequest]:
        provider = self._provider(provider_id)
        leads = []
        for r in self.list_requests(Actor(user_id=provider_id, role=UserRole.PROVIDER)):
            if rules.has_quoted(provider_id, r):
                continue
            if provider.service_types and not rules.category_matches(r.category, provider.service_types):
                continue
            leads.append(r)
        return leads

    # ------------------------------------------------------------ predicates

    def should_notify_to_refine_criteria(self, request: ServiceRequest, now: Optional[dt.datetime] = None) -> bool:
        return rules.should_notify_to_refine_criteria(
            request,
            now=now or self.clock(),
            stale_after_hours=self.settings.stale_request_hours,
        )

    @staticmethod
    def match_provider_to_request(
        provider: ProviderProfile,
        request: ServiceRequest,
        locality: Optional[str] = None,
    ) -> bool:
        return rules.match_provider_to_request(provider, request, locality)

    # ----------------------------------------------------------- transitions

    def create_request(
        self,
        customer: Actor,
        category: str,
        title: str,
        description: str = "",
        locality: Optional[str] = None,
        coordinates: Optional[Coordinates] = None,
    ) -> str:
        if customer.role not in (UserRole.USER, UserRole.ADMIN):
            raise Unauthorized("only customers can create requests", code="customer_required")
        self._check_category(category)

        request = engine.new_request(
            user_id=customer.user_id,
            category=category,
            title=title,
            description=description,
            locality=locality,
            coordinates=coordinates,
            now=self.clock(),
        )
        request_id = self.store.add(Collections.REQUESTS, request.to_data())
        request.id = request_id
        logger.info("request %s created by %s (%s)", request_id, customer.user_id, request.category)

        self._distribute_lead(request)
        self._audit(customer.user_id, AUDIT_ACTIONS["create"], f"Created request: {request.title}", UserRole.USER)
        return request_id

    def submit_quote(
        self,
        request_id: str,
        actor: Actor,
        provider_id: str,
        provider_profile: Optional[ProviderProfile],
        price_fields: PriceFields,
    ) -> ServiceRequest:
        if actor.role != UserRole.PROVIDER:
            raise Unauthorized("only providers can submit quotes", code="provider_required")
        if actor.user_id != provider_id:
            raise Unauthorized("caller does not match the quoting provider", code="provider_mismatch")

        profile = provider_profile or self._provider(provider_id)
        if profile.id and profile.id != provider_id:
            raise Unauthorized("provider profile belongs to someone else", code="provider_mismatch")
        profile = profile.model_copy(update={"id": provider_id})

        quote = engine.build_quote(
            profile,
            price=price_fields.price,
            timeline=price_fields.timeline,
            description=price_fields.description,
            currency=price_fields.currency or self.settings.default_currency,
        )
        _, updated = self._mutate(
            request_id,
            lambda r: engine.apply_quote(r, quote, one_quote_per_provider=self.settings.one_quote_per_provider),
        )
        logger.info("quote %s submitted on request %s by %s", quote.id, request_id, provider_id)

        self._notify(
            updated.user_id,
            "New Quote",
            f"{profile.name} sent a quote of {quote.currency} {quote.price:g}",
            link="dashboard",
        )
        self._audit(provider_id, AUDIT_ACTIONS["quote"], f"Submitted quote for request: {updated.title}", UserRole.PROVIDER)
        return updated

    def accept_quote(self, request_id: str, quote_id: str, actor: Optional[Actor] = None) -> ServiceRequest:
        if actor is not None:
            self._check_owner(actor, self.get_request(request_id))

        _, updated = self._mutate(request_id, lambda r: engine.apply_acceptance(r, quote_id))
        winner = engine.accepted_quote(updated)
        logger.info("quote %s accepted on request %s", quote_id, request_id)

        if winner is not None:
            self._notify(
                winner.provider_id,
                "Quote Accepted",
                f'Your quote for "{updated.title}" was accepted.',
                type="success",
                link="dashboard",
            )
        self._audit(
            updated.user_id,
            AUDIT_ACTIONS["accept"],
            f"Accepted quote from provider for request: {updated.title}",
            UserRole.USER,
        )
        return updated

    def complete_order(self, request_id: str, actor: Optional[Actor] = None) -> ServiceRequest:
        if actor is not None:
            self._check_owner(actor, self.get_request(request_id))

        _, updated = self._mutate(request_id, engine.apply_completion)
        logger.info("request %s closed", request_id)

        self._audit(
            actor.user_id if actor else updated.user_id,
            AUDIT_ACTIONS["complete"],
            f"Order completed for request {request_id}",
            actor.role if actor else UserRole.USER,
        )
        return updated

    def delete_request(self, request_id: str, actor: Optional[Actor] = None) -> None:
        request = self.get_request(request_id)
        if actor is not None:
            self._check_owner(actor, request)

        if not self.store.delete(Collections.REQUESTS, request_id):
            raise NotFound(f"request {request_id} does not exist", code="request_not_found")
        logger.info("request %s deleted", request_id)

        self._audit(
            actor.user_id if actor else "system",
            AUDIT_ACTIONS["delete"],
            f"Request {request_id} deleted",
            actor.role if actor else None,
            "warning",
        )

    # --------------------------------------------------------------- helpers

    def _mutate(
        self,
        request_id: str,
        transition: Callable[[ServiceRequest], ServiceRequest],
    ) -> Tuple[ServiceRequest, ServiceRequest]:
        attempts = max(1, int(self.settings.max_cas_attempts))
        for attempt in range(1, attempts + 1):
            doc = self.store.get(Collections.REQUESTS, request_id)
            if doc is None:
                raise NotFound(f"request {request_id} does not exist", code="request_not_found")
            current = ServiceRequest.from_document(doc)
            updated = transition(current)

            fields = {
                "quotes": [q.to_data() for q in updated.quotes],
                "status": updated.status,
            }
            try:
                self.store.update(Collections.REQUESTS, request_id, fields, expected_version=doc.version)
            except VersionConflict:
                logger.info("request %s changed under us (attempt %d/%d)", request_id, attempt, attempts)
                continue
            return current, updated

        raise ConcurrentModification(
            f"request {request_id} kept changing; gave up after {attempts} attempts",
            code="request_busy",
        )

    def _provider(self, provider_id: str) -> ProviderProfile:
        doc = self.store.get(Collections.PROVIDERS, provider_id)
        if doc is None:
            raise NotFound(f"provider {provider_id} does not exist", code="provider_not_found")
        return ProviderProfile.from_document(doc)

    def _check_owner(self, actor: Actor, request: ServiceRequest) -> None:
        if actor.is_admin or actor.user_id == request.user_id:
            return
        raise Unauthorized("only the request owner can do this", code="not_request_owner")

    def _check_category(self, category: str) -> None:
        if self.categories is None:
            return
        allowed = {c.casefold() for c in self.categories()}
        if (category or "").strip().casefold() not in allowed:
            raise ValidationFailed(f"unknown category: {category}", code="unknown_category")

    def _distribute_lead(self, request: ServiceRequest) -> int:
        if self.notifier is None:
            return 0
        try:
            now = self.clock()
            providers = [ProviderProfile.from_document(d) for d in self.store.query(Collections.PROVIDERS)]
            # runs once at creation, so the quote cap only matters to callers
            # of is_provider_eligible_for_lead that re-check older requests
            eligible = [
                p.id
                for p in providers
                if rules.is_provider_eligible_for_lead(
                    p,
                    request,
                    now=now,
                    max_quotes=self.settings.max_quotes_per_request,
                    max_age_hours=self.settings.lead_max_age_hours,
                )
            ]
            if not eligible:
                return 0
            return self.notifier.notify_many(
                eligible,
                "New Lead Opportunity",
                f"New {request.category} request nearby: {request.title}",
                link="provider-leads",
            )
        except Exception:
            logger.exception("failed to distribute lead for request %s", request.id)
            return 0

    def _notify(self, user_id: str, title: str, message: str, type: str = "info", link: Optional[str] = None) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(user_id, title, message, type=type, link=link)
        except Exception:
            logger.exception("notification %r for %s was dropped", title, user_id)

    def _audit(
        self,
        actor_id: str,
        action: str,
        details: str,
        role: Optional[str] = None,
        severity: str = "info",
    ) -> None:
        if self.audit is None:
            return
        try:
            self.audit.record(actor_id, action, details, role, severity)
        except Exception:
            logger.exception("audit entry %s for %s was dropped", action, actor_id)
