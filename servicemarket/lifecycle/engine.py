# servicemarket/lifecycle/engine.py
import datetime as dt
import uuid
from typing import Optional

from servicemarket.documents import (
    Coordinates,
    ProviderProfile,
    Quote,
    QuoteStatus,
    RequestStatus,
    ServiceRequest,
    utcnow,
)
from servicemarket.errors import InvalidStateTransition, NotFound, ValidationFailed

from .constants import DEFAULT_CURRENCY
from .rules import has_quoted, invariant_violations


QUOTABLE = (RequestStatus.OPEN, RequestStatus.QUOTED)


def ensure_consistent(request: ServiceRequest) -> ServiceRequest:
    problems = invariant_violations(request)
    if problems:
        raise InvalidStateTransition(
            f"request {request.id} would break its invariants: {', '.join(problems)}",
            code="invariant_violation",
        )
    return request


def new_request(
    user_id: str,
    category: str,
    title: str,
    description: str = "",
    locality: Optional[str] = None,
    coordinates: Optional[Coordinates] = None,
    now: Optional[dt.datetime] = None,
) -> ServiceRequest:
    if not (title or "").strip():
        raise ValidationFailed("title is required", code="title_required")
    if not (category or "").strip():
        raise ValidationFailed("category is required", code="category_required")

    return ServiceRequest(
        user_id=user_id,
        category=category.strip(),
        title=title.strip(),
        description=(description or "").strip(),
        locality=locality or None,
        coordinates=coordinates,
        status=RequestStatus.OPEN,
        created_at=now or utcnow(),
        quotes=[],
        is_deleted=False,
    )


def build_quote(
    provider: ProviderProfile,
    price: float,
    timeline: str,
    description: str = "",
    currency: str = DEFAULT_CURRENCY,
) -> Quote:
    try:
        price = float(price)
    except (TypeError, ValueError):
        raise ValidationFailed("price must be a number", code="invalid_price")
    if not price > 0:
        raise ValidationFailed("price must be positive", code="invalid_price")
    if not (timeline or "").strip():
        raise ValidationFailed("timeline is required", code="timeline_required")

    return Quote(
        id=f"q_{uuid.uuid4().hex[:12]}",
        provider_id=provider.id,
        provider_name=provider.name,
        price=price,
        currency=currency or DEFAULT_CURRENCY,
        timeline=timeline.strip(),
        description=(description or "").strip(),
        rating=float(provider.rating or 0.0),
        verified=bool(provider.is_verified),
        status=QuoteStatus.PENDING,
    )


def apply_quote(request: ServiceRequest, quote: Quote, one_quote_per_provider: bool = False) -> ServiceRequest:
    """open/quoted -> quoted, with the quote appended as pending."""
    if request.status not in QUOTABLE:
        raise InvalidStateTransition(
            f"request {request.id} is {request.status}; it no longer takes quotes",
            code="request_not_accepting_quotes",
        )
    if one_quote_per_provider and has_quoted(quote.provider_id, request):
        raise InvalidStateTransition(
            f"provider {quote.provider_id} already quoted on request {request.id}",
            code="duplicate_quote",
        )

    updated = request.model_copy(
        update={
            "quotes": [*request.quotes, quote],
            "status": RequestStatus.QUOTED,
        }
    )
    return ensure_consistent(updated)


def apply_acceptance(request: ServiceRequest, quote_id: str) -> ServiceRequest:
    """quoted -> accepted; the addressed quote wins, every sibling is rejected."""
    target = next((q for q in request.quotes if q.id == quote_id), None)
    if target is None:
        raise NotFound(f"quote {quote_id} is not on request {request.id}", code="quote_not_found")

    if request.status != RequestStatus.QUOTED:
        raise InvalidStateTransition(
            f"request {request.id} is {request.status}; only quoted requests accept a quote",
            code="quote_already_accepted" if request.status in (RequestStatus.ACCEPTED, RequestStatus.CLOSED)
            else "request_not_quoted",
        )
    if target.status != QuoteStatus.PENDING:
        raise InvalidStateTransition(f"quote {quote_id} is {target.status}", code="quote_not_pending")

    quotes = [
        q.model_copy(update={"status": QuoteStatus.ACCEPTED if q.id == quote_id else QuoteStatus.REJECTED})
        for q in request.quotes
    ]
    updated = request.model_copy(update={"quotes": quotes, "status": RequestStatus.ACCEPTED})
    return ensure_consistent(updated)


def apply_completion(request: ServiceRequest) -> ServiceRequest:
    """accepted -> closed (terminal)."""
    if request.status != RequestStatus.ACCEPTED:
        raise InvalidStateTransition(
            f"request {request.id} is {request.status}; only accepted requests can be completed",
            code="request_not_accepted",
        )
    return ensure_consistent(request.model_copy(update={"status": RequestStatus.CLOSED}))


def accepted_quote(request: ServiceRequest) -> Optional[Quote]:
    return next((q for q in request.quotes if q.status == QuoteStatus.ACCEPTED), None)
