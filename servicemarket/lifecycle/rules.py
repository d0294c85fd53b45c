# servicemarket/lifecycle/rules.py
"""
Pure predicates over requests, quotes and provider profiles.
Nothing here touches the store; `now` is injectable for tests.
"""

import datetime as dt
import math
from typing import Iterable, List, Optional

from servicemarket.documents import (
    Coordinates,
    ProviderProfile,
    Quote,
    QuoteStatus,
    RequestStatus,
    ServiceRequest,
    utcnow,
)

from .constants import (
    EARTH_RADIUS_KM,
    LEAD_HARD_LIMIT_KM,
    LEAD_MAX_AGE_HOURS,
    LEAD_RADIUS_STEPS,
    MAX_QUOTES_PER_REQUEST,
    STALE_REQUEST_HOURS,
)


def as_utc(ts: dt.datetime) -> dt.datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=dt.timezone.utc)


def request_age(request: ServiceRequest, now: Optional[dt.datetime] = None) -> dt.timedelta:
    now = as_utc(now or utcnow())
    return now - as_utc(request.created_at)


def _normalize(names: Iterable[str]) -> set:
    return {str(n).strip().casefold() for n in names if n is not None}


def category_matches(category: str, service_types: Iterable[str]) -> bool:
    return str(category or "").strip().casefold() in _normalize(service_types)


def derive_status(quotes: List[Quote], completed: bool = False) -> str:
    """Status implied by the quote list alone."""
    if not quotes:
        return RequestStatus.OPEN
    accepted = [q for q in quotes if q.status == QuoteStatus.ACCEPTED]
    if accepted:
        return RequestStatus.CLOSED if completed else RequestStatus.ACCEPTED
    return RequestStatus.QUOTED


def invariant_violations(request: ServiceRequest) -> List[str]:
    quotes = request.quotes
    n_accepted = sum(1 for q in quotes if q.status == QuoteStatus.ACCEPTED)
    n_pending = sum(1 for q in quotes if q.status == QuoteStatus.PENDING)
    status = request.status
    problems: List[str] = []

    if n_accepted > 1:
        problems.append("more_than_one_accepted_quote")

    if status == RequestStatus.OPEN and quotes:
        problems.append("open_with_quotes")
    elif status == RequestStatus.QUOTED:
        if n_pending == 0:
            problems.append("quoted_without_pending_quote")
        if n_accepted:
            problems.append("quoted_with_accepted_quote")
    elif status in (RequestStatus.ACCEPTED, RequestStatus.CLOSED):
        if n_accepted != 1:
            problems.append(f"{status}_without_single_accepted_quote")
        if n_pending:
            problems.append(f"{status}_with_pending_quote")

    return problems


def should_notify_to_refine_criteria(
    request: ServiceRequest,
    now: Optional[dt.datetime] = None,
    stale_after_hours: float = STALE_REQUEST_HOURS,
) -> bool:
    """
    True for an open request that nobody quoted on within the window;
    exactly `stale_after_hours` old is not stale yet.
    """
    if request.status != RequestStatus.OPEN:
        return False
    if request.quotes:
        return False
    return request_age(request, now) > dt.timedelta(hours=stale_after_hours)


def match_provider_to_request(
    provider: ProviderProfile,
    request: ServiceRequest,
    locality: Optional[str] = None,
) -> bool:
    # locality is accepted for callers but does not narrow the match
    return category_matches(request.category, provider.service_types)


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def lead_radius_km(elapsed_minutes: float) -> float:
    for max_minutes, radius in LEAD_RADIUS_STEPS:
        if elapsed_minutes < max_minutes:
            return radius
    return LEAD_HARD_LIMIT_KM


def has_quoted(provider_id: str, request: ServiceRequest) -> bool:
    return any(q.provider_id == provider_id for q in request.quotes)


def is_provider_eligible_for_lead(
    provider: ProviderProfile,
    request: ServiceRequest,
    now: Optional[dt.datetime] = None,
    max_quotes: int = MAX_QUOTES_PER_REQUEST,
    max_age_hours: float = LEAD_MAX_AGE_HOURS,
) -> bool:
    if request.status != RequestStatus.OPEN or request.is_deleted:
        return False
    if has_quoted(provider.id, request):
        return False
    if len(request.quotes) >= max_quotes:
        return False

    age = request_age(request, now)
    if age > dt.timedelta(hours=max_age_hours):
        return False

    # no declared service types means the provider takes every category
    if provider.service_types and not category_matches(request.category, provider.service_types):
        return False

    if request.coordinates is None or provider.coordinates is None:
        return True

    distance = haversine_km(request.coordinates, provider.coordinates)
    if distance > LEAD_HARD_LIMIT_KM:
        return False
    return distance <= lead_radius_km(age.total_seconds() / 60.0)
