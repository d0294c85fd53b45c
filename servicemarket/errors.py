# servicemarket/errors.py
from __future__ import annotations

from typing import Optional


class MarketplaceError(Exception):
    """
    Base error surfaced to callers.

    `code` is a stable snake_case identifier (shown as `detail` by the API),
    `retryable` tells the caller whether trying again can succeed.
    """

    status_code = 500
    retryable = False
    default_code = "marketplace_error"

    def __init__(self, message: str = "", code: Optional[str] = None):
        self.code = code or self.default_code
        self.message = message or self.code
        super().__init__(self.message)


class NotFound(MarketplaceError):
    status_code = 404
    default_code = "not_found"


class Unauthorized(MarketplaceError):
    status_code = 403
    default_code = "unauthorized"


class InvalidStateTransition(MarketplaceError):
    status_code = 409
    default_code = "invalid_state_transition"


class ValidationFailed(MarketplaceError):
    status_code = 400
    default_code = "validation_failed"


class StoreUnavailable(MarketplaceError):
    status_code = 503
    retryable = True
    default_code = "store_unavailable"


class ConcurrentModification(MarketplaceError):
    """Another writer kept winning the conditional write; safe to retry."""

    status_code = 409
    retryable = True
    default_code = "concurrent_modification"
