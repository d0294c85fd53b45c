"""
Request / quote lifecycle: pure rules, pure transitions and the manager
that applies them against the document store.
"""

from .service import PriceFields, RequestLifecycleManager

__all__ = ["PriceFields", "RequestLifecycleManager"]
