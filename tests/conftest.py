import datetime as dt

import pytest

from servicemarket.audit import AuditLog
from servicemarket.config import Settings
from servicemarket.documents import Actor, Collections, ProviderProfile, UserRole
from servicemarket.lifecycle import RequestLifecycleManager
from servicemarket.notifications import Notifier
from servicemarket.site import SiteConfig
from servicemarket.store import InMemoryDocumentStore


NOW = dt.datetime(2025, 3, 1, 9, 0, tzinfo=dt.timezone.utc)


class FixedClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + dt.timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def settings():
    return Settings(store_backend="memory")


@pytest.fixture
def audit(store):
    return AuditLog(store)


@pytest.fixture
def notifier(store, audit):
    return Notifier(store, audit=audit)


@pytest.fixture
def site(store, audit):
    return SiteConfig(store, audit=audit)


@pytest.fixture
def manager(store, audit, notifier, settings, site, clock):
    return RequestLifecycleManager(
        store,
        audit=audit,
        notifier=notifier,
        settings=settings,
        categories=site.category_names,
        clock=clock,
    )


@pytest.fixture
def customer():
    return Actor(user_id="cust_1", role=UserRole.USER, name="Layla")


@pytest.fixture
def provider(store):
    profile = ProviderProfile(
        id="prov_1",
        name="Falcon Visa Co",
        rating=4.8,
        is_verified=True,
        service_types=["visa services"],
    )
    store.set(Collections.PROVIDERS, profile.id, profile.to_data())
    return profile


@pytest.fixture
def other_provider(store):
    profile = ProviderProfile(id="prov_2", name="Desert Docs", rating=4.1, service_types=["Visa Services"])
    store.set(Collections.PROVIDERS, profile.id, profile.to_data())
    return profile


@pytest.fixture
def provider_actor(provider):
    return Actor(user_id=provider.id, role=UserRole.PROVIDER, name=provider.name)


@pytest.fixture
def other_provider_actor(other_provider):
    return Actor(user_id=other_provider.id, role=UserRole.PROVIDER, name=other_provider.name)
