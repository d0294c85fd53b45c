import pytest

from servicemarket.accounts import AccountService
from servicemarket.documents import Collections, ServiceType, SiteSettings, UserRole
from servicemarket.errors import NotFound, Unauthorized, ValidationFailed


@pytest.fixture
def accounts(store, audit, site):
    return AccountService(store, audit=audit, site=site)


def test_register_customer(accounts, audit):
    user = accounts.register_user("Layla Haddad", "Layla@Example.com", role="user", user_id="u1")
    assert user.id == "u1"
    assert user.role == UserRole.USER
    assert user.email == "layla@example.com"
    assert user.join_date is not None
    assert accounts.get_user("u1").name == "Layla Haddad"

    with pytest.raises(NotFound):
        accounts.get_provider("u1")
    assert [e.action for e in audit.list_entries()] == ["REGISTER"]


def test_register_provider_creates_storefront(accounts):
    accounts.register_user("Omar", "omar@falcon.ae", role="PROVIDER", company_name="Falcon Visa Co", user_id="p1")
    profile = accounts.get_provider("p1")
    assert profile.name == "Falcon Visa Co"
    assert profile.tagline == "New Service Provider"
    assert profile.badges == ["New"]
    assert profile.location == "Downtown Dubai"
    assert (profile.coordinates.lat, profile.coordinates.lng) == (25.1972, 55.2744)
    assert profile.is_verified is False


def test_register_validation(accounts):
    accounts.register_user("Layla", "layla@example.com")
    with pytest.raises(ValidationFailed) as e:
        accounts.register_user("Other Layla", "LAYLA@example.com")
    assert e.value.code == "email_taken"

    with pytest.raises(ValidationFailed):
        accounts.register_user("", "nobody@example.com")


def test_unknown_role_falls_back_to_customer(accounts):
    assert accounts.register_user("Sam", "sam@example.com", role="superuser").role == UserRole.USER


def test_existing_account_cannot_be_registered_over(accounts):
    accounts.register_user("Omar", "omar@falcon.ae", role="PROVIDER", company_name="Falcon Visa Co", user_id="p1")
    accounts.add_review("p1", "Layla", 5, "Fast")

    with pytest.raises(ValidationFailed) as e:
        accounts.register_user("Mallory", "mallory@example.com", role="PROVIDER", user_id="p1")
    assert e.value.code == "user_exists"

    user = accounts.get_user("p1")
    assert (user.name, user.email) == ("Omar", "omar@falcon.ae")
    profile = accounts.get_provider("p1")
    assert profile.name == "Falcon Visa Co"
    assert profile.review_count == 1


def test_admins_are_only_created_by_admins(accounts, audit):
    with pytest.raises(Unauthorized) as e:
        accounts.register_user("Eve", "eve@example.com", role="ADMIN", user_id="u1")
    assert e.value.code == "admin_registration_forbidden"
    with pytest.raises(NotFound):
        accounts.get_user("u1")

    admin = accounts.register_user("Noura", "noura@dubailink.ae", role="ADMIN", user_id="a2", created_by="admin_1")
    assert admin.role == UserRole.ADMIN
    [entry] = audit.list_entries(action="CREATE_USER")
    assert entry.actor_id == "admin_1"
    assert entry.severity == "warning"


def test_update_user_normalises_and_guards_email(accounts):
    accounts.register_user("Layla", "layla@example.com", user_id="u1")
    accounts.register_user("Omar", "omar@falcon.ae", user_id="u2")

    assert accounts.update_user("u1", {"email": "  Layla.H@Example.com "}).email == "layla.h@example.com"
    # unchanged email on the same account is fine
    assert accounts.update_user("u1", {"email": "LAYLA.H@example.com"}).email == "layla.h@example.com"

    with pytest.raises(ValidationFailed) as e:
        accounts.update_user("u2", {"email": "Layla.H@example.com"})
    assert e.value.code == "email_taken"
    with pytest.raises(ValidationFailed) as e:
        accounts.update_user("u2", {"email": "not-an-email"})
    assert e.value.code == "invalid_email"
    assert accounts.get_user("u2").email == "omar@falcon.ae"


def test_registrations_can_be_closed(accounts, site):
    site.update_settings(SiteSettings(allow_new_registrations=False))
    with pytest.raises(Unauthorized) as e:
        accounts.register_user("Layla", "layla@example.com")
    assert e.value.code == "registrations_closed"


def test_update_user_ignores_protected_fields(accounts):
    accounts.register_user("Layla", "layla@example.com", user_id="u1")
    user = accounts.update_user("u1", {"name": "Layla H.", "role": "ADMIN", "isBlocked": True})
    assert user.name == "Layla H."
    assert user.role == UserRole.USER
    assert user.is_blocked is False


def test_block_and_ensure_active(accounts, audit):
    accounts.register_user("Layla", "layla@example.com", user_id="u1")
    user = accounts.set_blocked("u1", True, actor_id="admin_1")
    assert user.is_blocked is True
    with pytest.raises(Unauthorized) as e:
        AccountService.ensure_active(user)
    assert e.value.code == "account_blocked"

    user = accounts.set_blocked("u1", False)
    assert AccountService.ensure_active(user) is user
    assert {"BLOCK_USER", "UNBLOCK_USER"} <= {e.action for e in audit.list_entries()}


def test_delete_user_removes_storefront(accounts, audit):
    accounts.register_user("Omar", "omar@falcon.ae", role="PROVIDER", user_id="p1")
    accounts.delete_user("p1", actor_id="admin_1")

    with pytest.raises(NotFound):
        accounts.get_user("p1")
    with pytest.raises(NotFound):
        accounts.get_provider("p1")
    with pytest.raises(NotFound):
        accounts.delete_user("p1")

    entry = audit.list_entries(action="DELETE_USER")[0]
    assert entry.severity == "critical"
    assert entry.actor_id == "admin_1"


def test_update_provider_keeps_rating_fields(accounts):
    accounts.register_user("Omar", "omar@falcon.ae", role="PROVIDER", user_id="p1")
    profile = accounts.update_provider(
        "p1",
        {"tagline": "Visas in 48 hours", "serviceTypes": ["Visa Services"], "rating": 5.0},
    )
    assert profile.tagline == "Visas in 48 hours"
    assert profile.service_types == ["Visa Services"]
    assert profile.rating == 0.0
    assert accounts.get_provider("p1").tagline == "Visas in 48 hours"


def test_toggle_verification(accounts, audit):
    accounts.register_user("Omar", "omar@falcon.ae", role="PROVIDER", user_id="p1")
    assert accounts.toggle_provider_verification("p1").is_verified is True
    assert accounts.get_provider("p1").is_verified is True
    assert accounts.toggle_provider_verification("p1").is_verified is False
    assert len(audit.list_entries(action="TOGGLE_VERIFY")) == 2


def test_reviews_recompute_rating(accounts):
    accounts.register_user("Omar", "omar@falcon.ae", role="PROVIDER", user_id="p1")
    accounts.add_review("p1", "Layla", 5, "Fast and friendly")
    profile = accounts.add_review("p1", "Sam", 2, "Slow replies")

    assert profile.review_count == 2
    assert profile.rating == 3.5
    assert [r.author for r in profile.reviews] == ["Sam", "Layla"]

    profile = accounts.delete_review("p1", profile.reviews[0].id)
    assert profile.review_count == 1
    assert profile.rating == 5.0

    profile = accounts.delete_review("p1", profile.reviews[0].id)
    assert profile.review_count == 0
    assert profile.rating == 0.0

    with pytest.raises(NotFound):
        accounts.delete_review("p1", "r_missing")


def test_review_rating_is_bounded(accounts):
    accounts.register_user("Omar", "omar@falcon.ae", role="PROVIDER", user_id="p1")
    with pytest.raises(ValidationFailed) as e:
        accounts.add_review("p1", "Layla", 6)
    assert e.value.code == "invalid_review"


def test_site_settings_defaults_and_update(site, audit):
    defaults = site.get_settings()
    assert defaults.site_name == "DubaiLink"
    assert defaults.contact_email == "support@dubailink.ae"
    assert defaults.maintenance_mode is False
    assert defaults.allow_new_registrations is True

    site.update_settings(SiteSettings(site_name="DubaiLink Pro", hero_title="Find trusted providers"))
    saved = site.get_settings()
    assert saved.site_name == "DubaiLink Pro"
    assert saved.hero_title == "Find trusted providers"
    assert audit.list_entries(action="UPDATE_SETTINGS")[0].severity == "warning"


def test_site_settings_survive_unreadable_store(store, site, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(store, "get", boom)
    assert site.get_settings().site_name == "DubaiLink"


def test_service_types_catalogue(site, store):
    site.save_service_type(ServiceType(name="PRO Services", description="Document clearing"))
    site.save_service_type(ServiceType(name="Visa services"))
    site.save_service_type(ServiceType(name="Yacht Charter", is_active=False))

    assert store.get(Collections.SERVICE_TYPES, "pro-services") is not None
    assert [t.name for t in site.list_service_types(active_only=True)] == ["PRO Services", "Visa services"]
    assert site.category_names() == ["Visa Services", "Business Setup", "Travel Packages", "PRO Services"]

    site.save_service_type(ServiceType(id="yacht-charter", name="Yacht Charter"), action="update")
    assert "Yacht Charter" in site.category_names()

    with pytest.raises(NotFound):
        site.save_service_type(ServiceType(id="nope", name="Nope"), action="update")

    site.delete_service_type("pro-services")
    assert "PRO Services" not in site.category_names()
    with pytest.raises(NotFound):
        site.delete_service_type("pro-services")
