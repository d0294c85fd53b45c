import datetime as dt

from servicemarket.config import Settings, get_settings
from servicemarket.documents import Coordinates, ProviderProfile, Quote, RequestStatus, ServiceRequest
from servicemarket.lifecycle import constants, rules


NOW = dt.datetime(2025, 3, 1, 12, 0, tzinfo=dt.timezone.utc)


def _request(age=dt.timedelta(0), status=RequestStatus.OPEN, quotes=None, category="Visa Services", coords=None):
    return ServiceRequest(
        id="req_1",
        user_id="cust_1",
        category=category,
        title="Golden visa",
        status=status,
        created_at=NOW - age,
        quotes=quotes or [],
        coordinates=coords,
    )


def _quote(provider_id="prov_1", status="pending", quote_id="q_1"):
    return Quote(
        id=quote_id,
        provider_id=provider_id,
        provider_name="Falcon",
        price=5000,
        timeline="10 days",
        status=status,
    )


def test_refine_hint_is_false_at_exactly_24_hours():
    req = _request(age=dt.timedelta(hours=24))
    assert rules.should_notify_to_refine_criteria(req, now=NOW) is False


def test_refine_hint_is_true_just_past_24_hours():
    req = _request(age=dt.timedelta(hours=24, seconds=1))
    assert rules.should_notify_to_refine_criteria(req, now=NOW) is True


def test_refine_hint_ignores_quoted_or_young_requests():
    assert not rules.should_notify_to_refine_criteria(_request(age=dt.timedelta(hours=2)), now=NOW)

    quoted = _request(age=dt.timedelta(days=3), status=RequestStatus.QUOTED, quotes=[_quote()])
    assert not rules.should_notify_to_refine_criteria(quoted, now=NOW)


def test_refine_hint_window_is_configurable():
    req = _request(age=dt.timedelta(hours=3))
    assert rules.should_notify_to_refine_criteria(req, now=NOW, stale_after_hours=2)


def test_category_match_is_case_insensitive():
    provider = ProviderProfile(id="p", name="Falcon", service_types=["visa services", "Travel Packages"])
    assert rules.match_provider_to_request(provider, _request(category="Visa Services"))
    assert rules.match_provider_to_request(provider, _request(category="  TRAVEL packages "))


def test_disjoint_categories_do_not_match():
    provider = ProviderProfile(id="p", name="Falcon", service_types=["Business Setup"])
    assert not rules.match_provider_to_request(provider, _request(category="Visa Services"))


def test_provider_without_service_types_matches_nothing():
    provider = ProviderProfile(id="p", name="Falcon")
    assert not rules.match_provider_to_request(provider, _request())


def test_locality_does_not_narrow_the_match():
    provider = ProviderProfile(id="p", name="Falcon", service_types=["Visa Services"])
    assert rules.match_provider_to_request(provider, _request(), locality="Deira")


def test_derive_status():
    assert rules.derive_status([]) == RequestStatus.OPEN
    assert rules.derive_status([_quote()]) == RequestStatus.QUOTED
    accepted = [_quote(status="accepted"), _quote(status="rejected", quote_id="q_2")]
    assert rules.derive_status(accepted) == RequestStatus.ACCEPTED
    assert rules.derive_status(accepted, completed=True) == RequestStatus.CLOSED


def test_invariant_violations_flag_two_accepted_quotes():
    req = _request(
        status=RequestStatus.ACCEPTED,
        quotes=[_quote(status="accepted"), _quote(status="accepted", quote_id="q_2")],
    )
    problems = rules.invariant_violations(req)
    assert "more_than_one_accepted_quote" in problems


def test_invariant_violations_clean_states():
    assert rules.invariant_violations(_request()) == []
    assert rules.invariant_violations(_request(status=RequestStatus.QUOTED, quotes=[_quote()])) == []
    assert rules.invariant_violations(_request(status=RequestStatus.OPEN, quotes=[_quote()])) == ["open_with_quotes"]


def test_haversine_known_distance():
    downtown = Coordinates(lat=25.1972, lng=55.2744)
    marina = Coordinates(lat=25.0805, lng=55.1403)
    assert 18.0 < rules.haversine_km(downtown, marina) < 19.5
    assert rules.haversine_km(downtown, downtown) == 0.0


def test_lead_radius_expands_with_age():
    assert rules.lead_radius_km(0) == 5.0
    assert rules.lead_radius_km(3) == 8.0
    assert rules.lead_radius_km(10) == 15.0


def test_lead_eligibility_by_distance_and_age():
    provider = ProviderProfile(
        id="p",
        name="Falcon",
        service_types=["Visa Services"],
        coordinates=Coordinates(lat=25.1972, lng=55.2744),
    )
    # roughly 6.5 km north of the provider
    nearby = Coordinates(lat=25.2560, lng=55.2744)

    fresh = _request(age=dt.timedelta(minutes=1), coords=nearby)
    assert not rules.is_provider_eligible_for_lead(provider, fresh, now=NOW)

    older = _request(age=dt.timedelta(minutes=3), coords=nearby)
    assert rules.is_provider_eligible_for_lead(provider, older, now=NOW)

    far = _request(age=dt.timedelta(hours=1), coords=Coordinates(lat=25.40, lng=55.2744))
    assert not rules.is_provider_eligible_for_lead(provider, far, now=NOW)


def test_lead_eligibility_other_gates():
    provider = ProviderProfile(id="p", name="Falcon")
    assert rules.is_provider_eligible_for_lead(provider, _request(), now=NOW)

    assert not rules.is_provider_eligible_for_lead(provider, _request(age=dt.timedelta(hours=25)), now=NOW)

    already = _request(status=RequestStatus.OPEN, quotes=[_quote(provider_id="p")])
    assert not rules.is_provider_eligible_for_lead(provider, already, now=NOW)

    full = _request(quotes=[_quote(provider_id=f"x{i}", quote_id=f"q{i}") for i in range(5)])
    assert not rules.is_provider_eligible_for_lead(provider, full, now=NOW)

    business_only = ProviderProfile(id="b", name="Setup Pros", service_types=["Business Setup"])
    assert not rules.is_provider_eligible_for_lead(business_only, _request(), now=NOW)


def test_settings_defaults_follow_lifecycle_constants(monkeypatch):
    for name in (
        "SERVICEMARKET_MAX_QUOTES_PER_REQUEST",
        "SERVICEMARKET_LEAD_MAX_AGE_HOURS",
        "SERVICEMARKET_STALE_REQUEST_HOURS",
        "SERVICEMARKET_CURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)

    for settings in (Settings(), get_settings()):
        assert settings.max_quotes_per_request == constants.MAX_QUOTES_PER_REQUEST
        assert settings.lead_max_age_hours == constants.LEAD_MAX_AGE_HOURS
        assert settings.stale_request_hours == constants.STALE_REQUEST_HOURS
        assert settings.default_currency == constants.DEFAULT_CURRENCY
