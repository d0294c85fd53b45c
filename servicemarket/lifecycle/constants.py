# servicemarket/lifecycle/constants.py
from typing import Dict, List, Tuple

from servicemarket.config import (  # noqa: F401  re-exported lifecycle defaults
    DEFAULT_CURRENCY,
    LEAD_MAX_AGE_HOURS,
    MAX_QUOTES_PER_REQUEST,
    STALE_REQUEST_HOURS,
)
from servicemarket.documents import Coordinates


class ServiceCategory:
    VISA = "Visa Services"
    BUSINESS = "Business Setup"
    TRAVEL = "Travel Packages"

    BUILT_IN: Tuple[str, ...] = (VISA, BUSINESS, TRAVEL)


# Lead radius grows with the age of the request (minutes -> km), capped hard.
LEAD_HARD_LIMIT_KM = 15.0
LEAD_RADIUS_STEPS: List[Tuple[float, float]] = [
    (2.0, 5.0),
    (4.0, 8.0),
]

EARTH_RADIUS_KM = 6371.0

# Downtown Dubai, used when a new provider has not set a location yet
DEFAULT_PROVIDER_COORDINATES = Coordinates(lat=25.1972, lng=55.2744)
DEFAULT_PROVIDER_LOCATION = "Downtown Dubai"

DUBAI_LOCALITIES: List[str] = [
    "Downtown Dubai", "Business Bay", "Dubai Marina", "Jumeirah Lake Towers (JLT)",
    "Palm Jumeirah", "Deira", "Bur Dubai", "Al Barsha", "Dubai Silicon Oasis",
    "Jumeirah Village Circle (JVC)", "Mirdif", "International City", "Dubai Hills Estate",
    "Arabian Ranches", "Motor City", "Dubai Sports City", "Discovery Gardens",
    "Jumeirah Beach Residence (JBR)", "Sheikh Zayed Road", "Al Quoz", "Al Nahda",
    "Al Qusais", "Garhoud", "Dubai Festival City", "Jumeirah 1", "Jumeirah 2", "Jumeirah 3",
    "Umm Suqeim", "Al Satwa", "Al Karama", "DIFC (Dubai International Financial Centre)",
    "City Walk", "Bluewaters Island", "Dubai Creek Harbour", "Meydan City",
    "Al Furjan", "Remraam", "Damac Hills", "Town Square", "The Springs",
    "The Meadows", "Emirates Hills", "Jumeirah Islands", "Dubai Production City (IMPZ)",
    "Dubai Studio City", "Knowledge Park", "Dubai Internet City", "Dubai Media City",
]

# Audit action names
AUDIT_ACTIONS: Dict[str, str] = {
    "create": "CREATE_REQUEST",
    "quote": "SUBMIT_QUOTE",
    "accept": "ACCEPT_QUOTE",
    "complete": "COMPLETE_ORDER",
    "delete": "DELETE_REQUEST",
}
