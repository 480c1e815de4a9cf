"""
Subscription plan catalogue
"""

from typing import Any, Dict, Iterable, List, Optional, Union

ListingLimit = Union[int, str]

UNLIMITED = "unlimited"
BASE_PLAN_IDS = ("free", "pro", "premium")
MAX_PLANS = 4

PLAN_DETAILS: Dict[str, Dict[str, Any]] = {
    "free": {
        "id": "free",
        "name": "Free",
        "price": 0,
        "features": [
            "1 active listing",
            "30-day listing duration",
            "Basic support",
        ],
        "listingLimit": 1,
        "featuredCredits": 0,
        "freeCertifications": 0,
        "isMostPopular": False,
    },
    "pro": {
        "id": "pro",
        "name": "Pro",
        "price": 1999,
        "features": [
            "10 active listings",
            "2 featured credits per month",
            "1 free vehicle certification",
            "Priority support",
        ],
        "listingLimit": 10,
        "featuredCredits": 2,
        "freeCertifications": 1,
        "isMostPopular": True,
    },
    "premium": {
        "id": "premium",
        "name": "Premium",
        "price": 4999,
        "features": [
            "Unlimited active listings",
            "5 featured credits per month",
            "3 free vehicle certifications",
            "Listings stay live for the whole plan period",
            "Dedicated account manager",
        ],
        "listingLimit": UNLIMITED,
        "featuredCredits": 5,
        "freeCertifications": 3,
        "isMostPopular": False,
    },
}

FEATURE_CREDIT_LIMITS: Dict[str, int] = {
    "free": 0,
    "pro": 2,
    "premium": 5,
}


def to_number(value: Any, default: float) -> float:
    """Coerce to a finite number, falling back to ``default``"""
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    return int(number) if number.is_integer() else number


def to_listing_limit(value: Any, default: ListingLimit) -> ListingLimit:
    if value == UNLIMITED:
        return UNLIMITED
    if value is None:
        return default
    number = to_number(value, None)
    if number is None:
        return default if isinstance(default, int) else 0
    return int(number)


def get_plan_details(plan_id: Optional[str]) -> Dict[str, Any]:
    """Base plan for ``plan_id``; unknown or missing ids get the free plan"""
    return PLAN_DETAILS.get(plan_id or "free", PLAN_DETAILS["free"])


def plan_from_record(plan_id: str, row: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a stored plan row, filling gaps from the base plan of the same id"""
    base = PLAN_DETAILS.get(plan_id, {})
    metadata = row.get("metadata") or {}

    def pick(field: str):
        value = row.get(field)
        return metadata.get(field) if value is None else value

    features = row.get("features")
    is_most_popular = pick("isMostPopular")
    if is_most_popular is None:
        is_most_popular = base.get("isMostPopular", False)

    return {
        "id": plan_id,
        "name": str(row.get("name") or base.get("name") or "Custom Plan"),
        "price": to_number(row.get("price"), base.get("price", 0)),
        "features": [str(f) for f in features] if isinstance(features, list) else list(base.get("features", [])),
        "listingLimit": to_listing_limit(pick("listingLimit"), base.get("listingLimit", 0)),
        "featuredCredits": to_number(pick("featuredCredits"), base.get("featuredCredits", 0)),
        "freeCertifications": to_number(pick("freeCertifications"), base.get("freeCertifications", 0)),
        "isMostPopular": bool(is_most_popular),
    }


def merge_plan_rows(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Overlay stored plans on the base catalogue

    Base plans are always present and come first in free, pro, premium
    order; custom plans follow sorted by name.
    """
    plans = {row["id"]: plan_from_record(str(row["id"]), row) for row in rows}
    for plan_id in BASE_PLAN_IDS:
        if plan_id not in plans:
            plans[plan_id] = plan_from_record(plan_id, {})

    base = [plans[plan_id] for plan_id in BASE_PLAN_IDS]
    custom = sorted(
        (plan for plan_id, plan in plans.items() if plan_id not in BASE_PLAN_IDS),
        key=lambda plan: plan["name"]
    )
    return base + custom


def can_add_new_plan(plans: List[Dict[str, Any]]) -> bool:
    return len(plans) < MAX_PLANS
