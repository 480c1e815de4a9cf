"""
Listing lifecycle and plan enforcement

Pure functions over user and vehicle documents. Callers pass ``now`` and
persist whatever updates are returned.
"""

import math
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import status

from src.errors import ApiError
from src.listings.dates import add_days, parse_iso, sort_key, to_iso
from src.listings.plans import (
    FEATURE_CREDIT_LIMITS,
    UNLIMITED,
    get_plan_details,
)

LISTING_DURATION_DAYS = 30
MAX_IMAGES = 10
EARTH_RADIUS_KM = 6371
BOOST_TYPES = ("top_search", "homepage_spotlight", "featured_badge", "multi_city")
DEFAULT_BOOST_DAYS = 7

VehicleUpdates = Dict[Any, Dict[str, Any]]


def _plan_of(seller: Optional[Dict[str, Any]]) -> str:
    return (seller or {}).get("subscriptionPlan") or "free"


def _merge(updates: VehicleUpdates, vehicle_id: Any, fields: Dict[str, Any]) -> None:
    if fields:
        updates.setdefault(vehicle_id, {}).update(fields)


def is_plan_expired(seller: Optional[Dict[str, Any]], now: datetime) -> bool:
    expiry = parse_iso((seller or {}).get("planExpiryDate"))
    return expiry is not None and expiry < now


def compute_listing_expiry(
    seller: Optional[Dict[str, Any]],
    now: datetime,
    duration_days: int = LISTING_DURATION_DAYS
) -> Optional[str]:
    """
    Expiry timestamp for a newly published listing

    Premium listings live as long as the plan (forever when the plan has
    no expiry); every other plan gets a fixed duration from now.
    """
    if _plan_of(seller) == "premium":
        return (seller or {}).get("planExpiryDate") or None
    return to_iso(add_days(now, duration_days))


def reconcile_listing_expiry(
    vehicles: Iterable[Dict[str, Any]],
    sellers: Dict[str, Dict[str, Any]],
    now: datetime,
    duration_days: int = LISTING_DURATION_DAYS
) -> VehicleUpdates:
    """
    Compute expiry updates for published listings

    Args:
        vehicles: Vehicle documents
        sellers: Seller documents keyed by lower-cased email
        now: Reference time

    Returns:
        Mapping of vehicle id to the fields that must change
    """
    updates: VehicleUpdates = {}

    for vehicle in vehicles:
        if vehicle.get("status") != "published":
            continue
        vehicle_id = vehicle.get("id")
        seller = sellers.get((vehicle.get("sellerEmail") or "").lower().strip())
        fields: Dict[str, Any] = {}

        listing_expiry = parse_iso(vehicle.get("listingExpiresAt"))

        if listing_expiry is None:
            if seller is None:
                continue
            if is_plan_expired(seller, now):
                fields["status"] = "unpublished"
                fields["listingStatus"] = "expired"
            new_expiry = compute_listing_expiry(seller, now, duration_days)
            if new_expiry:
                fields["listingExpiresAt"] = new_expiry
            _merge(updates, vehicle_id, fields)
            continue

        plan = _plan_of(seller)
        plan_expiry = parse_iso((seller or {}).get("planExpiryDate"))
        premium_without_expiry = seller is not None and plan == "premium" and plan_expiry is None

        if seller is not None and plan == "premium" and plan_expiry is not None:
            if abs((plan_expiry - listing_expiry).total_seconds()) > 1:
                fields["listingExpiresAt"] = seller["planExpiryDate"]
                if listing_expiry < now and plan_expiry >= now:
                    fields["listingStatus"] = "active"
                    fields["status"] = "published"
            # Premium listings live exactly as long as the plan
            listing_expiry = plan_expiry

        if listing_expiry < now and not premium_without_expiry:
            fields["status"] = "unpublished"
            fields["listingStatus"] = "expired"
        elif premium_without_expiry and listing_expiry < now:
            fields["listingExpiresAt"] = None

        _merge(updates, vehicle_id, fields)

    return updates


def enforce_plan_limits(
    vehicles: Iterable[Dict[str, Any]],
    sellers: Dict[str, Dict[str, Any]]
) -> VehicleUpdates:
    """
    Suspend published listings beyond each seller's plan limit

    The newest listings (by createdAt) are kept.
    """
    by_seller: Dict[str, List[Dict[str, Any]]] = {}
    for vehicle in vehicles:
        email = (vehicle.get("sellerEmail") or "").lower().strip()
        if vehicle.get("status") == "published" and email:
            by_seller.setdefault(email, []).append(vehicle)

    updates: VehicleUpdates = {}
    for email, published in by_seller.items():
        limit = get_plan_details(_plan_of(sellers.get(email)))["listingLimit"]
        if limit == UNLIMITED:
            continue
        published.sort(key=lambda v: sort_key(v.get("createdAt")), reverse=True)
        for extra in published[int(limit or 0):]:
            _merge(updates, extra.get("id"), {"status": "unpublished", "listingStatus": "suspended"})
    return updates


def cascade_plan_expiry(
    seller: Dict[str, Any],
    vehicles: Iterable[Dict[str, Any]],
    now: datetime,
    duration_days: int = LISTING_DURATION_DAYS
) -> VehicleUpdates:
    """Propagate a change to a seller's planExpiryDate onto their published listings"""
    plan = _plan_of(seller)
    plan_expiry_raw = seller.get("planExpiryDate")
    plan_expiry = parse_iso(plan_expiry_raw)
    updates: VehicleUpdates = {}

    for vehicle in vehicles:
        if vehicle.get("status") != "published":
            continue
        old_expiry = parse_iso(vehicle.get("listingExpiresAt"))
        was_expired = old_expiry is not None and old_expiry < now
        fields: Dict[str, Any] = {}

        if plan == "premium" and plan_expiry is not None:
            fields["listingExpiresAt"] = plan_expiry_raw
            if was_expired and plan_expiry > now:
                fields["listingStatus"] = "active"
                fields["status"] = "published"
        elif plan == "premium":
            fields["listingExpiresAt"] = None
            fields["listingStatus"] = "active"
            fields["status"] = "published"
        else:
            fields["listingExpiresAt"] = to_iso(add_days(now, duration_days))
            if was_expired or vehicle.get("listingStatus") == "expired":
                fields["listingStatus"] = "active"
                fields["status"] = "published"

        _merge(updates, vehicle.get("id"), fields)

    return updates


def check_listing_allowance(seller: Dict[str, Any], active_count: int, now: datetime) -> None:
    """
    Refuse a new listing when the seller's plan has expired or is full

    Raises:
        ApiError: 403 with planExpired or limitReached details
    """
    if is_plan_expired(seller, now):
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Your subscription plan has expired. Please renew your plan to create new listings.",
            planExpired=True,
            expiredOn=seller.get("planExpiryDate")
        )

    plan = get_plan_details(_plan_of(seller))
    limit = plan["listingLimit"]
    if limit != UNLIMITED and active_count >= int(limit):
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            f"Listing limit reached for your {plan['name']} plan. "
            f"You can have up to {limit} active listing(s).",
            limitReached=True,
            activeListings=active_count,
            limit=limit
        )


def feature_listing(seller: Dict[str, Any]) -> int:
    """
    Spend one featured credit

    Returns:
        Credits remaining after the deduction
    """
    plan_id = _plan_of(seller)
    plan_limit = FEATURE_CREDIT_LIMITS.get(plan_id, 0)
    credits = seller.get("featuredCredits")
    if isinstance(credits, (int, float)) and not isinstance(credits, bool):
        remaining = int(credits)
    else:
        remaining = plan_limit

    if plan_limit <= 0:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Your current plan does not include featured listings. Upgrade to feature your vehicle.",
            remainingCredits=0
        )
    if remaining <= 0:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "You have no featured credits remaining. Upgrade or wait for your plan to renew.",
            remainingCredits=0
        )
    return remaining - 1


def request_certification(seller: Dict[str, Any]) -> Tuple[int, int]:
    """
    Consume one free certification

    Returns:
        (used, remaining) after this request
    """
    allowed = int(get_plan_details(_plan_of(seller)).get("freeCertifications", 0))
    used = int(seller.get("usedCertifications") or 0)

    if allowed <= 0:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Your current plan does not include free certifications. Upgrade to request certification."
        )
    if used >= allowed:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            f"You have used all {allowed} free certification(s) included in your plan.",
            usedCertifications=used,
            allowedCertifications=allowed
        )
    return used + 1, allowed - used - 1


def build_boost(vehicle_id: Any, package_id: str, now: datetime) -> Dict[str, Any]:
    """
    Build an active boost from a package id such as ``top_search_7``
    Unknown types fall back to top_search; missing durations to 7 days
    """
    package_id = package_id or ""
    boost_type, days_text = "top_search", ""
    for known in BOOST_TYPES:
        if package_id.startswith(known):
            boost_type = known
            days_text = package_id[len(known):].lstrip("_")
            break
    try:
        days = int(days_text)
    except ValueError:
        days = DEFAULT_BOOST_DAYS
    if days <= 0:
        days = DEFAULT_BOOST_DAYS

    return {
        "id": f"boost_{int(now.timestamp() * 1000)}",
        "vehicleId": vehicle_id,
        "packageId": package_id,
        "type": boost_type,
        "startDate": to_iso(now),
        "expiresAt": to_iso(add_days(now, days)),
        "isActive": True,
    }


def trust_score(user: Dict[str, Any]) -> int:
    score = 50
    if user.get("isVerified"):
        score += 20
    plan = user.get("subscriptionPlan")
    if plan == "premium":
        score += 15
    elif plan == "pro":
        score += 10
    if user.get("status", "active") == "active":
        score += 10
    return min(score, 100)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def vehicles_within_radius(
    vehicles: Iterable[Dict[str, Any]],
    lat: float,
    lng: float,
    radius_km: float
) -> List[Dict[str, Any]]:
    """Published vehicles whose exactLocation lies within radius_km, nearest first"""
    matches = []
    for vehicle in vehicles:
        location = vehicle.get("exactLocation") or {}
        try:
            v_lat = float(location["lat"])
            v_lng = float(location["lng"])
        except (KeyError, TypeError, ValueError):
            continue
        distance = haversine_km(lat, lng, v_lat, v_lng)
        if distance <= radius_km:
            matches.append({**vehicle, "distance": round(distance, 2)})
    matches.sort(key=lambda v: v["distance"])
    return matches


def city_stats(vehicles: Iterable[Dict[str, Any]], city: str) -> Dict[str, Any]:
    in_city = [
        v for v in vehicles
        if (v.get("city") or "").lower() == city.lower() and v.get("status") == "published"
    ]
    prices = [float(v["price"]) for v in in_city if isinstance(v.get("price"), (int, float))]
    makes = Counter(v["make"] for v in in_city if v.get("make"))

    return {
        "totalVehicles": len(in_city),
        "averagePrice": round(sum(prices) / len(prices)) if prices else 0,
        "popularMakes": [make for make, _ in makes.most_common(5)],
        "priceRange": {
            "min": min(prices) if prices else 0,
            "max": max(prices) if prices else 0,
        },
    }


def normalize_images(images: Any) -> List[str]:
    if images is None:
        return []
    if isinstance(images, str):
        images = [images]
    if not isinstance(images, list):
        return []
    return [img for img in images if isinstance(img, str) and img][:MAX_IMAGES]
