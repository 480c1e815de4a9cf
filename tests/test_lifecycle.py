"""
Unit tests for listing lifecycle and plan enforcement
"""

from datetime import datetime, timezone

import pytest

from src.errors import ApiError
from src.listings.dates import add_days, parse_iso, to_iso
from src.listings.lifecycle import (
    build_boost,
    cascade_plan_expiry,
    check_listing_allowance,
    city_stats,
    compute_listing_expiry,
    enforce_plan_limits,
    feature_listing,
    haversine_km,
    normalize_images,
    reconcile_listing_expiry,
    request_certification,
    trust_score,
    vehicles_within_radius,
)
from tests.factories import VehicleFactory

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
SELLER_EMAIL = "seller@example.com"


def days(n: int) -> str:
    return to_iso(add_days(NOW, n))


def seller(plan: str = "free", expiry=None, **fields):
    return {"email": SELLER_EMAIL, "subscriptionPlan": plan, "planExpiryDate": expiry, **fields}


class TestDates:
    """Test the ISO helpers"""

    def test_iso_format(self):
        assert to_iso(NOW) == "2024-06-01T12:00:00.000Z"

    def test_parse_round_trip(self):
        assert parse_iso("2024-06-01T12:00:00.000Z") == NOW

    def test_parse_invalid(self):
        assert parse_iso("not a date") is None
        assert parse_iso(None) is None
        assert parse_iso(12345) is None


class TestListingExpiry:
    """Test expiry computation and reconciliation"""

    def test_free_listing_gets_fixed_duration(self):
        assert compute_listing_expiry(seller("free"), NOW) == days(30)
        assert compute_listing_expiry(seller("pro"), NOW, 10) == days(10)

    def test_premium_listing_follows_plan(self):
        assert compute_listing_expiry(seller("premium", days(90)), NOW) == days(90)
        assert compute_listing_expiry(seller("premium"), NOW) is None

    def test_expired_listing_is_unpublished(self):
        vehicle = VehicleFactory(listingExpiresAt=days(-1))
        updates = reconcile_listing_expiry([vehicle], {SELLER_EMAIL: seller("free")}, NOW)
        assert updates[vehicle["id"]] == {"status": "unpublished", "listingStatus": "expired"}

    def test_current_listing_untouched(self):
        vehicle = VehicleFactory(listingExpiresAt=days(5))
        assert reconcile_listing_expiry([vehicle], {SELLER_EMAIL: seller("free")}, NOW) == {}

    def test_missing_expiry_is_backfilled(self):
        vehicle = VehicleFactory(listingExpiresAt=None)
        updates = reconcile_listing_expiry([vehicle], {SELLER_EMAIL: seller("pro")}, NOW)
        assert updates[vehicle["id"]] == {"listingExpiresAt": days(30)}

    def test_missing_expiry_with_expired_plan(self):
        vehicle = VehicleFactory(listingExpiresAt=None)
        updates = reconcile_listing_expiry([vehicle], {SELLER_EMAIL: seller("pro", days(-2))}, NOW)
        assert updates[vehicle["id"]]["status"] == "unpublished"
        assert updates[vehicle["id"]]["listingStatus"] == "expired"

    def test_missing_expiry_without_seller_skipped(self):
        vehicle = VehicleFactory(listingExpiresAt=None)
        assert reconcile_listing_expiry([vehicle], {}, NOW) == {}

    def test_premium_expiry_realigned_and_reactivated(self):
        vehicle = VehicleFactory(listingExpiresAt=days(-1))
        updates = reconcile_listing_expiry([vehicle], {SELLER_EMAIL: seller("premium", days(60))}, NOW)
        assert updates[vehicle["id"]] == {
            "listingExpiresAt": days(60),
            "listingStatus": "active",
            "status": "published",
        }

    def test_premium_without_plan_expiry_never_expires(self):
        vehicle = VehicleFactory(listingExpiresAt=days(-1))
        updates = reconcile_listing_expiry([vehicle], {SELLER_EMAIL: seller("premium")}, NOW)
        assert updates[vehicle["id"]] == {"listingExpiresAt": None}

    def test_unpublished_vehicles_ignored(self):
        vehicle = VehicleFactory(status="unpublished", listingExpiresAt=days(-1))
        assert reconcile_listing_expiry([vehicle], {SELLER_EMAIL: seller("free")}, NOW) == {}


class TestPlanLimits:
    """Test suspension of listings beyond the plan limit"""

    def test_free_plan_keeps_newest(self):
        older = VehicleFactory(createdAt=days(-3))
        newer = VehicleFactory(createdAt=days(-1))
        updates = enforce_plan_limits([older, newer], {SELLER_EMAIL: seller("free")})
        assert list(updates) == [older["id"]]
        assert updates[older["id"]] == {"status": "unpublished", "listingStatus": "suspended"}

    def test_unknown_seller_treated_as_free(self):
        vehicles = [VehicleFactory(createdAt=days(-i)) for i in range(3)]
        assert len(enforce_plan_limits(vehicles, {})) == 2

    def test_premium_unlimited(self):
        vehicles = [VehicleFactory() for _ in range(20)]
        assert enforce_plan_limits(vehicles, {SELLER_EMAIL: seller("premium")}) == {}


class TestPlanCascade:
    """Test plan expiry changes propagating to listings"""

    def test_premium_with_expiry(self):
        vehicle = VehicleFactory(listingExpiresAt=days(-1))
        updates = cascade_plan_expiry(seller("premium", days(30)), [vehicle], NOW)
        assert updates[vehicle["id"]] == {
            "listingExpiresAt": days(30),
            "listingStatus": "active",
            "status": "published",
        }

    def test_premium_without_expiry(self):
        vehicle = VehicleFactory()
        updates = cascade_plan_expiry(seller("premium"), [vehicle], NOW)
        assert updates[vehicle["id"]]["listingExpiresAt"] is None

    def test_other_plans_get_fresh_duration(self):
        vehicle = VehicleFactory(listingExpiresAt=days(-1), listingStatus="expired")
        updates = cascade_plan_expiry(seller("pro", days(30)), [vehicle], NOW, 15)
        assert updates[vehicle["id"]] == {
            "listingExpiresAt": days(15),
            "listingStatus": "active",
            "status": "published",
        }


class TestAllowances:
    """Test listing, feature and certification allowances"""

    def test_expired_plan_blocks_listing(self):
        with pytest.raises(ApiError) as exc:
            check_listing_allowance(seller("pro", days(-1)), 0, NOW)
        assert exc.value.status_code == 403
        assert exc.value.extra["planExpired"] is True

    def test_limit_reached(self):
        with pytest.raises(ApiError) as exc:
            check_listing_allowance(seller("free"), 1, NOW)
        assert exc.value.extra["limitReached"] is True
        assert exc.value.extra["limit"] == 1

    def test_within_limit(self):
        check_listing_allowance(seller("pro"), 9, NOW)
        check_listing_allowance(seller("premium"), 500, NOW)

    def test_feature_spends_credit(self):
        assert feature_listing(seller("pro", featuredCredits=2)) == 1

    def test_feature_defaults_to_plan_credits(self):
        assert feature_listing(seller("premium")) == 4

    def test_feature_not_in_free_plan(self):
        with pytest.raises(ApiError) as exc:
            feature_listing(seller("free", featuredCredits=3))
        assert exc.value.extra["remainingCredits"] == 0

    def test_feature_out_of_credits(self):
        with pytest.raises(ApiError):
            feature_listing(seller("pro", featuredCredits=0))

    def test_certification(self):
        assert request_certification(seller("premium", usedCertifications=1)) == (2, 1)

    def test_certification_exhausted(self):
        with pytest.raises(ApiError) as exc:
            request_certification(seller("pro", usedCertifications=1))
        assert exc.value.extra["allowedCertifications"] == 1

    def test_certification_not_in_free_plan(self):
        with pytest.raises(ApiError):
            request_certification(seller("free"))


class TestListingHelpers:
    """Test boosts, trust scores and search helpers"""

    def test_build_boost(self):
        boost = build_boost(7, "homepage_spotlight_14", NOW)
        assert boost["type"] == "homepage_spotlight"
        assert boost["expiresAt"] == days(14)
        assert boost["isActive"] is True

    def test_build_boost_defaults(self):
        boost = build_boost(7, "mystery", NOW)
        assert boost["type"] == "top_search"
        assert boost["expiresAt"] == days(7)

    def test_trust_score(self):
        assert trust_score({}) == 60
        assert trust_score({"isVerified": True, "subscriptionPlan": "premium"}) == 95
        assert trust_score({"status": "inactive", "subscriptionPlan": "pro"}) == 60

    def test_haversine(self):
        assert haversine_km(28.6139, 77.209, 28.6139, 77.209) == 0
        # Delhi to Mumbai is roughly 1150 km
        assert 1100 < haversine_km(28.6139, 77.209, 19.076, 72.8777) < 1200

    def test_radius_search_sorted_by_distance(self):
        near = VehicleFactory(exactLocation={"lat": 28.62, "lng": 77.21})
        nearer = VehicleFactory(exactLocation={"lat": 28.6139, "lng": 77.209})
        far = VehicleFactory(exactLocation={"lat": 19.076, "lng": 72.8777})
        unknown = VehicleFactory()
        matches = vehicles_within_radius([near, far, nearer, unknown], 28.6139, 77.209, 10)
        assert [m["id"] for m in matches] == [nearer["id"], near["id"]]
        assert matches[0]["distance"] == 0

    def test_city_stats(self):
        vehicles = [
            VehicleFactory(city="Delhi", make="Honda", price=400000),
            VehicleFactory(city="delhi", make="Honda", price=600000),
            VehicleFactory(city="Delhi", make="Tata", price=500000, status="sold"),
            VehicleFactory(city="Pune", make="Kia", price=900000),
        ]
        stats = city_stats(vehicles, "Delhi")
        assert stats["totalVehicles"] == 2
        assert stats["averagePrice"] == 500000
        assert stats["popularMakes"] == ["Honda"]
        assert stats["priceRange"] == {"min": 400000, "max": 600000}

    def test_normalize_images(self):
        assert normalize_images(None) == []
        assert normalize_images("a.jpg") == ["a.jpg"]
        assert normalize_images(["a.jpg", "", 3, "b.jpg"]) == ["a.jpg", "b.jpg"]
        assert len(normalize_images([f"{i}.jpg" for i in range(15)])) == 10
