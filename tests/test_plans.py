"""
Tests for the plan catalogue and the /api/plans endpoints
"""

from fastapi.testclient import TestClient

from src.database import Collections
from src.listings.plans import (
    UNLIMITED,
    can_add_new_plan,
    get_plan_details,
    merge_plan_rows,
    plan_from_record,
    to_listing_limit,
    to_number,
)
from tests.conftest import fetch, store


class TestPlanCatalogue:
    """Test plan coercion and merging"""

    def test_unknown_plan_is_free(self):
        assert get_plan_details("gold")["id"] == "free"
        assert get_plan_details(None)["id"] == "free"

    def test_to_number(self):
        assert to_number("12", 0) == 12
        assert to_number("1.5", 0) == 1.5
        assert to_number("abc", 7) == 7
        assert to_number(True, 3) == 3
        assert to_number(float("nan"), 4) == 4

    def test_to_listing_limit(self):
        assert to_listing_limit("unlimited", 1) == UNLIMITED
        assert to_listing_limit("5", 1) == 5
        assert to_listing_limit(None, 3) == 3
        assert to_listing_limit("lots", 3) == 3

    def test_record_fills_from_base_plan(self):
        plan = plan_from_record("pro", {"price": "2499"})
        assert plan["price"] == 2499
        assert plan["name"] == "Pro"
        assert plan["listingLimit"] == 10
        assert plan["isMostPopular"] is True

    def test_record_reads_metadata(self):
        plan = plan_from_record("custom_1", {"name": "Dealer", "metadata": {"listingLimit": 25}})
        assert plan["listingLimit"] == 25
        assert plan["featuredCredits"] == 0

    def test_merge_orders_base_then_custom(self):
        plans = merge_plan_rows([
            {"id": "custom_2", "name": "Zeta"},
            {"id": "custom_1", "name": "Alpha"},
            {"id": "premium", "price": 5999},
        ])
        assert [p["id"] for p in plans] == ["free", "pro", "premium", "custom_1", "custom_2"]
        assert plans[2]["price"] == 5999

    def test_max_plans(self):
        assert can_add_new_plan(merge_plan_rows([]))
        assert not can_add_new_plan(merge_plan_rows([{"id": "custom_1", "name": "Dealer"}]))


class TestPlanEndpoints:
    """Test /api/plans"""

    def test_list_plans_public(self, client: TestClient):
        response = client.get("/api/plans")
        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == ["free", "pro", "premium"]

    def test_business_path_routes_to_plans(self, client: TestClient):
        response = client.get("/api/business?type=plans")
        assert response.status_code == 200
        assert len(response.json()) == 3

    def test_create_plan_requires_admin(self, client: TestClient, seller_headers):
        response = client.post("/api/plans", json={"name": "Dealer"}, headers=seller_headers)
        assert response.status_code == 403

    def test_create_plan(self, client: TestClient, admin_headers, db):
        response = client.post(
            "/api/plans",
            json={"name": "Dealer", "price": 9999, "listingLimit": 50},
            headers=admin_headers,
        )
        assert response.status_code == 201
        plan = response.json()
        assert plan["id"].startswith("custom_")
        assert plan["listingLimit"] == 50
        assert fetch(db, Collections.PLANS, plan["id"])["name"] == "Dealer"

    def test_create_plan_limit(self, client: TestClient, admin_headers, db):
        store(db, Collections.PLANS, {"name": "Dealer"}, "custom_1")
        response = client.post("/api/plans", json={"name": "Fleet"}, headers=admin_headers)
        assert response.status_code == 400
        assert "Maximum of 4 plans" in response.json()["reason"]

    def test_update_base_plan_creates_row(self, client: TestClient, admin_headers, db):
        response = client.put("/api/plans", json={"planId": "pro", "price": 2499}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["price"] == 2499
        assert fetch(db, Collections.PLANS, "pro")["price"] == 2499

    def test_update_unknown_plan(self, client: TestClient, admin_headers):
        response = client.put("/api/plans", json={"planId": "nope", "price": 1}, headers=admin_headers)
        assert response.status_code == 404

    def test_base_plans_cannot_be_deleted(self, client: TestClient, admin_headers):
        response = client.delete("/api/plans?planId=free", headers=admin_headers)
        assert response.status_code == 400

    def test_delete_custom_plan(self, client: TestClient, admin_headers, db):
        store(db, Collections.PLANS, {"name": "Dealer"}, "custom_1")
        response = client.delete("/api/plans?planId=custom_1", headers=admin_headers)
        assert response.status_code == 200
        assert fetch(db, Collections.PLANS, "custom_1") is None
