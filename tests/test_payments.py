"""
Tests for plan upgrade payment requests
"""

from fastapi.testclient import TestClient

from src.database import Collections, email_to_key
from src.listings.dates import parse_iso, utcnow
from src.marketplace.server import app
from tests.conftest import fetch, store
from tests.factories import ExpiredVehicleFactory


def create_request(client: TestClient, headers, **overrides):
    body = {"sellerEmail": "seller@example.com", "amount": 1999, "plan": "pro", **overrides}
    return client.post("/api/payments?action=create", json=body, headers=headers)


class TestPaymentRequests:
    """Test creating and reviewing payment requests"""

    def test_missing_action(self, client: TestClient, seller_headers):
        response = client.post("/api/payments", json={}, headers=seller_headers)
        assert response.status_code == 400
        assert "Action parameter is required" in response.json()["reason"]

    def test_create(self, client: TestClient, seller_headers, db):
        response = create_request(client, seller_headers, transactionId="UTR123")
        assert response.status_code == 201
        payment = response.json()["paymentRequest"]
        assert payment["status"] == "pending"
        assert payment["id"].startswith("payment_")
        assert fetch(db, Collections.PAYMENT_REQUESTS, payment["id"])["transactionId"] == "UTR123"

    def test_action_in_body(self, client: TestClient, seller_headers):
        response = client.post(
            "/api/payments",
            json={"action": "create", "sellerEmail": "seller@example.com", "amount": 1999, "plan": "pro"},
            headers=seller_headers,
        )
        assert response.status_code == 201

    def test_create_for_someone_else(self, client: TestClient, customer_headers, seller_user):
        response = create_request(client, customer_headers)
        assert response.status_code == 403

    def test_create_invalid_amount(self, client: TestClient, seller_headers):
        response = create_request(client, seller_headers, amount="lots")
        assert response.status_code == 400

    def test_approve_upgrades_seller(self, client: TestClient, seller_headers, admin_headers, db):
        expired = store(db, Collections.VEHICLES, ExpiredVehicleFactory(listingStatus="expired"))
        payment = create_request(client, seller_headers).json()["paymentRequest"]

        response = client.post(
            "/api/payments?action=approve",
            json={"paymentRequestId": payment["id"], "notes": "UTR verified"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        reviewed = response.json()["paymentRequest"]
        assert reviewed["status"] == "approved"
        assert reviewed["reviewedBy"] == "admin@example.com"

        seller = fetch(db, Collections.USERS, email_to_key("seller@example.com"))
        assert seller["subscriptionPlan"] == "pro"
        assert seller["featuredCredits"] == 2
        assert parse_iso(seller["planExpiryDate"]) > utcnow()

        vehicle = fetch(db, Collections.VEHICLES, expired["id"])
        assert vehicle["listingStatus"] == "active"
        assert parse_iso(vehicle["listingExpiresAt"]) > utcnow()

    def test_reject(self, client: TestClient, seller_headers, admin_headers, db):
        payment = create_request(client, seller_headers).json()["paymentRequest"]
        response = client.post(
            "/api/payments?action=reject",
            json={"paymentRequestId": payment["id"], "rejectionReason": "No transfer found"},
            headers=admin_headers,
        )
        assert response.json()["paymentRequest"]["rejectionReason"] == "No transfer found"
        seller = fetch(db, Collections.USERS, email_to_key("seller@example.com"))
        assert seller["subscriptionPlan"] == "free"

    def test_cannot_review_twice(self, client: TestClient, seller_headers, admin_headers):
        payment = create_request(client, seller_headers).json()["paymentRequest"]
        body = {"paymentRequestId": payment["id"]}
        client.post("/api/payments?action=approve", json=body, headers=admin_headers)
        response = client.post("/api/payments?action=reject", json=body, headers=admin_headers)
        assert response.status_code == 400

    def test_approve_missing_seller(self, client: TestClient, admin_headers, db):
        store(db, Collections.PAYMENT_REQUESTS, {
            "sellerEmail": "gone@example.com", "amount": 1999, "plan": "pro", "status": "pending",
        }, "payment_1")
        response = client.post(
            "/api/payments?action=approve", json={"paymentRequestId": "payment_1"}, headers=admin_headers
        )
        assert response.status_code == 404
        assert fetch(db, Collections.PAYMENT_REQUESTS, "payment_1")["status"] == "pending"

    def test_failed_upgrade_leaves_request_pending(self, seller_headers, admin_headers, db, monkeypatch):
        client = TestClient(app, raise_server_exceptions=False)
        payment = create_request(client, seller_headers).json()["paymentRequest"]

        original_update = db.update

        async def failing_update(collection, record_id, updates):
            if collection == Collections.USERS:
                raise RuntimeError("users write failed")
            return await original_update(collection, record_id, updates)

        monkeypatch.setattr(db, "update", failing_update)
        response = client.post(
            "/api/payments?action=approve", json={"paymentRequestId": payment["id"]}, headers=admin_headers
        )
        assert response.status_code == 500
        assert fetch(db, Collections.PAYMENT_REQUESTS, payment["id"])["status"] == "pending"

    def test_listing_sync_failure_still_approves(
        self, client: TestClient, seller_headers, admin_headers, db, monkeypatch
    ):
        payment = create_request(client, seller_headers).json()["paymentRequest"]

        original_find = db.find_by_field

        async def failing_find(collection, field, value):
            if collection == Collections.VEHICLES:
                raise RuntimeError("vehicles query failed")
            return await original_find(collection, field, value)

        monkeypatch.setattr(db, "find_by_field", failing_find)
        response = client.post(
            "/api/payments?action=approve", json={"paymentRequestId": payment["id"]}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["paymentRequest"]["status"] == "approved"
        assert fetch(db, Collections.USERS, email_to_key("seller@example.com"))["subscriptionPlan"] == "pro"

    def test_review_requires_admin(self, client: TestClient, seller_headers):
        payment = create_request(client, seller_headers).json()["paymentRequest"]
        response = client.post(
            "/api/payments?action=approve",
            json={"paymentRequestId": payment["id"]},
            headers=seller_headers,
        )
        assert response.status_code == 403


class TestPaymentQueries:
    """Test GET /api/payments"""

    def test_status_none(self, client: TestClient, seller_headers):
        response = client.get("/api/payments?action=status&sellerEmail=seller@example.com", headers=seller_headers)
        assert response.json() == {"success": True, "status": "none", "paymentRequest": None}

    def test_status_latest(self, client: TestClient, seller_headers):
        create_request(client, seller_headers)
        response = client.get("/api/payments?action=status&sellerEmail=seller@example.com", headers=seller_headers)
        assert response.json()["status"] == "pending"

    def test_status_of_other_seller(self, client: TestClient, customer_headers, seller_user):
        response = client.get(
            "/api/payments?action=status&sellerEmail=seller@example.com", headers=customer_headers
        )
        assert response.status_code == 403

    def test_admin_list_filtered(self, client: TestClient, db, admin_headers):
        store(db, Collections.PAYMENT_REQUESTS, {"sellerEmail": "a@example.com", "status": "pending"}, "payment_1")
        store(db, Collections.PAYMENT_REQUESTS, {"sellerEmail": "b@example.com", "status": "approved"}, "payment_2")
        response = client.get("/api/payments?status=pending", headers=admin_headers)
        assert [p["id"] for p in response.json()["paymentRequests"]] == ["payment_1"]

    def test_list_requires_admin(self, client: TestClient, seller_headers):
        response = client.get("/api/payments", headers=seller_headers)
        assert response.status_code == 403
