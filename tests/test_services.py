"""
Tests for the service marketplace: catalogue, providers, offerings and requests
"""

from fastapi.testclient import TestClient

from src.database import Collections, email_to_key
from tests.conftest import add_user, auth_headers, fetch, store

PROFILE = {
    "name": "Quick Fix Garage",
    "email": "garage@example.com",
    "phone": "9876500000",
    "city": "Pune",
    "skills": ["brakes", "ac"],
}


def register_provider(client: TestClient, headers):
    return client.post("/api/service-providers", json=PROFILE, headers=headers)


class TestServiceCatalogue:
    """Test /api/services"""

    def test_public_list_hides_inactive(self, client: TestClient, db):
        store(db, Collections.SERVICES, {"name": "wash", "display_name": "Wash", "display_order": 2}, "s1")
        store(db, Collections.SERVICES, {"name": "tyres", "display_name": "Tyres", "display_order": 1}, "s2")
        store(db, Collections.SERVICES, {"name": "old", "display_name": "Old", "active": False}, "s3")
        response = client.get("/api/services")
        assert [s["id"] for s in response.json()] == ["s2", "s1"]

    def test_admin_sees_inactive(self, client: TestClient, db, admin_headers):
        store(db, Collections.SERVICES, {"name": "old", "display_name": "Old", "active": False}, "s3")
        assert len(client.get("/api/services", headers=admin_headers).json()) == 1

    def test_admin_crud(self, client: TestClient, admin_headers, db):
        created = client.post(
            "/api/services", json={"name": "detailing", "display_name": "Detailing"}, headers=admin_headers
        )
        assert created.status_code == 201
        service = created.json()
        assert service["active"] is True

        updated = client.put("/api/services", json={"id": service["id"], "base_price": 999}, headers=admin_headers)
        assert updated.json()["base_price"] == 999

        client.delete(f"/api/services?id={service['id']}", headers=admin_headers)
        assert fetch(db, Collections.SERVICES, service["id"]) is None

    def test_create_missing_fields(self, client: TestClient, admin_headers):
        response = client.post("/api/services", json={"name": "x"}, headers=admin_headers)
        assert response.status_code == 400


class TestProviders:
    """Test /api/service-providers"""

    def test_register_creates_user(self, client: TestClient, db):
        headers = auth_headers({"email": "garage@example.com", "role": "customer"})
        response = register_provider(client, headers)
        assert response.status_code == 201
        assert response.json()["id"] == email_to_key("garage@example.com")

        user = fetch(db, Collections.USERS, email_to_key("garage@example.com"))
        assert user["isServiceProvider"] is True
        assert user["role"] == "seller"

    def test_register_existing_user_flagged(self, client: TestClient, db):
        user = add_user(db, email="garage@example.com", role="customer")
        register_provider(client, auth_headers(user))
        stored = fetch(db, Collections.USERS, email_to_key("garage@example.com"))
        assert stored["isServiceProvider"] is True
        assert stored["role"] == "customer"

    def test_email_mismatch(self, client: TestClient, seller_headers):
        response = register_provider(client, seller_headers)
        assert response.status_code == 403

    def test_own_profile(self, client: TestClient):
        headers = auth_headers({"email": "garage@example.com", "role": "seller"})
        assert client.get("/api/service-providers", headers=headers).status_code == 404
        register_provider(client, headers)
        assert client.get("/api/service-providers", headers=headers).json()["city"] == "Pune"

    def test_patch_profile(self, client: TestClient):
        headers = auth_headers({"email": "garage@example.com", "role": "seller"})
        register_provider(client, headers)
        response = client.patch("/api/service-providers", json={"city": "Mumbai", "email": "x@y.z"}, headers=headers)
        assert response.json()["city"] == "Mumbai"
        assert response.json()["email"] == "garage@example.com"


class TestProviderServicesAndRequests:
    """Test provider offerings and service requests"""

    def test_offerings(self, client: TestClient):
        headers = auth_headers({"email": "garage@example.com", "role": "seller"})
        register_provider(client, headers)

        created = client.post(
            "/api/provider-services",
            json={"serviceType": "Brake Service", "price": 1500},
            headers=headers,
        )
        assert created.status_code == 201
        assert created.json()["id"] == "garage@example_com__brake-service"

        client.put("/api/provider-services", json={"serviceType": "Brake Service", "active": False}, headers=headers)
        own = client.get("/api/provider-services", headers=headers).json()
        assert own[0]["price"] == 1500
        assert own[0]["active"] is False
        assert client.get("/api/provider-services?scope=public").json() == []

        deleted = client.delete("/api/provider-services?serviceType=Brake Service", headers=headers)
        assert deleted.status_code == 200

    def test_offerings_require_profile(self, client: TestClient, seller_headers):
        response = client.post("/api/provider-services", json={"serviceType": "Wash"}, headers=seller_headers)
        assert response.status_code == 403

    def test_requests(self, client: TestClient):
        headers = auth_headers({"email": "garage@example.com", "role": "seller"})
        register_provider(client, headers)

        created = client.post(
            "/api/service-requests",
            json={"title": "Brake check", "customerName": "Ravi"},
            headers=headers,
        )
        assert created.status_code == 201
        request_id = created.json()["id"]
        assert created.json()["status"] == "pending"

        updated = client.patch("/api/service-requests", json={"id": request_id, "status": "accepted"}, headers=headers)
        assert updated.json()["status"] == "accepted"
        assert len(client.get("/api/service-requests", headers=headers).json()) == 1

    def test_other_providers_request_hidden(self, client: TestClient, db):
        garage = auth_headers({"email": "garage@example.com", "role": "seller"})
        register_provider(client, garage)
        request_id = client.post("/api/service-requests", json={"title": "Job"}, headers=garage).json()["id"]

        rival = auth_headers({"email": "rival@example.com", "role": "seller"})
        client.post("/api/service-providers", json={**PROFILE, "email": "rival@example.com"}, headers=rival)
        response = client.patch("/api/service-requests", json={"id": request_id, "status": "done"}, headers=rival)
        assert response.status_code == 404
