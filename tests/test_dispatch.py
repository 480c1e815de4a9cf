"""
Tests for legacy path dispatch and the TTL cache
"""

import time

import pytest
from fastapi.testclient import TestClient

from src.marketplace.cache import TTLCache
from src.marketplace.dispatch import logical_pathname, resolve_route


class TestRouteResolution:
    """Test ordered substring matching"""

    @pytest.mark.parametrize("path,expected", [
        ("/api/users", "/api/users"),
        ("/api/login", "/api/users"),
        ("/api/vehicles", "/api/vehicles"),
        ("/api/admin", "/api/admin"),
        ("/api/db-health", "/api/db-health"),
        ("/api/health", "/api/health"),
        ("/api/seed", "/api/seed"),
        ("/api/vehicle-data", "/api/vehicle-data"),
        ("/api/new-cars", "/api/new-cars"),
        ("/api/system", "/api/system"),
        ("/api/utils/test-connection", "/api/utils/test-connection"),
        ("/api/ai/gemini", "/api/ai/gemini"),
        ("/api/faqs", "/api/faqs"),
        ("/api/support-tickets", "/api/support-tickets"),
        ("/api/sell-car", "/api/sell-car"),
        ("/api/payments", "/api/payments"),
        ("/api/plans", "/api/plans"),
        ("/api/conversations", "/api/conversations"),
        ("/api/notifications", "/api/notifications"),
        ("/api/buyer-activity", "/api/buyer-activity"),
        ("/api/services", "/api/services"),
        ("/api/provider-services", "/api/provider-services"),
        ("/api/service-providers", "/api/service-providers"),
        ("/api/service-requests", "/api/service-requests"),
        ("/api/chat/history", "/api/chat/history"),
        ("/api/chat", "/api/chat"),
    ])
    def test_canonical_paths(self, path, expected):
        assert resolve_route(path) == expected

    def test_earlier_rules_win(self):
        """Test a path naming two resources goes to the first rule"""
        assert resolve_route("/api/users/vehicles") == "/api/users"

    def test_admin_login_is_not_admin(self):
        assert resolve_route("/api/admin/login") == "/api/users"

    def test_content_type_query(self):
        assert resolve_route("/api/content", {"type": "support-tickets"}) == "/api/support-tickets"
        assert resolve_route("/api/content") == "/api/faqs"

    def test_business_type_query(self):
        assert resolve_route("/api/business", {"type": "plans"}) == "/api/plans"
        assert resolve_route("/api/business") == "/api/payments"

    def test_unknown_path(self):
        assert resolve_route("/api/unknown") is None

    def test_query_string_ignored(self):
        assert resolve_route("/api/vehicles?type=data") == "/api/vehicles"

    def test_original_path_header(self):
        headers = {"x-vercel-original-path": "/api/faqs"}
        assert logical_pathname(headers, "/api/main") == "/api/faqs"
        assert logical_pathname({}, "/api/main") == "/api/main"


class TestDispatchMiddleware:
    """Test requests are rewritten before routing"""

    def test_legacy_content_path(self, client: TestClient):
        response = client.get("/api/content?type=faqs")
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_original_path_header_routes_request(self, client: TestClient):
        response = client.get("/api/main", headers={"x-vercel-original-path": "/api/plans"})
        assert response.status_code == 200
        assert len(response.json()) == 3

    def test_unmatched_path_is_404(self, client: TestClient):
        response = client.get("/api/unknown")
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestTTLCache:
    """Test expiring cache entries"""

    def test_set_and_get(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("key", {"a": 1})
        assert cache.get("key") == {"a": 1}
        assert len(cache) == 1

    def test_expired_entry_dropped(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("key", "value", ttl_seconds=0)
        assert cache.get("key") is None

    def test_invalidate(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("key", "value")
        cache.invalidate("key")
        assert cache.get("key") is None

    def test_cleanup(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("old", 1, ttl_seconds=0)
        cache.set("fresh", 2)
        time.sleep(0.01)
        assert cache.cleanup() == 1
        assert cache.get("fresh") == 2
