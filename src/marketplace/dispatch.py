"""
Legacy single-function path dispatch

On Vercel every ``/api/*`` request can land on one function. The logical
route is recovered from the forwarding headers (or the URL) by ordered
substring matching, and the ASGI path is rewritten so FastAPI's router
handles the request normally.
"""

from typing import Callable, List, Mapping, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import structlog

logger = structlog.get_logger()


def _keep_suffix(prefix: str, marker: str) -> Callable[[str, Mapping[str, str]], str]:
    """Route to ``prefix`` plus whatever follows ``marker`` in the path"""
    def resolve(path: str, query: Mapping[str, str]) -> str:
        suffix = path.split(marker, 1)[1] if marker in path else ""
        suffix = suffix.split("/", 1)[1] if "/" in suffix else ""
        return f"{prefix}/{suffix}".rstrip("/")
    return resolve


def _content_route(path: str, query: Mapping[str, str]) -> str:
    if query.get("type") == "support-tickets":
        return "/api/support-tickets"
    return "/api/faqs"


def _business_route(path: str, query: Mapping[str, str]) -> str:
    if "plans" in path or query.get("type") == "plans":
        return "/api/plans"
    return "/api/payments"


Rule = Tuple[Callable[[str], bool], Callable[[str, Mapping[str, str]], str]]


def _fixed(route: str) -> Callable[[str, Mapping[str, str]], str]:
    return lambda path, query: route


# Order matters: earlier rules win
ROUTE_RULES: List[Rule] = [
    (lambda p: "users" in p, _fixed("/api/users")),
    (lambda p: "vehicles" in p, _fixed("/api/vehicles")),
    (lambda p: "api/admin" in p and "admin/login" not in p, _fixed("/api/admin")),
    (lambda p: "db-health" in p, _fixed("/api/db-health")),
    (lambda p: "seed" in p, _fixed("/api/seed")),
    (lambda p: "vehicle-data" in p, _fixed("/api/vehicle-data")),
    (lambda p: "new-cars" in p, _fixed("/api/new-cars")),
    (lambda p: "system" in p, _fixed("/api/system")),
    (lambda p: "utils" in p, _keep_suffix("/api/utils", "utils")),
    (lambda p: "/ai" in p, _keep_suffix("/api/ai", "/ai")),
    (lambda p: "faqs" in p, _fixed("/api/faqs")),
    (lambda p: "support-tickets" in p, _fixed("/api/support-tickets")),
    (lambda p: "content" in p, _content_route),
    (lambda p: "sell-car" in p, _fixed("/api/sell-car")),
    (lambda p: "payments" in p or "plans" in p or "business" in p, _business_route),
    (lambda p: "conversations" in p, _fixed("/api/conversations")),
    (lambda p: "notifications" in p, _fixed("/api/notifications")),
    (lambda p: "buyer-activity" in p, _fixed("/api/buyer-activity")),
    (lambda p: "login" in p, _fixed("/api/users")),
    (lambda p: "services" in p and "service-" not in p and "provider-services" not in p, _fixed("/api/services")),
    (lambda p: "provider-services" in p, _fixed("/api/provider-services")),
    (lambda p: "service-providers" in p, _fixed("/api/service-providers")),
    (lambda p: "service-requests" in p, _fixed("/api/service-requests")),
    (lambda p: "chat" in p and "chat-websocket" not in p, _keep_suffix("/api/chat", "chat")),
    (lambda p: "health" in p, _fixed("/api/health")),
]


def resolve_route(pathname: str, query: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Map a raw request path onto its canonical API route

    Returns:
        The canonical path, or None if no rule matches
    """
    path = urlsplit(pathname).path if "?" in pathname else pathname
    for matches, route in ROUTE_RULES:
        if matches(path):
            return route(path, query or {})
    return None


def logical_pathname(headers: Mapping[str, str], path: str) -> str:
    """Original path as seen by the platform, before function routing"""
    return headers.get("x-vercel-original-path") or headers.get("x-invoke-path") or path


class PathDispatchMiddleware:
    """
    ASGI middleware that rewrites ``/api/...`` requests to their canonical route
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if not path.startswith("/api"):
            await self.app(scope, receive, send)
            return

        headers = {k.decode("latin-1").lower(): v.decode("latin-1") for k, v in scope.get("headers", [])}
        query = {k: v[0] for k, v in parse_qs(scope.get("query_string", b"").decode("latin-1")).items()}
        pathname = logical_pathname(headers, path)
        route = resolve_route(pathname, query)

        if route and path != route and not path.startswith(route + "/"):
            logger.debug("path_dispatched", original=pathname, route=route)
            scope = dict(scope)
            scope["path"] = route
            scope["raw_path"] = route.encode("latin-1")

        await self.app(scope, receive, send)
