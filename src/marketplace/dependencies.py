from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
import structlog

from src.config import get_api_config

logger = structlog.get_logger()

FORWARDED_HEADERS = (
    "x-vercel-forwarded-for",
    "cf-connecting-ip",
    "x-forwarded-for",
    "x-real-ip",
)


def _is_loopback(address: str) -> bool:
    address = address.strip().lower()
    return (
        not address
        or address == "localhost"
        or address == "::1"
        or address.startswith("127.")
        or address.startswith("::ffff:127.")
    )


def get_client_ip(request: Request) -> Optional[str]:
    """First non-loopback address from the proxy headers, then the socket peer"""
    for header in FORWARDED_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        for candidate in value.split(","):
            if not _is_loopback(candidate):
                return candidate.strip()

    peer = request.client.host if request.client else None
    if peer and not _is_loopback(peer):
        return peer
    return None


def get_client_key(request: Request) -> str:
    """
    Get client identifier for rate limiting
    Falls back to a browser fingerprint when no routable address is known
    """
    ip = get_client_ip(request)
    if ip:
        return ip
    peer = get_remote_address(request) if request.client else None
    user_agent = request.headers.get("user-agent", "")[:20]
    language = request.headers.get("accept-language", "")[:10]
    return f"{peer or 'fallback'}-{user_agent}-{language}"


def get_login_key(request: Request) -> str:
    """Rate-limit key for login attempts"""
    return f"auth:{get_client_key(request)}"


_config = get_api_config()

limiter = Limiter(
    key_func=get_client_key,
    default_limits=[_config.default_rate_limit],
    storage_uri="memory://",
    enabled=_config.rate_limit_enabled,
)
