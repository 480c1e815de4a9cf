"""
JWT access and refresh tokens (HS256)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from src.config import get_api_config

JWT_ALGORITHM = "HS256"


class TokenError(Exception):
    """Raised when a token cannot be verified"""


def _build_payload(user: Dict[str, Any], token_type: str, lifetime: timedelta) -> Dict[str, Any]:
    config = get_api_config()
    now = datetime.now(timezone.utc)
    return {
        "userId": user.get("id") or user.get("email"),
        "email": user.get("email"),
        "role": user.get("role") or "customer",
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        "iss": config.jwt_issuer,
        "aud": config.jwt_audience,
    }


def generate_access_token(user: Dict[str, Any]) -> str:
    config = get_api_config()
    lifetime = timedelta(minutes=config.jwt_access_token_expires_minutes)
    payload = _build_payload(user, "access", lifetime)
    return jwt.encode(payload, config.jwt_secret, algorithm=JWT_ALGORITHM)


def generate_refresh_token(user: Dict[str, Any]) -> str:
    config = get_api_config()
    lifetime = timedelta(days=config.jwt_refresh_token_expires_days)
    payload = _build_payload(user, "refresh", lifetime)
    return jwt.encode(payload, config.jwt_secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a token

    Raises:
        TokenError: with a message suitable for API responses
    """
    config = get_api_config()
    try:
        return jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            issuer=config.jwt_issuer,
            audience=config.jwt_audience,
            leeway=config.jwt_clock_tolerance_seconds,
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token has expired") from e
    except jwt.ImmatureSignatureError as e:
        raise TokenError("Token not yet valid") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Invalid token format") from e


def refresh_access_token(refresh_token: str) -> str:
    """Issue a new access token from a valid refresh token"""
    payload = verify_token(refresh_token)
    if payload.get("type") != "refresh":
        raise TokenError("Invalid token type")
    return generate_access_token({
        "id": payload.get("userId"),
        "email": payload.get("email"),
        "role": payload.get("role"),
    })
