"""
Bearer-token authentication for API routes
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request, status
import structlog

from src.auth.tokens import TokenError, verify_token
from src.auth.validation import VALID_ROLES
from src.errors import ApiError

logger = structlog.get_logger()

INVALID_TOKEN_MESSAGE = "Invalid or expired authentication token"


@dataclass
class TokenUser:
    """Identity carried by a verified access token"""
    user_id: Optional[str]
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def owns(self, email: Optional[str]) -> bool:
        """True if ``email`` belongs to this user"""
        return bool(email) and email.lower().strip() == self.email

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenUser":
        role = payload.get("role")
        return cls(
            user_id=payload.get("userId"),
            email=(payload.get("email") or "").lower().strip(),
            role=role if role in VALID_ROLES else "customer",
        )


@dataclass
class AuthResult:
    user: Optional[TokenUser] = None
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.user is not None


def authenticate_request(request: Request) -> AuthResult:
    """Read and verify the Authorization header without raising"""
    header = request.headers.get("authorization", "")
    if not header.startswith("Bearer "):
        return AuthResult(error="Authentication required")

    return authenticate_token(header[len("Bearer "):].strip())


def authenticate_token(token: str) -> AuthResult:
    """Verify a bare access token; refresh tokens are rejected"""
    if not token:
        return AuthResult(error="Authentication required")

    try:
        payload = verify_token(token)
    except TokenError as e:
        return AuthResult(error=str(e))

    if payload.get("type", "access") != "access":
        return AuthResult(error="Invalid token type")

    user = TokenUser.from_payload(payload)
    if not user.email:
        return AuthResult(error="Invalid token payload")
    return AuthResult(user=user)


async def get_optional_user(request: Request) -> Optional[TokenUser]:
    """Dependency: the authenticated user, or None"""
    return authenticate_request(request).user


async def require_user(request: Request) -> TokenUser:
    """Dependency: the authenticated user; 401 otherwise"""
    result = authenticate_request(request)
    if not result.is_valid:
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            result.error or "Authentication required",
            error=INVALID_TOKEN_MESSAGE
        )
    return result.user


async def require_admin(request: Request) -> TokenUser:
    """Dependency: an authenticated admin; 401 or 403 otherwise"""
    user = await require_user(request)
    if not user.is_admin:
        logger.warning("admin_access_denied", email=user.email, role=user.role, path=request.url.path)
        raise ApiError(status.HTTP_403_FORBIDDEN, "Forbidden. Admin access required.")
    return user
