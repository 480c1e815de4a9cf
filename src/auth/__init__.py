"""
Authentication module for ReRide
Provides password hashing, JWT tokens and request authentication
"""

from src.auth.dependencies import (
    AuthResult,
    TokenUser,
    authenticate_request,
    authenticate_token,
    get_optional_user,
    require_admin,
    require_user,
)
from src.auth.passwords import hash_password, is_password_hashed, verify_password
from src.auth.tokens import (
    TokenError,
    generate_access_token,
    generate_refresh_token,
    refresh_access_token,
    verify_token,
)

__all__ = [
    "AuthResult",
    "TokenUser",
    "authenticate_request",
    "authenticate_token",
    "get_optional_user",
    "require_admin",
    "require_user",
    "hash_password",
    "is_password_hashed",
    "verify_password",
    "TokenError",
    "generate_access_token",
    "generate_refresh_token",
    "refresh_access_token",
    "verify_token",
]
