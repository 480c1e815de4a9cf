"""
Tests for passwords, JWT tokens and input validation
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from src.auth import (
    TokenError,
    TokenUser,
    generate_access_token,
    generate_refresh_token,
    hash_password,
    is_password_hashed,
    refresh_access_token,
    verify_password,
    verify_token,
)
from src.auth.validation import (
    sanitize_object,
    sanitize_string,
    validate_email,
    validate_password,
    validate_registration,
)
from src.config import get_api_config

USER = {"id": "seller_example_com", "email": "seller@example.com", "role": "seller"}


class TestPasswords:
    """Test bcrypt hashing"""

    def test_hash_and_verify(self):
        hashed = hash_password("secret123")
        assert is_password_hashed(hashed)
        assert hashed != "secret123"
        assert verify_password("secret123", hashed)
        assert not verify_password("wrong123", hashed)

    def test_plaintext_never_verifies(self):
        """Test a stored plaintext value is not treated as a hash"""
        assert not is_password_hashed("secret123")
        assert not verify_password("secret123", "secret123")

    def test_empty_inputs(self):
        assert not verify_password("", hash_password("secret123"))
        assert not verify_password("secret123", "")


class TestTokens:
    """Test JWT issuing and verification"""

    def test_access_token_claims(self):
        payload = verify_token(generate_access_token(USER))
        assert payload["email"] == "seller@example.com"
        assert payload["role"] == "seller"
        assert payload["type"] == "access"
        assert payload["iss"] == "reride-app"
        assert payload["aud"] == "reride-users"

    def test_refresh_issues_new_access_token(self):
        refresh = generate_refresh_token(USER)
        payload = verify_token(refresh_access_token(refresh))
        assert payload["type"] == "access"
        assert payload["email"] == USER["email"]

    def test_access_token_cannot_refresh(self):
        with pytest.raises(TokenError, match="Invalid token type"):
            refresh_access_token(generate_access_token(USER))

    def test_expired_token(self):
        config = get_api_config()
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {
                "email": USER["email"],
                "type": "access",
                "iat": past,
                "exp": past + timedelta(minutes=1),
                "iss": config.jwt_issuer,
                "aud": config.jwt_audience,
            },
            config.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(TokenError, match="expired"):
            verify_token(token)

    def test_wrong_secret(self):
        token = jwt.encode({"email": USER["email"]}, "another-secret", algorithm="HS256")
        with pytest.raises(TokenError):
            verify_token(token)

    def test_garbage_token(self):
        with pytest.raises(TokenError, match="Invalid token format"):
            verify_token("not-a-jwt")

    def test_unknown_role_becomes_customer(self):
        user = TokenUser.from_payload({"email": " Someone@Example.com ", "role": "superuser"})
        assert user.role == "customer"
        assert user.email == "someone@example.com"
        assert user.owns("SOMEONE@example.com")
        assert not user.is_admin


class TestValidation:
    """Test registration validation and sanitization"""

    def test_email_format(self):
        assert validate_email("a@b.co")
        assert not validate_email("not-an-email")
        assert not validate_email("a@b")
        assert not validate_email(None)

    def test_password_rules(self):
        assert validate_password("password1") == []
        errors = validate_password("short")
        assert any("at least 8" in e for e in errors)
        assert any("number" in e for e in validate_password("onlyletters"))

    def test_registration_collects_every_error(self):
        errors = validate_registration({
            "email": "bad",
            "password": "x",
            "name": "A",
            "mobile": "123",
            "role": "owner",
        })
        assert "Valid email address is required" in errors
        assert "Name must be at least 2 characters long" in errors
        assert "Mobile number must contain 10 to 15 digits" in errors
        assert "Role must be customer, seller or admin" in errors

    def test_valid_registration(self):
        assert validate_registration({
            "email": "new@example.com",
            "password": "password1",
            "name": "New User",
            "mobile": "+91 98765-43210",
            "role": "customer",
        }) == []

    def test_sanitize_strips_markup(self):
        assert sanitize_string("<script>alert(1)</script>Hello") == "Hello"
        assert sanitize_string("<b>bold</b>") == "bold"
        assert sanitize_string("javascript:alert(1)") == "alert(1)"
        assert sanitize_string(42) == 42

    def test_sanitize_object_recurses(self):
        cleaned = sanitize_object({"name": "<i>Ann</i>", "tags": ["<b>x</b>"], "nested": {"a": " y "}})
        assert cleaned == {"name": "Ann", "tags": ["x"], "nested": {"a": "y"}}
