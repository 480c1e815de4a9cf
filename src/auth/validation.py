"""
Input validation and sanitization for user-submitted data
"""

import re
from typing import Any, Dict, List

VALID_ROLES = ("customer", "seller", "admin")

EMAIL_MAX_LENGTH = 254
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_TAG_PATTERN = re.compile(r"<[^>]*>")
_SCRIPT_PATTERN = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_JS_URI_PATTERN = re.compile(r"javascript:", re.IGNORECASE)
_MOBILE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


def validate_email(email: str) -> bool:
    if not isinstance(email, str):
        return False
    return len(email) <= EMAIL_MAX_LENGTH and bool(_EMAIL_PATTERN.match(email.strip()))


def validate_password(password: str) -> List[str]:
    """Return a list of rule violations; empty means the password is acceptable"""
    errors = []
    if not isinstance(password, str):
        return ["Password is required"]
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Password must be less than {PASSWORD_MAX_LENGTH} characters")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    return errors


def sanitize_string(value: Any) -> Any:
    """Strip markup and script URIs from a string; other types pass through"""
    if not isinstance(value, str):
        return value
    cleaned = _SCRIPT_PATTERN.sub("", value)
    cleaned = _TAG_PATTERN.sub("", cleaned)
    cleaned = _JS_URI_PATTERN.sub("", cleaned)
    return cleaned.strip()


def sanitize_object(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively sanitize every string in a JSON-like structure"""
    def _clean(value):
        if isinstance(value, dict):
            return {k: _clean(v) for k, v in value.items()}
        if isinstance(value, list):
            return [_clean(v) for v in value]
        return sanitize_string(value)

    return _clean(data)


def validate_registration(data: Dict[str, Any]) -> List[str]:
    """Validate a registration payload and return every problem found"""
    errors = []

    email = data.get("email")
    if not email or not validate_email(email):
        errors.append("Valid email address is required")

    errors.extend(validate_password(data.get("password")))

    name = (data.get("name") or "").strip()
    if len(name) < NAME_MIN_LENGTH:
        errors.append(f"Name must be at least {NAME_MIN_LENGTH} characters long")
    elif len(name) > NAME_MAX_LENGTH:
        errors.append(f"Name must be less than {NAME_MAX_LENGTH} characters")

    mobile = re.sub(r"[\s-]", "", str(data.get("mobile") or ""))
    if not _MOBILE_PATTERN.match(mobile):
        errors.append("Mobile number must contain 10 to 15 digits")

    if data.get("role") not in VALID_ROLES:
        errors.append("Role must be customer, seller or admin")

    return errors
