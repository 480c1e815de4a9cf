"""
Password hashing with bcrypt
"""

import bcrypt

from src.config import get_api_config


def hash_password(password: str) -> str:
    rounds = get_api_config().bcrypt_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def is_password_hashed(value: str) -> bool:
    """bcrypt hashes start with $2a$, $2b$ or $2y$"""
    return isinstance(value, str) and value.startswith("$2")


def verify_password(password: str, stored: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash"""
    if not password or not stored or not is_password_hashed(stored):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False
