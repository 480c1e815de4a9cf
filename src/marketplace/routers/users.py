from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from src.auth import (
    TokenError,
    TokenUser,
    authenticate_request,
    generate_access_token,
    generate_refresh_token,
    hash_password,
    is_password_hashed,
    refresh_access_token,
    require_user,
    verify_password,
)
from src.auth.validation import VALID_ROLES, sanitize_object, validate_email, validate_registration
from src.config import get_api_config
from src.database import Collections, DatabaseAdapter, email_to_key, get_db_client
from src.errors import ApiError
from src.listings.dates import now_iso, utcnow
from src.listings.lifecycle import trust_score
from src.marketplace.dependencies import get_login_key, limiter, logger
from src.marketplace.listings import cascade_seller_plan
from src.marketplace.responses import created

router = APIRouter(prefix="/api/users", tags=["Users"])

# Seeded on first login outside production: email -> (password, role, name)
TEST_ACCOUNTS = {
    "admin@test.com": ("password", "admin", "Test Admin"),
    "seller@test.com": ("password123", "seller", "Test Seller"),
    "customer@test.com": ("password", "customer", "Test Customer"),
}

VERIFICATION_FLAGS = ("phoneVerified", "emailVerified", "govtIdVerified")

# Fields only an admin may change through PUT
PROTECTED_FIELDS = (
    "role",
    "subscriptionPlan",
    "planExpiryDate",
    "featuredCredits",
    "usedCertifications",
    "status",
    "isVerified",
)


def normalize_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Public shape of a user document; None for records without an email"""
    if not user or not user.get("email"):
        return None
    email = str(user["email"]).lower().strip()
    data = {k: v for k, v in user.items() if k != "password"}
    data["email"] = email
    data["id"] = user.get("id") or email_to_key(email)
    if data.get("role") not in VALID_ROLES:
        data["role"] = "customer"
    return data


def _token_response(user: Dict[str, Any]) -> Dict[str, Any]:
    public = normalize_user(user)
    return {
        "success": True,
        "user": public,
        "accessToken": generate_access_token(public),
        "refreshToken": generate_refresh_token(public),
    }


def _new_user_document(
    email: str,
    name: str,
    role: str,
    mobile: str = "",
    **extra: Any
) -> Dict[str, Any]:
    timestamp = now_iso()
    document = {
        "email": email,
        "name": name,
        "mobile": mobile,
        "role": role,
        "location": "",
        "status": "active",
        "isVerified": False,
        "subscriptionPlan": "free",
        "featuredCredits": 0,
        "usedCertifications": 0,
        "authProvider": "email",
        "createdAt": timestamp,
        "updatedAt": timestamp,
    }
    document.update({k: v for k, v in extra.items() if v is not None})
    return document


async def _ensure_test_account(db: DatabaseAdapter, email: str, password: str, role: Optional[str]):
    account = TEST_ACCOUNTS.get(email)
    if account is None:
        return None
    test_password, test_role, name = account
    if password != test_password or (role and role != test_role):
        return None

    document = _new_user_document(
        email, name, test_role,
        password=hash_password(test_password),
        isVerified=True
    )
    await db.create(Collections.USERS, document, email_to_key(email))
    logger.info("test_account_created", email=email, role=test_role)
    return await db.find_by_email(email)


# ===== POST ACTIONS =====

async def _login(db: DatabaseAdapter, body: Dict[str, Any]) -> Dict[str, Any]:
    email = (body.get("email") or "").lower().strip()
    password = body.get("password")
    role = body.get("role")

    if not email or not password:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Email and password are required.")
    if not validate_email(email):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid email format.")

    user = await db.find_by_email(email)
    if user is None and not get_api_config().is_production:
        user = await _ensure_test_account(db, email, password, role)
    if user is None:
        logger.info("login_failed", email=email, reason="unknown_user")
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid credentials.")

    stored = user.get("password")
    if not stored:
        if user.get("authProvider", "email") == "email":
            raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid credentials.")
        # OAuth account signing in with a password for the first time
        await db.update(Collections.USERS, user["id"], {"password": hash_password(password)})
    elif is_password_hashed(stored):
        if not verify_password(password, stored):
            logger.info("login_failed", email=email, reason="bad_password")
            raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid credentials.")
    elif stored == password:
        await db.update(Collections.USERS, user["id"], {"password": hash_password(password)})
        logger.info("legacy_password_rehashed", email=email)
    else:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid credentials.")

    if role == "seller" and user.get("isServiceProvider"):
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "This account is registered as a service provider. Please use the service provider login.",
            isServiceProvider=True
        )
    if role and user.get("role") != role:
        raise ApiError(status.HTTP_403_FORBIDDEN, f"User is not a registered {role}.")
    if user.get("status") == "inactive":
        raise ApiError(status.HTTP_403_FORBIDDEN, "Your account has been deactivated.")

    await db.update(Collections.USERS, user["id"], {"lastLoginAt": now_iso()})
    logger.info("user_logged_in", email=email, role=user.get("role"))
    return _token_response(user)


async def _register(db: DatabaseAdapter, body: Dict[str, Any]) -> JSONResponse:
    required = ("email", "password", "name", "mobile", "role")
    if any(not body.get(field) for field in required):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "All fields are required.")
    if body["role"] == "admin":
        raise ApiError(status.HTTP_403_FORBIDDEN, "Admin accounts cannot be registered.")

    errors = validate_registration(body)
    if errors:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed.", errors=errors)

    email = body["email"].lower().strip()
    if await db.find_by_email(email):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "User already exists.")

    profile = sanitize_object({
        "name": body["name"].strip(),
        "mobile": str(body["mobile"]).strip(),
        "location": body.get("location") or "",
        "dealershipName": body.get("dealershipName"),
    })
    document = _new_user_document(
        email,
        profile["name"],
        body["role"],
        mobile=profile["mobile"],
        location=profile["location"],
        dealershipName=profile.get("dealershipName"),
        password=hash_password(body["password"]),
    )
    await db.create(Collections.USERS, document, email_to_key(email))
    logger.info("user_registered", email=email, role=body["role"])

    user = await db.find_by_email(email)
    return created(_token_response(user))


async def _oauth_login(db: DatabaseAdapter, body: Dict[str, Any]) -> Dict[str, Any]:
    email = (body.get("email") or "").lower().strip()
    name = body.get("name")
    role = body.get("role")

    if not email or not name or not role:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Email, name and role are required.")
    if role == "admin":
        raise ApiError(status.HTTP_403_FORBIDDEN, "Admin accounts cannot sign in with OAuth.")
    if role not in ("customer", "seller"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Role must be customer or seller.")
    if not validate_email(email):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid email format.")

    user = await db.find_by_email(email)
    if user is None:
        document = _new_user_document(
            email,
            name,
            role,
            mobile=body.get("mobile") or "",
            isVerified=True,
            authProvider=body.get("authProvider") or "google",
            avatarUrl=body.get("avatarUrl"),
            firebaseUid=body.get("uid"),
        )
        await db.create(Collections.USERS, document, email_to_key(email))
        logger.info("oauth_user_created", email=email, role=role)
        user = await db.find_by_email(email)
    elif user.get("role") != role:
        raise ApiError(status.HTTP_403_FORBIDDEN, f"User is not a registered {role}.")
    elif user.get("status") == "inactive":
        raise ApiError(status.HTTP_403_FORBIDDEN, "Your account has been deactivated.")

    return _token_response(user)


async def _refresh_token(body: Dict[str, Any]) -> Dict[str, Any]:
    token = body.get("refreshToken")
    if not token:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Refresh token is required.")
    try:
        access_token = refresh_access_token(token)
    except TokenError as e:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, str(e))
    return {"success": True, "accessToken": access_token, "refreshToken": token}


@router.post("")
@limiter.limit(lambda: get_api_config().auth_rate_limit, key_func=get_login_key)
async def user_action(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    """Login, registration, OAuth sign-in and token refresh"""
    body = body or {}
    action = body.get("action")
    if not action:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Action is required. Valid actions: login, register, oauth-login, refresh-token"
        )

    if action == "refresh-token":
        return await _refresh_token(body)

    db = get_db_client()
    if action == "login":
        return await _login(db, body)
    if action == "register":
        return await _register(db, body)
    if action == "oauth-login":
        return await _oauth_login(db, body)

    raise ApiError(status.HTTP_400_BAD_REQUEST, f"Invalid action: {action}")


# ===== READ / UPDATE / DELETE =====

@router.get("")
async def get_users(
    request: Request,
    role: Optional[str] = None,
    action: Optional[str] = None,
    email: Optional[str] = None,
):
    """
    Public seller directory, trust scores, and the admin user list
    """
    if role == "seller":
        try:
            db = get_db_client()
            sellers = await db.find_by_field(Collections.USERS, "role", "seller")
        except Exception as e:
            logger.warning("seller_list_unavailable", error=str(e))
            return []
        return [u for u in (normalize_user(s) for s in sellers) if u]

    auth = authenticate_request(request)
    if not auth.is_valid:
        if not action and not email:
            return []
        await require_user(request)

    user = auth.user
    db = get_db_client()

    if action == "trust-score":
        if not email:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Email is required.")
        if not (user.is_admin or user.owns(email)):
            raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to trust score.")
        target = await db.find_by_email(email)
        if target is None:
            raise ApiError(status.HTTP_404_NOT_FOUND, "User not found.")
        return {"success": True, "email": email.lower().strip(), "trustScore": trust_score(target)}

    if email:
        if not (user.is_admin or user.owns(email)):
            raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to user.")
        target = normalize_user(await db.find_by_email(email))
        if target is None:
            raise ApiError(status.HTTP_404_NOT_FOUND, "User not found.")
        return target

    if not user.is_admin:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Forbidden. Admin access required.")

    users = await db.find_all(Collections.USERS)
    return [u for u in (normalize_user(x) for x in users) if u]


def _sync_verification(updates: Dict[str, Any], existing: Dict[str, Any]) -> None:
    """Keep top-level verification flags and verificationStatus consistent"""
    nested = updates.get("verificationStatus")
    if isinstance(nested, dict):
        for flag in VERIFICATION_FLAGS:
            if flag in nested and flag not in updates:
                updates[flag] = nested[flag]

    touched = {flag: updates[flag] for flag in VERIFICATION_FLAGS if flag in updates}
    if touched:
        current = existing.get("verificationStatus") if isinstance(existing.get("verificationStatus"), dict) else {}
        merged = {**current, **(nested if isinstance(nested, dict) else {}), **touched}
        updates["verificationStatus"] = merged


@router.put("")
async def update_user(
    response: Response,
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    """Update a profile; null values remove fields"""
    body = body or {}
    email = (body.get("email") or "").lower().strip()
    if not email:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Email is required.")
    if not (user.is_admin or user.owns(email)):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized to update this user.")

    db = get_db_client()
    existing = await db.find_by_email(email)
    if existing is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "User not found.")

    updates = {k: v for k, v in body.items() if k not in ("email", "id", "_id", "createdAt")}
    if not user.is_admin:
        updates = {k: v for k, v in updates.items() if k not in PROTECTED_FIELDS}
    if not updates:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update.")

    password_updated = False
    if updates.get("password"):
        if not is_password_hashed(updates["password"]):
            updates["password"] = hash_password(updates["password"])
        password_updated = True
    elif "password" in updates:
        updates.pop("password")

    _sync_verification(updates, existing)
    updates["updatedAt"] = now_iso()

    await db.update(Collections.USERS, existing["id"], updates)
    refreshed = await db.find_by_email(email)

    if "planExpiryDate" in updates:
        config = get_api_config()
        await cascade_seller_plan(db, refreshed, utcnow(), config.listing_duration_days)

    logger.info("user_updated", email=email, by=user.email, fields=sorted(updates.keys()))
    if password_updated:
        response.headers["X-Password-Updated"] = "true"
    return {"success": True, "user": normalize_user(refreshed)}


@router.delete("")
async def delete_user(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    email = (body.get("email") or "").lower().strip()
    if not email:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Email is required.")
    if not (user.is_admin or user.owns(email)):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized to delete this user.")

    db = get_db_client()
    existing = await db.find_by_email(email)
    if existing is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "User not found.")

    await db.delete(Collections.USERS, existing["id"])
    logger.info("user_deleted", email=email, by=user.email)
    return {"success": True, "message": "User deleted successfully."}
