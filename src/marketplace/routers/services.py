"""
Service marketplace: the admin-managed service catalogue, provider
profiles, the services each provider offers and their job requests
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request, status

from src.auth import TokenUser, authenticate_request, require_admin, require_user
from src.database import Collections, DatabaseAdapter, email_to_key, get_db_client
from src.errors import ApiError
from src.listings.dates import now_iso
from src.marketplace.dependencies import logger
from src.marketplace.models import ProviderService, ServiceProviderProfile, ServiceRequestRecord
from src.marketplace.responses import created, timestamped_id

services_router = APIRouter(prefix="/api/services", tags=["Services"])
providers_router = APIRouter(prefix="/api/service-providers", tags=["Services"])
provider_services_router = APIRouter(prefix="/api/provider-services", tags=["Services"])
service_requests_router = APIRouter(prefix="/api/service-requests", tags=["Services"])

SERVICE_FIELDS = ("name", "display_name", "description", "icon", "base_price", "active", "display_order")
PROVIDER_FIELDS = ("name", "phone", "city", "workshops", "skills", "availability")


def provider_key(user: TokenUser) -> str:
    return email_to_key(user.email)


async def require_provider(db: DatabaseAdapter, user: TokenUser) -> Dict[str, Any]:
    """The caller's provider profile; 403 when they have none"""
    profile = await db.find_by_id(Collections.SERVICE_PROVIDERS, provider_key(user))
    if profile is None:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Service provider profile required.")
    return profile


# ===== SERVICE CATALOGUE =====

def _display_order(service: Dict[str, Any]) -> float:
    try:
        return float(service.get("display_order") or 0)
    except (TypeError, ValueError):
        return 0


@services_router.get("")
async def list_services(request: Request):
    auth = authenticate_request(request)
    include_inactive = auth.is_valid and auth.user.is_admin

    services = await get_db_client().find_all(Collections.SERVICES)
    if not include_inactive:
        services = [s for s in services if s.get("active", True)]
    return sorted(services, key=_display_order)


@services_router.post("")
async def create_service(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    if not body.get("name") or not body.get("display_name"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing required fields: name, display_name")

    service_id = timestamped_id("service")
    timestamp = now_iso()
    record = {k: body[k] for k in SERVICE_FIELDS if k in body}
    record.setdefault("active", True)
    record.setdefault("display_order", 0)
    record.update({"createdAt": timestamp, "updatedAt": timestamp})

    db = get_db_client()
    await db.create(Collections.SERVICES, record, service_id)
    logger.info("service_created", service_id=service_id, by=admin.email)
    return created(await db.find_by_id(Collections.SERVICES, service_id))


@services_router.put("")
async def update_service(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    service_id = body.get("id")
    if not service_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing service id")

    db = get_db_client()
    if await db.find_by_id(Collections.SERVICES, service_id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Service not found")

    updates = {k: body[k] for k in SERVICE_FIELDS if k in body}
    updates["updatedAt"] = now_iso()
    await db.update(Collections.SERVICES, service_id, updates)
    return await db.find_by_id(Collections.SERVICES, service_id)


@services_router.delete("")
async def delete_service(id: Optional[str] = None, admin: TokenUser = Depends(require_admin)):
    if not id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing service id")

    db = get_db_client()
    if await db.find_by_id(Collections.SERVICES, id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Service not found")
    await db.delete(Collections.SERVICES, id)
    logger.info("service_deleted", service_id=id, by=admin.email)
    return {"success": True}


# ===== SERVICE PROVIDERS =====

@providers_router.get("")
async def get_providers(scope: Optional[str] = None, user: TokenUser = Depends(require_user)):
    db = get_db_client()
    if scope == "all":
        return await db.find_all(Collections.SERVICE_PROVIDERS)

    profile = await db.find_by_id(Collections.SERVICE_PROVIDERS, provider_key(user))
    if profile is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Service provider profile not found")
    return profile


async def _register_provider_user(db: DatabaseAdapter, profile: ServiceProviderProfile) -> None:
    """Mirror the provider into users so they show up in the admin panel"""
    user = await db.find_by_email(profile.email)
    if user is None:
        timestamp = now_iso()
        await db.create(Collections.USERS, {
            "email": profile.email,
            "name": profile.name,
            "mobile": profile.phone,
            "location": profile.city,
            "role": "seller",
            "isServiceProvider": True,
            "status": "active",
            "isVerified": False,
            "subscriptionPlan": "free",
            "featuredCredits": 0,
            "usedCertifications": 0,
            "authProvider": "email",
            "createdAt": timestamp,
            "updatedAt": timestamp,
        }, email_to_key(profile.email))
    else:
        await db.update(Collections.USERS, user["id"], {"isServiceProvider": True, "updatedAt": now_iso()})


@providers_router.post("")
async def create_provider(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    if any(not body.get(field) for field in ("name", "email", "phone", "city")):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing required fields: name, email, phone, city")
    if not user.owns(body["email"]):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Email mismatch with authenticated user")

    profile = ServiceProviderProfile(
        name=body["name"],
        email=body["email"].lower().strip(),
        phone=body["phone"],
        city=body["city"],
        workshops=body.get("workshops") or [],
        skills=body.get("skills") or [],
        availability=body.get("availability") or "weekdays",
    )
    record = {**profile.model_dump(mode="json"), "createdAt": now_iso(), "updatedAt": now_iso()}

    db = get_db_client()
    key = provider_key(user)
    if await db.find_by_id(Collections.SERVICE_PROVIDERS, key):
        await db.update(Collections.SERVICE_PROVIDERS, key, record)
    else:
        await db.create(Collections.SERVICE_PROVIDERS, record, key)
    await _register_provider_user(db, profile)

    logger.info("service_provider_registered", email=profile.email, city=profile.city)
    return created(await db.find_by_id(Collections.SERVICE_PROVIDERS, key))


@providers_router.patch("")
async def update_provider(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    db = get_db_client()
    profile = await require_provider(db, user)

    updates = {k: v for k, v in (body or {}).items() if k in PROVIDER_FIELDS}
    updates["updatedAt"] = now_iso()
    await db.update(Collections.SERVICE_PROVIDERS, profile["id"], updates)
    return await db.find_by_id(Collections.SERVICE_PROVIDERS, profile["id"])


# ===== PROVIDER SERVICES =====

def _offering_key(provider_id: str, service_type: str) -> str:
    return f"{provider_id}__{service_type.strip().lower().replace(' ', '-')}"


@provider_services_router.get("")
async def list_provider_services(
    request: Request,
    scope: Optional[str] = None,
    serviceType: Optional[str] = None,
):
    """Own offerings, or every active offering with ``scope=public``"""
    db = get_db_client()
    if scope == "public":
        offerings = await db.find_all(Collections.PROVIDER_SERVICES)
        offerings = [o for o in offerings if o.get("active", True)]
        if serviceType:
            offerings = [o for o in offerings if o.get("serviceType") == serviceType]
        return offerings

    user = await require_user(request)
    profile = await require_provider(db, user)
    return await db.find_by_field(Collections.PROVIDER_SERVICES, "providerId", profile["id"])


async def _upsert_offering(body: Optional[Dict[str, Any]], user: TokenUser) -> Dict[str, Any]:
    body = body or {}
    if not body.get("serviceType"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing serviceType")

    db = get_db_client()
    profile = await require_provider(db, user)
    key = _offering_key(profile["id"], body["serviceType"])
    existing = await db.find_by_id(Collections.PROVIDER_SERVICES, key) or {}

    try:
        offering = ProviderService(
            providerId=profile["id"],
            serviceType=body["serviceType"],
            price=body.get("price", existing.get("price", 0)),
            description=body.get("description", existing.get("description", "")),
            etaMinutes=body.get("etaMinutes", existing.get("etaMinutes")),
            active=body.get("active", existing.get("active", True)),
        )
    except ValueError:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid provider service fields")

    record = offering.model_dump(mode="json")
    if existing:
        await db.update(Collections.PROVIDER_SERVICES, key, record)
    else:
        await db.create(Collections.PROVIDER_SERVICES, record, key)
    logger.info("provider_service_saved", provider=profile["id"], service_type=offering.serviceType)
    return await db.find_by_id(Collections.PROVIDER_SERVICES, key)


@provider_services_router.post("")
async def create_provider_service(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    return created(await _upsert_offering(body, user))


@provider_services_router.put("")
async def update_provider_service(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    return await _upsert_offering(body, user)


@provider_services_router.delete("")
async def delete_provider_service(serviceType: Optional[str] = None, user: TokenUser = Depends(require_user)):
    if not serviceType:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing serviceType")

    db = get_db_client()
    profile = await require_provider(db, user)
    key = _offering_key(profile["id"], serviceType)
    if await db.find_by_id(Collections.PROVIDER_SERVICES, key) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Provider service not found")
    await db.delete(Collections.PROVIDER_SERVICES, key)
    return {"success": True}


# ===== SERVICE REQUESTS =====

@service_requests_router.get("")
async def list_service_requests(user: TokenUser = Depends(require_user)):
    db = get_db_client()
    profile = await require_provider(db, user)
    return await db.find_by_field(Collections.SERVICE_REQUESTS, "providerId", profile["id"])


@service_requests_router.post("")
async def create_service_request(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    if not body.get("title"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing required field: title")

    db = get_db_client()
    profile = await require_provider(db, user)
    request_record = ServiceRequestRecord(
        providerId=profile["id"],
        title=body["title"],
        serviceType=body.get("serviceType") or "General",
        customerName=body.get("customerName") or "",
        customerPhone=body.get("customerPhone") or "",
        vehicle=body.get("vehicle") or "",
        city=body.get("city") or "",
        status=body.get("status") or "pending",
        scheduledAt=body.get("scheduledAt") or "",
        notes=body.get("notes") or "",
    )
    request_id = timestamped_id("request")
    await db.create(Collections.SERVICE_REQUESTS, request_record.model_dump(mode="json"), request_id)
    logger.info("service_request_created", request_id=request_id, provider=profile["id"])
    return created(await db.find_by_id(Collections.SERVICE_REQUESTS, request_id))


@service_requests_router.patch("")
async def update_service_request(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    request_id = body.get("id")
    if not request_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing request id")

    db = get_db_client()
    profile = await require_provider(db, user)
    existing = await db.find_by_id(Collections.SERVICE_REQUESTS, request_id)
    if existing is None or existing.get("providerId") != profile["id"]:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Request not found")

    updates = {k: v for k, v in body.items() if k not in ("id", "providerId", "createdAt")}
    updates["updatedAt"] = now_iso()
    await db.update(Collections.SERVICE_REQUESTS, request_id, updates)
    return await db.find_by_id(Collections.SERVICE_REQUESTS, request_id)
