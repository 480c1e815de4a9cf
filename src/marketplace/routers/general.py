from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Request, status
from fastapi.responses import JSONResponse

from src.auth import authenticate_request
from src.config import get_api_config
from src.database import get_db_client
from src.errors import ApiError
from src.listings.dates import now_iso
from src.marketplace.cache import invalidate_vehicle_cache
from src.marketplace.dependencies import get_client_ip, limiter, logger
from src.marketplace.seed import seed_database

router = APIRouter(tags=["General"])


async def _database_health() -> JSONResponse:
    """Ping the configured backend"""
    config = get_api_config()
    try:
        db = get_db_client()
        await db.ping()
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "error",
                "message": "Database connection failed",
                "database": config.database_backend,
                "error": str(e),
                "timestamp": now_iso(),
            },
        )

    return JSONResponse(content={
        "status": "ok",
        "message": "Database connected successfully",
        "database": db.name,
        "timestamp": now_iso(),
    })


async def _run_seed() -> Dict[str, Any]:
    config = get_api_config()
    db = get_db_client()
    counts = await seed_database(db, config)
    invalidate_vehicle_cache()
    return {"success": True, "message": "Database seeded successfully", **counts}


@router.get("/", tags=["Health"])
@limiter.exempt
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "ReRide API",
        "version": "1.0.0",
        "status": "operational",
        "health": "/api/health"
    }


@router.get("/api/health", tags=["Health"])
@limiter.exempt
async def health_check():
    return await _database_health()


@router.get("/api/db-health", tags=["Health"])
@limiter.exempt
async def db_health_check():
    return await _database_health()


@router.get("/api/system", tags=["Health"])
async def system(action: Optional[str] = None):
    if action in (None, "health"):
        return await _database_health()
    if action == "test-connection":
        return await _test_connection()
    raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid system action. Valid actions: health, test-connection")


async def _test_connection() -> Dict[str, Any]:
    config = get_api_config()
    try:
        db = get_db_client()
        await db.ping()
        connected, error = True, None
    except Exception as e:
        logger.warning("connection_test_failed", error=str(e))
        connected, error = False, str(e)
    return {
        "success": connected,
        "message": "Connection successful" if connected else "Connection failed",
        "database": config.database_backend,
        "environment": config.environment,
        "error": error,
        "timestamp": now_iso(),
    }


@router.get("/api/utils/test-connection", tags=["Health"])
async def utils_test_connection():
    return await _test_connection()


@router.post("/api/seed", tags=["Admin"])
async def seed(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    """
    Populate demo users and listings

    In production the request must carry SEED_SECRET_KEY in the
    ``x-seed-secret`` header or the ``secretKey`` body field.
    """
    config = get_api_config()
    if config.is_production:
        if not config.seed_secret_key:
            raise ApiError(status.HTTP_403_FORBIDDEN, "Seeding is disabled: SEED_SECRET_KEY is not configured.")
        provided = request.headers.get("x-seed-secret") or (body or {}).get("secretKey")
        if provided != config.seed_secret_key:
            logger.warning("seed_secret_rejected", ip=get_client_ip(request))
            raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid seed secret.")

    return await _run_seed()


@router.api_route("/api/admin", methods=["GET", "POST"], tags=["Admin"])
async def admin(request: Request, action: Optional[str] = None):
    """Admin-only operational actions"""
    auth = authenticate_request(request)
    if not auth.is_valid:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Authentication required.", error=auth.error)
    if not auth.user.is_admin:
        logger.warning(
            "security_event",
            event_type="unauthorized_admin_access",
            email=auth.user.email,
            role=auth.user.role,
            ip=get_client_ip(request),
            action=action,
        )
        raise ApiError(status.HTTP_403_FORBIDDEN, "Admin access required.", userRole=auth.user.role)

    if action == "health":
        return await _database_health()
    if action == "seed":
        if get_api_config().is_production:
            raise ApiError(status.HTTP_403_FORBIDDEN, "Seeding is not allowed in production.")
        return await _run_seed()

    raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid admin action")
