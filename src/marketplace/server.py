"""
ReRide Marketplace API Server
FastAPI application serving the vehicle marketplace under /api
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import structlog

from src.config import get_api_config
from src.errors import ApiError, DatabaseNotConfiguredError
from src.logging_config import configure_logging
from src.marketplace.dependencies import limiter
from src.marketplace.dispatch import PathDispatchMiddleware
from src.marketplace.routers import (
    ai,
    catalog,
    chat,
    content,
    conversations,
    general,
    notifications,
    payments,
    plans,
    services,
    submissions,
    users,
    vehicles,
)
from src.marketplace.tasks import run_listing_maintenance
from src.marketplace.websocket import get_websocket_manager

logger = structlog.get_logger()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the FastAPI app"""
    config = get_api_config()
    configure_logging(config)
    logger.info(
        "api_starting",
        host=config.api_host,
        port=config.api_port,
        environment=config.environment,
        database=config.database_backend
    )

    sweep_task = None
    if config.listing_sweep_enabled:
        sweep_task = asyncio.create_task(run_listing_maintenance())

    yield

    if sweep_task:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    await get_websocket_manager().close_all()
    logger.info("api_shutting_down")


# Initialize FastAPI app
app = FastAPI(
    title="ReRide Marketplace API",
    description="Vehicle marketplace API: listings, plans, payments, chat and admin tooling",
    version="1.0.0",
    lifespan=lifespan
)
app.state.limiter = limiter


# ===== EXCEPTION HANDLERS =====

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "reason": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    retry_after = int(exc.limit.limit.get_expiry()) if getattr(exc, "limit", None) else 60
    logger.warning("rate_limit_exceeded", path=request.url.path, limit=str(exc.detail))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "success": False,
            "reason": "Too many requests. Please try again later.",
            "retryAfter": retry_after,
        },
        headers={"Retry-After": str(retry_after)}
    )


@app.exception_handler(DatabaseNotConfiguredError)
async def database_not_configured_handler(request: Request, exc: DatabaseNotConfiguredError):
    logger.error("database_not_configured", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "reason": str(exc), "fallback": True}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "reason": "Internal server error", "error": str(exc)}
    )


# ===== MIDDLEWARE =====
# Starlette wraps in reverse order: the last one added runs first

app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    if request.method == "HEAD" or request.method == "OPTIONS":
        response = Response(status_code=status.HTTP_200_OK)
    else:
        response = await call_next(request)

    response.headers.update(SECURITY_HEADERS)
    if get_api_config().is_production:
        response.headers["Strict-Transport-Security"] = HSTS_HEADER
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_api_config().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(PathDispatchMiddleware)


# ===== ROUTERS =====

app.include_router(general.router)
app.include_router(users.router)
app.include_router(vehicles.router)
app.include_router(catalog.vehicle_data_router)
app.include_router(catalog.new_cars_router)
app.include_router(plans.router)
app.include_router(payments.router)
app.include_router(conversations.router)
app.include_router(conversations.ws_router)
app.include_router(notifications.router)
app.include_router(chat.router)
app.include_router(content.faqs_router)
app.include_router(content.tickets_router)
app.include_router(submissions.sell_car_router)
app.include_router(submissions.buyer_activity_router)
app.include_router(services.services_router)
app.include_router(services.providers_router)
app.include_router(services.provider_services_router)
app.include_router(services.service_requests_router)
app.include_router(ai.router)


if __name__ == "__main__":
    import uvicorn

    config = get_api_config()
    uvicorn.run(
        "src.marketplace.server:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.reload
    )
