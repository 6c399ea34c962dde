"""
AdSpace Marketplace — FastAPI Backend
Clients rent advertising media from providers through campaigns; admins
run payments and provider payouts. All data persisted to PostgreSQL.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from adspace.config import get_settings
from adspace.database import init_db, check_db_connection
from adspace.errors import MarketplaceError, ValidationFailed
from adspace.models import User, UserRole
from adspace.routers import (
    auth, users, campaigns, campaign_items, payments, payouts,
    catalog, media, price_rules, cancellations,
)
from adspace.services.auth_service import hash_password
from adspace.utils import error_body, internal_error_detail

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


async def _bootstrap_first_admin():
    """Create first admin if FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD are set and no users exist."""
    if not settings.first_admin_email or not settings.first_admin_password:
        return
    from adspace.database import async_session
    async with async_session() as db:
        r = await db.execute(select(func.count()).select_from(User))
        count = r.scalar() or 0
        if count > 0:
            return  # Users already exist
        admin = User(
            email=settings.first_admin_email.lower(),
            password_hash=hash_password(settings.first_admin_password),
            name="Admin",
            role=UserRole.ADMIN.value,
            is_active=True,
        )
        db.add(admin)
        await db.commit()
        logger.info(f"Bootstrap: created first admin user {admin.email}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting AdSpace Marketplace...")
    try:
        await init_db()
        await _bootstrap_first_admin()
        logger.info("Database initialized — all tables ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # Still yield so app can serve /health (degraded) and logs are visible
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="AdSpace Marketplace",
    description="Advertising media marketplace: campaigns, bookings, payments and provider payouts",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error envelope ────────────────────────────────────────────────────

@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    errors = exc.errors if isinstance(exc, ValidationFailed) else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, errors=errors))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(loc) or "request", []).append(err.get("msg", "Invalid value"))
    return JSONResponse(status_code=422, content=error_body("Validation error", errors=errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=409,
        content=error_body("The request conflicts with existing data"),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=500,
        content=error_body("An internal error occurred", error=internal_error_detail(exc)),
    )


# ── Routers ───────────────────────────────────────────────────────────
app.include_router(auth.router)
app.include_router(catalog.router, prefix="/v1")  # Public
app.include_router(users.router, prefix="/v1")
app.include_router(campaigns.router, prefix="/v1")
app.include_router(campaign_items.router, prefix="/v1")
app.include_router(payments.router, prefix="/v1")
app.include_router(payouts.router, prefix="/v1")
app.include_router(media.router, prefix="/v1")
app.include_router(media.images_router, prefix="/v1")
app.include_router(price_rules.router, prefix="/v1")
app.include_router(cancellations.router, prefix="/v1")


@app.get("/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "AdSpace Marketplace",
        "database": "connected" if db_ok else "disconnected",
    }
