"""
FastAPI application entry point for the Tipoko video platform.
"""
import logging
import multiprocessing
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from tipoko.config import settings
from tipoko.database import AsyncSessionLocal, create_tables
from tipoko.logging_config import setup_logging
from tipoko.rate_limit import limiter
from tipoko.auth.dependencies import check_maintenance_mode
from tipoko.routers import (
    auth, users, channels, videos, comments, subscriptions, playlists, search, notifications, analytics,
    ads, earnings, admin, admin_earnings, platform,
)
from tipoko.services.platform_settings import seed_default_settings
from tipoko.services.scheduler import start_scheduler, stop_scheduler

# Get logger for request logging
logger = logging.getLogger(__name__)

# Configure logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("Starting up Tipoko API...")

    await create_tables()
    async with AsyncSessionLocal() as db:
        await seed_default_settings(db)

    # start_scheduler() itself skips non-master workers
    start_scheduler()
    logger.info(f"Startup complete on {multiprocessing.current_process().name}")

    yield
    # Shutdown
    logger.info("Shutting down Tipoko API...")
    stop_scheduler()


app = FastAPI(
    title="Tipoko API",
    description="Backend API for the Tipoko video sharing platform",
    version="0.1.0",
    lifespan=lifespan
)

# Configure rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """Unique/foreign key violations that slipped past the handlers' own checks."""
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Conflicting or invalid data"},
    )


# Parse CORS origins from config
# In development mode, allow all origins for easier local development
if settings.ENVIRONMENT == "development" or settings.DEBUG:
    cors_origins = ["*"]
else:
    cors_origins = (
        ["*"] if settings.CORS_ORIGINS == "*"
        else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with method, path, origin, and response status."""
    origin = request.headers.get("origin", "no-origin")
    logger.info(f"Request: {request.method} {request.url.path} | Origin: {origin}")

    response = await call_next(request)

    logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code}")
    return response

# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response

# Register routers; auth, platform and admin stay reachable in maintenance mode
maintenance = [Depends(check_maintenance_mode)]

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(platform.router, prefix="/api/platform", tags=["platform"])
app.include_router(users.router, prefix="/api/users", tags=["users"], dependencies=maintenance)
app.include_router(channels.router, prefix="/api/channels", tags=["channels"], dependencies=maintenance)
app.include_router(videos.router, prefix="/api/videos", tags=["videos"], dependencies=maintenance)
app.include_router(comments.router, prefix="/api/comments", tags=["comments"], dependencies=maintenance)
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["subscriptions"], dependencies=maintenance)
app.include_router(playlists.router, prefix="/api/playlists", tags=["playlists"], dependencies=maintenance)
app.include_router(search.router, prefix="/api/search", tags=["search"], dependencies=maintenance)
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"], dependencies=maintenance)
app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"], dependencies=maintenance)
app.include_router(ads.router, prefix="/api/ads", tags=["ads"], dependencies=maintenance)
app.include_router(earnings.router, prefix="/api/earnings", tags=["earnings"], dependencies=maintenance)
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(admin_earnings.router, prefix="/api/admin/earnings", tags=["admin-earnings"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
