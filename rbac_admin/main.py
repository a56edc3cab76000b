"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rbac_admin.core.config import settings
from rbac_admin.core.middleware import setup_middleware
from rbac_admin.core.exceptions import RBACAdminError, AuthError

from rbac_admin.api.auth import router as auth_router
from rbac_admin.api.profile import router as profile_router
from rbac_admin.api.users import router as users_router
from rbac_admin.api.roles import router as roles_router
from rbac_admin.api.roles import permissions_router
from rbac_admin.api.dashboard import router as dashboard_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("rbac_admin")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s API", settings.APP_NAME)
    if settings.JWT_SECRET == "super-secret-jwt-key-change-in-production":
        logger.warning("JWT_SECRET is the built-in default; set it before deploying")

    yield

    logger.info("Shutting down %s API", settings.APP_NAME)


app = FastAPI(
    title="RBAC Admin API",
    description="Authentication and role-based access control",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


# Exception handler for domain errors
@app.exception_handler(RBACAdminError)
async def rbac_exception_handler(request: Request, exc: RBACAdminError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )

# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(profile_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(permissions_router, prefix="/api")
app.include_router(dashboard_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
