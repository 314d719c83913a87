# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Little Logbook API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.dependencies import close_limiter
from app.exceptions import (
    LogbookException,
    logbook_exception_handler,
    validation_exception_handler,
)
from app.middleware import RouteGuardMiddleware
from app.routers import callbacks, health, invite_codes, invite_tokens, pages, setup, users
from app.auth import routes as auth_routes
from lib.supabase_client import SupabaseClient

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown:
    - Startup: Log configuration
    - Shutdown: Drop the Supabase client and close the Redis pool
    """
    # Startup
    logger.info(f"Starting Little Logbook API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if not settings.ADMIN_SETUP_KEY:
        logger.info("ADMIN_SETUP_KEY is not set; admin setup endpoints are disabled")

    yield

    # Shutdown
    logger.info("Shutting down Little Logbook API")
    await close_limiter()
    SupabaseClient.reset()


# Create FastAPI application
app = FastAPI(
    title="Little Logbook API",
    description="""
## Family Logbook: Accounts, Roles and Invites

Server side of the Little Logbook family-sharing app. This API owns who
can get in and what they can do once inside.

### Roles

| Role | Can |
|------|-----|
| **admin** | Everything, including managing users and invite codes |
| **family** | Create events, media, stories and help items; edit their own |
| **friend** | Add vault entries and comments; edit their own |

### Joining

1. **Invite code** - an admin creates a code like `FAMILY2024`; signing up
   with it grants the code's role
2. **Invite link** - an admin sends a single-use link to one email address

### Quick Start

```bash
# 1. Check an invite code
curl -X POST http://localhost:8000/api/v1/invite-codes/validate \\
  -H "Content-Type: application/json" \\
  -d '{"code": "FAMILY2024"}'

# 2. Sign up with it
curl -X POST http://localhost:8000/api/v1/auth/signup \\
  -H "Content-Type: application/json" \\
  -d '{"email": "may@example.com", "password": "hunter22", "display_name": "Aunt May", "invite_code": "FAMILY2024"}'
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Auth",
            "description": "Sign in, sign up with an invite code, and the current user",
        },
        {
            "name": "Auth Callbacks",
            "description": "Landing points for links emailed by Supabase Auth",
        },
        {
            "name": "Invite Codes",
            "description": "Validate invite codes and manage them (admin)",
        },
        {
            "name": "Invite Tokens",
            "description": "Single-recipient invite links",
        },
        {
            "name": "Users",
            "description": "User and role management (admin)",
        },
        {
            "name": "Setup",
            "description": "Bootstrap the first administrator",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
        {
            "name": "Pages",
            "description": "Guarded page context for the frontend",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# Route guard - redirects page requests the viewer may not see
app.add_middleware(RouteGuardMiddleware)

# CORS middleware - allows cross-origin requests (added last, so it runs first)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(LogbookException)
async def handle_logbook_exception(request: Request, exc: LogbookException):
    """Handle custom Little Logbook exceptions."""
    return await logbook_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    """Handle malformed request bodies and parameters."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints
app.include_router(
    auth_routes.router,
    prefix="/api/v1/auth",
    tags=["Auth"]
)

# Email-link callbacks
app.include_router(
    callbacks.router,
    prefix="/api/auth",
    tags=["Auth Callbacks"]
)

# Admin bootstrap (/api/admin/setup, /api/auth/simple-setup)
app.include_router(
    setup.router,
    prefix="/api",
    tags=["Setup"]
)

# Invite code endpoints
app.include_router(
    invite_codes.router,
    prefix="/api/v1/invite-codes",
    tags=["Invite Codes"]
)

# Invite token endpoints
app.include_router(
    invite_tokens.router,
    prefix="/api/v1/invite-tokens",
    tags=["Invite Tokens"]
)

# User management endpoints
app.include_router(
    users.router,
    prefix="/api/v1/users",
    tags=["Users"]
)

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Little Logbook API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }


# Page context catch-all (must stay last)
app.include_router(
    pages.router,
    tags=["Pages"]
)
