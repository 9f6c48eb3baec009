"""
PostGen API - FastAPI Application

Main entry point for the backend API.
Provides endpoints for subscriptions, Stripe webhooks, post generation
and saved posts.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from postgen.config.settings import get_settings
from postgen.infrastructure.db.database import close_db, init_db
from postgen.infrastructure.exceptions import PostGenError

# Missing configuration fails here, at startup.
settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info(f"PostGen Backend starting in {settings.environment} mode...")

    try:
        await init_db()
        logger.info("SQLModel database connection pool initialized")
    except Exception as e:
        logger.warning(f"SQLModel database initialization skipped: {e}")

    yield

    try:
        await close_db()
        logger.info("SQLModel database connection pool closed")
    except Exception as e:
        logger.warning(f"SQLModel database shutdown error: {e}")

    logger.info("PostGen Backend shutting down...")


app = FastAPI(
    title="PostGen API",
    description="Subscription-gated social media post generator",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle malformed request bodies and parameters."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "Ungültige Anfrage",
            "code": "RequestValidationError",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


@app.exception_handler(PostGenError)
async def postgen_error_handler(request: Request, exc: PostGenError):
    """Handle all application errors with their own status code."""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
        for error in exc.errors()
    ]


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "postgen-api"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "PostGen API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from postgen.api.routes import posts, subscriptions, webhooks  # noqa: E402

app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
app.include_router(posts.router, prefix="/api", tags=["Posts"])
