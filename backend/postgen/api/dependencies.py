"""
API Dependencies

FastAPI dependency injection for authentication and application services.

Security: JWT tokens are verified cryptographically using Supabase JWKS (ES256)
with HS256 fallback via the JWT secret. Never decode without verification.
"""

import logging
from typing import Annotated, Optional

import jwt
from jwt import PyJWKClient
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from postgen.config.settings import Settings, get_settings
from postgen.domain.auth import AuthenticatedUser
from postgen.infrastructure.auth.user_directory import (
    SupabaseUserDirectory,
    get_user_directory,
)
from postgen.infrastructure.db.dependencies import (
    SessionDep,
    PlanRepoDep,
    SubscriptionRepoDep,
    UsageRepoDep,
    SavedPostRepoDep,
    WebhookEventRepoDep,
)
from postgen.infrastructure.exceptions import UnauthorizedError
from postgen.infrastructure.generation.webhook_client import (
    GenerationWebhookClient,
    get_generation_client,
)
from postgen.infrastructure.payments.stripe_service import StripeService, get_stripe_service
from postgen.infrastructure.services.post_generation_service import PostGenerationService
from postgen.infrastructure.services.stripe_webhook_service import StripeWebhookProcessor
from postgen.infrastructure.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cached JWKS client; PyJWKClient caches keys internally.
_jwks_client: Optional[PyJWKClient] = None


def _get_jwks_client() -> PyJWKClient:
    """Return a singleton PyJWKClient for the Supabase JWKS endpoint."""
    global _jwks_client
    if _jwks_client is None:
        settings = get_settings()
        jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
        _jwks_client = PyJWKClient(jwks_url, cache_keys=True)
    return _jwks_client


def _decode_with_jwks(token: str, issuer: str) -> dict:
    """Verify JWT using Supabase JWKS endpoint (ES256 asymmetric keys)."""
    client = _get_jwks_client()
    signing_key = client.get_signing_key_from_jwt(token)
    return jwt.decode(
        token,
        signing_key.key,
        algorithms=["ES256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


def _decode_with_secret(token: str, secret: str, issuer: str) -> dict:
    """Verify JWT using HS256 symmetric secret (legacy Supabase signing)."""
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    Verify the Supabase session JWT and return the caller.

    Verification strategy (in order):
      1. JWKS (ES256), supports key rotation automatically.
      2. HS256 with ``SUPABASE_JWT_SECRET``, for legacy signing.

    Raises:
        UnauthorizedError: token missing, expired, or invalid.
    """
    if not credentials:
        raise UnauthorizedError(reason="missing_token")

    token = credentials.credentials
    settings = get_settings()
    issuer = f"{settings.supabase_url}/auth/v1"

    payload: Optional[dict] = None

    # --- Strategy 1: JWKS (ES256) ---
    try:
        payload = _decode_with_jwks(token, issuer)
    except (jwt.exceptions.PyJWKClientError, jwt.InvalidTokenError) as jwks_err:
        logger.debug("JWKS verification failed, trying HS256 fallback: %s", jwks_err)

    # --- Strategy 2: HS256 fallback ---
    if payload is None and settings.supabase_jwt_secret:
        try:
            payload = _decode_with_secret(token, settings.supabase_jwt_secret, issuer)
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError(reason="token_expired")
        except jwt.InvalidTokenError as e:
            logger.warning("HS256 JWT verification also failed: %s", e)

    if payload is None:
        raise UnauthorizedError(reason="invalid_token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError(reason="missing_subject")

    return AuthenticatedUser(id=user_id, email=payload.get("email") or None)


CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


# =============================================================================
# Service providers
# =============================================================================

async def get_subscription_service(
    subscriptions: SubscriptionRepoDep,
    usage: UsageRepoDep,
    plans: PlanRepoDep,
    settings: SettingsDep,
    stripe_service: StripeService = Depends(get_stripe_service),
    user_directory: SupabaseUserDirectory = Depends(get_user_directory),
) -> SubscriptionService:
    return SubscriptionService(
        subscriptions=subscriptions,
        usage=usage,
        plans=plans,
        stripe_service=stripe_service,
        settings=settings,
        user_directory=user_directory,
    )


async def get_webhook_processor(
    subscriptions: SubscriptionRepoDep,
    events: WebhookEventRepoDep,
    settings: SettingsDep,
    stripe_service: StripeService = Depends(get_stripe_service),
) -> StripeWebhookProcessor:
    return StripeWebhookProcessor(
        subscriptions=subscriptions,
        events=events,
        stripe_service=stripe_service,
        period_days=settings.subscription_period_days,
    )


async def get_post_generation_service(
    subscriptions: SubscriptionRepoDep,
    usage: UsageRepoDep,
    client: GenerationWebhookClient = Depends(get_generation_client),
) -> PostGenerationService:
    return PostGenerationService(subscriptions=subscriptions, usage=usage, client=client)


SubscriptionServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]
WebhookProcessorDep = Annotated[StripeWebhookProcessor, Depends(get_webhook_processor)]
PostGenerationServiceDep = Annotated[PostGenerationService, Depends(get_post_generation_service)]


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================

__all__ = [
    "get_current_user",
    "CurrentUserDep",
    "SettingsDep",
    "SessionDep",
    "PlanRepoDep",
    "SavedPostRepoDep",
    "get_subscription_service",
    "get_webhook_processor",
    "get_post_generation_service",
    "SubscriptionServiceDep",
    "WebhookProcessorDep",
    "PostGenerationServiceDep",
]
