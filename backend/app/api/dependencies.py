"""
API Dependencies

FastAPI dependency injection for authentication and subscription services.

Security: JWT tokens are verified cryptographically using Supabase JWKS (ES256)
with HS256 fallback via the JWT secret. Never decode without verification.
"""

import logging
from typing import Annotated, Optional

import jwt
from jwt import PyJWKClient
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config.settings import get_settings
from app.infrastructure.db.dependencies import SessionDep
from app.infrastructure.services.session_cache import TTLCache
from app.infrastructure.services.subscription_expiry_service import SubscriptionExpiryService
from app.infrastructure.services.subscription_resolver import SubscriptionResolver


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cached JWKS client, so keys are not re-fetched on every request.
# PyJWKClient caches keys internally and refreshes ~every 10 min.
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


# Verified token -> user ID, shared across the dependencies of one page load
_session_cache: Optional[TTLCache[str]] = None


def get_session_cache() -> TTLCache[str]:
    global _session_cache
    if _session_cache is None:
        _session_cache = TTLCache(ttl_seconds=get_settings().session_cache_ttl_seconds)
    return _session_cache


def _verify_token(token: str) -> str:
    """
    Verify a Supabase JWT and return its user ID.

    Verification strategy (in order):
      1. JWKS (ES256), preferred, supports key rotation automatically.
      2. HS256 with ``SUPABASE_JWT_SECRET``, fallback for legacy signing.

    Raises:
        HTTPException 401: token expired, invalid, or missing ``sub``.
    """
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
            payload = _decode_with_secret(
                token, settings.supabase_jwt_secret, issuer
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
            )
        except jwt.InvalidTokenError as e:
            logger.warning("HS256 JWT verification also failed: %s", e)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or unverifiable token",
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
        )

    return user_id


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Extract and verify the user ID from the bearer token.

    Successful verifications are memoized per token for a few seconds;
    failures are not cached.

    Raises:
        HTTPException 401: token missing, expired, or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials

    async def fetch() -> str:
        return _verify_token(token)

    return await get_session_cache().get_or_fetch(token, fetch)


# =============================================================================
# Service Providers
# =============================================================================

async def get_subscription_resolver(session: SessionDep) -> SubscriptionResolver:
    return SubscriptionResolver(session)


async def get_expiry_service(session: SessionDep) -> SubscriptionExpiryService:
    return SubscriptionExpiryService(session)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
ResolverDep = Annotated[SubscriptionResolver, Depends(get_subscription_resolver)]
ExpiryServiceDep = Annotated[SubscriptionExpiryService, Depends(get_expiry_service)]
