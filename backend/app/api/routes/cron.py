"""
Cron Routes

Endpoints hit by the external scheduler (Vercel/Supabase cron).
Protected by the shared CRON_SECRET bearer token.
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.api.dependencies import ExpiryServiceDep
from app.config.settings import get_settings
from app.domain.subscription import ExpiryResult


logger = logging.getLogger(__name__)


# =============================================================================
# Cron Secret Authentication
# =============================================================================

async def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
) -> bool:
    """
    Verify the ``Authorization: Bearer <CRON_SECRET>`` header.

    The secret is set in environment variable CRON_SECRET.
    """
    expected = get_settings().cron_secret

    if not expected:
        logger.error("CRON_SECRET environment variable not set")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron authentication not configured"
        )

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token, expected):
        logger.warning("Invalid cron secret attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )

    return True


router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.api_route("/subscription-expiry", methods=["GET", "POST"], response_model=ExpiryResult)
async def run_subscription_expiry(service: ExpiryServiceDep):
    """
    Expire lapsed subscriptions and send expiring-soon warnings.

    Idempotent; safe to trigger more than once per day.
    """
    logger.info("Subscription expiry triggered by cron")
    return await service.run()
