"""
Account Status Routes

Records that an account is new, which makes it eligible for the free trial.
Called by the frontend once the user's email is verified.
"""

import logging

from fastapi import APIRouter

from app.api.dependencies import CurrentUserId, ResolverDep
from app.domain.subscription import AccountStatusResponse
from app.infrastructure.exceptions import DatabaseError


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/account-status", response_model=AccountStatusResponse)
async def add_account_status(user_id: CurrentUserId, resolver: ResolverDep):
    if not await resolver.add_new_account_status(user_id):
        raise DatabaseError(
            "Failed to record account status",
            operation="upsert",
            table="account_status",
        )
    return AccountStatusResponse(
        user_id=user_id,
        new_account=await resolver.is_new_account(user_id),
    )
