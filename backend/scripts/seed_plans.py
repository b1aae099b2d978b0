#!/usr/bin/env python3
"""
Seed Subscription Plans Script

Writes the Free, Small Event Org and Large Event Org rows to
subscription_plans from the in-code limit table. Safe to re-run; existing
rows are updated in place.

Usage:
    python -m scripts.seed_plans
"""

import asyncio
import logging

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.domain.subscription import PLAN_CURRENCY, PLAN_LIMITS, PLAN_PRICE_CENTS
from app.infrastructure.db.database import get_session_context, init_db
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def seed_plans() -> int:
    await init_db()

    async with get_session_context() as session:
        count = await SubscriptionRepository(session).sync_plans()

    return count


async def main():
    print("\n=== Subscription Plan Seed Script ===")
    for plan, limits in PLAN_LIMITS.items():
        price = PLAN_PRICE_CENTS[plan] / 100
        print(f"  {plan.value}: {PLAN_CURRENCY} {price:.2f} {limits.as_limits()}")

    count = await seed_plans()

    print("\n=== Seed Complete ===")
    print(f"Plans written: {count}")


if __name__ == "__main__":
    asyncio.run(main())
