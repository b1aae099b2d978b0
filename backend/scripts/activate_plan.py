#!/usr/bin/env python3
"""
Activate Plan Script

Puts a user on a plan for one billing period once their payment has been
confirmed outside the app (bank transfer, GCash receipt). Converts an
ongoing trial into an active subscription.

Usage:
    python -m scripts.activate_plan <user_id> "Small Event Org"
"""

import argparse
import asyncio
import logging

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.domain.subscription import PlanName
from app.infrastructure.db.database import get_session_context, init_db
from app.infrastructure.services.subscription_resolver import SubscriptionResolver

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main(user_id: str, plan: str) -> int:
    await init_db()

    async with get_session_context() as session:
        subscription = await SubscriptionResolver(session).activate_plan(user_id, plan)

    if subscription is None:
        print(f"Failed to activate {plan} for {user_id}")
        return 1

    print(f"{user_id}: {subscription.plan_name.value} until {subscription.current_period_end}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Activate a plan for a user")
    parser.add_argument("user_id")
    parser.add_argument("plan", choices=[p.value for p in PlanName])
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.user_id, args.plan)))
