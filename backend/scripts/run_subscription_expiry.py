#!/usr/bin/env python3
"""
Subscription Expiry Script

Runs one expiry pass from the shell, the same job the
/api/cron/subscription-expiry endpoint triggers.

Usage:
    python -m scripts.run_subscription_expiry
"""

import asyncio
import logging

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.infrastructure.db.database import get_session_context, init_db
from app.infrastructure.services.subscription_expiry_service import run_subscription_expiry

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    print("\n=== Subscription Expiry ===")

    await init_db()
    async with get_session_context() as session:
        result = await run_subscription_expiry(session)

    print(f"Ran at: {result.ran_at.isoformat()}")
    print(f"Expired: {result.expired}")
    print(f"Warned: {result.warned}")
    print(f"Errors: {result.errors}")

    if result.errors:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
