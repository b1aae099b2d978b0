# API Routes Module
from app.api.routes import (
    subscriptions,
    account_status,
    cron,
)

__all__ = [
    "subscriptions",
    "account_status",
    "cron",
]
