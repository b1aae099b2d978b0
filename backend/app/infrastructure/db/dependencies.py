"""
Dependency Injection Providers for EventTria

Database session dependency. Service-level providers (resolver, expiry job)
live in app.api.dependencies.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.database import get_session


SessionDep = Annotated[AsyncSession, Depends(get_session)]
