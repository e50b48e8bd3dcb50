"""
Identity service: read-only user lookups.

Users are provisioned by the external identity provider; this core only needs
to resolve and existence-check them.
"""

import uuid
from typing import Optional

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.errors import storage_errors
from src.kernel.models.user import User


class IdentityService:
    """Service for user identity lookups."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get a user by ID."""
        with storage_errors("load user", user_id=user_id):
            result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def user_exists(self, user_id: uuid.UUID) -> bool:
        with storage_errors("check user", user_id=user_id):
            result = await self.session.execute(select(exists().where(User.id == user_id)))
        return bool(result.scalar())
