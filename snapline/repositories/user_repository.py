"""Repository for User-specific database operations."""

from sqlalchemy.ext.asyncio import AsyncSession

from snapline.models import User
from snapline.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> User | None:
        return await self.get_by(email=email)
