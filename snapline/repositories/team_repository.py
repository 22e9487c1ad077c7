"""Repository for teams and applications."""

from sqlalchemy.ext.asyncio import AsyncSession

from snapline.models import Application, Device, Instance, Team
from snapline.repositories.base import BaseRepository


class TeamRepository(BaseRepository[Team]):
    """Repository for Team model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Team)

    async def team_of(self, owner: Instance | Device) -> Team | None:
        """Resolve the team an instance or device belongs to.

        Args:
            owner: Instance or device

        Returns:
            The team, or None when the owner is not associated with one
        """
        return await self.get_optional(owner.team_id)

    async def get_application_optional(self, application_id: int | None) -> Application | None:
        """Get an application by ID or return None."""
        if application_id is None:
            return None
        return await self.session.get(Application, application_id)

