"""Repository for audit log entries."""

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from snapline.models import AuditLogEntry
from snapline.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLogEntry]):
    """Repository for AuditLogEntry model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AuditLogEntry)

    async def list_for_entity(self, entity_type: str, entity_id: str) -> Sequence[AuditLogEntry]:
        """Entries recorded against one entity, oldest first."""
        statement = (
            select(AuditLogEntry)
            .where(AuditLogEntry.entity_type == entity_type, AuditLogEntry.entity_id == entity_id)
            .order_by(AuditLogEntry.id)  # type: ignore[arg-type]
        )
        result = await self.session.execute(statement)
        return result.scalars().all()

    async def list_recent(self, limit: int = 100) -> Sequence[AuditLogEntry]:
        """Most recent entries in insertion order."""
        statement = select(AuditLogEntry).order_by(AuditLogEntry.id.desc()).limit(limit)  # type: ignore[union-attr]
        result = await self.session.execute(statement)
        return list(reversed(result.scalars().all()))
