"""Generic repository over a shared ``AsyncSession``."""

from typing import Any, Generic, TypeAlias, TypeVar

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select
from sqlmodel import SQLModel, select

from snapline.exceptions.domain import EntityNotFoundError

ModelT = TypeVar("ModelT", bound=SQLModel)
FilterValueT: TypeAlias = str | int | float | bool | None


class BaseRepository(Generic[ModelT]):
    """Lookups and writes shared by all repositories.

    Repositories built on the same session see each other's pending changes.
    ``create``, ``update`` and ``delete`` commit; ``add`` only flushes, so
    several rows can be committed together with ``commit``.
    """

    def __init__(self, session: AsyncSession, model_class: type[ModelT]):
        self.session = session
        self.model_class = model_class

    async def get(self, id: Any) -> ModelT:
        """Get an entity by primary key.

        Raises:
            EntityNotFoundError: If there is no such row
        """
        entity = await self.session.get(self.model_class, id)
        if entity is None:
            raise EntityNotFoundError(f"{self.model_class.__name__} with ID {id} not found")
        return entity

    async def get_optional(self, id: Any) -> ModelT | None:
        """Get an entity by primary key; a ``None`` key gives ``None``."""
        if id is None:
            return None
        return await self.session.get(self.model_class, id)

    def _filtered(self, statement: Select, filters: dict[str, FilterValueT]) -> Select:
        for field, value in filters.items():
            statement = statement.where(getattr(self.model_class, field) == value)
        return statement

    async def get_by(self, **filters: FilterValueT) -> ModelT | None:
        result = await self.session.execute(self._filtered(select(self.model_class), filters))
        return result.scalars().first()

    async def count(self, **filters: FilterValueT) -> int:
        statement = self._filtered(select(func.count()).select_from(self.model_class), filters)
        result = await self.session.execute(statement)
        return result.scalar() or 0

    async def create(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return entity

    async def update(
        self, entity: ModelT, update_data: dict[str, Any], exclude_unset: bool = True
    ) -> ModelT:
        """Set fields from ``update_data`` and commit.

        Args:
            entity: Entity to update
            update_data: Field values; unknown fields are ignored
            exclude_unset: Skip ``None`` values. Pass False to clear fields,
                e.g. a device's target snapshot.
        """
        for field, value in update_data.items():
            if exclude_unset and value is None:
                continue
            if hasattr(entity, field):
                setattr(entity, field, value)

        await self.session.commit()
        await self.session.refresh(entity)
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self.session.delete(entity)
        await self.session.commit()

    async def refresh(self, entity: ModelT, attribute_names: list[str] | None = None) -> ModelT:
        await self.session.refresh(entity, attribute_names)
        return entity

    async def add(self, entity: ModelT) -> ModelT:
        """Add without committing; flushes to assign the primary key."""
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
