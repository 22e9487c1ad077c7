"""
Async engine and session management.

Request handlers get their session through ``get_async_session``. Deploy jobs
that run after the response has been sent open their own session with
``db_manager.get_async_session_context()``.
"""

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from ..settings import DatabaseDriver, Settings, settings
from ..utils.logger import logger


def _json_default(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_serializer(obj: Any) -> str:
    """Serializer for JSON columns (flows, settings, audit bodies)."""
    return json.dumps(obj, default=_json_default)


class DatabaseManager:
    """Lazily created async engine and session factory.

    Args:
        config: Settings to read the database options from. Defaults to the
            process settings.
    """

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or settings
        self._async_engine: AsyncEngine | None = None
        self._async_session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def url(self) -> str:
        """SQLAlchemy URL using the async driver for the configured database."""
        config = self._config
        match config.database_driver:
            case DatabaseDriver.SQLITE:
                return f"sqlite+aiosqlite:///{config.database_name}.db"
            case DatabaseDriver.POSTGRESQL:
                return config.database_url.replace("postgresql+psycopg2", "postgresql+asyncpg")
            case DatabaseDriver.POSTGRESQL_ASYNC:
                return config.database_url
            case _:
                raise ValueError(f"Async not supported for {config.database_driver}")

    def _create_async_engine(self) -> AsyncEngine:
        url = self.url
        if self._config.database_driver == DatabaseDriver.SQLITE:
            engine = create_async_engine(
                url,
                connect_args={"check_same_thread": False},
                echo=self._config.debug,
                json_serializer=_json_serializer,
            )
        else:
            engine = create_async_engine(
                url,
                echo=self._config.debug,
                pool_size=self._config.database_pool_size,
                max_overflow=0,
                pool_pre_ping=True,
                json_serializer=_json_serializer,
            )
        logger.info(f"Database engine created for {self._config.database_driver.value}")
        return engine

    @property
    def async_engine(self) -> AsyncEngine:
        if self._async_engine is None:
            self._async_engine = self._create_async_engine()
        return self._async_engine

    @property
    def async_session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._async_session_factory is None:
            self._async_session_factory = async_sessionmaker(
                self.async_engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._async_session_factory

    async def create_db_and_tables_async(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.async_engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database tables ready")

    @asynccontextmanager
    async def get_async_session_context(self) -> AsyncGenerator[AsyncSession]:
        """
        Session that commits on exit and rolls back on database errors.

        Usage:
            async with db_manager.get_async_session_context() as session:
                service = PipelineDeployService.for_session(session, dispatcher, runtime)
                await service.run_instance_deploy(job)
        """
        async with self.async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                logger.error(f"Database error: {e}")
                await session.rollback()
                raise

    async def get_async_session(self) -> AsyncGenerator[AsyncSession]:
        async with self.get_async_session_context() as session:
            yield session

    async def close(self) -> None:
        """Dispose the engine; the next use creates a new one."""
        if self._async_engine is not None:
            await self._async_engine.dispose()
            self._async_engine = None
            self._async_session_factory = None
            logger.info("Database engine disposed")

    def __repr__(self) -> str:
        return (
            f"<DatabaseManager(driver={self._config.database_driver}, "
            f"initialized={self._async_engine is not None})>"
        )


db_manager = DatabaseManager()
