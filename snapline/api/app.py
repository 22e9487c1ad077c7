"""
Main API application module for Snapline.

This module creates and configures the FastAPI application with all routers
and wires the device command dispatcher and instance launcher client.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from snapline.api.exception_handlers import setup_exception_handlers
from snapline.api.routers import device, instance, pipeline, snapshot
from snapline.services.device_commands import (
    AmqpDeviceCommandDispatcher,
    NullDeviceCommandDispatcher,
)
from snapline.services.launcher import LauncherClient
from snapline.settings import settings
from snapline.utils.db_manager import db_manager
from snapline.utils.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Creates database tables and opens the connections used by deploys.
    """
    await db_manager.create_db_and_tables_async()
    logger.info("Database initialized with async support")

    dispatcher: AmqpDeviceCommandDispatcher | NullDeviceCommandDispatcher
    if settings.device_commands_enabled:
        dispatcher = AmqpDeviceCommandDispatcher()
        await dispatcher.startup()
    else:
        dispatcher = NullDeviceCommandDispatcher()
    launcher = LauncherClient()

    app.state.device_dispatcher = dispatcher
    app.state.instance_runtime = launcher
    logger.info("Application startup complete")

    try:
        yield
    finally:
        if isinstance(dispatcher, AmqpDeviceCommandDispatcher):
            await dispatcher.shutdown()
        await launcher.close()
        await db_manager.close()
        logger.info("Application shutdown")


def create_app(root_path: str = "/") -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        root_path: The root path for the application

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Snapline",
        description="Snapshot deployment pipelines for managed Node-RED instances and devices",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
        root_path=root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(pipeline.router, prefix="/api/pipelines", tags=["Pipelines"])
    app.include_router(snapshot.router, prefix="/api/snapshots", tags=["Snapshots"])
    app.include_router(instance.router, prefix="/api/instances", tags=["Instances"])
    app.include_router(device.router, prefix="/api/devices", tags=["Devices"])

    return app


app = create_app(root_path=settings.root_url)
