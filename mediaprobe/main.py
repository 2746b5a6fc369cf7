"""
MediaProbe Main Application

FastAPI application exposing the metadata service to a presentation layer.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from mediaprobe import __version__
from mediaprobe.config import MediaProbeConfig, get_config
from mediaprobe.service import MetadataService
from mediaprobe.utils.logging_setup import setup_logging_from_config

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[MediaProbeConfig] = None,
    service: Optional[MetadataService] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Configuration to use. Loaded from config.yaml at startup when omitted.
        service: Pre-built service, mainly for tests.

    Returns:
        Configured FastAPI application instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Application lifespan manager.

        Startup loads configuration, sets up logging and starts the media
        engine. A failed engine load is kept as the service's error state so
        the API can still report it.
        """
        app_config = config or (service.config if service else get_config())
        if service is None:
            setup_logging_from_config(app_config.logging)
        logger.info(f"Starting MediaProbe v{__version__}")

        app.state.config = app_config
        app.state.service = service or MetadataService(app_config)

        if await app.state.service.start():
            logger.info("Media engine loaded")
        else:
            logger.warning(f"Media engine unavailable: {app.state.service.error.message}")

        yield

        logger.info("Shutting down MediaProbe")
        await app.state.service.close()

    app = FastAPI(
        title="MediaProbe",
        description="Local media metadata extraction",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    from mediaprobe.api import api_router
    app.include_router(api_router)

    return app
