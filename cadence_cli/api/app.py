"""FastAPI application for Cadence."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from cadence_cli import __version__
from cadence_cli.api.error_handlers import register_error_handlers
from cadence_cli.api.middleware_logging import register_request_logging
from cadence_cli.api.routes import router
from cadence_cli.config import CadenceConfig, get_config
from cadence_cli.service import CadenceService

logger = logging.getLogger(__name__)


def create_app(
    service: Optional[CadenceService] = None,
    config: Optional[CadenceConfig] = None,
) -> FastAPI:
    """Build the HTTP app around a CadenceService.

    The service is started when the app starts serving and stopped on
    shutdown.
    """
    if service is None:
        service = CadenceService(config or get_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(title="Cadence", version=__version__, lifespan=lifespan)
    app.state.service = service

    register_request_logging(app)
    register_error_handlers(app)
    app.include_router(router)

    return app
