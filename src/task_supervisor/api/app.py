"""FastAPI application for the task supervisor."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .routes import router
from .. import __version__
from ..config.supervisor_config import SupervisorConfig
from ..services.factory import build_supervisor
from ..services.supervisor_service import IntelligentSupervisor

logger = logging.getLogger(__name__)


def create_app(
    supervisor: Optional[IntelligentSupervisor] = None,
    config: Optional[SupervisorConfig] = None,
) -> FastAPI:
    """
    Create the HTTP application.

    Args:
        supervisor: Supervisor serving the routes (built from config when None)
        config: Supervisor configuration (environment-driven when None)

    Returns:
        FastAPI application
    """
    config = config or (supervisor.config if supervisor else SupervisorConfig())
    if supervisor is None:
        supervisor = build_supervisor(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        supervisor.context_store.start()
        logger.info("Task supervisor API started")
        yield
        await supervisor.context_store.stop()
        logger.info("Task supervisor API stopped")

    app = FastAPI(
        title="Task Supervisor",
        description="Adaptive strategy selection and hierarchical task execution",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.supervisor = supervisor
    app.state.config = config
    app.state.background_tasks = set()

    app.include_router(router)
    return app
