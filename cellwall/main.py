"""FastAPI application bootstrap and lifecycle wiring."""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from cellwall.controllers.patron_controller import router as patron_router
from cellwall.repository.result_repository import ResultRepository
from cellwall.services.allocation_service import CellAllocationService
from cellwall.services.fetch_service import FetchService
from cellwall.services.pipeline_service import PipelineService
from cellwall.utils.config import Settings, get_settings
from cellwall.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app; the refresher runs only when a source URL is configured."""
    settings = settings or get_settings()
    result_repository = ResultRepository(settings)
    fetch_service = FetchService(settings=settings)
    allocation_service = CellAllocationService(settings=settings)
    pipeline_service = PipelineService(
        settings=settings,
        fetch_service=fetch_service,
        allocation_service=allocation_service,
        repository=result_repository,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        refresher: asyncio.Task | None = None
        if settings.source_url:
            refresher = asyncio.create_task(pipeline_service.run_forever(stop_event))
        else:
            logger.warning("No source URL configured, serving existing result only")
        yield
        stop_event.set()
        if refresher is not None:
            refresher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await refresher

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.include_router(patron_router)

    app.state.settings = settings
    app.state.result_repository = result_repository
    app.state.fetch_service = fetch_service
    app.state.allocation_service = allocation_service
    app.state.pipeline_service = pipeline_service

    return app


app = create_app()
