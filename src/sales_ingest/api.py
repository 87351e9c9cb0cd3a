"""HTTP surface for triggering and inspecting data refreshes.

Endpoints:
    POST /api/data/refresh  Run a refresh now and report the outcome.
    GET  /api/data/refresh  Outcome of the most recent refresh.

When ``refresh_on_startup`` is set, the app starts a background refresh
as it boots and cancels it on shutdown if it is still running.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from sales_ingest.config import IngestConfig
from sales_ingest.exceptions import RefreshInProgress
from sales_ingest.runner import RefreshRunner
from sales_ingest.store.schema import get_engine

logger = logging.getLogger(__name__)


def get_runner(request: Request) -> RefreshRunner:
    return request.app.state.runner


def create_app(config: IngestConfig, runner: RefreshRunner | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration for the refresh pipeline.
        runner: Runner to use; by default one is built from ``config``.

    Returns:
        Configured FastAPI instance.
    """
    if runner is None:
        runner = RefreshRunner(get_engine(config.database_url), config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if config.refresh_on_startup:
            logger.info("Launching startup data refresh")
            app.state.startup_refresh = runner.start_background()
        yield
        await run_in_threadpool(runner.shutdown)

    app = FastAPI(title="Sales Ingest", lifespan=lifespan)
    app.state.runner = runner
    app.state.startup_refresh = None

    @app.post("/api/data/refresh")
    async def refresh(runner: RefreshRunner = Depends(get_runner)) -> dict:
        """Refresh the store from the sales file."""
        try:
            result = await run_in_threadpool(runner.run, False)
        except RefreshInProgress as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

        if not result.ok:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error
            )
        return {"status": "success", "records": result.records, "batches": result.batches}

    @app.get("/api/data/refresh")
    async def refresh_status(runner: RefreshRunner = Depends(get_runner)) -> dict:
        """Report the most recent refresh."""
        if runner.last_result is None:
            return {"status": "running" if runner.running else "idle"}
        body = runner.last_result.to_dict()
        body["running"] = runner.running
        return body

    return app
