"""FastAPI application wiring for Follow-Up Kit.

This module bootstraps the HTTP API used by the project:

- Configures logging, Prometheus metrics and rate limiting.
- Builds the follow-up runtime (store, classifier, dispatcher, scheduler) on
  startup and starts the scheduler loop unless disabled by configuration.
- Stops the scheduler on shutdown so the process exits without a pass in
  flight.

Tests pass a prebuilt runtime to :func:`create_app`; in that case startup
never touches ``DATABASE_URL``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .core.limits import limiter
from .followups.runtime import FollowUpRuntime, build_runtime
from .routers import follow_ups

logger = logging.getLogger(__name__)


def create_app(runtime: Optional[FollowUpRuntime] = None) -> FastAPI:
    """Create the API application, optionally around an existing runtime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        current: Optional[FollowUpRuntime] = getattr(app.state, "follow_ups", None)
        if current is None:
            current = build_runtime()
            app.state.follow_ups = current
        if current.settings.scheduler_autostart:
            current.scheduler.start()
        try:
            yield
        finally:
            current.scheduler.stop()

    app = FastAPI(title="Follow-Up Kit", version=__version__, lifespan=lifespan)
    if runtime is not None:
        app.state.follow_ups = runtime
    init_logging(app)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    app.include_router(follow_ups.router)

    @app.get("/api/health")
    async def health():
        """Liveness/readiness probe with a minimal JSON body."""
        return {"status": "ok"}

    @app.get("/api/version")
    async def version():
        """Return version information for the application."""
        return {
            "version": __version__,
            "build_date": __build_date__,
            "commit_sha": __commit_sha__,
        }

    # Expose Prometheus metrics
    Instrumentator().instrument(app).expose(
        app, include_in_schema=False, endpoint="/api/metrics"
    )
    return app


app = create_app()
