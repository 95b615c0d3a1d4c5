import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bloglite.cache import cache
from bloglite.config import settings
from bloglite.content import build_content_factory, build_renderer
from bloglite.content.render import GithubRenderer
from bloglite.database import async_session
from bloglite.exceptions import BlogliteError
from bloglite.logging_config import configure_logging
from bloglite.middleware import TimingMiddleware
from bloglite.outbox.dispatcher import OutboxDispatcher
from bloglite.outbox.registry import build_registry
from bloglite.projections.aggregate_delete import AggregateDeletePolicy
from bloglite.projections.readmodel import ReadModelProjector
from bloglite.routers import admin, articles, metrics

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging()
    await cache.connect()  # app works without Redis

    renderer = build_renderer()
    app.state.content_factory = build_content_factory(renderer)

    dispatcher = None
    if settings.OUTBOX_ENABLED:
        registry = build_registry(ReadModelProjector(renderer), AggregateDeletePolicy())
        dispatcher = OutboxDispatcher(
            async_session,
            registry,
            batch_size=settings.OUTBOX_BATCH_SIZE,
            max_retries=settings.OUTBOX_MAX_RETRIES,
            interval=settings.OUTBOX_POLL_INTERVAL,
            shutdown_timeout=settings.OUTBOX_SHUTDOWN_TIMEOUT,
            after_commit=cache.invalidate_articles,
        )
        app.state.dispatcher = dispatcher
        await dispatcher.start()
    else:
        logger.warning("Outbox dispatcher disabled; the read model will not be updated")

    yield

    # Shutdown
    if dispatcher is not None:
        await dispatcher.stop()
    if isinstance(renderer, GithubRenderer):
        await renderer.aclose()
    await cache.disconnect()


app = FastAPI(
    title="bloglite",
    description="Blog backend with versioned articles and a transactional outbox",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(BlogliteError)
async def bloglite_error_handler(request: Request, exc: BlogliteError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "code": exc.code},
    )


# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(articles.router)
app.include_router(admin.router)
app.include_router(metrics.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}


def run() -> None:
    """Serve the app with uvicorn on ``settings.HOST``/``settings.PORT``."""
    uvicorn.run("bloglite.main:app", host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
