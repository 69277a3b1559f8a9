"""FastAPI entry point for the Classroom Content Insight service."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import get_settings
from errors.exceptions import ContentPipelineError
from models.errors import http_status_for
from services.concurrency import ConcurrencyLimitMiddleware
from services.content_store import RedisContentStore, close_content_store, get_content_store
from services.middleware import RequestIdMiddleware

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Verify the store on startup; cancel runs and close the store on shutdown."""
    store = get_content_store()

    if isinstance(store, RedisContentStore):
        if await store.ping():
            logger.info("Redis connection verified")
        else:
            logger.warning("Redis connection failed, content status will not persist")

    yield

    # Runs must be cancelled while the store is still open so they can record the failure.
    from api.deps import get_pipeline

    if get_pipeline.cache_info().currsize:
        await get_pipeline().shutdown()
    await close_content_store()


app = FastAPI(
    title="Classroom Content Insight",
    description="Background analysis of learning documents and derived teaching views",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ─────────────────────────
# Order matters: CORS → RequestId → ConcurrencyLimit → route handler
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(ConcurrencyLimitMiddleware)


@app.exception_handler(ContentPipelineError)
async def content_pipeline_error_handler(request: Request, exc: ContentPipelineError):
    """Map pipeline errors to ``{"error": CODE, "detail": ...}`` responses."""
    status_code = http_status_for(exc.code)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code.value, "detail": exc.message},
    )


# ── Register routers ────────────────────────────────────────
from api.health import router as health_router  # noqa: E402
from api.content import router as content_router  # noqa: E402
from api.assessment import router as assessment_router  # noqa: E402

app.include_router(health_router)
app.include_router(content_router)
app.include_router(assessment_router)


if __name__ == "__main__":
    if settings.debug:
        # Development: single worker with reload
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.service_port,
            reload=True,
            log_level=settings.log_level,
        )
    else:
        # Single worker: background runs live in this process's event loop.
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.service_port,
            timeout_keep_alive=120,
            log_level=settings.log_level,
        )
