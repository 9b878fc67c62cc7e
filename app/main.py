"""FastAPI application for reel ingestion and summarization.

This is the web service entry point. The lifespan builds the single job
queue, status store, result sink and stage providers, plus the content
service for posts and OCR uploads, and shuts them down in reverse order.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.clients.apify import ApifyClient
from app.config import (
    get_apify_actor_id,
    get_apify_post_actor_id,
    get_apify_token,
    get_apify_wait_seconds,
    get_frontend_origin,
    get_log_json,
    get_log_level,
    get_max_image_bytes,
    get_summarization_model,
    get_transcription_model,
)
from app.middleware.rate_limit import RateLimitMiddleware
from app.queue import JobQueue
from app.routes import content, reels
from app.schemas.job import ModelInfo
from app.services.content_service import ContentService
from app.services.content_store import build_content_sink
from app.services.job_service import ReelJobService
from app.services.media_download import MediaDownloader
from app.services.ocr import OcrService
from app.services.pipeline_orchestrator import PipelineOrchestrator, StageProviders
from app.services.post_resolver import PostResolver
from app.services.reel_resolver import ReelResolver
from app.services.result_store import build_result_sink
from app.services.status_store import StatusStore
from app.services.summarization import SummarizationService
from app.services.transcription import TranscriptionService
from app.utils.filesystem import setup_directories
from app.utils.logging import configure_logging

log = structlog.get_logger()

SERVICE_NAME = "reel-digest"
SERVICE_VERSION = "0.1.0"


def build_apify_client() -> ApifyClient:
    """Construct the Apify client shared by the reel and post resolvers.

    Raises:
        ConfigurationError: If APIFY_TOKEN is not set
    """
    return ApifyClient(
        get_apify_token(),
        actor_id=get_apify_actor_id(),
        wait_seconds=get_apify_wait_seconds(),
        post_actor_id=get_apify_post_actor_id(),
    )


def build_providers(apify: ApifyClient) -> StageProviders:
    """Construct the production stage providers around the shared Apify client."""
    return StageProviders(
        resolver=ReelResolver(apify),
        fetcher=MediaDownloader(),
        transcriber=TranscriptionService(),
        summarizer=SummarizationService(),
    )


async def close_providers(providers: StageProviders) -> None:
    for provider in (
        providers.resolver,
        providers.fetcher,
        providers.transcriber,
        providers.summarizer,
    ):
        close = getattr(provider, "close", None)
        if close is not None:
            await close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of the job queue and its collaborators.

    Startup:
    - Configure structlog, create DATA_DIR/TEMP_DIR
    - Build result sink, stage providers, orchestrator, queue and job service
    - Build content sink and content service (post resolver shares the Apify client)

    Shutdown:
    - Cancel the queue drain task (pending jobs are not persisted)
    - Cancel post resolution tasks
    - Close provider and storage HTTP clients
    """
    configure_logging(level=get_log_level(), json_output=get_log_json())
    setup_directories()

    status_store = StatusStore()
    sink = build_result_sink()
    apify = build_apify_client()
    providers = build_providers(apify)
    orchestrator = PipelineOrchestrator(
        status_store,
        sink,
        providers,
        ModelInfo(
            transcription=get_transcription_model(),
            summarization=get_summarization_model(),
        ),
    )
    queue = JobQueue(status_store, orchestrator.execute_pipeline)
    job_service = ReelJobService(queue, sink)
    content_sink = build_content_sink()
    content_service = ContentService(
        job_service,
        content_sink,
        PostResolver(apify),
        OcrService(),
        max_image_bytes=get_max_image_bytes(),
    )
    app.state.job_service = job_service
    app.state.content_service = content_service
    log.info("service_started", service=SERVICE_NAME)

    yield  # Application runs here

    log.info("service_shutting_down", pending_jobs=len(queue.pending_ids))
    await queue.shutdown()
    await content_service.close()
    await close_providers(providers)
    await content_sink.close()
    await sink.close()


app = FastAPI(
    title="Reel Digest",
    description="Instagram reel transcription and summarization pipeline",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_frontend_origin()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RateLimitMiddleware)

app.include_router(reels.router)
app.include_router(content.router)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """Liveness check."""
    return JSONResponse(content={"status": "ok", "service": SERVICE_NAME})


@app.get("/", status_code=status.HTTP_200_OK)
async def root() -> JSONResponse:
    """API metadata."""
    return JSONResponse(
        content={
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "docs": "/docs",
            "health": "/health",
        }
    )


if __name__ == "__main__":
    import uvicorn

    # Binding to 0.0.0.0 is intentional for container deployments
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",  # noqa: S104
        port=8000,
        reload=True,
    )
