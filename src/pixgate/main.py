"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import boto3
import sentry_sdk
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from pixgate.api.middleware import log_requests
from pixgate.api.routes import image_router, router
from pixgate.backends.face_detector import RekognitionFaceDetector
from pixgate.backends.object_store import S3ObjectStore
from pixgate.config import Settings, get_settings
from pixgate.errors import GatewayError
from pixgate.imaging.pool import BackgroundTasks, TransformPool
from pixgate.pipeline import ImagePipeline

logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings) -> ImagePipeline:
    """Create the AWS clients, worker pool, and pipeline for ``settings``."""
    session = boto3.Session(region_name=settings.aws_region)
    s3_client = session.client("s3", endpoint_url=settings.aws_endpoint_url)
    rekognition_client = session.client("rekognition")
    return ImagePipeline(
        store=S3ObjectStore(s3_client),
        detector=RekognitionFaceDetector(rekognition_client),
        pool=TransformPool(settings.max_concurrent, settings.queue_timeout),
        background=BackgroundTasks(),
        max_image_pixels=settings.max_image_pixels,
    )


def init_error_reporting(settings: Settings) -> bool:
    """Start Sentry error reporting when a DSN is configured."""
    if settings.sentry_dsn is None:
        return False
    sentry_sdk.init(
        dsn=settings.sentry_dsn.get_secret_value(),
        environment=settings.environment,
    )
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("botocore").setLevel(logging.WARNING)

    reporting = init_error_reporting(settings)
    logger.info(
        "Starting pixgate (environment=%s, sources=%s, signing=%s, max_concurrent=%s, sentry=%s)",
        settings.environment,
        [source.path for source in settings.sources],
        "required" if settings.require_signature else ("enabled" if settings.secret_salt else "disabled"),
        settings.max_concurrent,
        "enabled" if reporting else "disabled",
    )

    pipeline = build_pipeline(settings)
    app.state.pipeline = pipeline

    logger.info("pixgate ready")
    yield

    logger.info("Shutting down pixgate (%d cache writes pending)", pipeline.background.pending)
    await pipeline.background.drain()
    pipeline.shutdown()
    logger.info("pixgate shutdown complete")


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render a gateway error as ``{"err": ..., "msg": ...}``."""
    logger.error("an error occurred while processing image %s | %s", request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"err": "an error occurred while processing image", "msg": exc.message},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return PlainTextResponse("nothing to see here", status_code=status.HTTP_404_NOT_FOUND)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="pixgate",
        description="On-demand image transformation gateway with a lazily filled object-store cache",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    application.middleware("http")(log_requests)

    application.add_exception_handler(GatewayError, gateway_error_handler)
    application.add_exception_handler(StarletteHTTPException, http_error_handler)

    application.include_router(router)
    application.include_router(image_router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run("pixgate.main:app", host=settings.host, port=settings.port)
