"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from facefinder.api.routes import router
from facefinder.config import get_settings
from facefinder.errors import FaceFinderError
from facefinder.ml.face_detector import CascadeFaceDetector
from facefinder.ml.inference import InferencePool
from facefinder.ml.model_manager import CascadeManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    model_manager = CascadeManager(settings)
    logger.info(
        "Starting FaceFinder (cascade=%s, max_concurrent=%s, min_size=%s, max_size=%s, iou=%.2f)",
        model_manager.model_name,
        settings.max_concurrent,
        settings.min_size,
        settings.max_size,
        settings.iou_threshold,
    )
    model_manager.validate()
    app.state.model_manager = model_manager
    app.state.detector = CascadeFaceDetector(model_manager, settings)

    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    logger.info("FaceFinder ready")
    yield

    logger.info("Shutting down FaceFinder")
    inference_pool.shutdown()
    model_manager.shutdown()
    logger.info("FaceFinder shutdown complete")


async def pipeline_error_handler(request: Request, exc: FaceFinderError) -> PlainTextResponse:
    """Render a pipeline error as a plain-text body with its own status."""
    if exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="FaceFinder",
        description="Cascade-classifier face detection and annotation for uploaded images",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(FaceFinderError, pipeline_error_handler)  # type: ignore[arg-type]
    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
