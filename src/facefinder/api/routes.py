"""API route definitions."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request, Response, status
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from facefinder.api.schemas import (
    AggregateResult,
    CascadeInfo,
    CascadesResponse,
    DetectionResult,
    ErrorResponse,
    HealthResponse,
)
from facefinder.errors import EncodingError, MalformedRequest, MissingInput, StreamError
from facefinder.ml.model_manager import CASCADE_REGISTRY
from facefinder.pipeline import format_duration, process_upload

if TYPE_CHECKING:
    from starlette.datastructures import FormData

    from facefinder.config import Settings
    from facefinder.ml.face_detector import FaceDetector
    from facefinder.ml.inference import InferencePool
    from facefinder.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_detector(request: Request) -> FaceDetector:
    detector: FaceDetector = request.app.state.detector
    return detector


def _get_model_manager(request: Request) -> ModelManager:
    manager: ModelManager = request.app.state.model_manager
    return manager


def _check_envelope(request: Request, settings: Settings) -> None:
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        raise MalformedRequest("Expecting multipart form file")

    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            length = int(content_length)
        except ValueError:
            raise MalformedRequest("Invalid Content-Length header") from None
        if length > settings.max_body_size:
            raise MalformedRequest(f"Request body too large (limit {settings.max_body_size} bytes)")


async def _read_form(request: Request) -> FormData:
    try:
        return await request.form()
    except (MultiPartException, StarletteHTTPException, ValueError) as exc:
        detail = getattr(exc, "message", None) or getattr(exc, "detail", None) or str(exc)
        raise MalformedRequest(f"Unable to parse multipart form: {detail}") from exc


@router.post(
    "/detect-faces",
    response_model=AggregateResult,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Detect and mark faces in uploaded images",
)
async def detect_faces(request: Request, include_image: bool | None = None) -> Response:
    """Detect faces in every file uploaded under the image field, in order.

    The first failing image aborts the whole request; no partial results
    are returned.
    """
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    detector = _get_detector(request)
    if include_image is None:
        include_image = settings.include_image

    _check_envelope(request, settings)
    form = await _read_form(request)
    try:
        uploads = form.getlist(settings.image_field)
        if not uploads:
            raise MissingInput("No image uploaded. Please try again")

        begin = time.perf_counter()
        outcome: list[DetectionResult] = []
        for index, upload in enumerate(uploads):
            if not isinstance(upload, UploadFile):
                raise StreamError("Failed to get media form file")
            name = upload.filename or f"{settings.image_field}-{index}"
            result = await pool.run(
                process_upload,
                name,
                upload.file,
                detector,
                settings,
                include_image,
            )
            outcome.append(result)
        total = time.perf_counter() - begin
    finally:
        await form.close()

    result = AggregateResult(
        Status="success",
        TotalTime=format_duration(total),
        TotalImages=len(outcome),
        Data=outcome,
    )
    try:
        body = result.model_dump_json(exclude_none=True)
    except ValueError as exc:
        raise EncodingError(f"Error encoding output: {exc}") from exc

    logger.info("Processed %d images in %s", len(outcome), result.TotalTime)
    return Response(content=body, media_type="application/json")


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    stats = _get_inference_pool(request).stats()
    manager = _get_model_manager(request)
    return HealthResponse(
        status="ok",
        cascade_model=manager.model_name,
        classifiers_loaded=manager.loaded_count(),
        concurrent_requests=stats.running,
        queue_depth=stats.waiting,
        jobs_completed=stats.completed,
        jobs_failed=stats.failed,
        jobs_refused=stats.refused,
    )


@router.get(
    "/models",
    response_model=CascadesResponse,
    summary="List bundled cascade models",
)
async def list_models(request: Request) -> CascadesResponse:
    """Return the bundled cascades, marking the one in use as active."""
    manager = _get_model_manager(request)
    models = [
        CascadeInfo(
            name=spec.name,
            description=spec.description,
            status="active" if spec.name == manager.model_name else "available",
        )
        for spec in CASCADE_REGISTRY.values()
    ]
    return CascadesResponse(models=models)
