"""Pydantic response schemas for the FaceFinder API.

Detection payload field names are PascalCase to keep the established
wire format of the face detection function.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Point(BaseModel):
    """A pixel position."""

    X: int
    Y: int


class FaceRect(BaseModel):
    """Face bounding box as absolute top-left and bottom-right corners."""

    Min: Point
    Max: Point


class DetectionResult(BaseModel):
    """Outcome for one uploaded image."""

    ImageName: str
    TotalFaces: int = Field(ge=0)
    Faces: list[FaceRect]
    Time: str = Field(description="Elapsed processing time, e.g. '12.5ms'")
    ImageBase64: str | None = Field(default=None, description="Annotated JPEG, when requested")


class AggregateResult(BaseModel):
    """Response body for a detection request."""

    Status: str = "success"
    TotalTime: str
    TotalImages: int = Field(ge=0)
    Data: list[DetectionResult]


class CascadeInfo(BaseModel):
    """Information about a bundled cascade model."""

    name: str
    description: str
    status: str = Field(description="Model status: 'active' or 'available'")


class CascadesResponse(BaseModel):
    """Response for the models listing endpoint."""

    models: list[CascadeInfo]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    cascade_model: str
    classifiers_loaded: int
    concurrent_requests: int
    queue_depth: int
    jobs_completed: int
    jobs_failed: int
    jobs_refused: int


class ErrorResponse(BaseModel):
    """Standard error response (served as text/plain)."""

    detail: str
