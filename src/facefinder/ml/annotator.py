"""Draw face markers and compute bounding rectangles for confident detections."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import cv2

from facefinder.errors import StorageError
from facefinder.storage import scoped_temp_file

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy as np
    from numpy.typing import NDArray

    from facefinder.config import Settings
    from facefinder.ml.face_detector import Detection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned face box in pixel space, as absolute corners."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int


@dataclass(frozen=True)
class Annotation:
    """Rectangles for the drawn detections and the encoded annotated image."""

    rects: list[Rectangle]
    image_bytes: bytes


def bounding_rect(detection: Detection) -> Rectangle:
    """Square box of side ``scale`` centred on the detection."""
    left = detection.col - detection.scale // 2
    top = detection.row - detection.scale // 2
    return Rectangle(
        min_x=left,
        min_y=top,
        max_x=left + detection.scale,
        max_y=top + detection.scale,
    )


def annotate(
    image: NDArray[np.uint8],
    detections: Sequence[Detection],
    settings: Settings,
) -> Annotation:
    """Mark every detection scoring above the threshold and encode the result.

    The input image is not modified; markers are drawn on a copy owned by
    this call.

    Raises:
        StorageError: If the encoded image cannot be written or read back.
    """
    canvas = image.copy()
    r, g, b = settings.marker_color
    color = (b, g, r)
    rects: list[Rectangle] = []

    for det in detections:
        if det.score <= settings.score_threshold:
            continue
        rect = bounding_rect(det)
        if settings.marker == "circle":
            cv2.circle(
                canvas,
                (det.col, det.row),
                det.scale // 2,
                color=color,
                thickness=settings.stroke_width,
            )
        else:
            cv2.rectangle(
                canvas,
                (rect.min_x, rect.min_y),
                (rect.max_x, rect.max_y),
                color=color,
                thickness=settings.stroke_width,
            )
        rects.append(rect)

    image_bytes = encode_jpeg(canvas, settings.jpeg_quality, settings.tmp_dir)
    logger.debug("Annotated %d of %d detections", len(rects), len(detections))
    return Annotation(rects=rects, image_bytes=image_bytes)


def encode_jpeg(image: NDArray[np.uint8], quality: int, directory: str | None = None) -> bytes:
    """Encode an image as JPEG through a scoped temp file and return the bytes."""
    with scoped_temp_file(prefix="annotated", suffix=".jpg", directory=directory) as path:
        try:
            written = cv2.imwrite(str(path), image, [cv2.IMWRITE_JPEG_QUALITY, quality])
        except cv2.error as exc:
            raise StorageError(f"Error creating image output: {exc}") from exc
        if not written:
            raise StorageError("Error creating image output")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError("Unable to read back image output") from exc
