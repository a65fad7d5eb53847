"""Per-image detection pipeline: persist, decode, detect, annotate.

Runs synchronously inside the inference pool; one call handles one
uploaded image from stream to ``DetectionResult``.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import TYPE_CHECKING, BinaryIO

from facefinder.api.schemas import DetectionResult, FaceRect, Point
from facefinder.ml.annotator import annotate
from facefinder.ml.preprocessing import read_image
from facefinder.storage import persist_stream

if TYPE_CHECKING:
    from facefinder.config import Settings
    from facefinder.ml.annotator import Rectangle
    from facefinder.ml.face_detector import FaceDetector

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Render an elapsed time compactly: '850ns', '12.500µs', '3.200ms', '1.203s'."""
    if seconds < 1e-6:
        return f"{round(seconds * 1e9)}ns"
    if seconds < 1e-3:
        return f"{seconds * 1e6:.3f}µs"
    if seconds < 1:
        return f"{seconds * 1e3:.3f}ms"
    return f"{seconds:.3f}s"


def to_face_rect(rect: Rectangle) -> FaceRect:
    return FaceRect(
        Min=Point(X=rect.min_x, Y=rect.min_y),
        Max=Point(X=rect.max_x, Y=rect.max_y),
    )


def process_upload(
    name: str,
    stream: BinaryIO,
    detector: FaceDetector,
    settings: Settings,
    include_image: bool = False,
) -> DetectionResult:
    """Run one uploaded image through the whole pipeline.

    The temp copy of the upload exists only while this call runs.
    """
    start = time.perf_counter()

    with persist_stream(stream, settings.tmp_dir) as path:
        image = read_image(path)
        faces = detector.detect_image(image)
        annotation = annotate(image, faces, settings)

    elapsed = time.perf_counter() - start
    logger.info(
        "Processed %s: %d clusters, %d faces in %s",
        name,
        len(faces),
        len(annotation.rects),
        format_duration(elapsed),
    )

    return DetectionResult(
        ImageName=name,
        TotalFaces=len(annotation.rects),
        Faces=[to_face_rect(r) for r in annotation.rects],
        Time=format_duration(elapsed),
        ImageBase64=base64.b64encode(annotation.image_bytes).decode("ascii") if include_image else None,
    )
