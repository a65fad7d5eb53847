"""Face detection: cascade evaluation plus IoU clustering of raw windows.

The cascade itself is OpenCV's. Windows are taken from its reject-level
output without neighbour grouping, scored by the weight of the last stage
they reached, and merged here by intersection-over-union clustering.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import cv2
import numpy as np

from facefinder.errors import DetectionError
from facefinder.ml.preprocessing import read_image, to_grayscale

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from numpy.typing import NDArray

    from facefinder.config import Settings
    from facefinder.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    """One candidate face.

    ``row`` and ``col`` are the window center in pixels and ``scale`` is
    the side of the square window.
    """

    row: int
    col: int
    scale: int
    score: float


class FaceDetector(Protocol):
    """Protocol for face detectors."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def detect(self, image_path: str | Path) -> list[Detection]:
        """Decode the image at ``image_path`` and detect faces in it."""
        ...

    def detect_image(self, image: NDArray[np.uint8]) -> list[Detection]:
        """Detect faces in an already decoded HxWx3 BGR image."""
        ...


def iou(a: Detection, b: Detection) -> float:
    """Intersection over union of two square detection windows."""
    a_half, b_half = a.scale / 2, b.scale / 2
    overlap_rows = min(a.row + a_half, b.row + b_half) - max(a.row - a_half, b.row - b_half)
    overlap_cols = min(a.col + a_half, b.col + b_half) - max(a.col - a_half, b.col - b_half)
    overlap = max(0.0, overlap_rows) * max(0.0, overlap_cols)
    union = a.scale * a.scale + b.scale * b.scale - overlap
    if union <= 0:
        return 0.0
    return overlap / union


def cluster_detections(detections: Sequence[Detection], iou_threshold: float) -> list[Detection]:
    """Merge overlapping detections into one representative per cluster.

    Seeds are visited in descending score order, skipping detections
    already claimed by an earlier seed. A seed's cluster takes every later
    detection whose IoU with it exceeds the threshold, claimed or not, so a
    detection lying between two seeds contributes to both. The
    representative has the mean position and scale of the members and the
    sum of their scores. Zero-sized seeds form no cluster.
    """
    ordered = sorted(detections, key=lambda d: d.score, reverse=True)
    assigned = [False] * len(ordered)
    clusters: list[Detection] = []

    for i, seed in enumerate(ordered):
        if assigned[i]:
            continue
        members: list[Detection] = []
        for j in range(i, len(ordered)):
            if iou(seed, ordered[j]) > iou_threshold:
                assigned[j] = True
                members.append(ordered[j])
        if not members:
            continue

        n = len(members)
        clusters.append(
            Detection(
                row=sum(m.row for m in members) // n,
                col=sum(m.col for m in members) // n,
                scale=sum(m.scale for m in members) // n,
                score=sum(m.score for m in members),
            )
        )

    return clusters


class CascadeFaceDetector:
    """Face detector backed by an OpenCV cascade classifier."""

    def __init__(self, manager: ModelManager, settings: Settings) -> None:
        self._manager = manager
        self._min_size = settings.min_size
        self._max_size = settings.max_size
        self._scale_factor = settings.scale_factor
        self._iou_threshold = settings.iou_threshold
        self._model_name = manager.model_name

    @property
    def model_name(self) -> str:
        return self._model_name

    def detect(self, image_path: str | Path) -> list[Detection]:
        return self.detect_image(read_image(image_path))

    def detect_image(self, image: NDArray[np.uint8]) -> list[Detection]:
        raw = self.run_cascade(to_grayscale(image))
        faces = cluster_detections(raw, self._iou_threshold)
        logger.debug("Clustered %d raw windows into %d detections", len(raw), len(faces))
        return faces

    def run_cascade(self, gray: NDArray[np.uint8]) -> list[Detection]:
        """Return the raw, ungrouped candidate windows with their stage weights."""
        classifier = self._manager.get_classifier()
        try:
            rects, _levels, weights = classifier.detectMultiScale3(
                gray,
                scaleFactor=self._scale_factor,
                minNeighbors=0,
                minSize=(self._min_size, self._min_size),
                maxSize=(self._max_size, self._max_size),
                outputRejectLevels=True,
            )
        except cv2.error as exc:
            raise DetectionError(f"Cascade evaluation failed: {exc}") from exc

        boxes = np.asarray(rects, dtype=np.int64).reshape(-1, 4)
        scores = np.asarray(weights, dtype=np.float64).reshape(-1)

        detections: list[Detection] = []
        for (x, y, w, h), score in zip(boxes, scores, strict=True):
            scale = int(max(w, h))
            detections.append(
                Detection(
                    row=int(y) + int(h) // 2,
                    col=int(x) + int(w) // 2,
                    scale=scale,
                    score=float(score),
                )
            )
        return detections
