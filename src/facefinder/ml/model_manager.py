"""Cascade manager: resolve, load, and cache cascade classifiers.

Resolves the configured cascade (a named OpenCV-bundled cascade or an
explicit file path), validates it at startup, and hands out one
``cv2.CascadeClassifier`` per worker thread. OpenCV does not guarantee
that a single classifier can be evaluated from several threads at once.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2

from facefinder.errors import DetectionError

if TYPE_CHECKING:
    from facefinder.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelManager(Protocol):
    """Protocol for cascade lifecycle management."""

    @property
    def model_name(self) -> str:
        """Return the active cascade identifier."""
        ...

    def resolve_path(self) -> Path:
        """Return the cascade file path for the configured model."""
        ...

    def get_classifier(self) -> cv2.CascadeClassifier:
        """Return the calling thread's cached classifier."""
        ...

    def loaded_count(self) -> int:
        """Return the number of threads holding a loaded classifier."""
        ...

    def shutdown(self) -> None:
        """Drop all cached classifiers."""
        ...


# ---------------------------------------------------------------------------
# Cascade registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CascadeSpec:
    """Static metadata for a cascade shipped with OpenCV."""

    name: str
    filename: str
    description: str


CASCADE_REGISTRY: dict[str, CascadeSpec] = {
    "haarcascade_frontalface_default": CascadeSpec(
        name="haarcascade_frontalface_default",
        filename="haarcascade_frontalface_default.xml",
        description="Stump-based 24x24 frontal face detector",
    ),
    "haarcascade_frontalface_alt": CascadeSpec(
        name="haarcascade_frontalface_alt",
        filename="haarcascade_frontalface_alt.xml",
        description="Gentle AdaBoost frontal face detector",
    ),
    "haarcascade_frontalface_alt2": CascadeSpec(
        name="haarcascade_frontalface_alt2",
        filename="haarcascade_frontalface_alt2.xml",
        description="Tree-based 20x20 frontal face detector",
    ),
    "haarcascade_profileface": CascadeSpec(
        name="haarcascade_profileface",
        filename="haarcascade_profileface.xml",
        description="Profile face detector",
    ),
}


def bundled_cascade_dir() -> Path:
    """Return the directory holding OpenCV's bundled Haar cascades."""
    return Path(cv2.data.haarcascades)


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class CascadeManager:
    """Resolves the cascade file and caches one classifier per thread."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._local = threading.local()
        self._lock = threading.Lock()
        self._loaded: set[int] = set()
        self._path: Path | None = None

    # -- Public API ---------------------------------------------------------

    @property
    def model_name(self) -> str:
        """Identifier of the active cascade (file stem for explicit paths)."""
        if self._settings.cascade_path is not None:
            return Path(self._settings.cascade_path).stem
        return self._settings.cascade_model

    def resolve_path(self) -> Path:
        """Return the cascade file path, checking that it exists."""
        if self._path is not None:
            return self._path

        if self._settings.cascade_path is not None:
            path = Path(self._settings.cascade_path)
        else:
            spec = self._get_spec(self._settings.cascade_model)
            path = bundled_cascade_dir() / spec.filename

        if not path.is_file():
            raise FileNotFoundError(f"Cascade file not found: {path}")
        self._path = path
        return path

    def get_classifier(self) -> cv2.CascadeClassifier:
        """Return this thread's classifier, loading it on first use."""
        classifier: cv2.CascadeClassifier | None = getattr(self._local, "classifier", None)
        if classifier is not None:
            return classifier

        path = self.resolve_path()
        try:
            classifier = cv2.CascadeClassifier(str(path))
        except cv2.error as exc:
            raise DetectionError(f"Unable to load cascade classifier from {path}: {exc}") from exc
        if classifier.empty():
            raise DetectionError(f"Unable to load cascade classifier from {path}")

        self._local.classifier = classifier
        with self._lock:
            self._loaded.add(threading.get_ident())
        logger.info("Loaded cascade %s in thread %s", self.model_name, threading.current_thread().name)
        return classifier

    def validate(self) -> None:
        """Load the cascade once so a bad model fails at startup."""
        self.get_classifier()
        logger.info("Using cascade %s from %s", self.model_name, self.resolve_path())

    def loaded_count(self) -> int:
        """Number of threads holding a loaded classifier."""
        with self._lock:
            return len(self._loaded)

    def shutdown(self) -> None:
        """Forget all cached classifiers."""
        with self._lock:
            self._loaded.clear()
            self._local = threading.local()
            logger.info("All cascade classifiers cleared")

    # -- Internal -----------------------------------------------------------

    @staticmethod
    def _get_spec(model_name: str) -> CascadeSpec:
        try:
            return CASCADE_REGISTRY[model_name]
        except KeyError:
            raise KeyError(f"Unknown cascade model: {model_name}") from None
