"""Image decoding and grayscale conversion ahead of cascade evaluation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import cv2

from facefinder.errors import DetectionError

if TYPE_CHECKING:
    from pathlib import Path

    import numpy as np
    from numpy.typing import NDArray


def read_image(path: str | Path) -> NDArray[np.uint8]:
    """Decode an image file into an HxWx3 BGR uint8 array.

    Raises:
        DetectionError: If the file is not a decodable raster image.
    """
    try:
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    except cv2.error as exc:
        raise DetectionError(f"Unable to decode image: {exc}") from exc
    if image is None or image.size == 0:
        raise DetectionError("Unable to decode image")
    return image


def to_grayscale(image: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """Convert a BGR (or already single-channel) image to grayscale."""
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
