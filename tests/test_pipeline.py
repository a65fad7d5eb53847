"""Tests for the per-image pipeline."""

from __future__ import annotations

import base64
import io
from pathlib import Path

import cv2
import numpy as np
import pytest

from facefinder.config import Settings
from facefinder.errors import DetectionError
from facefinder.ml.face_detector import Detection
from facefinder.pipeline import format_duration, process_upload


class StubDetector:
    model_name = "stub"

    def __init__(self, detections: list[Detection]) -> None:
        self.detections = detections

    def detect(self, image_path: str | Path) -> list[Detection]:
        raise NotImplementedError

    def detect_image(self, image: np.ndarray) -> list[Detection]:
        return list(self.detections)


def _png_stream() -> io.BytesIO:
    ok, buf = cv2.imencode(".png", np.zeros((80, 100, 3), dtype=np.uint8))
    assert ok
    return io.BytesIO(buf.tobytes())


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [
            (0.0, "0ns"),
            (850e-9, "850ns"),
            (12.5e-6, "12.500µs"),
            (0.0032, "3.200ms"),
            (1.2034, "1.203s"),
            (75.0, "75.000s"),
        ],
    )
    def test_units(self, seconds: float, expected: str) -> None:
        assert format_duration(seconds) == expected


class TestProcessUpload:
    def test_builds_detection_result(self, tmp_path: Path) -> None:
        detector = StubDetector(
            [
                Detection(row=40, col=50, scale=30, score=20.0),
                Detection(row=10, col=10, scale=10, score=1.0),
            ]
        )

        result = process_upload("shot.png", _png_stream(), detector, Settings(tmp_dir=str(tmp_path)))

        assert result.ImageName == "shot.png"
        assert result.TotalFaces == 1
        assert result.Faces[0].Min.X == 35
        assert result.Faces[0].Min.Y == 25
        assert result.Faces[0].Max.X == 65
        assert result.Faces[0].Max.Y == 55
        assert result.Time
        assert result.ImageBase64 is None
        assert list(tmp_path.iterdir()) == []

    def test_include_image(self, tmp_path: Path) -> None:
        result = process_upload(
            "shot.png",
            _png_stream(),
            StubDetector([]),
            Settings(tmp_dir=str(tmp_path)),
            include_image=True,
        )

        assert result.ImageBase64 is not None
        assert base64.b64decode(result.ImageBase64).startswith(b"\xff\xd8")

    def test_undecodable_upload(self, tmp_path: Path) -> None:
        with pytest.raises(DetectionError):
            process_upload("bad.bin", io.BytesIO(b"\x00" * 64), StubDetector([]), Settings(tmp_dir=str(tmp_path)))
        assert list(tmp_path.iterdir()) == []
