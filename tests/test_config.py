"""Tests for environment-based settings."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from facefinder.config import Settings, get_settings


class TestSettings:
    def test_defaults_match_detection_function(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.min_size == 20
        assert settings.max_size == 2000
        assert settings.scale_factor == pytest.approx(1.1)
        assert settings.iou_threshold == pytest.approx(0.18)
        assert settings.score_threshold == pytest.approx(5.0)
        assert settings.marker == "rectangle"
        assert settings.stroke_width == 2
        assert settings.jpeg_quality == 100
        assert settings.image_field == "image"
        assert settings.max_body_size == 128 * 1024 * 1024
        assert settings.queue_timeout == pytest.approx(5.0)

    def test_env_overrides(self) -> None:
        env = {
            "FACEFINDER_MARKER": "circle",
            "FACEFINDER_IOU_THRESHOLD": "0.3",
            "FACEFINDER_MARKER_COLOR": "[255, 0, 0]",
        }
        with patch.dict(os.environ, env):
            settings = get_settings()
        assert settings.marker == "circle"
        assert settings.iou_threshold == pytest.approx(0.3)
        assert settings.marker_color == (255, 0, 0)

    def test_rejects_unknown_marker(self) -> None:
        with pytest.raises(ValidationError):
            Settings(marker="triangle")  # type: ignore[arg-type]

    def test_rejects_out_of_range_quality(self) -> None:
        with pytest.raises(ValidationError):
            Settings(jpeg_quality=0)

    def test_scale_factor_must_grow(self) -> None:
        with pytest.raises(ValidationError):
            Settings(scale_factor=1.0)

    def test_queue_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(queue_timeout=0)
