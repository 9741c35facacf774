"""Tests for settings."""

import pytest
from pydantic import ValidationError

from acrodetect.config import Settings


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ACRODETECT_CONFIDENCE_THRESHOLD", raising=False)
        monkeypatch.delenv("ACRODETECT_MODEL_PATH", raising=False)
        config = Settings(_env_file=None)
        assert config.model_path == "FFDNet-S"
        assert config.confidence_threshold == 0.4
        assert config.iou_threshold == 0.45
        assert config.target_size == 1216
        assert config.strip_existing_acro_fields is False
        assert config.onnx_providers == ["CPUExecutionProvider"]

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ACRODETECT_CONFIDENCE_THRESHOLD", "0.6")
        monkeypatch.setenv("ACRODETECT_STRIP_EXISTING_ACRO_FIELDS", "true")
        config = Settings(_env_file=None)
        assert config.confidence_threshold == 0.6
        assert config.strip_existing_acro_fields is True

    @pytest.mark.parametrize("value", [0.05, 1.2])
    def test_threshold_out_of_range(self, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, confidence_threshold=value)

    @pytest.mark.parametrize("value", [0.1, 1.0])
    def test_threshold_bounds_inclusive(self, value):
        assert Settings(_env_file=None, confidence_threshold=value).confidence_threshold == value
