"""Tests for model resolution and session caching."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from acrodetect.models import ErrorCode, PipelineError
from acrodetect.pipeline.stage_session import (
    MODEL_REGISTRY,
    SessionCache,
    download_model,
    resolve_model_path,
    run_session,
)


def _response(chunks):
    response = MagicMock()
    response.__enter__.return_value = response
    response.iter_content.return_value = chunks
    return response


class TestModelRegistry:
    """Tests for built-in model entries."""

    def test_entries(self):
        assert set(MODEL_REGISTRY) == {"FFDNet-S", "FFDNet-L"}
        assert MODEL_REGISTRY["FFDNet-S"].url.endswith("/FFDNet-S.onnx")
        assert MODEL_REGISTRY["FFDNet-L"].repo_id == "jbarrow/FFDNet-L-cpu"
        assert MODEL_REGISTRY["FFDNet-L"].source == "hf://jbarrow/FFDNet-L-cpu/FFDNet-L.onnx"


class TestResolveModelPath:
    """Tests for model identifier resolution."""

    def test_local_path(self, model_file, tmp_path):
        assert resolve_model_path(str(model_file), tmp_path) == str(model_file)

    def test_unknown_identifier(self, tmp_path):
        with pytest.raises(PipelineError) as exc_info:
            resolve_model_path("FFDNet-XL", tmp_path)
        assert exc_info.value.code is ErrorCode.MODEL_LOAD_FAILED

    @patch("acrodetect.pipeline.stage_session.hf_hub_download")
    def test_hugging_face_model(self, mock_download, tmp_path):
        mock_download.return_value = "/hf/cache/FFDNet-L.onnx"

        assert resolve_model_path("FFDNet-L", tmp_path) == "/hf/cache/FFDNet-L.onnx"
        mock_download.assert_called_once_with(
            repo_id="jbarrow/FFDNet-L-cpu", filename="FFDNet-L.onnx"
        )

    @patch("acrodetect.pipeline.stage_session.hf_hub_download")
    def test_hugging_face_failure(self, mock_download, tmp_path):
        mock_download.side_effect = OSError("offline")
        with pytest.raises(PipelineError) as exc_info:
            resolve_model_path("FFDNet-L", tmp_path)
        assert exc_info.value.code is ErrorCode.MODEL_LOAD_FAILED

    @patch("acrodetect.pipeline.stage_session.requests.get")
    def test_registry_url_download(self, mock_get, tmp_path):
        mock_get.return_value = _response([b"onnx", b"bytes"])

        path = resolve_model_path("FFDNet-S", tmp_path)

        assert path == str(tmp_path / "FFDNet-S.onnx")
        assert (tmp_path / "FFDNet-S.onnx").read_bytes() == b"onnxbytes"

    @patch("acrodetect.pipeline.stage_session.requests.get")
    def test_cached_download_reused(self, mock_get, tmp_path):
        (tmp_path / "FFDNet-S.onnx").write_bytes(b"cached")
        assert resolve_model_path("FFDNet-S", tmp_path) == str(tmp_path / "FFDNet-S.onnx")
        mock_get.assert_not_called()

    @patch("acrodetect.pipeline.stage_session.requests.get")
    def test_plain_url(self, mock_get, tmp_path):
        mock_get.return_value = _response([b"x"])
        path = resolve_model_path("https://example.com/models/custom.onnx?v=2", tmp_path)
        assert path == str(tmp_path / "custom.onnx")


class TestDownloadModel:
    """Tests for model downloads."""

    @patch("acrodetect.pipeline.stage_session.requests.get")
    def test_http_error_leaves_no_file(self, mock_get, tmp_path):
        response = _response([])
        response.raise_for_status.side_effect = requests.HTTPError("404")
        mock_get.return_value = response
        destination = tmp_path / "model.onnx"

        with pytest.raises(PipelineError) as exc_info:
            download_model("https://example.com/model.onnx", destination)

        assert exc_info.value.code is ErrorCode.MODEL_LOAD_FAILED
        assert not destination.exists()
        assert not (tmp_path / "model.onnx.part").exists()


class TestSessionCache:
    """Tests for session reuse and invalidation."""

    def test_reuses_session(self, session_cache, model_file, mock_session):
        first = session_cache.get(str(model_file))
        second = session_cache.get(str(model_file))

        assert first is second is mock_session
        assert session_cache.factory_mock.call_count == 1
        session_cache.factory_mock.assert_called_with(str(model_file), ["CPUExecutionProvider"])

    def test_refresh_recreates(self, session_cache, model_file):
        session_cache.get(str(model_file))
        session_cache.get(str(model_file), refresh=True)
        assert session_cache.factory_mock.call_count == 2

    def test_model_change_recreates(self, session_cache, model_file, tmp_path):
        other = tmp_path / "other.onnx"
        other.write_bytes(b"onnx")

        session_cache.get(str(model_file))
        session_cache.get(str(other))

        assert session_cache.factory_mock.call_count == 2
        assert session_cache.model_key == str(other)

    def test_invalidate(self, session_cache, model_file):
        session_cache.get(str(model_file))
        session_cache.invalidate()
        assert not session_cache.is_loaded
        session_cache.get(str(model_file))
        assert session_cache.factory_mock.call_count == 2

    def test_creation_failure(self, session_cache, model_file):
        session_cache.factory_mock.side_effect = RuntimeError("bad onnx graph")

        with pytest.raises(PipelineError) as exc_info:
            session_cache.get(str(model_file))

        assert exc_info.value.code is ErrorCode.MODEL_LOAD_FAILED
        assert "bad onnx graph" in exc_info.value.message
        assert not session_cache.is_loaded


class TestRunSession:
    """Tests for the session call contract."""

    def test_input_and_output_names(self, mock_session):
        tensor = MagicMock()
        run_session(mock_session, tensor)
        mock_session.run.assert_called_once_with(["output0"], {"images": tensor})
