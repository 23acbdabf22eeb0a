"""Tests for model registry and downloader."""

import io
import tarfile
from unittest.mock import MagicMock, patch

import pytest
import requests

from podscribe.core.asr.file_utils import find_component, is_valid_streaming_model
from podscribe.core.asr.model_downloader import ModelDownloader, format_download_progress
from podscribe.core.asr.models import (
    AVAILABLE_MODELS,
    delete_model,
    get_all_models_with_status,
    get_model_by_id,
    is_model_downloaded,
)
from podscribe.core.progress import ProgressReporter

DEFAULT_MODEL = "sherpa-onnx-streaming-zipformer-en-20M-2023-02-17"
MODEL_FILES = (
    "encoder-epoch-99-avg-1.onnx",
    "encoder-epoch-99-avg-1.int8.onnx",
    "decoder-epoch-99-avg-1.onnx",
    "joiner-epoch-99-avg-1.onnx",
    "tokens.txt",
)


def model_archive(model_id: str) -> bytes:
    out = io.BytesIO()
    with tarfile.open(fileobj=out, mode="w:bz2") as tar:
        for name in MODEL_FILES:
            info = tarfile.TarInfo(f"{model_id}/{name}")
            info.size = 0
            tar.addfile(info, io.BytesIO(b""))
    return out.getvalue()


class TestModelRegistry:
    def test_available_models_not_empty(self):
        assert len(AVAILABLE_MODELS) > 0

    def test_model_has_required_fields(self):
        for model in AVAILABLE_MODELS:
            assert model.id
            assert model.name
            assert model.url.startswith("https://")
            assert model.url.endswith(".tar.bz2")

    def test_get_model_by_id_not_found(self):
        assert get_model_by_id("nonexistent-model") is None

    def test_default_model_url_valid(self):
        model = get_model_by_id(DEFAULT_MODEL)
        assert model is not None
        assert "github.com" in model.url
        assert "k2-fsa" in model.url

    def test_get_all_models_with_status(self):
        results = get_all_models_with_status()
        assert len(results) == len(AVAILABLE_MODELS)
        for model, status in results:
            assert status in ("downloaded", "not_downloaded")

    def test_is_model_downloaded_returns_false_for_nonexistent(self, tmp_path):
        assert is_model_downloaded("nonexistent-model", models_dir=str(tmp_path)) is False

    def test_delete_missing_model(self, tmp_path):
        with patch("podscribe.core.asr.models.registry.get_models_dir", return_value=str(tmp_path)):
            ok, message = delete_model("nonexistent-model")
        assert not ok
        assert "not found" in message

    def test_delete_downloaded_model(self, tmp_path):
        """Deleting removes the whole model directory."""
        (tmp_path / DEFAULT_MODEL).mkdir()
        (tmp_path / DEFAULT_MODEL / "tokens.txt").write_text("")
        with patch("podscribe.core.asr.models.registry.get_models_dir", return_value=str(tmp_path)):
            ok, message = delete_model(DEFAULT_MODEL)
        assert ok
        assert message == f"Deleted '{DEFAULT_MODEL}'"
        assert not (tmp_path / DEFAULT_MODEL).exists()


class TestFileUtils:
    def test_prefers_int8_component(self, tmp_path):
        for name in MODEL_FILES:
            (tmp_path / name).write_text("")
        assert find_component(str(tmp_path), "encoder").endswith("encoder-epoch-99-avg-1.int8.onnx")
        assert find_component(str(tmp_path), "encoder", prefer_int8=False).endswith(
            "encoder-epoch-99-avg-1.onnx"
        )
        assert is_valid_streaming_model(str(tmp_path))

    def test_incomplete_model_is_invalid(self, tmp_path):
        (tmp_path / "encoder.onnx").write_text("")
        assert not is_valid_streaming_model(str(tmp_path))


class RecordingReporter(ProgressReporter):
    def __init__(self):
        self.shown = []
        self.notices = []
        self.hidden = 0

    def show(self, message):
        self.shown.append(message)

    def notify(self, message):
        self.notices.append(message)

    def hide(self):
        self.hidden += 1


class TestModelDownloader:
    """Streaming download and extraction, reported through a ProgressReporter."""

    def make_response(self, payload: bytes):
        response = MagicMock()
        response.headers = {"content-length": str(len(payload))}
        response.iter_content.return_value = [payload[:10], payload[10:]]
        return response

    def test_download_and_extract(self, tmp_path):
        """Progress reaches 100% and the unpacked model is valid."""
        payload = model_archive(DEFAULT_MODEL)
        reporter = RecordingReporter()
        downloader = ModelDownloader(models_dir=str(tmp_path), reporter=reporter)
        name = get_model_by_id(DEFAULT_MODEL).name

        with patch("podscribe.core.asr.model_downloader.requests.get") as mock_get:
            mock_get.return_value = self.make_response(payload)
            assert downloader.download(DEFAULT_MODEL)

        assert is_model_downloaded(DEFAULT_MODEL, models_dir=str(tmp_path))
        assert reporter.shown[-1] == f"Downloading {name}... 100.0%"
        assert reporter.hidden == 1
        assert reporter.notices == [f"Extracting {name}...", f"Model {name} is ready."]

    def test_unknown_model(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown model"):
            ModelDownloader(models_dir=str(tmp_path)).download("nope")

    def test_cancel_stops_download(self, tmp_path):
        """Cancelling mid-stream leaves nothing behind and says so."""
        reporter = RecordingReporter()
        downloader = ModelDownloader(models_dir=str(tmp_path), reporter=reporter)
        response = MagicMock()
        response.headers = {}

        def chunks(chunk_size):
            downloader.cancel()
            yield b"partial"

        response.iter_content.side_effect = chunks

        with patch("podscribe.core.asr.model_downloader.requests.get", return_value=response):
            assert downloader.download(DEFAULT_MODEL) is False
        assert not is_model_downloaded(DEFAULT_MODEL, models_dir=str(tmp_path))
        assert reporter.notices == ["Model download cancelled."]

    def test_http_error_propagates(self, tmp_path):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("404")

        with patch("podscribe.core.asr.model_downloader.requests.get", return_value=response):
            with pytest.raises(requests.HTTPError):
                ModelDownloader(models_dir=str(tmp_path)).download(DEFAULT_MODEL)


class TestDownloadProgressText:
    """Progress text for known and unknown content lengths."""

    def test_percentage_when_total_known(self):
        model = get_model_by_id(DEFAULT_MODEL)
        assert format_download_progress(model, 50, 200) == f"Downloading {model.name}... 25.0%"

    def test_mebibytes_when_total_unknown(self):
        model = get_model_by_id(DEFAULT_MODEL)
        text = format_download_progress(model, 3 * 1024 * 1024, 0)
        assert text == f"Downloading {model.name}... 3.0 MiB"
