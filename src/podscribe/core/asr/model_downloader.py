"""
Fetches streaming speech models from the sherpa-onnx release page.

Archives are streamed to a scratch directory and unpacked into the models
directory. Progress goes through a ProgressReporter, so the CLI and a lazy
model load triggered mid-transcription share one display.
"""

import os
import tarfile
import tempfile
import threading
from typing import Optional

import requests

from ...utils.logger import get_logger
from ..audio.chunker import MEBIBYTE
from ..progress import ProgressReporter
from .file_utils import get_models_dir
from .models.registry import ModelInfo, get_model_by_id

logger = get_logger(__name__)

DOWNLOAD_BLOCK_SIZE = 64 * 1024


def format_download_progress(model: ModelInfo, received: int, total: int) -> str:
    if total > 0:
        return f"Downloading {model.name}... {received / total * 100:.1f}%"
    return f"Downloading {model.name}... {received / MEBIBYTE:.1f} MiB"


class ModelDownloader:
    def __init__(
        self,
        models_dir: Optional[str] = None,
        timeout: float = 30,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.models_dir = models_dir or get_models_dir()
        self.timeout = timeout
        self.reporter = reporter or ProgressReporter()
        self._cancel = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def download(self, model_id: str) -> bool:
        """
        Download and unpack a catalogue model.

        Returns:
            False if the download was cancelled, True once the model is unpacked.

        Raises:
            ValueError: If the model id is not in the catalogue.
            requests.RequestException: If the release cannot be fetched.
        """
        model = get_model_by_id(model_id)
        if model is None:
            raise ValueError(f"Unknown model: {model_id}")

        self._cancel.clear()
        os.makedirs(self.models_dir, exist_ok=True)
        logger.info(f"Fetching {model.url} into {self.models_dir}")

        with tempfile.TemporaryDirectory(prefix="podscribe-model-") as scratch:
            archive = os.path.join(scratch, f"{model.id}.tar.bz2")
            if not self._fetch(model, archive):
                return False

            self.reporter.notify(f"Extracting {model.name}...")
            with tarfile.open(archive, "r:bz2") as tar:
                tar.extractall(path=self.models_dir, filter="data")

        self.reporter.notify(f"Model {model.name} is ready.")
        return True

    def _fetch(self, model: ModelInfo, destination: str) -> bool:
        response = requests.get(model.url, stream=True, timeout=self.timeout)
        response.raise_for_status()
        total = int(response.headers.get("content-length", 0))
        received = 0

        with open(destination, "wb") as archive:
            for block in response.iter_content(chunk_size=DOWNLOAD_BLOCK_SIZE):
                if self.cancelled:
                    logger.info(f"Download of {model.id} cancelled after {received} bytes")
                    self.reporter.notify("Model download cancelled.")
                    return False
                archive.write(block)
                received += len(block)
                self.reporter.show(format_download_progress(model, received, total))

        self.reporter.hide()
        logger.info(f"Fetched {received} bytes for {model.id}")
        return True
