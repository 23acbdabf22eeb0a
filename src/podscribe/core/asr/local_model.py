"""
Shared offline speech model.

The sherpa-onnx streaming recognizer is expensive to build, so one instance
is shared by every local transcription in the process. LocalModelHandle
loads it lazily behind a single-flight future: the first caller performs the
load and any concurrent caller waits on the same future instead of starting
a second load.
"""

import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

from ...utils.logger import get_logger
from ..errors import ModelLoadFailed
from ..progress import ProgressReporter
from .file_utils import find_component, find_tokens, missing_components, resolve_model_path
from .model_downloader import ModelDownloader

logger = get_logger(__name__)

Loader = Callable[[str], Any]

NUM_THREADS = 4
SAMPLE_RATE = 16000
FEATURE_DIM = 80


def load_streaming_recognizer(model_path: str):
    """Build a sherpa-onnx OnlineRecognizer from a streaming transducer directory."""
    import sherpa_onnx

    missing = missing_components(model_path)
    if missing:
        raise RuntimeError(
            f"Missing streaming model files in {model_path}: {', '.join(missing)}"
        )

    encoder = find_component(model_path, "encoder")
    decoder = find_component(model_path, "decoder")
    joiner = find_component(model_path, "joiner")
    tokens = find_tokens(model_path)

    logger.info(
        f"Loading streaming model: encoder={encoder}, decoder={decoder}, joiner={joiner}"
    )

    return sherpa_onnx.OnlineRecognizer.from_transducer(
        tokens=tokens,
        encoder=encoder,
        decoder=decoder,
        joiner=joiner,
        num_threads=NUM_THREADS,
        sample_rate=SAMPLE_RATE,
        feature_dim=FEATURE_DIM,
        enable_endpoint_detection=True,
        rule1_min_trailing_silence=2.4,
        rule2_min_trailing_silence=1.2,
        rule3_min_utterance_length=300,
        decoding_method="greedy_search",
        provider="cpu",
    )


class LocalModelHandle:
    def __init__(
        self,
        model_id: str,
        models_dir: Optional[str] = None,
        loader: Loader = load_streaming_recognizer,
        downloader: Optional[ModelDownloader] = None,
        download_missing: bool = True,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.model_id = model_id
        self._reporter = reporter
        self._models_dir = models_dir
        self._loader = loader
        self._downloader = downloader
        self._download_missing = download_missing

        self._lock = threading.Lock()
        self._loading: Optional[Future] = None
        self._recognizer = None
        self._refcount = 0
        # Decoding state lives in per-call streams, but the recognizer itself
        # is not documented as thread-safe.
        self.decode_lock = threading.Lock()

    @property
    def model_path(self) -> str:
        return resolve_model_path(self.model_id, self._models_dir)

    @property
    def is_loaded(self) -> bool:
        return self._recognizer is not None

    @property
    def refcount(self) -> int:
        return self._refcount

    def acquire(self):
        """Return the shared recognizer, loading it on first use.

        Raises:
            ModelLoadFailed: If the model cannot be located, downloaded or built.
        """
        with self._lock:
            if self._recognizer is not None:
                self._refcount += 1
                return self._recognizer

            owner = self._loading is None
            if owner:
                self._loading = Future()
            loading = self._loading

        if owner:
            self._load_into(loading)

        try:
            recognizer = loading.result()
        except ModelLoadFailed:
            raise
        except Exception as e:
            raise ModelLoadFailed(f"Failed to load model '{self.model_id}': {e}") from e

        with self._lock:
            self._refcount += 1
        return recognizer

    def _load_into(self, loading: Future) -> None:
        try:
            recognizer = self._load()
        except Exception as e:
            logger.exception(f"Local model load failed: {e}")
            with self._lock:
                self._loading = None
            if not isinstance(e, ModelLoadFailed):
                e = ModelLoadFailed(f"Failed to load model '{self.model_id}': {e}")
            loading.set_exception(e)
            return

        with self._lock:
            self._recognizer = recognizer
            self._loading = None
        loading.set_result(recognizer)

    def _load(self):
        model_path = self.model_path

        if missing_components(model_path):
            if not self._download_missing:
                raise ModelLoadFailed(
                    f"Model directory not found or incomplete: {model_path}. "
                    f"Please download the model first."
                )
            downloader = self._downloader or ModelDownloader(
                models_dir=self._models_dir, reporter=self._reporter
            )
            try:
                downloaded = downloader.download(self.model_id)
            except Exception as e:
                raise ModelLoadFailed(f"Failed to download model '{self.model_id}': {e}") from e
            if not downloaded:
                raise ModelLoadFailed(f"Download of model '{self.model_id}' was cancelled")

        logger.info(f"Loading local model '{self.model_id}' from {model_path}")
        return self._loader(model_path)

    def release(self) -> None:
        with self._lock:
            if self._refcount > 0:
                self._refcount -= 1

    def close(self) -> None:
        """Free the recognizer. Safe to call repeatedly and during teardown."""
        with self._lock:
            recognizer = self._recognizer
            self._recognizer = None
            self._refcount = 0
        if recognizer is not None:
            del recognizer
            logger.info(f"Unloaded local model '{self.model_id}'")
