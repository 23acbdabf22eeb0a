"""
Interchangeable transcription backends.

Every backend exposes the same contract so the orchestrator stays
backend-agnostic: unit-level transcription for chunked fan-out and
whole-buffer transcription for backends that do not benefit from chunking.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
import requests

from ...utils.logger import get_logger
from ..audio.chunker import AudioBuffer, TranscriptionUnit
from ..audio.pcm import decode_pcm
from ..errors import ConfigurationError, TranscriptionFailed
from ..settings import BackendMode, Settings
from .local_model import LocalModelHandle

logger = get_logger(__name__)

NO_TRANSCRIPTION = "[No transcription returned]"
NO_SPEECH = "No speech detected"
STREAM_WINDOW_SAMPLES = 4096
TAIL_PADDING_SECONDS = 0.66


class BackendType(Enum):
    REMOTE_API = "remote_api"
    SELF_HOSTED = "self_hosted"
    LOCAL_MODEL = "local_model"

    @property
    def display_name(self) -> str:
        return {
            BackendType.REMOTE_API: "remote API",
            BackendType.SELF_HOSTED: "self-hosted server",
            BackendType.LOCAL_MODEL: "local model",
        }[self]


@dataclass(frozen=True)
class BackendSelection:
    backend_type: BackendType
    fallback_from: Optional[BackendType] = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback_from is not None


def select_backend(settings: Settings) -> BackendSelection:
    """
    Resolve the backend for one run.

    Raises:
        ConfigurationError: If the selected backend's prerequisites are
            missing and no fallback applies.
    """
    mode = BackendMode(settings.backend_mode)
    api_key = settings.effective_api_key

    if mode == BackendMode.REMOTE_API:
        if not api_key:
            raise ConfigurationError(
                "Remote API selected but no API key is configured. "
                "Please provide an API key in settings."
            )
        return BackendSelection(BackendType.REMOTE_API)

    if mode == BackendMode.SELF_HOSTED:
        if settings.server_url:
            return BackendSelection(BackendType.SELF_HOSTED)
        if api_key:
            logger.info("Self-hosted server URL not set, falling back to remote API")
            return BackendSelection(
                BackendType.REMOTE_API, fallback_from=BackendType.SELF_HOSTED
            )
        raise ConfigurationError(
            "Neither a self-hosted server URL nor an API key is configured. "
            "Please configure at least one in settings."
        )

    return BackendSelection(BackendType.LOCAL_MODEL)


class TranscriptionBackend(ABC):
    backend_type: BackendType
    chunked: bool = False

    @property
    def name(self) -> str:
        return self.backend_type.display_name

    @abstractmethod
    def transcribe_unit(self, unit: TranscriptionUnit) -> str: ...

    @abstractmethod
    def transcribe_whole(self, buffer: AudioBuffer) -> str: ...

    def close(self) -> None:
        pass


class RemoteAPIBackend(TranscriptionBackend):
    backend_type = BackendType.REMOTE_API
    chunked = True

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        api_base: Optional[str] = None,
        timeout: float = 600.0,
    ):
        if not api_key:
            raise ConfigurationError("Remote API client requires an API key.")
        self.api_key = api_key
        self.model = model
        self.api_base = api_base
        self.timeout = timeout

    def _transcribe_file(self, filename: str, data: bytes, mime_type: str) -> str:
        import litellm

        kwargs = {
            "model": self.model,
            "file": (filename, data, mime_type),
            "api_key": self.api_key,
            "timeout": self.timeout,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base

        response = litellm.transcription(**kwargs)
        text = getattr(response, "text", None)
        if text is None:
            raise TranscriptionFailed(f"Remote API returned no text for {filename}")
        return text

    def transcribe_unit(self, unit: TranscriptionUnit) -> str:
        logger.debug(f"Uploading {unit.filename} ({len(unit.data)} bytes)")
        return self._transcribe_file(unit.filename, unit.data, unit.mime_type)

    def transcribe_whole(self, buffer: AudioBuffer) -> str:
        return self._transcribe_file(buffer.filename, buffer.data, buffer.mime_type)


class SelfHostedServerBackend(TranscriptionBackend):
    backend_type = BackendType.SELF_HOSTED

    def __init__(
        self,
        server_url: str,
        model: str = "tiny",
        timeout: float = 600.0,
        session: Optional[requests.Session] = None,
    ):
        if not server_url:
            raise ConfigurationError("Self-hosted backend requires a server URL.")
        self.server_url = server_url.rstrip("/")
        self.model = model or "tiny"
        self.timeout = timeout
        self._session = session

    @property
    def endpoint(self) -> str:
        return f"{self.server_url}/transcribe"

    def _post(self, data: bytes, extension: str) -> str:
        payload = {
            "audio": base64.b64encode(data).decode("ascii"),
            "model": self.model,
            "audio_format": extension.lower(),
        }
        post = self._session.post if self._session is not None else requests.post

        logger.info(f"Sending {len(data)} bytes to {self.endpoint}")
        response = post(self.endpoint, json=payload, timeout=self.timeout)

        if response.status_code != 200:
            raise TranscriptionFailed(
                f"Self-hosted server returned status {response.status_code}"
            )

        return response.json().get("text") or NO_TRANSCRIPTION

    def transcribe_unit(self, unit: TranscriptionUnit) -> str:
        extension = unit.filename.rsplit(".", 1)[-1]
        return self._post(unit.data, extension)

    def transcribe_whole(self, buffer: AudioBuffer) -> str:
        return self._post(buffer.data, buffer.extension)


class LocalModelBackend(TranscriptionBackend):
    backend_type = BackendType.LOCAL_MODEL

    def __init__(self, handle: LocalModelHandle, window_samples: int = STREAM_WINDOW_SAMPLES):
        self._handle = handle
        self._window_samples = window_samples
        self._acquired = False

    def _recognizer(self):
        recognizer = self._handle.acquire()
        if self._acquired:
            self._handle.release()
        self._acquired = True
        return recognizer

    def _transcribe_samples(self, samples: np.ndarray, sample_rate: int) -> str:
        recognizer = self._recognizer()
        segments = []

        with self._handle.decode_lock:
            stream = recognizer.create_stream()

            for start in range(0, len(samples), self._window_samples):
                stream.accept_waveform(sample_rate, samples[start : start + self._window_samples])
                while recognizer.is_ready(stream):
                    recognizer.decode_stream(stream)

                if recognizer.is_endpoint(stream):
                    text = recognizer.get_result(stream).strip()
                    if text:
                        segments.append(text)
                    recognizer.reset(stream)

            tail = np.zeros(int(TAIL_PADDING_SECONDS * sample_rate), dtype=np.float32)
            stream.accept_waveform(sample_rate, tail)
            stream.input_finished()
            while recognizer.is_ready(stream):
                recognizer.decode_stream(stream)

            text = recognizer.get_result(stream).strip()
            if text:
                segments.append(text)

        return " ".join(segments).strip() or NO_SPEECH

    def transcribe_whole(self, buffer: AudioBuffer) -> str:
        samples, sample_rate = decode_pcm(buffer)
        logger.info(
            f"Decoding {len(samples) / sample_rate:.1f}s of audio with the local model"
        )
        return self._transcribe_samples(samples, sample_rate)

    def transcribe_unit(self, unit: TranscriptionUnit) -> str:
        extension = unit.filename.rsplit(".", 1)[-1]
        return self.transcribe_whole(AudioBuffer(data=unit.data, extension=extension))

    def close(self) -> None:
        if self._acquired:
            self._handle.release()
            self._acquired = False


def create_backend(
    backend_type: BackendType,
    settings: Settings,
    model_handle: Optional[LocalModelHandle] = None,
) -> TranscriptionBackend:
    if backend_type == BackendType.REMOTE_API:
        return RemoteAPIBackend(
            api_key=settings.effective_api_key,
            model=settings.remote_model,
            api_base=settings.api_base,
            timeout=settings.request_timeout_s,
        )
    if backend_type == BackendType.SELF_HOSTED:
        return SelfHostedServerBackend(
            server_url=settings.server_url,
            model=settings.server_model,
            timeout=settings.request_timeout_s,
        )
    if model_handle is None:
        model_handle = LocalModelHandle(
            settings.local_model_id, download_missing=settings.download_missing_model
        )
    return LocalModelBackend(model_handle)
