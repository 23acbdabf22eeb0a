"""
End-to-end transcription of one episode.

The orchestrator resolves a backend, transcribes the audio (fanning chunks
out to a bounded thread pool when the backend benefits from it), reassembles
the fragments strictly by chunk index and hands the result to the template
and store layer. Only one run may be active per orchestrator at a time.
"""

import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from ..utils.logger import get_logger
from .asr.backends import (
    BackendType,
    TranscriptionBackend,
    create_backend,
    select_backend,
)
from .asr.local_model import LocalModelHandle
from .asr.retry import RetryExecutor, RetryPolicy, TranscriptionResult
from .audio.chunker import MEBIBYTE, AudioBuffer, build_units, chunk_audio
from .episode import Episode
from .errors import (
    AlreadyInProgress,
    AlreadyTranscribed,
    ModelLoadFailed,
    TranscriptionError,
    TranscriptionFailed,
)
from .progress import LoggingProgressReporter, ProgressReporter, TimerNotice
from .settings import Settings
from .templates import TranscriptStore, render_file_path, render_transcript

logger = get_logger(__name__)

NOTICE_HEADING = "Transcription"

AudioSource = Union[AudioBuffer, Callable[[], AudioBuffer]]
BackendFactory = Callable[
    [BackendType, Settings, Optional[LocalModelHandle]], TranscriptionBackend
]
StateCallback = Callable[["RunState", str], None]

_SENTENCE_END = re.compile(r"([.!?])\s+")


class RunState(Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    DOWNLOADING = "downloading"
    TRANSCRIBING = "transcribing"
    SAVING = "saving"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class TranscriptionOutcome:
    text: str
    raw_text: str
    path: Path
    backend: str
    total_chunks: int = 0
    failed_chunks: int = 0

    @property
    def has_failures(self) -> bool:
        return self.failed_chunks > 0


def format_paragraphs(text: str) -> str:
    """Start a new paragraph after every sentence-ending punctuation mark."""
    return _SENTENCE_END.sub(r"\1\n\n", text)


class TranscriptionOrchestrator:
    def __init__(
        self,
        settings: Settings,
        store: Optional[TranscriptStore] = None,
        reporter: Optional[ProgressReporter] = None,
        backend_factory: Optional[BackendFactory] = None,
        model_handle: Optional[LocalModelHandle] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_state_change: Optional[StateCallback] = None,
        notice_interval: float = 1.0,
        auto_refresh_notice: bool = True,
    ):
        self.settings = settings
        self.store = store or TranscriptStore(settings.output_root)
        self.reporter = reporter or LoggingProgressReporter()
        self._backend_factory = backend_factory or create_backend
        self._model_handle = model_handle
        self._sleep = sleep
        self._on_state_change = on_state_change
        self._notice_interval = notice_interval
        self._auto_refresh_notice = auto_refresh_notice

        self._run_lock = threading.Lock()
        self._state = RunState.IDLE
        self._notice: Optional[TimerNotice] = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def _set_state(self, state: RunState, message: str = "") -> None:
        if state == self._state:
            return
        suffix = f" ({message})" if message else ""
        logger.info(f"State: {self._state.value} -> {state.value}{suffix}")
        self._state = state
        if message and self._notice is not None:
            self._notice.update(message)
        if self._on_state_change:
            self._on_state_change(state, message)

    def run(
        self,
        episode: Episode,
        audio: AudioSource,
        settings: Optional[Settings] = None,
    ) -> TranscriptionOutcome:
        """
        Transcribe an episode and save the rendered transcript.

        Args:
            episode: Metadata used for the destination path and document.
            audio: The audio buffer, or a zero-argument callable that fetches it.
            settings: Overrides the orchestrator's settings for this run only.

        Raises:
            AlreadyInProgress: If another run is active on this orchestrator.
            AlreadyTranscribed: If the destination document already exists.
            ConfigurationError: If no usable backend is configured.
            TranscriptionFailed: If transcription or saving failed.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Rejected run: a transcription is already in progress")
            raise AlreadyInProgress()

        settings = settings or self.settings
        backend: Optional[TranscriptionBackend] = None

        try:
            store = self._store_for(settings)
            relative_path = render_file_path(
                settings.transcript_path, episode, self.reporter.notify
            )
            if store.exists(relative_path):
                existing = AlreadyTranscribed(str(store.path_for(relative_path)))
                self.reporter.notify(str(existing))
                raise existing

            self._notice = TimerNotice(
                NOTICE_HEADING,
                "Preparing to transcribe...",
                self.reporter,
                interval=self._notice_interval,
                auto_refresh=self._auto_refresh_notice,
            )
            self._set_state(RunState.PREPARING, "Preparing to transcribe...")

            selection = select_backend(settings)
            if selection.is_fallback:
                self.reporter.notify(
                    f"No {selection.fallback_from.display_name} configured, "
                    f"using the {selection.backend_type.display_name} instead."
                )

            self._set_state(RunState.DOWNLOADING, "Downloading episode...")
            buffer = audio() if callable(audio) else audio

            self._set_state(RunState.TRANSCRIBING, "Transcribing...")
            backend = self._backend_factory(
                selection.backend_type, settings, self._model_handle
            )

            if backend.chunked:
                raw_text, total, failed = self._transcribe_chunked(backend, buffer, settings)
            else:
                raw_text, total, failed = self._transcribe_whole(backend, buffer), 1, 0

            text = format_paragraphs(raw_text)

            self._set_state(RunState.SAVING, "Saving transcription...")
            document = render_transcript(
                settings.transcript_template, episode, text, self.reporter.notify
            )
            try:
                path = store.save(relative_path, document)
            except OSError as e:
                raise TranscriptionFailed(f"Failed to save transcription: {e}") from e

            self._set_state(RunState.DONE, "Transcription completed and saved.")
            self._notice.stop()
            if failed:
                self.reporter.notify(
                    f"{failed} of {total} chunks could not be transcribed."
                )

            return TranscriptionOutcome(
                text=text,
                raw_text=raw_text,
                path=path,
                backend=backend.name,
                total_chunks=total,
                failed_chunks=failed,
            )

        except AlreadyTranscribed:
            raise
        except TranscriptionError as e:
            self._fail(e)
            raise
        except Exception as e:
            wrapped = TranscriptionFailed(f"Error transcribing: {e}")
            self._fail(wrapped)
            raise wrapped from e
        finally:
            if backend is not None:
                backend.close()
            if self._notice is not None:
                self._notice.hide_after(settings.notice_hide_delay_s)
                self._notice = None
            self._set_state(RunState.IDLE)
            self._run_lock.release()

    def _store_for(self, settings: Settings) -> TranscriptStore:
        """Per-run settings with a different output directory get their own store."""
        if settings is self.settings or settings.output_root == self.store.root:
            return self.store
        return TranscriptStore(settings.output_root)

    def _fail(self, error: BaseException) -> None:
        logger.error(f"Transcription failed: {error}")
        self._set_state(RunState.ERRORED, f"Transcription failed: {error}")
        if self._notice is not None:
            self._notice.stop()
        else:
            self.reporter.notify(f"Transcription failed: {error}")

    def _transcribe_whole(self, backend: TranscriptionBackend, buffer: AudioBuffer) -> str:
        self._notice.update(f"Transcribing with {backend.name}...")
        try:
            return backend.transcribe_whole(buffer)
        except (TranscriptionFailed, ModelLoadFailed):
            raise
        except Exception as e:
            raise TranscriptionFailed(f"Error transcribing: {e}") from e

    def _transcribe_chunked(
        self, backend: TranscriptionBackend, buffer: AudioBuffer, settings: Settings
    ) -> Tuple[str, int, int]:
        chunks = chunk_audio(buffer, settings.max_chunk_size_mb * MEBIBYTE)
        units = build_units(chunks, buffer)
        total = len(units)
        if total == 0:
            logger.warning("Audio buffer is empty, nothing to transcribe")
            return "", 0, 0

        executor = RetryExecutor(
            RetryPolicy(
                max_attempts=settings.max_retries,
                backoff_base_ms=settings.retry_backoff_ms,
            ),
            sleep=self._sleep,
        )

        results: List[Optional[TranscriptionResult]] = [None] * total
        progress_lock = threading.Lock()
        completed = 0

        def report_progress() -> None:
            nonlocal completed
            with progress_lock:
                completed += 1
                done = completed
            self._notice.update(
                f"Transcribing with {backend.name}... "
                f"{done}/{total} chunks completed ({done / total * 100:.1f}%)"
            )

        def work(position: int) -> None:
            unit = units[position]
            results[position] = executor.execute_chunk(
                unit.index, lambda: backend.transcribe_unit(unit)
            )
            report_progress()

        workers = min(settings.max_concurrent_chunks, total)
        logger.info(f"Transcribing {total} chunk(s) with {workers} worker(s)")
        self._notice.update(
            f"Transcribing with {backend.name}... 0/{total} chunks completed (0.0%)"
        )

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="chunk") as pool:
            for future in [pool.submit(work, i) for i in range(total)]:
                future.result()

        failed = sum(1 for result in results if result.failed)
        return " ".join(result.text for result in results), total, failed
