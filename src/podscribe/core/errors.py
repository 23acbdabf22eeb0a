"""
Error taxonomy for the transcription pipeline.

Per-chunk failures (ChunkTranscriptionFailed) are recovered locally by the
orchestrator. Everything else ends the run and propagates to the caller.
"""

from typing import Optional


class TranscriptionError(Exception):
    """Base class for all pipeline errors."""


class AlreadyInProgress(TranscriptionError):
    def __init__(self, message: str = "A transcription is already in progress."):
        super().__init__(message)


class AlreadyTranscribed(TranscriptionError):
    """The destination document exists. Informational, not a failure."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"You've already transcribed this episode - found {path}."
        )


class ConfigurationError(TranscriptionError):
    pass


class ChunkTranscriptionFailed(TranscriptionError):
    def __init__(
        self, index: int, attempts: int, cause: Optional[BaseException] = None
    ):
        self.index = index
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Failed to transcribe chunk {index} after {attempts} attempts: {cause}"
        )


class TranscriptionFailed(TranscriptionError):
    pass


class ModelLoadFailed(TranscriptionError):
    pass
