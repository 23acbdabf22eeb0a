from .episode import Episode
from .errors import (
    AlreadyInProgress,
    AlreadyTranscribed,
    ChunkTranscriptionFailed,
    ConfigurationError,
    ModelLoadFailed,
    TranscriptionError,
    TranscriptionFailed,
)

__all__ = [
    "Episode",
    "TranscriptionError",
    "AlreadyInProgress",
    "AlreadyTranscribed",
    "ConfigurationError",
    "ChunkTranscriptionFailed",
    "TranscriptionFailed",
    "ModelLoadFailed",
]
