from .chunker import (
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_CHUNK_SIZE_MB,
    MEBIBYTE,
    AudioBuffer,
    Chunk,
    TranscriptionUnit,
    build_units,
    chunk_audio,
    get_mime_type,
)
from .download import download_episode, load_local_file

__all__ = [
    "AudioBuffer",
    "Chunk",
    "TranscriptionUnit",
    "chunk_audio",
    "build_units",
    "get_mime_type",
    "download_episode",
    "load_local_file",
    "DEFAULT_CHUNK_SIZE_BYTES",
    "DEFAULT_CHUNK_SIZE_MB",
    "MEBIBYTE",
]
