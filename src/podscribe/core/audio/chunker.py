"""
Byte-level audio chunking for upload to remote transcription APIs.

Splits a raw audio buffer into contiguous slices no larger than the upload
limit. No decoding happens here: a chunk is a byte range, not a time range.
"""

import math
from dataclasses import dataclass, field
from typing import List

from ...utils.logger import get_logger

logger = get_logger(__name__)


MEBIBYTE = 1024 * 1024
DEFAULT_CHUNK_SIZE_MB = 20
DEFAULT_CHUNK_SIZE_BYTES = DEFAULT_CHUNK_SIZE_MB * MEBIBYTE

_MIME_TYPES = {
    "mp3": "audio/mp3",
    "m4a": "audio/mp4",
    "ogg": "audio/ogg",
    "wav": "audio/wav",
    "flac": "audio/flac",
}
DEFAULT_MIME_TYPE = "audio/mpeg"


def get_mime_type(extension: str) -> str:
    return _MIME_TYPES.get(extension.lower().lstrip("."), DEFAULT_MIME_TYPE)


@dataclass(frozen=True)
class AudioBuffer:
    data: bytes
    extension: str
    name: str = "audio"
    mime_type: str = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "extension", self.extension.lower().lstrip("."))
        object.__setattr__(self, "mime_type", get_mime_type(self.extension))

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def filename(self) -> str:
        return f"{self.name}.{self.extension}"


@dataclass(frozen=True)
class Chunk:
    index: int
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class TranscriptionUnit:
    chunk: Chunk
    filename: str
    mime_type: str

    @property
    def index(self) -> int:
        return self.chunk.index

    @property
    def data(self) -> bytes:
        return self.chunk.data


def chunk_count(total_bytes: int, max_chunk_size_bytes: int) -> int:
    return math.ceil(total_bytes / max_chunk_size_bytes)


def chunk_audio(
    buffer: AudioBuffer, max_chunk_size_bytes: int = DEFAULT_CHUNK_SIZE_BYTES
) -> List[Chunk]:
    """
    Split an audio buffer into ordered, non-overlapping byte chunks.

    Chunk i covers bytes [i * max, min((i + 1) * max, total)). An empty
    buffer yields no chunks.

    Raises:
        ValueError: If max_chunk_size_bytes is not positive.
    """
    if max_chunk_size_bytes <= 0:
        raise ValueError(
            f"max_chunk_size_bytes must be positive, got {max_chunk_size_bytes}"
        )

    data = buffer.data
    chunks = [
        Chunk(index=index, data=data[start : start + max_chunk_size_bytes])
        for index, start in enumerate(range(0, len(data), max_chunk_size_bytes))
    ]

    logger.debug(
        f"Split {len(data)} bytes into {len(chunks)} chunk(s) "
        f"of at most {max_chunk_size_bytes} bytes"
    )
    return chunks


def build_units(chunks: List[Chunk], buffer: AudioBuffer) -> List[TranscriptionUnit]:
    return [
        TranscriptionUnit(
            chunk=chunk,
            filename=f"{buffer.name}.part{chunk.index}.{buffer.extension}",
            mime_type=buffer.mime_type,
        )
        for chunk in chunks
    ]
