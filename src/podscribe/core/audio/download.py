"""
Episode audio acquisition.

Streams an episode's enclosure into memory, or reads a local file, and wraps
the bytes in an AudioBuffer for the orchestrator.
"""

import os
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

import requests

from ...utils.logger import get_logger
from ..episode import Episode
from .chunker import AudioBuffer

ProgressCallback = Callable[[int, int], None]

logger = get_logger(__name__)

_CONTENT_TYPE_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/flac": "flac",
}
DEFAULT_EXTENSION = "mp3"
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def get_url_extension(url: str) -> Optional[str]:
    suffix = Path(urlparse(url).path).suffix
    return suffix.lstrip(".").lower() or None


def _base_name(episode: Episode) -> str:
    return "".join(c for c in episode.title if c.isalnum() or c in " -_").strip() or "episode"


def download_episode(
    episode: Episode,
    timeout: float = 60,
    on_progress: Optional[ProgressCallback] = None,
) -> AudioBuffer:
    url = episode.stream_url or episode.url
    if not url:
        raise ValueError(f"Episode '{episode.title}' has no audio URL")

    logger.info(f"Downloading episode from {url}")

    response = requests.get(url, stream=True, timeout=timeout)
    response.raise_for_status()

    total_size = int(response.headers.get("content-length", 0))
    downloaded = 0
    parts = []

    for part in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
        parts.append(part)
        downloaded += len(part)
        if on_progress and total_size > 0:
            on_progress(downloaded, total_size)

    extension = get_url_extension(url)
    if not extension:
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        extension = _CONTENT_TYPE_EXTENSIONS.get(content_type, DEFAULT_EXTENSION)

    logger.info(f"Downloaded {downloaded} bytes ({extension})")
    return AudioBuffer(data=b"".join(parts), extension=extension, name=_base_name(episode))


def load_local_file(path: str) -> AudioBuffer:
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Audio file not found: {path}")

    extension = file_path.suffix.lstrip(".") or DEFAULT_EXTENSION
    logger.debug(f"Reading {os.path.getsize(file_path)} bytes from {file_path}")
    return AudioBuffer(data=file_path.read_bytes(), extension=extension, name=file_path.stem)
