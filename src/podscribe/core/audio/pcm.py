"""
PCM decoding for the offline recognizer.

WAV containers are decoded with scipy. Anything else is treated as raw
little-endian 16-bit mono PCM at the default sample rate. No resampling is
done here; the recognizer accepts the native rate.
"""

import io
from typing import Tuple

import numpy as np
from scipy.io import wavfile

from .chunker import AudioBuffer

DEFAULT_SAMPLE_RATE = 16000


def to_float32(samples: np.ndarray) -> np.ndarray:
    if samples.dtype == np.int16:
        audio_float = samples.astype(np.float32) / 32768.0
    elif samples.dtype == np.int32:
        audio_float = samples.astype(np.float32) / 2147483648.0
    elif samples.dtype == np.uint8:
        audio_float = (samples.astype(np.float32) - 128.0) / 128.0
    else:
        audio_float = samples.astype(np.float32)

    if audio_float.ndim > 1:
        audio_float = (
            audio_float[:, 0] if audio_float.shape[1] > 1 else audio_float.flatten()
        )
    return audio_float


def decode_pcm(buffer: AudioBuffer) -> Tuple[np.ndarray, int]:
    """Return (mono float32 samples in [-1, 1], sample_rate)."""
    if buffer.extension == "wav":
        sample_rate, samples = wavfile.read(io.BytesIO(buffer.data))
        return to_float32(samples), int(sample_rate)

    usable = len(buffer.data) - (len(buffer.data) % 2)
    samples = np.frombuffer(buffer.data[:usable], dtype="<i2")
    return to_float32(samples), DEFAULT_SAMPLE_RATE
