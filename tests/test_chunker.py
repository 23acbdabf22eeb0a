"""Tests for byte-level audio chunking."""

import pytest

from podscribe.core.audio.chunker import (
    MEBIBYTE,
    AudioBuffer,
    build_units,
    chunk_audio,
    chunk_count,
    get_mime_type,
)


class TestChunkAudio:
    """Splitting a buffer into bounded chunks."""

    def test_empty_buffer_yields_no_chunks(self):
        assert chunk_audio(AudioBuffer(data=b"", extension="mp3")) == []

    def test_chunks_reconstruct_original(self):
        """Concatenated chunks are the original bytes, in index order."""
        data = bytes(range(256)) * 40
        buffer = AudioBuffer(data=data, extension="mp3")

        chunks = chunk_audio(buffer, max_chunk_size_bytes=1000)

        assert b"".join(c.data for c in chunks) == data
        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert all(c.size_bytes <= 1000 for c in chunks)

    def test_chunk_count_matches_ceiling(self):
        """Only the last chunk is short."""
        buffer = AudioBuffer(data=b"x" * 2500, extension="mp3")
        chunks = chunk_audio(buffer, max_chunk_size_bytes=1000)
        assert len(chunks) == chunk_count(2500, 1000) == 3
        assert [c.size_bytes for c in chunks] == [1000, 1000, 500]

    def test_forty_five_mebibytes_at_twenty_limit(self):
        buffer = AudioBuffer(data=bytes(45 * MEBIBYTE), extension="mp3")

        chunks = chunk_audio(buffer, max_chunk_size_bytes=20 * MEBIBYTE)

        assert [c.size_bytes for c in chunks] == [
            20 * MEBIBYTE,
            20 * MEBIBYTE,
            5 * MEBIBYTE,
        ]

    def test_buffer_smaller_than_limit_is_single_chunk(self):
        buffer = AudioBuffer(data=b"abc", extension="mp3")
        chunks = chunk_audio(buffer, max_chunk_size_bytes=10)
        assert len(chunks) == 1
        assert chunks[0].data == b"abc"

    @pytest.mark.parametrize("size", [0, -1])
    def test_invalid_chunk_size(self, size):
        """Non-positive limits are rejected."""
        with pytest.raises(ValueError, match="must be positive"):
            chunk_audio(AudioBuffer(data=b"abc", extension="mp3"), size)


class TestUnits:
    """Upload units built from chunks."""

    def test_units_carry_filename_and_mime(self):
        """Each unit gets a part-numbered filename and the buffer's MIME type."""
        buffer = AudioBuffer(data=b"x" * 25, extension=".M4A", name="show")
        units = build_units(chunk_audio(buffer, 10), buffer)

        assert [u.filename for u in units] == [
            "show.part0.m4a",
            "show.part1.m4a",
            "show.part2.m4a",
        ]
        assert {u.mime_type for u in units} == {"audio/mp4"}
        assert units[2].index == 2
        assert units[2].data == b"x" * 5


class TestMimeTypes:
    """Extension to MIME type mapping."""

    @pytest.mark.parametrize(
        "extension, expected",
        [
            ("mp3", "audio/mp3"),
            ("m4a", "audio/mp4"),
            ("ogg", "audio/ogg"),
            ("wav", "audio/wav"),
            ("flac", "audio/flac"),
            ("aac", "audio/mpeg"),
        ],
    )
    def test_known_and_default_types(self, extension, expected):
        """Unknown extensions fall back to audio/mpeg."""
        assert get_mime_type(extension) == expected

    def test_buffer_normalises_extension(self):
        buffer = AudioBuffer(data=b"", extension=".MP3")
        assert buffer.extension == "mp3"
        assert buffer.filename == "audio.mp3"
        assert buffer.mime_type == "audio/mp3"
