"""
Pytest configuration.

Keeps every test away from the user's real settings, data directory,
API keys and transcript directories.
"""
import pytest

from podscribe.core.audio import AudioBuffer
from podscribe.core.episode import Episode
from podscribe.core.settings import Settings


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Point config and data dirs at tmp_path under every name they are imported by."""
    config_dir = tmp_path / "config"
    data_dir = tmp_path / "data"
    config_dir.mkdir()
    data_dir.mkdir()

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    for module in ("podscribe.core.settings.settings", "podscribe.core.settings"):
        monkeypatch.setattr(f"{module}.get_config_dir", lambda: config_dir)
        monkeypatch.setattr(f"{module}.get_data_dir", lambda: data_dir)
    monkeypatch.setattr("podscribe.core.settings.settings._settings_instance", None)
    yield


@pytest.fixture
def episode():
    return Episode(title="Ep 1", podcast_name="My Show", url="https://example.com/ep1")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        backend_mode="remote_api",
        api_key="sk-test",
        output_dir=str(tmp_path / "vault"),
        notice_hide_delay_s=0,
    )


@pytest.fixture
def audio_buffer():
    return AudioBuffer(data=b"\x01\x02" * 50, extension="mp3", name="episode")
