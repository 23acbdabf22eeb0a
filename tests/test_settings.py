"""Tests for Settings persistence."""

import json
from pathlib import Path
from unittest.mock import patch

import podscribe.core.settings.settings as settings_module
from podscribe.core.settings import (
    BackendMode,
    Settings,
    get_config_dir,
    get_data_dir,
    get_settings,
)

DEFAULT_MODEL = "sherpa-onnx-streaming-zipformer-en-20M-2023-02-17"


def write_settings(config_dir: Path, data) -> None:
    (config_dir / "settings.json").write_text(
        data if isinstance(data, str) else json.dumps(data)
    )


class TestSettings:
    def test_default_values(self):
        settings = Settings()
        assert settings.backend_mode == BackendMode.SELF_HOSTED
        assert settings.max_chunk_size_mb == 20
        assert settings.max_retries == 3
        assert settings.retry_backoff_ms == 1000
        assert settings.max_concurrent_chunks == 4
        assert settings.notice_hide_delay_s == 5.0
        assert settings.remote_model == "whisper-1"
        assert settings.server_model == "tiny"
        assert settings.local_model_id == DEFAULT_MODEL

    def test_save_load_cycle(self, tmp_path):
        config_dir = tmp_path / "roundtrip"
        config_dir.mkdir()

        with patch(
            "podscribe.core.settings.settings.get_config_dir",
            return_value=config_dir,
        ):
            original = Settings(
                backend_mode=BackendMode.LOCAL_MODEL,
                api_key="sk-123",
                server_url="http://asr:9000",
                max_concurrent_chunks=8,
            )
            original.save()

            assert (config_dir / "settings.json").exists()

            loaded = Settings.load()
            assert loaded.backend_mode == BackendMode.LOCAL_MODEL
            assert loaded.api_key == "sk-123"
            assert loaded.server_url == "http://asr:9000"
            assert loaded.max_concurrent_chunks == 8

    def test_load_nonexistent_returns_defaults(self):
        settings = Settings.load()
        assert settings == Settings()

    def test_load_corrupted_json_returns_defaults(self, tmp_path):
        write_settings(tmp_path / "config", "{ this is not valid json }")
        assert Settings.load() == Settings()

    def test_unknown_keys_are_ignored(self, tmp_path):
        write_settings(tmp_path / "config", {"sample_rate": 44100, "max_retries": 5})
        settings = Settings.load()
        assert settings.max_retries == 5
        assert not hasattr(settings, "sample_rate")

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestDerivedValues:
    def test_server_url_trailing_slash_stripped(self):
        assert Settings(server_url="http://asr:9000/").server_url == "http://asr:9000"
        assert Settings(server_url="  ").server_url is None

    def test_api_key_environment_fallback(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert Settings().effective_api_key == "sk-env"
        assert Settings(api_key="sk-own").effective_api_key == "sk-own"

    def test_output_root(self, tmp_path):
        assert Settings(output_dir=str(tmp_path)).output_root == tmp_path


class TestConfigPaths:
    def test_config_dir_uses_app_name(self, tmp_path):
        with patch(
            "podscribe.core.settings.settings.user_config_path", return_value=tmp_path
        ) as mock_path:
            assert get_config_dir() == tmp_path
        mock_path.assert_called_once_with("podscribe", ensure_exists=True)

    def test_data_dir_uses_app_name(self, tmp_path):
        with patch(
            "podscribe.core.settings.settings.user_data_path", return_value=tmp_path
        ) as mock_path:
            result = get_data_dir()
        assert isinstance(result, Path)
        mock_path.assert_called_once_with("podscribe", ensure_exists=True)

    def test_dirs_are_isolated_for_tests(self, tmp_path):
        assert settings_module.get_config_dir() == tmp_path / "config"
        assert settings_module.get_data_dir() == tmp_path / "data"
        assert Settings().output_root == tmp_path / "data" / "vault"


class TestSettingsValidation:
    def test_invalid_values_reset_individually(self, tmp_path):
        write_settings(
            tmp_path / "config",
            {"max_retries": 0, "max_concurrent_chunks": -2, "api_key": "sk-kept"},
        )

        settings = Settings.load()

        assert settings.max_retries == 3
        assert settings.max_concurrent_chunks == 4
        assert settings.api_key == "sk-kept"

    def test_empty_transcript_path_resets_to_default(self, tmp_path):
        write_settings(tmp_path / "config", {"transcript_path": "   "})
        assert Settings.load().transcript_path == Settings().transcript_path

    def test_invalid_backend_mode_resets(self, tmp_path):
        write_settings(tmp_path / "config", {"backend_mode": "carrier_pigeon"})
        assert Settings.load().backend_mode == BackendMode.SELF_HOSTED

    def test_legacy_remote_toggle_migrated(self, tmp_path):
        write_settings(tmp_path / "config", {"use_remote_api": True})
        assert Settings.load().backend_mode == BackendMode.REMOTE_API

    def test_non_object_json_returns_defaults(self, tmp_path):
        write_settings(tmp_path / "config", [1, 2, 3])
        assert Settings.load() == Settings()
