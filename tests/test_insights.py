"""Tests for Ollama insight generation."""

from types import SimpleNamespace
from unittest.mock import patch

from podscribe.core.insights import InsightGenerator
from podscribe.core.settings import Settings


def completion_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestInsightGenerator:
    def test_from_settings(self):
        settings = Settings(
            ollama_enabled=True, ollama_model="mistral", ollama_url="http://gpu:11434"
        )
        generator = InsightGenerator.from_settings(settings)
        assert generator.model == "ollama/mistral"
        assert generator.api_base == "http://gpu:11434"
        assert generator.enabled

    def test_prompt_placeholder(self):
        generator = InsightGenerator(prompt_template="Summarise: {transcription}!")
        assert generator.build_prompt("text") == "Summarise: text!"

    def test_prompt_without_placeholder_appends(self):
        generator = InsightGenerator(prompt_template="Summarise")
        assert generator.build_prompt("text") == "Summarise\n\ntext"

    def test_generate(self):
        generator = InsightGenerator(model="llama3", prompt_template="{transcription}")

        with patch("podscribe.core.insights.completion") as mock_completion:
            mock_completion.return_value = completion_response("- key point")
            assert generator.generate("the transcript") == "- key point"

        kwargs = mock_completion.call_args.kwargs
        assert kwargs["model"] == "ollama/llama3"
        assert kwargs["api_base"] == "http://localhost:11434"
        assert kwargs["messages"] == [{"role": "user", "content": "the transcript"}]

    def test_disabled_returns_none(self):
        generator = InsightGenerator(enabled=False)
        with patch("podscribe.core.insights.completion") as mock_completion:
            assert generator.generate("text") is None
        mock_completion.assert_not_called()

    def test_empty_transcript_returns_none(self):
        assert InsightGenerator().generate("   ") is None

    def test_failure_returns_none(self):
        generator = InsightGenerator()
        with patch(
            "podscribe.core.insights.completion", side_effect=ConnectionError("refused")
        ):
            assert generator.generate("text") is None
