"""
Episode insights from a local Ollama model.

Uses LiteLLM so the transcript can be summarised by any Ollama model without
a provider-specific client.
"""

from typing import Optional

from litellm import completion

from ..utils.logger import get_logger
from .settings import Settings

logger = get_logger(__name__)

TRANSCRIPTION_PLACEHOLDER = "{transcription}"


class InsightGenerator:
    """
    Generates insights for a finished transcript.

    Disabled generators and failed requests return None; insights are an
    optional extra and never fail a transcription.
    """

    def __init__(
        self,
        model: str = "llama3",
        api_base: str = "http://localhost:11434",
        prompt_template: str = "",
        enabled: bool = True,
    ):
        self.model = model if model.startswith("ollama/") else f"ollama/{model}"
        self.api_base = api_base
        self.prompt_template = prompt_template
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: Settings) -> "InsightGenerator":
        return cls(
            model=settings.ollama_model,
            api_base=settings.ollama_url,
            prompt_template=settings.insight_prompt_template,
            enabled=settings.ollama_enabled,
        )

    def build_prompt(self, transcription: str) -> str:
        if TRANSCRIPTION_PLACEHOLDER in self.prompt_template:
            return self.prompt_template.replace(TRANSCRIPTION_PLACEHOLDER, transcription)
        return f"{self.prompt_template}\n\n{transcription}"

    def generate(self, transcription: str) -> Optional[str]:
        if not self.enabled:
            return None
        if not transcription or not transcription.strip():
            return None

        logger.info(f"Generating insights with {self.model} ({len(transcription)} chars)")

        try:
            response = completion(
                model=self.model,
                api_base=self.api_base,
                messages=[{"role": "user", "content": self.build_prompt(transcription)}],
            )
            result = response.choices[0].message.content
        except Exception as e:
            logger.error(f"Insight generation failed: {e}")
            return None

        logger.info(f"Insights generated: {len(result or '')} chars")
        return result
