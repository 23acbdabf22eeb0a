"""
Centralized application configuration.

Edit the variables below to configure development settings.
"""

import logging

# =============================================================================
# DEVELOPMENT SETTINGS - Edit these for local development
# =============================================================================
LOG_LEVEL = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_TO_CONSOLE = False  # Set to True to output logs to terminal
# =============================================================================

# =============================================================================
# TRANSCRIPTION DEFAULTS
# =============================================================================
DEFAULT_TRANSCRIPT_PATH = "transcripts/{{podcast}}/{{title}}.md"
DEFAULT_TRANSCRIPT_TEMPLATE = (
    "# {{title}}\n\nPodcast: {{podcast}}\nDate: {{date}}\n\n{{transcript}}"
)
DEFAULT_INSIGHT_PROMPT = (
    "You are an assistant that provides insights about podcast segments. "
    "Analyze the following podcast transcript and provide key points, insights, "
    "and a brief summary:\n\n{transcription}"
)
# =============================================================================


def get_log_level() -> int:
    """Get the logging level as an integer."""
    return getattr(logging, LOG_LEVEL.upper(), logging.INFO)
