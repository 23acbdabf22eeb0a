"""podscribe - podcast episode transcription."""

__app_name__ = "podscribe"
__version__ = "0.3.0"
