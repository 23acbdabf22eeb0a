"""Application runtime."""

import argparse
import atexit
import signal
import sys
from datetime import datetime
from typing import List, Optional

from podscribe import __app_name__, __version__
from podscribe.core.asr import LocalModelHandle
from podscribe.core.asr.model_downloader import ModelDownloader
from podscribe.core.asr.models import (
    delete_model,
    get_all_models_with_status,
    get_model_by_id,
)
from podscribe.core.audio import download_episode, load_local_file
from podscribe.core.episode import Episode
from podscribe.core.errors import (
    AlreadyInProgress,
    AlreadyTranscribed,
    ConfigurationError,
    TranscriptionError,
)
from podscribe.core.insights import InsightGenerator
from podscribe.core.orchestrator import TranscriptionOrchestrator
from podscribe.core.progress import ConsoleProgressReporter, ProgressReporter
from podscribe.core.settings import BackendMode, Settings, get_settings
from podscribe.core.templates import TranscriptStore
from podscribe.utils.logger import get_logger, set_console_logging, shutdown_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_IN_PROGRESS = 3


class ServiceRegistry:
    """Owns the long-lived services shared by every transcription run."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.settings = settings or get_settings()
        self.reporter = reporter or ProgressReporter()
        self.model_handle = LocalModelHandle(
            self.settings.local_model_id,
            download_missing=self.settings.download_missing_model,
            reporter=self.reporter,
        )
        self.store = TranscriptStore(self.settings.output_root)
        self.orchestrator = TranscriptionOrchestrator(
            self.settings,
            store=self.store,
            reporter=self.reporter,
            model_handle=self.model_handle,
        )
        self.insights = InsightGenerator.from_settings(self.settings)
        self._shut_down = False

    def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Shutting down services")
        self.model_handle.close()


def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=__app_name__, description="Transcribe podcast episodes to markdown."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to the console")
    commands = parser.add_subparsers(dest="command", required=True)

    transcribe = commands.add_parser("transcribe", help="Transcribe one episode")
    source = transcribe.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Local audio file")
    source.add_argument("--url", help="Episode audio URL")
    transcribe.add_argument("--title", required=True)
    transcribe.add_argument("--podcast", required=True)
    transcribe.add_argument("--date", type=_parse_date, help="Episode date (YYYY-MM-DD)")
    transcribe.add_argument("--description", default="")
    transcribe.add_argument(
        "--backend", choices=[mode.value for mode in BackendMode], help="Override backend"
    )
    transcribe.add_argument("--api-key")
    transcribe.add_argument("--server-url")
    transcribe.add_argument("--output-dir")
    transcribe.add_argument(
        "--insights", action="store_true", help="Print Ollama insights after saving"
    )

    models = commands.add_parser("models", help="Manage local speech models")
    model_commands = models.add_subparsers(dest="models_command", required=True)
    model_commands.add_parser("list", help="List available models")
    download = model_commands.add_parser("download", help="Download a model")
    download.add_argument("model_id")
    delete = model_commands.add_parser("delete", help="Delete a downloaded model")
    delete.add_argument("model_id")

    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    settings = get_settings().model_copy()
    if args.backend:
        settings.backend_mode = BackendMode(args.backend)
    if args.api_key:
        settings.api_key = args.api_key
    if args.server_url:
        settings.server_url = args.server_url.rstrip("/")
    if args.output_dir:
        settings.output_dir = args.output_dir
    return settings


def _cmd_transcribe(args: argparse.Namespace) -> int:
    settings = _settings_for(args)
    registry = ServiceRegistry(settings, reporter=ConsoleProgressReporter())
    atexit.register(registry.shutdown)

    episode = Episode(
        title=args.title,
        podcast_name=args.podcast,
        url=args.url or "",
        stream_url=args.url or "",
        description=args.description,
        episode_date=args.date,
    )

    def audio():
        if args.file:
            return load_local_file(args.file)
        return download_episode(episode, timeout=settings.request_timeout_s)

    try:
        outcome = registry.orchestrator.run(episode, audio)
    except AlreadyTranscribed:
        return EXIT_OK
    except AlreadyInProgress as e:
        logger.warning(str(e))
        return EXIT_IN_PROGRESS
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except TranscriptionError:
        return EXIT_FAILED
    finally:
        registry.shutdown()

    print(outcome.path)

    if args.insights:
        registry.insights.enabled = True
    insights = registry.insights.generate(outcome.text)
    if insights:
        print(insights)

    return EXIT_OK


def _cmd_models(args: argparse.Namespace) -> int:
    if args.models_command == "list":
        for model, status in get_all_models_with_status():
            marker = "*" if status == "downloaded" else " "
            print(f"{marker} {model.id}  ({model.name})")
        return EXIT_OK

    if get_model_by_id(args.model_id) is None:
        print(f"Unknown model: {args.model_id}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.models_command == "delete":
        deleted, message = delete_model(args.model_id)
        print(message, file=sys.stdout if deleted else sys.stderr)
        return EXIT_OK if deleted else EXIT_FAILED

    reporter = ConsoleProgressReporter()
    downloader = ModelDownloader(reporter=reporter)
    signal.signal(signal.SIGINT, lambda *args: downloader.cancel())

    try:
        completed = downloader.download(args.model_id)
    except Exception as e:
        reporter.notify(f"Download failed: {e}")
        return EXIT_FAILED

    return EXIT_OK if completed else EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_console_logging(True)

    signal.signal(signal.SIGTERM, lambda *_: sys.exit(EXIT_FAILED))
    atexit.register(shutdown_logging)

    logger.info(f"Starting {__app_name__} v{__version__}: {args.command}")

    if args.command == "transcribe":
        return _cmd_transcribe(args)
    return _cmd_models(args)


if __name__ == "__main__":
    sys.exit(main())
