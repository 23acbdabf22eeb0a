"""
User-facing progress notices.

The orchestrator never renders anything itself; it pushes human-readable
status text into a ProgressReporter. TimerNotice wraps a reporter with a
running elapsed-time heading refreshed once per second.
"""

import sys
import threading
import time
from typing import Callable, Optional

from ..utils.logger import get_logger
from ..utils.time_format import format_elapsed

logger = get_logger(__name__)


class ProgressReporter:
    """Sink for status text. The default implementation only logs."""

    def show(self, message: str) -> None:
        logger.debug(message.replace("\n\n", " "))

    def hide(self) -> None:
        pass

    def notify(self, message: str) -> None:
        logger.info(message)


class LoggingProgressReporter(ProgressReporter):
    pass


class ConsoleProgressReporter(ProgressReporter):
    """Writes the latest notice on a single refreshed stderr line."""

    def __init__(self, stream=None):
        self._stream = stream or sys.stderr
        self._lock = threading.Lock()
        self._last_width = 0

    def show(self, message: str) -> None:
        line = message.replace("\n\n", " ").replace("\n", " ")
        with self._lock:
            padding = " " * max(0, self._last_width - len(line))
            self._stream.write(f"\r{line}{padding}")
            self._stream.flush()
            self._last_width = len(line)

    def hide(self) -> None:
        with self._lock:
            if self._last_width:
                self._stream.write("\n")
                self._stream.flush()
                self._last_width = 0

    def notify(self, message: str) -> None:
        with self._lock:
            prefix = "\n" if self._last_width else ""
            self._stream.write(f"{prefix}{message}\n")
            self._stream.flush()
            self._last_width = 0


class TimerNotice:
    def __init__(
        self,
        heading: str,
        initial_message: str,
        reporter: ProgressReporter,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        auto_refresh: bool = True,
    ):
        self._heading = heading
        self._message = initial_message
        self._reporter = reporter
        self._interval = interval
        self._clock = clock
        self._start = clock()
        self._stop_time: Optional[float] = None
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._hide_timer: Optional[threading.Timer] = None

        self._refresh()

        self._thread: Optional[threading.Thread] = None
        if auto_refresh:
            self._thread = threading.Thread(
                target=self._run, name="notice-refresh", daemon=True
            )
            self._thread.start()

    @property
    def message(self) -> str:
        return self._message

    def elapsed(self) -> float:
        end = self._stop_time if self._stop_time is not None else self._clock()
        return end - self._start

    def format(self, message: Optional[str] = None) -> str:
        text = self._message if message is None else message
        return f"{self._heading} ({format_elapsed(self.elapsed())}):\n\n{text}"

    def update(self, message: str) -> None:
        with self._lock:
            self._message = message
        self._refresh()

    def stop(self) -> None:
        if self._stop_time is None:
            self._stop_time = self._clock()
        self._stopped.set()

    def hide(self) -> None:
        self.stop()
        self._reporter.hide()

    def hide_after(self, delay: float) -> None:
        self.stop()
        if delay <= 0:
            self.hide()
            return
        self._hide_timer = threading.Timer(delay, self.hide)
        self._hide_timer.daemon = True
        self._hide_timer.start()

    def _refresh(self) -> None:
        with self._lock:
            text = self.format()
        self._reporter.show(text)

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            self._refresh()
