"""
Bounded retry with incrementing backoff for single units of work.

A failed attempt n is followed by a wait of backoff_base * n before the next
one. In batch mode an exhausted chunk turns into a placeholder fragment
instead of an exception, so one bad chunk never aborts a whole transcript.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from tenacity import Retrying, stop_after_attempt, wait_incrementing

from ...utils.logger import get_logger
from ..errors import ChunkTranscriptionFailed, TranscriptionFailed

logger = get_logger(__name__)

PLACEHOLDER_TEMPLATE = "[Error transcribing chunk {index}]"

AttemptCallback = Callable[[int, int, Optional[BaseException]], None]


def placeholder_for(index: int) -> str:
    return PLACEHOLDER_TEMPLATE.format(index=index)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base_ms: int = 1000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base_ms < 0:
            raise ValueError("backoff_base_ms must not be negative")

    @property
    def backoff_base_s(self) -> float:
        return self.backoff_base_ms / 1000.0

    def delay_after(self, attempt_number: int) -> float:
        return self.backoff_base_s * attempt_number


@dataclass
class TranscriptionResult:
    unit_index: int
    text: str
    attempts: int
    final_error: Optional[ChunkTranscriptionFailed] = None

    @property
    def failed(self) -> bool:
        return self.final_error is not None


class RetryExecutor:
    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_attempt: Optional[AttemptCallback] = None,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._on_attempt = on_attempt

    def _retrying(self, index: int) -> Retrying:
        base = self.policy.backoff_base_s

        def log_retry(retry_state) -> None:
            logger.warning(
                f"Chunk {index} attempt {retry_state.attempt_number}/"
                f"{self.policy.max_attempts} failed: {retry_state.outcome.exception()}; "
                f"retrying in {retry_state.next_action.sleep:.1f}s"
            )

        return Retrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=wait_incrementing(start=base, increment=base),
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=True,
        )

    def _run(self, index: int, task: Callable[[], str]) -> Tuple[str, int]:
        attempts = 0

        def attempt() -> str:
            nonlocal attempts
            attempts += 1
            try:
                text = task()
            except Exception as e:
                self._notify(index, attempts, e)
                raise
            self._notify(index, attempts, None)
            return text

        try:
            return self._retrying(index)(attempt), attempts
        except Exception as e:
            raise ChunkTranscriptionFailed(index, attempts, e) from e

    def _notify(self, index: int, attempt: int, error: Optional[BaseException]) -> None:
        if self._on_attempt:
            self._on_attempt(index, attempt, error)

    def execute(self, task: Callable[[], str], index: int = 0) -> str:
        """
        Run task until it succeeds or the policy is exhausted.

        Raises:
            TranscriptionFailed: If every attempt failed.
        """
        try:
            text, _ = self._run(index, task)
        except ChunkTranscriptionFailed as e:
            raise TranscriptionFailed(str(e)) from e.cause
        return text

    def execute_chunk(self, index: int, task: Callable[[], str]) -> TranscriptionResult:
        """Batch-mode execution: exhaustion yields a placeholder, never raises."""
        try:
            text, attempts = self._run(index, task)
        except ChunkTranscriptionFailed as e:
            logger.error(str(e))
            return TranscriptionResult(
                unit_index=index,
                text=placeholder_for(index),
                attempts=e.attempts,
                final_error=e,
            )
        return TranscriptionResult(unit_index=index, text=text, attempts=attempts)
