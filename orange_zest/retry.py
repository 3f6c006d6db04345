"""
Fixed retry and pacing policy shared by every phase of a run.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from orange_zest.events import EventSink, ZestingEvent, emit
from orange_zest.exceptions import (
    RetriesExhaustedError,
    TransientServerError,
    ZestCancelled,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SERVER_ERROR_DELAY = 30.0
DEFAULT_MAX_SERVER_ERRORS = 10
DEFAULT_PACING_DELAY = 2.0


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    """Raise ZestCancelled if cancellation was requested."""
    if cancel_event is not None and cancel_event.is_set():
        raise ZestCancelled("Run cancelled")


def wait(seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
    """
    Sleep for ``seconds``, waking early if the run is cancelled.

    Raises:
        ZestCancelled: If cancellation is requested before or during the wait
    """
    check_cancelled(cancel_event)
    if seconds <= 0:
        return
    if cancel_event is None:
        time.sleep(seconds)
    elif cancel_event.wait(seconds):
        raise ZestCancelled("Run cancelled")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Pause-and-retry policy for transient server errors.

    The same operation is re-run after a fixed pause, so a cursor, playlist
    id or track is never skipped or delivered twice.

    Attributes:
        server_error_delay: Seconds to pause after a transient server error
        max_server_errors: Consecutive transient errors tolerated per operation
        pacing_delay: Seconds to wait between successive track downloads
    """

    server_error_delay: float = DEFAULT_SERVER_ERROR_DELAY
    max_server_errors: int = DEFAULT_MAX_SERVER_ERRORS
    pacing_delay: float = DEFAULT_PACING_DELAY

    def call(
        self,
        operation: Callable[[], T],
        on_event: Optional[EventSink] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> T:
        """
        Run ``operation``, pausing and retrying it on transient server errors.

        Args:
            operation: Zero-argument callable performing one request
            on_event: Observer notified of each pause
            cancel_event: Optional cancellation flag checked before each attempt

        Returns:
            Result of the first successful attempt

        Raises:
            RetriesExhaustedError: If transient errors exceed max_server_errors
            ZestCancelled: If the run is cancelled
            Exception: Any non-transient error raised by ``operation``
        """
        failures = 0
        while True:
            check_cancelled(cancel_event)
            try:
                return operation()
            except TransientServerError as e:
                failures += 1
                if failures > self.max_server_errors:
                    raise RetriesExhaustedError(
                        f"Giving up after {failures} server errors: {e}"
                    ) from e
                logger.warning(
                    f"Server error ({e}), pausing {self.server_error_delay}s "
                    f"before retry {failures}/{self.max_server_errors}"
                )
                emit(on_event, ZestingEvent.paused_after_server_error(self.server_error_delay))
                wait(self.server_error_delay, cancel_event)

    def pace(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Wait between downloads to stay clear of server-side rate limiting."""
        wait(self.pacing_delay, cancel_event)
