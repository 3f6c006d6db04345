"""
Request rate limiting for concurrent track downloads.

When downloads run on a worker pool the fixed pacing sleep no longer bounds
the request rate, so workers share one sliding-window limiter instead.
"""

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Optional

logger = logging.getLogger(__name__)


class RequestRateLimiter:
    """
    Request rate limiter using sliding window algorithm.

    Allows at most ``max_requests`` acquisitions in any ``window_seconds``
    span, across all threads.
    """

    def __init__(
        self,
        max_requests: int = 2,
        window_seconds: float = 1.0,
        enabled: bool = True,
    ):
        """
        Initialize request rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds
            enabled: Whether rate limiting is enabled
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled

        self.request_times: deque = deque()
        self.condition = threading.Condition(threading.RLock())

    def acquire(
        self,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> bool:
        """
        Acquire permission to make a request.

        Args:
            timeout: Maximum time to wait (None = wait indefinitely)
            cancel_event: Stop waiting once this event is set

        Returns:
            True if permission acquired, False on timeout or cancellation
        """
        if not self.enabled:
            return True

        start_time = time.monotonic()

        with self.condition:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    return False

                now = time.monotonic()
                while self.request_times and \
                        self.request_times[0] <= now - self.window_seconds:
                    self.request_times.popleft()

                if len(self.request_times) < self.max_requests:
                    self.request_times.append(now)
                    return True

                wait_time = self.window_seconds - (now - self.request_times[0])
                if timeout is not None and (now - start_time) + wait_time > timeout:
                    return False

                # Short waits so cancellation is noticed promptly
                self.condition.wait(min(wait_time, 0.1))

    @contextmanager
    def request(self):
        """
        Context manager for rate-limited requests.

        Usage:
            with rate_limiter.request():
                # Make network request here
                pass
        """
        self.acquire()
        yield
