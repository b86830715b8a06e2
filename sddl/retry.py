"""
Bounded polling and HTTP status classification.

Polling re-attempts are scheduled on a Scheduler instead of sleeping, so a
poll never blocks the context it runs on and tests can drive time by hand.
"""

from typing import Callable, Generic, Optional, TypeVar

from .scheduler import Scheduler

T = TypeVar("T")


class BoundedPoll(Generic[T]):
    """
    Call ``attempt`` until it returns a value or the attempt budget runs out.

    Args:
        scheduler: Context the attempts run on
        attempt: Callable(attempt_number) returning a value or None
        on_done: Called exactly once with the first value, or None when exhausted
        max_attempts: Total number of attempts (>= 1)
        interval: Delay in seconds before the second attempt
        backoff: Multiplier applied to the delay after each retry (1.0 = fixed)
        max_delay: Upper bound for any single delay
        on_retry: Optional callback(attempt_number, delay) before each re-attempt

    Example:
        poll = BoundedPoll(scheduler, lambda n: read_clipboard(), on_found,
                           max_attempts=3, interval=0.15)
        poll.start()
    """

    def __init__(
        self,
        scheduler: Scheduler,
        attempt: Callable[[int], Optional[T]],
        on_done: Callable[[Optional[T]], None],
        max_attempts: int = 3,
        interval: float = 0.15,
        backoff: float = 1.0,
        max_delay: float = 60.0,
        on_retry: Optional[Callable[[int, float], None]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._scheduler = scheduler
        self._attempt = attempt
        self._on_done = on_done
        self.max_attempts = max_attempts
        self.interval = interval
        self.backoff = backoff
        self.max_delay = max_delay
        self._on_retry = on_retry
        self.attempts = 0
        self._delay = interval
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def start(self) -> None:
        """Schedule the first attempt on the scheduler."""
        self._scheduler.post(self._step)

    def run(self) -> None:
        """Make the first attempt now, on the current context."""
        self._step()

    def _step(self) -> None:
        if self._finished:
            return
        self.attempts += 1
        value = self._attempt(self.attempts)
        if value is not None:
            self._finish(value)
            return

        # Don't wait after the last attempt
        if self.attempts >= self.max_attempts:
            self._finish(None)
            return

        delay = min(self._delay, self.max_delay)
        if self._on_retry:
            self._on_retry(self.attempts + 1, delay)
        self._delay *= self.backoff
        self._scheduler.call_later(delay, self._step)

    def _finish(self, value: Optional[T]) -> None:
        self._finished = True
        self._on_done(value)


def is_success_status(status_code: int) -> bool:
    """True for any 2xx status."""
    return 200 <= status_code < 300


def is_fallback_status(status_code: int) -> bool:
    """
    Check if a by-id status means the identifier is unknown or expired.

    These are not failures: the resolver falls back to the try endpoint.
    """
    return status_code in {
        404,  # Not Found
        410,  # Gone
    }
