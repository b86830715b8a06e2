"""Resolution outcomes and the one-shot channel that delivers them."""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union


class SDDLError(Exception):
    """Base class for resolver errors."""
    pass


class AlreadyDeliveredError(SDDLError):
    """Raised when a ResultChannel is written more than once."""
    pass


class ErrorKind(str, Enum):
    NETWORK_OR_HTTP = "network_or_http"
    PARSE_ERROR = "parse_error"
    NO_IDENTIFIER = "no_identifier"


@dataclass(frozen=True)
class Success:
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str


Outcome = Union[Success, Failure]


class ResultChannel:
    """
    Exactly-once delivery of an Outcome.

    The consumer runs through ``post`` (normally a scheduler's post), so it
    always executes on the designated context regardless of which thread
    wrote the outcome.
    """

    def __init__(
        self,
        consumer: Callable[[Outcome], None],
        post: Optional[Callable[[Callable[[], None]], None]] = None,
    ):
        self._consumer = consumer
        self._post = post
        self._lock = threading.Lock()
        self._outcome: Optional[Outcome] = None

    @property
    def delivered(self) -> bool:
        with self._lock:
            return self._outcome is not None

    @property
    def outcome(self) -> Optional[Outcome]:
        with self._lock:
            return self._outcome

    def deliver(self, outcome: Outcome) -> None:
        """
        Hand the outcome to the consumer.

        Raises:
            AlreadyDeliveredError: If an outcome was already delivered
        """
        with self._lock:
            if self._outcome is not None:
                raise AlreadyDeliveredError(
                    f"Result already delivered ({self._outcome!r}); refusing {outcome!r}"
                )
            self._outcome = outcome

        if self._post is None:
            self._consumer(outcome)
        else:
            self._post(lambda: self._consumer(outcome))
