"""
Identifier Source Resolver.

Responsibilities:
- Pick the identifier that brought the user to the app.
- Prefer the inbound link; fall back to polling the clipboard.

Non-Responsibilities:
- No network access.
- No persistence.

Invariant:
``on_identifier`` is called exactly once per ``resolve`` call.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .logger import StructuredLogger, get_logger
from .platform import ClipboardProvider
from .query import first_path_segment
from .retry import BoundedPoll
from .scheduler import Scheduler
from .validator import is_valid_identifier


class IdentifierSource(str, Enum):
    URL = "url"
    CLIPBOARD = "clipboard"
    NONE = "none"


@dataclass(frozen=True)
class ResolutionRequest:
    data: Optional[str] = None
    read_clipboard: bool = True


OnIdentifier = Callable[[Optional[str], IdentifierSource], None]


def identifier_from_url(data: Optional[str]) -> Optional[str]:
    segment = first_path_segment(data)
    return segment if is_valid_identifier(segment) else None


class IdentifierSourceResolver:
    def __init__(
        self,
        scheduler: Scheduler,
        clipboard: Optional[ClipboardProvider] = None,
        tries: int = 3,
        interval: float = 0.15,
        logger: Optional[StructuredLogger] = None,
    ):
        self._scheduler = scheduler
        self._clipboard = clipboard
        self.tries = tries
        self.interval = interval
        self._log = logger or get_logger()

    def resolve(self, request: ResolutionRequest, on_identifier: OnIdentifier) -> None:
        """
        Find the identifier for ``request``.

        Runs on the scheduler's context. Clipboard re-attempts are scheduled,
        so this returns before a clipboard-derived answer is known.
        """
        from_url = identifier_from_url(request.data)
        if from_url is not None:
            on_identifier(from_url, IdentifierSource.URL)
            return

        if not request.read_clipboard or self._clipboard is None:
            on_identifier(None, IdentifierSource.NONE)
            return

        def done(found: Optional[str]) -> None:
            if found is None:
                on_identifier(None, IdentifierSource.NONE)
            else:
                on_identifier(found, IdentifierSource.CLIPBOARD)

        BoundedPoll(
            self._scheduler,
            lambda attempt: self.read_clipboard_identifier(),
            done,
            max_attempts=self.tries,
            interval=self.interval,
            on_retry=lambda attempt, delay: self._log.debug(
                "Clipboard has no identifier yet", next_attempt=attempt, delay_s=delay
            ),
        ).run()

    def read_clipboard_identifier(self) -> Optional[str]:
        """Read the clipboard fresh; return its trimmed text if it is a valid identifier."""
        try:
            text = self._clipboard.read_text()
        except Exception as e:
            self._log.debug("Clipboard read failed", error=repr(e))
            return None
        if not isinstance(text, str):
            return None
        text = text.strip()
        return text if is_valid_identifier(text) else None
