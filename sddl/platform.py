"""
Boundaries to the host platform's clipboard and install-referrer services.

The engine only sees these small interfaces. Hosts supply real adapters;
the static implementations here back the CLI and the tests.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional


@dataclass(frozen=True)
class ReferrerDetails:
    """What the platform attribution service reports for this install."""

    install_referrer: Optional[str]
    referrer_click_timestamp_seconds: int = 0
    install_begin_timestamp_seconds: int = 0


ReferrerListener = Callable[[Optional[ReferrerDetails]], None]


class ReferrerProvider:
    """
    One-shot, callback-based install attribution service.

    ``start_connection`` may call the listener on any thread, later, or
    never; callers bound the wait themselves.
    """

    def start_connection(self, listener: ReferrerListener) -> None:
        raise NotImplementedError

    def end_connection(self) -> None:
        pass


class StaticReferrerProvider(ReferrerProvider):
    """Reports a fixed referrer string immediately."""

    def __init__(self, raw: Optional[str], click_ts_sec: int = 0, install_begin_ts_sec: int = 0):
        self.details = ReferrerDetails(raw, click_ts_sec, install_begin_ts_sec)
        self.connections = 0

    def start_connection(self, listener: ReferrerListener) -> None:
        self.connections += 1
        listener(self.details)


class ClipboardProvider:
    """Read access to the primary clipboard item, coerced to text."""

    def read_text(self) -> Optional[str]:
        raise NotImplementedError


class StaticClipboard(ClipboardProvider):
    """
    Returns the given texts in order, one per read; the last one repeats.

    An empty sequence behaves like an empty clipboard.
    """

    def __init__(self, texts: Iterable[Optional[str]] = ()):
        self._texts: List[Optional[str]] = list(texts)
        self._lock = threading.Lock()
        self.reads = 0

    def read_text(self) -> Optional[str]:
        with self._lock:
            self.reads += 1
            if not self._texts:
                return None
            index = min(self.reads, len(self._texts)) - 1
            return self._texts[index]
