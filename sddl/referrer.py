"""
One-time install attribution ("install referrer") cache.

Attribution is best-effort enrichment for request headers: every provider
failure degrades to "no attribution" and nothing negative is ever cached,
so a later cold start can try again.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .logger import StructuredLogger, get_logger
from .platform import ReferrerDetails, ReferrerProvider
from .query import parse
from .storage import LocalState


@dataclass(frozen=True)
class AttributionRecord:
    raw: str
    click_ts_sec: int
    install_begin_ts_sec: int
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: str, click_ts_sec: int = 0, install_begin_ts_sec: int = 0) -> "AttributionRecord":
        """Build a record; params are always derived from raw."""
        return cls(raw, int(click_ts_sec), int(install_begin_ts_sec), parse(raw))


OnAttribution = Callable[[Optional[AttributionRecord]], None]


class _Handshake:
    """State shared between the waiting thread and the provider's listener."""

    def __init__(self, first_waiter: OnAttribution):
        self.lock = threading.Lock()
        self.answered = threading.Event()
        self.finished = threading.Event()
        self.closed = False
        self.record: Optional[AttributionRecord] = None
        self.waiters: List[OnAttribution] = [first_waiter]


class AttributionCache:
    """
    Fetches the install referrer at most once and persists it.

    Args:
        state: Persisted state the record is stored in
        provider: Platform attribution service (None disables fetching)
        timeout: Seconds to wait for the provider before giving up
        logger: Logger (default: global logger)
    """

    def __init__(
        self,
        state: LocalState,
        provider: Optional[ReferrerProvider] = None,
        timeout: float = 2.5,
        logger: Optional[StructuredLogger] = None,
    ):
        self._state = state
        self._provider = provider
        self.timeout = timeout
        self._log = logger or get_logger()
        self._lock = threading.Lock()
        self._in_flight: Optional[_Handshake] = None

    def read_cached(self) -> Optional[AttributionRecord]:
        """Rebuild the stored record, or None if nothing is stored."""
        try:
            stored = self._state.read_referrer()
        except Exception as e:
            self._log.warning("Could not read cached install referrer", error=repr(e))
            return None
        if stored is None:
            return None
        raw, click, install = stored
        return AttributionRecord.from_raw(raw, click, install)

    def fetch_once(self, on_done: OnAttribution) -> None:
        """
        Report the attribution record, fetching it from the provider if needed.

        ``on_done`` runs immediately when a record is cached, otherwise on the
        background thread once the provider answers or the timeout expires.
        Concurrent calls share one handshake.
        """
        cached = self.read_cached()
        if cached is not None:
            on_done(cached)
            return
        if self._provider is None:
            on_done(None)
            return

        with self._lock:
            if self._in_flight is not None:
                self._in_flight.waiters.append(on_done)
                return
            handshake = self._in_flight = _Handshake(on_done)

        threading.Thread(
            target=self._run, args=(handshake,), name="sddl-referrer", daemon=True
        ).start()

    def wait(self, timeout: float) -> Optional[AttributionRecord]:
        """Wait up to ``timeout`` seconds for an in-flight fetch, then read the cache."""
        with self._lock:
            handshake = self._in_flight
        if handshake is not None and timeout > 0:
            handshake.finished.wait(timeout)
        return self.read_cached()

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._in_flight is not None

    def mark_sent(self) -> None:
        self._state.mark_referrer_sent()

    def is_sent(self) -> bool:
        return self._state.is_referrer_sent()

    def _run(self, handshake: _Handshake) -> None:
        try:
            self._provider.start_connection(
                lambda details: self._on_setup_finished(handshake, details)
            )
            if not handshake.answered.wait(self.timeout):
                self._log.info("Install referrer timed out", timeout_s=self.timeout)
        except Exception as e:
            self._log.warning("Install referrer connection failed", error=repr(e))
        finally:
            with handshake.lock:
                handshake.closed = True
                result = handshake.record
            try:
                self._provider.end_connection()
            except Exception as e:
                self._log.debug("Install referrer end_connection failed", error=repr(e))

            with self._lock:
                self._in_flight = None
                waiters = list(handshake.waiters)
            handshake.finished.set()
            for waiter in waiters:
                try:
                    waiter(result)
                except Exception as e:
                    self._log.error("Attribution callback raised", error=repr(e))

    def _on_setup_finished(self, handshake: _Handshake, details: Optional[ReferrerDetails]) -> None:
        try:
            with handshake.lock:
                if handshake.closed:
                    self._log.debug("Ignoring late install referrer answer")
                    return
                raw = (details.install_referrer or "") if details is not None else ""
                if not raw.strip():
                    self._log.debug("Install referrer is empty")
                    return
                record = AttributionRecord.from_raw(
                    raw,
                    details.referrer_click_timestamp_seconds,
                    details.install_begin_timestamp_seconds,
                )
                # Persist before anyone can observe the record
                self._state.write_referrer(record.raw, record.click_ts_sec, record.install_begin_ts_sec)
                handshake.record = record
                self._log.info("Install referrer cached", params=len(record.params))
        except Exception as e:
            self._log.warning("Install referrer response unusable", error=repr(e))
        finally:
            handshake.answered.set()
