"""
Resolution Orchestrator.

Responsibilities:
- Admit at most one resolution at a time.
- Resolve an organic (link-less) cold start at most once per install.
- Choose the identifier source, then drive the by-id / try fetch chain.
- Deliver exactly one outcome per accepted invocation, on the scheduler.

Non-Responsibilities:
- No HTTP details (fetch.py).
- No clipboard or referrer plumbing (sources.py, referrer.py).

Invariant:
The gate is released on every exit path before the outcome is delivered.
"""

from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

import requests

from .config import Settings
from .fetch import FetchChain
from .gate import ResolutionGate
from .headers import DeviceInfo
from .logger import StructuredLogger, get_logger
from .outcome import ErrorKind, Failure, Outcome, ResultChannel, Success
from .platform import ClipboardProvider, ReferrerProvider
from .referrer import AttributionCache, AttributionRecord
from .scheduler import Scheduler, ThreadScheduler
from .sources import IdentifierSource, IdentifierSourceResolver, ResolutionRequest
from .storage import LocalState, open_store

OnOutcome = Callable[[Outcome], None]


class ResolutionCallback:
    """Receives the result of one accepted resolution, exactly once."""

    def on_success(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def on_error(self, message: str) -> None:
        raise NotImplementedError


class FunctionCallback(ResolutionCallback):
    def __init__(
        self,
        on_success: Callable[[Dict[str, Any]], None],
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self._on_success = on_success
        self._on_error = on_error

    def on_success(self, data: Dict[str, Any]) -> None:
        self._on_success(data)

    def on_error(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)


def _dispatch_to(callback: ResolutionCallback) -> OnOutcome:
    def consume(outcome: Outcome) -> None:
        if isinstance(outcome, Success):
            callback.on_success(outcome.data)
        else:
            callback.on_error(outcome.message)
    return consume


class Resolver:
    """
    Resolves the deferred deep link for this install.

    Args:
        settings: Configuration (default: Settings())
        state: Persisted flags and attribution (default: store at settings.state_path)
        scheduler: Context callbacks and clipboard polls run on
        executor: Where network requests run
        clipboard: Clipboard access; None disables the clipboard source
        referrer_provider: Install attribution service; None disables it
        device: Device info for headers (default: DeviceInfo.detect())
        session: requests session for the fetch chain
        fetch_chain: Prebuilt fetch chain (overrides session/device)
        fallback_to_try: When False, no identifier fails with NO_IDENTIFIER
            instead of calling the try endpoint
        logger: Logger (default: global logger)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        state: Optional[LocalState] = None,
        scheduler: Optional[Scheduler] = None,
        executor: Optional[Executor] = None,
        clipboard: Optional[ClipboardProvider] = None,
        referrer_provider: Optional[ReferrerProvider] = None,
        device: Optional[DeviceInfo] = None,
        session: Optional[requests.Session] = None,
        fetch_chain: Optional[FetchChain] = None,
        fallback_to_try: bool = True,
        logger: Optional[StructuredLogger] = None,
    ):
        self.settings = settings or Settings()
        self._log = logger or get_logger()
        self.state = state if state is not None else LocalState(open_store(self.settings.state_path))

        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or ThreadScheduler(logger=self._log)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="sddl-io")

        self.attribution = AttributionCache(
            self.state, referrer_provider, self.settings.referrer_timeout, self._log
        )
        self.fetch_chain = fetch_chain or FetchChain(
            self.settings,
            session=session,
            device=device or DeviceInfo.detect(self.settings.app_identifier),
            attribution=self.attribution,
            logger=self._log,
        )
        self.sources = IdentifierSourceResolver(
            self.scheduler,
            clipboard,
            tries=self.settings.clipboard_tries,
            interval=self.settings.clipboard_interval,
            logger=self._log,
        )
        self.gate = ResolutionGate()
        self.fallback_to_try = fallback_to_try

    @property
    def resolving(self) -> bool:
        return self.gate.held

    def fetch_details(
        self,
        data: Optional[str] = None,
        callback: Optional[ResolutionCallback] = None,
        read_clipboard: Optional[bool] = None,
    ) -> bool:
        """
        Resolve the link that opened the app and report it to ``callback``.

        Args:
            data: Inbound link URI, if the app was opened by one
            callback: Receives on_success(payload) or on_error(message)
            read_clipboard: Poll the clipboard when the link has no identifier
                (default: settings.read_clipboard)

        Returns:
            True if accepted. A dropped invocation (one already in flight, or
            a link-less open after the first) never calls back.
        """
        if callback is None:
            raise TypeError("fetch_details() requires a callback")
        return self.submit(data, _dispatch_to(callback), read_clipboard)

    def submit(
        self,
        data: Optional[str],
        on_outcome: OnOutcome,
        read_clipboard: Optional[bool] = None,
    ) -> bool:
        """Same as fetch_details, reporting the raw Outcome."""
        self._log.record_resolution_requested()
        if not self.gate.try_acquire():
            self._log.record_resolution_dropped("in_flight")
            self._log.debug("Resolution already in flight, dropping invocation")
            return False

        try:
            if not data:
                if self.state.is_cold_start_handled():
                    self.gate.release()
                    self._log.record_resolution_dropped("cold_start_handled")
                    self._log.debug("Organic cold start already handled, dropping invocation")
                    return False
                self.state.mark_cold_start_handled()
        except Exception:
            self.gate.release()
            raise

        self._log.record_resolution_accepted()
        request = ResolutionRequest(
            data=data or None,
            read_clipboard=self.settings.read_clipboard if read_clipboard is None else read_clipboard,
        )
        channel = ResultChannel(on_outcome, self.scheduler.post)
        self._log.info("Resolution started", has_link=request.data is not None, read_clipboard=request.read_clipboard)

        try:
            self.attribution.fetch_once(self._on_attribution)
            self.scheduler.post(lambda: self._resolve_identifier(request, channel))
        except Exception as e:
            self._log.error("Could not start resolution", error=repr(e))
            self._finish(channel, Failure(ErrorKind.NETWORK_OR_HTTP, f"Unexpected error: {e}"))
        return True

    def _on_attribution(self, record: Optional[AttributionRecord]) -> None:
        if record is None:
            self._log.debug("No install attribution available")
        else:
            self._log.debug("Install attribution available", sent=self.attribution.is_sent())

    def _resolve_identifier(self, request: ResolutionRequest, channel: ResultChannel) -> None:
        dispatched = []

        def on_identifier(identifier: Optional[str], source: IdentifierSource) -> None:
            dispatched.append(source)
            self._dispatch(identifier, source, channel)

        try:
            self.sources.resolve(request, on_identifier)
        except Exception as e:
            if dispatched:
                raise
            self._log.error("Identifier resolution failed", error=repr(e))
            self._finish(channel, Failure(ErrorKind.NETWORK_OR_HTTP, f"Unexpected error: {e}"))

    def _dispatch(self, identifier: Optional[str], source: IdentifierSource, channel: ResultChannel) -> None:
        self._log.record_identifier_source(source.value)
        self._log.info("Identifier resolved", source=source.value, identifier=identifier)
        if identifier is None and not self.fallback_to_try:
            self._finish(channel, Failure(ErrorKind.NO_IDENTIFIER, "No identifier found"))
            return
        try:
            self._executor.submit(self._fetch, identifier, channel)
        except Exception as e:
            self._log.error("Could not schedule fetch", error=repr(e))
            self._finish(channel, Failure(ErrorKind.NETWORK_OR_HTTP, f"Unexpected error: {e}"))

    def _fetch(self, identifier: Optional[str], channel: ResultChannel) -> None:
        outcome: Outcome = Failure(ErrorKind.NETWORK_OR_HTTP, "Resolution interrupted")
        try:
            if identifier is not None:
                outcome = self.fetch_chain.fetch_by_id(identifier)
            else:
                if self.attribution.read_cached() is None:
                    # Give an in-flight referrer fetch a moment so the try
                    # request can carry attribution headers
                    self.attribution.wait(self.settings.referrer_wait)
                outcome = self.fetch_chain.fetch_try()
        except Exception as e:
            self._log.error("Unexpected error during fetch", error=repr(e))
            outcome = Failure(ErrorKind.NETWORK_OR_HTTP, f"Unexpected error: {e}")
        finally:
            self._finish(channel, outcome)

    def _finish(self, channel: ResultChannel, outcome: Outcome) -> None:
        try:
            self.gate.release()
            if isinstance(outcome, Success):
                self._log.info("Resolution succeeded", keys=len(outcome.data))
            else:
                self._log.warning("Resolution failed", kind=outcome.kind.value, error=outcome.message)
        finally:
            channel.deliver(outcome)

    def close(self) -> None:
        """Release the executor, scheduler and HTTP session this resolver owns."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if self._owns_scheduler and isinstance(self.scheduler, ThreadScheduler):
            self.scheduler.shutdown(wait=False)
        self.fetch_chain.close()
