"""HTTP requests against the resolution service."""

from typing import Any, Dict, Optional

import requests

from .config import Settings
from .headers import DeviceInfo, build_headers
from .logger import StructuredLogger, get_logger
from .outcome import ErrorKind, Failure, Outcome, Success
from .referrer import AttributionCache
from .retry import is_fallback_status, is_success_status

BY_ID = "by_id"
TRY = "try"


class FetchChain:
    """
    The by-id request and its try-endpoint fallback.

    Both fetch methods block on the network and return an Outcome instead of
    raising; callers run them off the caller's context.

    ``settings.timeout`` bounds the connect and each socket read separately
    (requests has no total deadline), so a server trickling bytes can keep a
    request, and the resolution gate, open for longer than ``timeout``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        device: Optional[DeviceInfo] = None,
        attribution: Optional[AttributionCache] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.settings = settings or Settings()
        self._session = session or requests.Session()
        self.device = device
        self._attribution = attribution
        self._log = logger or get_logger()

    def headers(self) -> Dict[str, str]:
        record = self._attribution.read_cached() if self._attribution is not None else None
        return build_headers(self.settings.user_agent, self.device, record)

    def _get(self, url: str, endpoint: str) -> requests.Response:
        self._log.record_fetch_attempt(endpoint)
        timeout = self.settings.timeout
        return self._session.get(url, headers=self.headers(), timeout=(timeout, timeout))

    def fetch_by_id(self, identifier: str) -> Outcome:
        """
        Fetch details for a known identifier.

        404/410 mean the identifier is unknown or expired and chain into
        ``fetch_try``; any other non-2xx status is a failure with no fallback.
        """
        url = self.settings.details_url(identifier)
        try:
            resp = self._get(url, BY_ID)
        except requests.exceptions.RequestException as e:
            return self._network_failure(BY_ID, url, e)

        try:
            status = resp.status_code
            if is_success_status(status):
                return self._success(resp, BY_ID)
        finally:
            resp.close()

        if is_fallback_status(status):
            self._log.record_fallback()
            self._log.info("Identifier unknown or expired, trying fallback", identifier=identifier, status=status)
            return self.fetch_try()

        self._log.record_fetch_failure(BY_ID, f"HTTPError_{status}")
        self._log.error("Details request failed", url=url, status=status)
        return Failure(ErrorKind.NETWORK_OR_HTTP, f"HTTP {status}")

    def fetch_try(self) -> Outcome:
        """Ask the service to match this device heuristically."""
        url = self.settings.try_url()
        try:
            resp = self._get(url, TRY)
        except requests.exceptions.RequestException as e:
            return self._network_failure(TRY, url, e)

        try:
            status = resp.status_code
            if is_success_status(status):
                return self._success(resp, TRY)
        finally:
            resp.close()

        self._log.record_fetch_failure(TRY, f"HTTPError_{status}")
        self._log.warning("Try request failed", url=url, status=status)
        return Failure(ErrorKind.NETWORK_OR_HTTP, f"TRY {status}")

    def _success(self, resp: requests.Response, endpoint: str) -> Outcome:
        try:
            body: Any = resp.json()
        except ValueError as e:
            if self.settings.strict_json:
                self._log.record_fetch_failure(endpoint, "ParseError")
                self._log.error("Response body is not JSON", endpoint=endpoint, error=str(e))
                return Failure(ErrorKind.PARSE_ERROR, f"Parse error: {e}")
            self._log.debug("Response body is not JSON, using empty object", endpoint=endpoint)
            body = {}
        if not isinstance(body, dict):
            body = {}
        self._log.record_fetch_success(endpoint)
        return Success(body)

    def _network_failure(self, endpoint: str, url: str, error: Exception) -> Outcome:
        if isinstance(error, requests.exceptions.Timeout):
            self._log.record_fetch_failure(endpoint, "Timeout")
            self._log.warning("Request timed out", url=url)
        else:
            self._log.record_fetch_failure(endpoint, "RequestException")
            self._log.error("Request error", url=url, error=str(error))
        return Failure(ErrorKind.NETWORK_OR_HTTP, f"Network error: {error}")

    def close(self) -> None:
        self._session.close()
