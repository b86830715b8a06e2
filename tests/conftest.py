"""
Pytest configuration and shared fixtures.
"""

import heapq
import itertools
from concurrent.futures import Executor, Future
from typing import Any, Dict, List, Optional

import pytest
import requests

from sddl.config import Settings
from sddl.headers import DeviceInfo
from sddl.logger import StructuredLogger, reset_logger
from sddl.orchestrator import Resolver
from sddl.scheduler import Scheduler
from sddl.storage import LocalState, MemoryStore


class FakeScheduler(Scheduler):
    """Manual clock: tasks run only when the test advances time."""

    def __init__(self):
        self.clock = 0.0
        self.delays: List[float] = []
        self._tasks = []
        self._seq = itertools.count()

    def call_later(self, delay, task):
        self.delays.append(delay)
        heapq.heappush(self._tasks, (self.clock + max(0.0, delay), next(self._seq), task))

    def now(self):
        return self.clock

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def timer_delays(self) -> List[float]:
        """Delays of tasks scheduled for later (excludes plain posts)."""
        return [d for d in self.delays if d > 0]

    def advance(self, seconds: float) -> None:
        target = self.clock + seconds
        while self._tasks and self._tasks[0][0] <= target:
            due, _, task = heapq.heappop(self._tasks)
            self.clock = max(self.clock, due)
            task()
        self.clock = target

    def run_pending(self) -> None:
        self.advance(0.0)

    def run_until_idle(self) -> None:
        while self._tasks:
            self.advance(max(0.0, self._tasks[0][0] - self.clock))


class ManualExecutor(Executor):
    """Queues submitted work until the test runs it."""

    def __init__(self, run_inline: bool = False):
        self.run_inline = run_inline
        self.queue = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        if self.run_inline:
            self._run(future, fn, args, kwargs)
        else:
            self.queue.append((future, fn, args, kwargs))
        return future

    @staticmethod
    def _run(future, fn, args, kwargs):
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)

    def run_all(self) -> None:
        while self.queue:
            future, fn, args, kwargs = self.queue.pop(0)
            self._run(future, fn, args, kwargs)


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self.closed = False

    def json(self):
        if self.text is not None:
            raise ValueError(f"Expecting value: {self.text[:20]!r}")
        return self._json

    def close(self):
        self.closed = True


class FakeSession:
    """
    Stand-in for requests.Session.

    ``routes`` maps a URL to a response, an exception instance, or a list of
    those consumed in order.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = dict(routes or {})
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    @property
    def urls(self) -> List[str]:
        return [c["url"] for c in self.calls]

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": dict(headers or {}), "timeout": timeout})
        route = self.routes.get(url)
        if route is None:
            raise requests.exceptions.ConnectionError(f"No route for {url}")
        if isinstance(route, list):
            route = route.pop(0)
        if isinstance(route, Exception):
            raise route
        return route

    def close(self):
        self.closed = True


BASE = "https://sddl.test"
TRY_URL = f"{BASE}/api/try/details"


def details_url(identifier: str) -> str:
    return f"{BASE}/api/{identifier}/details"


@pytest.fixture(autouse=True)
def fresh_global_logger():
    """Keep the global logger from leaking between tests."""
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger(name="sddl-test", level="DEBUG", enable_console=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(base_url=BASE, app_identifier="com.example.app", user_agent="SDDLSDK-Test/1.0")


@pytest.fixture
def device() -> DeviceInfo:
    return DeviceInfo(
        app_identifier="com.example.app",
        screen_width=1080,
        screen_height=2400,
        dpr=2.75,
        os_version="14",
        language="en-US",
        timezone="Europe/Kyiv",
    )


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def state() -> LocalState:
    return LocalState(MemoryStore())


@pytest.fixture
def make_resolver(settings, state, scheduler, device, quiet_logger):
    """Build a Resolver on fakes; executor runs inline unless one is passed."""

    def factory(session: FakeSession, **kwargs) -> Resolver:
        kwargs.setdefault("executor", ManualExecutor(run_inline=True))
        kwargs.setdefault("state", state)
        return Resolver(
            settings,
            scheduler=scheduler,
            session=session,
            device=device,
            logger=quiet_logger,
            **kwargs,
        )

    return factory


class Recorder:
    """Collects delivered outcomes in order."""

    def __init__(self):
        self.outcomes = []

    def __call__(self, outcome):
        self.outcomes.append(outcome)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
