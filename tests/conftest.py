"""Shared pytest fixtures and in-memory session fakes."""

from collections.abc import Callable, Iterable
from pathlib import Path

import pytest
from pydantic import SecretStr

from registerer.artifacts import ArtifactStore
from registerer.models import Credentials, RegistrationTarget, TimingPolicy
from registerer.orchestrator import RegistrationOrchestrator
from registerer.session import PageCapture
from registerer.timing import TimeUnit


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


class SessionTracker:
    """Observes every fake session to check the one-browser-at-a-time invariant."""

    def __init__(self) -> None:
        self.sessions: list["FakeSession"] = []
        self.max_open_per_service = 0
        self.max_open_total = 0

    def observe(self) -> None:
        for session in self.sessions:
            self.max_open_per_service = max(
                self.max_open_per_service, session.opens - session.closes
            )
        open_now = sum(1 for s in self.sessions if s.is_open)
        self.max_open_total = max(self.max_open_total, open_now)


class FakeSession:
    service = "fake"

    def __init__(self, tracker: SessionTracker) -> None:
        self.tracker = tracker
        tracker.sessions.append(self)
        self.opens = 0
        self.closes = 0
        self.is_open = False

    async def open(self) -> None:
        self.opens += 1
        self.is_open = True
        self.tracker.observe()

    async def close(self) -> None:
        self.closes += 1
        self.is_open = False
        self.tracker.observe()

    async def capture(self) -> PageCapture | None:
        if not self.is_open:
            return None
        return PageCapture(pdf=b"%PDF-1.4 fake", html=f"<html>{self.service}</html>")


def _next(script: list, default):
    """Pop the next scripted outcome; raise it if it is an exception."""
    outcome = script.pop(0) if script else default
    if isinstance(outcome, BaseException):
        raise outcome
    return outcome


class FakeAvailability(FakeSession):
    service = "availability"

    def __init__(self, tracker: SessionTracker, seats: Iterable = ()) -> None:
        super().__init__(tracker)
        self.seats = list(seats)
        self.seat_checks = 0
        self.selected: list[tuple[str, str]] = []

    async def goto_home(self) -> None:
        pass

    async def select_term(self, term: str) -> None:
        self.selected.append(("term", term))

    async def select_course(self, course: str) -> None:
        self.selected.append(("course", course))

    async def has_available_seat(self) -> bool:
        self.seat_checks += 1
        return _next(self.seats, False)


class FakePortal(FakeSession):
    service = "portal"

    def __init__(
        self,
        tracker: SessionTracker,
        *,
        logins: Iterable = (),
        submits: Iterable = (),
        logged_out: bool = False,
    ) -> None:
        super().__init__(tracker)
        self.logins = list(logins)
        self.submits = list(submits)
        self.logged_out = logged_out
        self.login_calls = 0
        self.traversals = 0
        self.submit_calls = 0
        self.logout_checks = 0

    async def login(self, credentials: Credentials) -> None:
        self.login_calls += 1
        _next(self.logins, None)

    async def goto_registration_area(self, term: str) -> None:
        self.traversals += 1

    async def submit_registration(self, crn: str) -> bool:
        self.submit_calls += 1
        return _next(self.submits, False)

    async def detect_logged_out(self) -> bool:
        self.logout_checks += 1
        return self.logged_out


class Connectivity:
    """Scripted connectivity probe; True once the script runs out."""

    def __init__(self, results: Iterable[bool] = (), on_exhausted: Callable | None = None):
        self.results = list(results)
        self.calls = 0
        self.on_exhausted = on_exhausted

    async def __call__(self) -> bool:
        self.calls += 1
        if self.results:
            return self.results.pop(0)
        if self.on_exhausted is not None:
            return self.on_exhausted()
        return True


class RecordingSleeper:
    """Records sleeps instead of waiting; optional hook runs after each sleep."""

    def __init__(self) -> None:
        self.calls: list[tuple[float, TimeUnit]] = []
        self.hook: Callable[[float, TimeUnit], None] | None = None

    async def __call__(self, duration: float, unit: TimeUnit) -> None:
        self.calls.append((duration, unit))
        if self.hook is not None:
            self.hook(duration, unit)

    def count(self, unit: TimeUnit) -> int:
        return sum(1 for _, u in self.calls if u is unit)


@pytest.fixture
def tracker() -> SessionTracker:
    return SessionTracker()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="jane.doe@mail.mcgill.ca", password=SecretStr("hunter2"))


@pytest.fixture
def target() -> RegistrationTarget:
    return RegistrationTarget(term="202409", term_label="Fall 2024", crn="12345")


@pytest.fixture
def timing() -> TimingPolicy:
    return TimingPolicy(
        navigation_timeout_ms=100,
        seconds_between_attempts=30,
        minutes_between_errors=2,
        seconds_between_checks=15,
        errors_tolerated=3,
    )


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def artifacts(tmp_path: Path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def make_orchestrator(credentials, target, timing, sleeper, artifacts):
    """Build an orchestrator around fakes; keyword overrides replace defaults."""

    def _make(
        portal: FakePortal,
        availability: FakeAvailability,
        connectivity: Connectivity | None = None,
        timing_policy: TimingPolicy | None = None,
    ) -> RegistrationOrchestrator:
        return RegistrationOrchestrator(
            portal=portal,
            availability=availability,
            artifacts=artifacts,
            credentials=credentials,
            target=target,
            timing=timing_policy or timing,
            connectivity=connectivity or Connectivity(),
            sleeper=sleeper,
        )

    return _make
