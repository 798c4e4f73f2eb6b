"""Registration orchestrator - the outer retry loop around polling and registering.

One cycle:
    CHECK_CONNECTIVITY -> POLL_AVAILABILITY -> LOGIN -> TRAVERSE -> ATTEMPT_REGISTER*
Any failure enters HANDLE_ERROR, which classifies it (see errors.classify_error):
recoverable and unclassified failures release the sessions, pause and start a
new cycle; fatal ones persist an error artifact, release the sessions and
propagate. SUCCESS and FATAL are terminal, and every exit path, including
cancellation, releases all open sessions.
"""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Literal

from registerer.artifacts import ArtifactStore
from registerer.errors import (
    ClassifiedError,
    ErrorCategory,
    ErrorKind,
    PortalError,
    SessionLoggedOutError,
    classify_error,
)
from registerer.logging import get_logger, print_separator
from registerer.models import (
    AttemptCounters,
    Credentials,
    RegistrationTarget,
    TimingPolicy,
)
from registerer.pages.availability import AvailabilitySession
from registerer.pages.portal import PortalSession
from registerer.session import BrowserSession
from registerer.timing import TimeUnit, sleep, timestamp

log = get_logger(__name__)

Context = Literal["availability", "portal"]


class State(str, Enum):
    IDLE = "idle"
    CHECK_CONNECTIVITY = "check_connectivity"
    POLL_AVAILABILITY = "poll_availability"
    LOGIN = "login"
    TRAVERSE = "traverse"
    ATTEMPT_REGISTER = "attempt_register"
    HANDLE_ERROR = "handle_error"
    SUCCESS = "success"
    FATAL = "fatal"
    STOPPED = "stopped"


class RegistrationOrchestrator:
    """Drives the availability and portal sessions until registered or fatal.

    The orchestrator is the only owner of the attempt counters; nothing else
    increments them.
    """

    def __init__(
        self,
        *,
        portal: PortalSession,
        availability: AvailabilitySession,
        artifacts: ArtifactStore,
        credentials: Credentials,
        target: RegistrationTarget,
        timing: TimingPolicy,
        connectivity: Callable[[], Awaitable[bool]],
        sleeper: Callable[[float, TimeUnit], Awaitable[None]] = sleep,
    ) -> None:
        self.portal = portal
        self.availability = availability
        self.artifacts = artifacts
        self.credentials = credentials
        self.target = target
        self.timing = timing
        self.connectivity = connectivity
        self.sleeper = sleeper

        self.counters = AttemptCounters()
        self.state = State.IDLE
        self.history: list[State] = []
        self.last_error: ClassifiedError | None = None
        self._stop_requested = False

    def stop(self) -> None:
        """Request termination. Honoured between states, never mid-operation."""
        if not self._stop_requested:
            log.warning("stop_requested", state=self.state.value)
        self._stop_requested = True

    async def run(self) -> bool:
        """Retry until registered.

        Returns:
            True once registered, False if a stop was requested first.

        Raises:
            ClassifiedError: A fatal classification, after cleanup.
        """
        self._enter(State.IDLE)
        self.artifacts.initialize()

        try:
            while True:
                if self._stop_requested:
                    self._enter(State.STOPPED)
                    return False

                print_separator()
                log.info("cycle_started", time=timestamp(), **self.counters.model_dump())

                self._enter(State.CHECK_CONNECTIVITY)
                if not await self.connectivity():
                    log.warning("internet_not_connected")
                    await self._pause_after_error()
                    continue

                try:
                    available = await self._poll_availability()
                except Exception as exc:
                    await self._handle_error("availability", exc)
                    continue

                if not available:
                    await self._release_sessions()
                    await self._pause_after_error()
                    continue

                try:
                    registered = await self._register()
                except Exception as exc:
                    await self._handle_error("portal", exc)
                    continue

                if registered:
                    self._enter(State.SUCCESS)
                    log.info(
                        "registration_succeeded",
                        crn=self.target.crn,
                        **self.counters.model_dump(),
                    )
                    return True
        finally:
            await self._release_sessions()

    async def _poll_availability(self) -> bool:
        """Reload VSB until the course has a seat.

        Returns:
            True when a seat is available, False if the connection dropped or a
            stop was requested between checks.
        """
        self._enter(State.POLL_AVAILABILITY)
        await self.availability.open()
        await self.availability.goto_home()
        await self.availability.select_term(self.target.term)
        await self.availability.select_course(self.target.crn)

        first_check = True
        while True:
            if not first_check:
                await self.sleeper(self.timing.seconds_between_checks, TimeUnit.SECOND)
                if self._stop_requested:
                    return False
                if not await self.connectivity():
                    log.warning("connection_lost", during="availability")
                    return False
            first_check = False

            self.counters.checks += 1
            log.info("availability_check", check=self.counters.checks, time=timestamp())
            if await self.availability.has_available_seat():
                break

        self.counters.successes += 1
        log.info("seat_available", crn=self.target.crn)
        await self._persist_success("availability")
        return True

    async def _register(self) -> bool:
        """Log in, open Quick Add/Drop and submit the CRN until accepted.

        Returns:
            True once registered, False if a stop was requested between attempts.
        """
        # Only one service holds a browser at a time.
        await self._close(self.availability)

        self._enter(State.LOGIN)
        await self.portal.open()
        await self.portal.login(self.credentials)
        self.counters.logins += 1
        log.info("logged_in", login=self.counters.logins)

        self._enter(State.TRAVERSE)
        await self.portal.goto_registration_area(self.target.term)

        rejected = 0
        while True:
            self._enter(State.ATTEMPT_REGISTER)
            self.counters.attempts += 1
            log.info("registration_attempt", attempt=self.counters.attempts, time=timestamp())

            try:
                registered = await self.portal.submit_registration(self.target.crn)
            except PortalError:
                raise
            except Exception as exc:
                if await self.portal.detect_logged_out():
                    raise SessionLoggedOutError(
                        "Logged out while submitting registration."
                    ) from exc
                raise

            if registered:
                break

            rejected += 1
            limit = self.timing.max_attempts_per_login
            if limit is not None and rejected >= limit:
                raise ClassifiedError(
                    ErrorKind.REGISTRATION_WINDOW_EXHAUSTED,
                    f"Registration rejected {rejected} times in one login.",
                )

            await self.sleeper(self.timing.seconds_between_attempts, TimeUnit.SECOND)
            if self._stop_requested:
                return False

        self.counters.successes += 1
        await self._persist_success("portal")
        return True

    async def _handle_error(self, context: Context, error: Exception) -> None:
        """Classify ``error`` and either back off or terminate.

        Raises:
            ClassifiedError: If the classification is fatal.
        """
        self._enter(State.HANDLE_ERROR)
        classified = classify_error(
            error,
            errors_before=self.counters.errors,
            tolerated=self.timing.errors_tolerated,
        )
        counted = classified.kind in (ErrorKind.UNCLASSIFIED, ErrorKind.ERROR_BUDGET_EXCEEDED)
        if counted:
            self.counters.errors += 1
        # Uncounted fatal errors take the next free number without consuming it.
        sequence = self.counters.errors if counted else self.counters.errors + 1
        self.last_error = classified

        match classified.category:
            case ErrorCategory.RECOVERABLE:
                log.warning(
                    "recoverable_error",
                    context=context,
                    kind=classified.kind.value,
                    error=str(classified),
                )
                await self._release_sessions()
                await self._pause_after_error()

            case ErrorCategory.UNCLASSIFIED:
                log.error(
                    "unexpected_error",
                    context=context,
                    error=str(classified),
                    errors=self.counters.errors,
                    tolerated=self.timing.errors_tolerated,
                )
                await self._persist_error(context, classified, sequence)
                await self._release_sessions()
                await self._pause_after_error()

            case ErrorCategory.FATAL:
                log.error(
                    "fatal_error",
                    context=context,
                    kind=classified.kind.value,
                    error=str(classified),
                    **self.counters.model_dump(),
                )
                await self._persist_error(context, classified, sequence)
                await self._release_sessions()
                self._enter(State.FATAL)
                raise classified

    async def _persist_success(self, context: Context) -> None:
        sequence = self.counters.successes
        try:
            capture = await self._session_for(context).capture()
            self.artifacts.save_capture("success", sequence, capture)
            self.artifacts.append_record("success", sequence, course_id=self.target.crn)
        except Exception as e:
            log.warning("artifact_write_failed", kind="success", context=context, error=str(e))

    async def _persist_error(
        self, context: Context, error: ClassifiedError, sequence: int
    ) -> None:
        try:
            capture = await self._session_for(context).capture()
            html = self.artifacts.save_capture("error", sequence, capture)
            self.artifacts.append_record(
                "error", sequence, stack=error.diagnostics, htmlfile=html
            )
        except Exception as e:
            log.warning("artifact_write_failed", kind="error", context=context, error=str(e))

    def _session_for(self, context: Context) -> BrowserSession:
        return self.availability if context == "availability" else self.portal

    async def _pause_after_error(self) -> None:
        if self._stop_requested:
            return
        minutes = self.timing.minutes_between_errors
        log.info("pausing", minutes=minutes)
        await self.sleeper(minutes, TimeUnit.MINUTE)

    async def _release_sessions(self) -> None:
        await self._close(self.availability)
        await self._close(self.portal)

    @staticmethod
    async def _close(session: BrowserSession) -> None:
        if session.is_open:
            await session.close()

    def _enter(self, state: State) -> None:
        self.state = state
        self.history.append(state)
        log.debug("state_entered", state=state.value)
