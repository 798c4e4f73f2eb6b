"""Error taxonomy for registration retry classification.

Every failure raised while polling availability or registering is turned into
exactly one ClassifiedError before the orchestrator decides what to do with it:
recoverable failures are backed off and retried, fatal ones end the run.

The page adapters only report what they saw by raising one of the PortalError
signals below (or by letting a Playwright timeout propagate). They never decide
fatality themselves; classify_error() does.

Example:
    try:
        await portal.login(credentials)
    except Exception as exc:
        classified = classify_error(exc, errors_before=counters.errors, tolerated=100)
        if classified.is_fatal:
            raise classified from exc
"""

import traceback
from enum import Enum

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError


class PortalError(Exception):
    """Base exception for conditions reported by a portal or availability page."""

    pass


class CredentialsRejectedError(PortalError):
    """The login form is still shown after submitting credentials."""

    pass


class RegistrationLimitError(PortalError):
    """The portal reports that registration attempts for the term are exhausted."""

    pass


class SubmitControlNotFoundError(PortalError):
    """None of the candidate submit controls appeared within the probe budget."""

    pass


class SessionLoggedOutError(PortalError):
    """The session was deauthenticated (login form or break-in page is showing)."""

    pass


class BrowserLaunchError(PortalError):
    """The browser could not be started after retrying."""

    pass


class ErrorCategory(str, Enum):
    RECOVERABLE = "recoverable"
    FATAL = "fatal"
    UNCLASSIFIED = "unclassified"


class ErrorKind(str, Enum):
    """Leaf kinds of the taxonomy. The category is derived from the kind."""

    LOGGED_OUT = "logged_out"
    TIMEOUT = "timeout"
    INVALID_CREDENTIALS = "invalid_credentials"
    REGISTRATION_WINDOW_EXHAUSTED = "registration_window_exhausted"
    ERROR_BUDGET_EXCEEDED = "error_budget_exceeded"
    DRIVER_UNRECOVERABLE = "driver_unrecoverable"
    UNCLASSIFIED = "unclassified"

    @property
    def category(self) -> ErrorCategory:
        match self:
            case ErrorKind.LOGGED_OUT | ErrorKind.TIMEOUT:
                return ErrorCategory.RECOVERABLE
            case ErrorKind.UNCLASSIFIED:
                return ErrorCategory.UNCLASSIFIED
            case _:
                return ErrorCategory.FATAL


class ClassifiedError(Exception):
    """A failure tagged with its taxonomy kind and the underlying cause.

    The cause is kept both as ``cause`` and as ``__cause__`` so that tracebacks
    printed at the process boundary show the triggering failure first.
    """

    def __init__(
        self, kind: ErrorKind, message: str, cause: BaseException | None = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category

    @property
    def is_fatal(self) -> bool:
        return self.category is ErrorCategory.FATAL

    @property
    def is_recoverable(self) -> bool:
        return self.category is ErrorCategory.RECOVERABLE

    @property
    def diagnostics(self) -> str:
        """Cause traceback followed by this error's own text.

        Neither part is dropped, so the text alone is enough to reconstruct the
        condition that ended the run.
        """
        own = f"{self.category.value}/{self.kind.value}: {self.message}"
        if self.cause is None:
            return own
        cause_text = "".join(
            traceback.format_exception(
                type(self.cause), self.cause, self.cause.__traceback__
            )
        )
        return f"{cause_text.rstrip()}\n{own}"

    def __str__(self) -> str:
        if self.cause is None:
            return f"[{self.kind.value}] {self.message}"
        cause = f"{type(self.cause).__name__}: {self.cause}"
        return f"[{self.kind.value}] {self.message} (caused by {cause})"

    def __repr__(self) -> str:
        return f"ClassifiedError(kind={self.kind.value!r}, message={self.message!r})"


def is_timeout(error: BaseException) -> bool:
    """True for bounded-wait expirations from Playwright or asyncio."""
    return isinstance(error, (PlaywrightTimeoutError, TimeoutError))


def classify_error(
    error: BaseException,
    *,
    errors_before: int,
    tolerated: int,
    logged_out: bool = False,
) -> ClassifiedError:
    """Assign exactly one taxonomy kind to a raw failure.

    Rules are checked in precedence order: logged out, timeout, rejected
    credentials, exhausted registration window, unrecoverable driver, and
    finally unclassified. An unclassified failure that would push the error
    count past ``tolerated`` escalates to ERROR_BUDGET_EXCEEDED.

    This function is pure: it performs no I/O and does not touch counters. The
    caller increments its error count for UNCLASSIFIED and ERROR_BUDGET_EXCEEDED
    results.

    Args:
        error: The raw failure.
        errors_before: Unclassified failures counted so far in this run.
        tolerated: Configured tolerated-error limit.
        logged_out: Whether logout detection ran and found the session gone.

    Returns:
        The classified error, with ``error`` chained as its cause.
    """
    if isinstance(error, ClassifiedError):
        return error

    if logged_out or isinstance(error, SessionLoggedOutError):
        return ClassifiedError(ErrorKind.LOGGED_OUT, "Logged out.", error)

    if is_timeout(error):
        return ClassifiedError(ErrorKind.TIMEOUT, "Timed out waiting for page.", error)

    if isinstance(error, CredentialsRejectedError):
        return ClassifiedError(
            ErrorKind.INVALID_CREDENTIALS, "Incorrect credentials.", error
        )

    if isinstance(error, RegistrationLimitError):
        return ClassifiedError(
            ErrorKind.REGISTRATION_WINDOW_EXHAUSTED, "Registrations exceeded.", error
        )

    if isinstance(error, (SubmitControlNotFoundError, BrowserLaunchError)):
        return ClassifiedError(ErrorKind.DRIVER_UNRECOVERABLE, str(error), error)

    if errors_before + 1 > tolerated:
        return ClassifiedError(
            ErrorKind.ERROR_BUDGET_EXCEEDED,
            f"Error limit reached ({errors_before + 1} > {tolerated}).",
            error,
        )

    message = str(error) or type(error).__name__
    if isinstance(error, PlaywrightError):
        message = f"Browser error: {message}"
    return ClassifiedError(ErrorKind.UNCLASSIFIED, message, error)
