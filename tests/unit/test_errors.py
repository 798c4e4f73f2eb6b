"""Unit tests for the error taxonomy and classify_error."""

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from registerer.errors import (
    BrowserLaunchError,
    ClassifiedError,
    CredentialsRejectedError,
    ErrorCategory,
    ErrorKind,
    RegistrationLimitError,
    SessionLoggedOutError,
    SubmitControlNotFoundError,
    classify_error,
)


def _classify(error: BaseException, errors_before: int = 0, tolerated: int = 5, **kwargs):
    return classify_error(error, errors_before=errors_before, tolerated=tolerated, **kwargs)


@pytest.mark.unit
class TestClassifyError:
    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (SessionLoggedOutError("gone"), ErrorKind.LOGGED_OUT),
            (PlaywrightTimeoutError("Timeout 3000ms exceeded."), ErrorKind.TIMEOUT),
            (TimeoutError(), ErrorKind.TIMEOUT),
            (CredentialsRejectedError("bad"), ErrorKind.INVALID_CREDENTIALS),
            (RegistrationLimitError("exceeded"), ErrorKind.REGISTRATION_WINDOW_EXHAUSTED),
            (SubmitControlNotFoundError("none"), ErrorKind.DRIVER_UNRECOVERABLE),
            (BrowserLaunchError("no chromium"), ErrorKind.DRIVER_UNRECOVERABLE),
            (PlaywrightError("Target closed"), ErrorKind.UNCLASSIFIED),
            (ValueError("odd"), ErrorKind.UNCLASSIFIED),
        ],
    )
    def test_each_failure_gets_one_kind(self, error, kind) -> None:
        classified = _classify(error)

        assert classified.kind is kind
        assert classified.cause is error
        assert classified.__cause__ is error

    def test_logged_out_flag_takes_precedence(self) -> None:
        """A timeout seen while logged out is a logout, not a timeout."""
        classified = _classify(PlaywrightTimeoutError("wait"), logged_out=True)

        assert classified.kind is ErrorKind.LOGGED_OUT
        assert classified.is_recoverable

    def test_already_classified_passes_through(self) -> None:
        original = ClassifiedError(ErrorKind.REGISTRATION_WINDOW_EXHAUSTED, "limit")

        assert _classify(original, errors_before=99, tolerated=0) is original

    def test_budget_never_escalates_within_limit(self) -> None:
        tolerated = 4
        for errors_before in range(tolerated):
            classified = _classify(RuntimeError("x"), errors_before, tolerated)
            assert classified.kind is ErrorKind.UNCLASSIFIED
            assert not classified.is_fatal

    def test_budget_escalates_on_first_failure_past_limit(self) -> None:
        tolerated = 4
        counted = 0
        kinds = []
        for _ in range(tolerated + 1):
            kinds.append(_classify(RuntimeError("x"), counted, tolerated).kind)
            counted += 1

        assert kinds[:-1] == [ErrorKind.UNCLASSIFIED] * tolerated
        assert kinds[-1] is ErrorKind.ERROR_BUDGET_EXCEEDED

    def test_zero_tolerance_first_failure_is_fatal(self) -> None:
        assert _classify(RuntimeError("x"), 0, 0).kind is ErrorKind.ERROR_BUDGET_EXCEEDED

    def test_budget_does_not_apply_to_recoverable(self) -> None:
        assert _classify(TimeoutError(), 100, 0).kind is ErrorKind.TIMEOUT


@pytest.mark.unit
class TestClassifiedError:
    def test_categories(self) -> None:
        assert ErrorKind.LOGGED_OUT.category is ErrorCategory.RECOVERABLE
        assert ErrorKind.TIMEOUT.category is ErrorCategory.RECOVERABLE
        assert ErrorKind.UNCLASSIFIED.category is ErrorCategory.UNCLASSIFIED
        for kind in (
            ErrorKind.INVALID_CREDENTIALS,
            ErrorKind.REGISTRATION_WINDOW_EXHAUSTED,
            ErrorKind.ERROR_BUDGET_EXCEEDED,
            ErrorKind.DRIVER_UNRECOVERABLE,
        ):
            assert kind.category is ErrorCategory.FATAL

    def test_diagnostics_keep_cause_and_effect(self) -> None:
        try:
            raise KeyError("crn_id1")
        except KeyError as cause:
            error = ClassifiedError(ErrorKind.ERROR_BUDGET_EXCEEDED, "Error limit reached.", cause)

        text = error.diagnostics
        assert "Traceback" in text
        assert "KeyError: 'crn_id1'" in text
        assert text.endswith("fatal/error_budget_exceeded: Error limit reached.")
        assert text.index("KeyError") < text.index("Error limit reached.")

    def test_diagnostics_without_cause(self) -> None:
        error = ClassifiedError(ErrorKind.REGISTRATION_WINDOW_EXHAUSTED, "limit")

        assert error.diagnostics == "fatal/registration_window_exhausted: limit"
        assert str(error) == "[registration_window_exhausted] limit"

    def test_str_mentions_cause(self) -> None:
        error = ClassifiedError(ErrorKind.TIMEOUT, "Timed out.", TimeoutError("crn"))

        assert "caused by TimeoutError: crn" in str(error)
