"""Unit tests for EmailNotifier."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from registerer.errors import ClassifiedError, ErrorKind
from registerer.notify import SENDGRID_URL, EmailNotifier, NotificationError


def _notifier(enabled: bool = True) -> EmailNotifier:
    return EmailNotifier(
        enabled=enabled,
        api_key="SG.test",
        to_email="student@example.com",
        from_email="registerer@minerva.com",
    )


def _response(status: int) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = "" if status == 202 else '{"errors": ["bad"]}'
    return resp


@pytest.mark.unit
class TestEmailNotifier:
    @pytest.mark.asyncio
    async def test_disabled_is_noop(self) -> None:
        with patch("registerer.notify.requests.post") as post:
            assert await _notifier(enabled=False).send_success("12345") is False
        post.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_email(self) -> None:
        with patch("registerer.notify.requests.post", return_value=_response(202)) as post:
            assert await _notifier().send_success("12345") is True

        args, kwargs = post.call_args
        assert args[0] == SENDGRID_URL
        assert kwargs["headers"]["Authorization"] == "Bearer SG.test"
        payload = kwargs["json"]
        assert payload["personalizations"][0]["to"] == [{"email": "student@example.com"}]
        assert "12345" in payload["content"][0]["value"]

    @pytest.mark.asyncio
    async def test_failure_email_carries_diagnostics(self) -> None:
        error = ClassifiedError(
            ErrorKind.INVALID_CREDENTIALS, "Incorrect credentials.", RuntimeError("<nav>")
        )
        with patch("registerer.notify.requests.post", return_value=_response(202)) as post:
            await _notifier().send_failure(error)

        content = post.call_args.kwargs["json"]["content"]
        assert "fatal/invalid_credentials" in content[0]["value"]
        assert "&lt;nav&gt;" in content[1]["value"]

    @pytest.mark.asyncio
    async def test_rejected_delivery_raises(self) -> None:
        with patch("registerer.notify.requests.post", return_value=_response(401)):
            with pytest.raises(NotificationError, match="401"):
                await _notifier().send_success("12345")

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self) -> None:
        outcomes = [requests.ConnectionError("down"), _response(202)]
        with (
            patch("registerer.notify.requests.post", side_effect=outcomes) as post,
            patch("tenacity.nap.time.sleep"),
        ):
            assert await _notifier().send_success("12345") is True
        assert post.call_count == 2
