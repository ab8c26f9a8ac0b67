"""Tests for event delivery and the email notifiers."""

import json
import logging

import httpx
import pytest

from gatekeeper.config import Settings
from gatekeeper.events import EventDispatcher, PasswordResetCompleted, PasswordResetRequested, UserRegistered
from gatekeeper.notifications import BrevoMailer, LoggingNotifier, build_notifier
from gatekeeper.notifications.brevo import BREVO_API_URL

RAW_SECRET = "ab" * 32


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    settings = Settings()
    settings.BREVO_API_KEY = "brevo-test-key"
    settings.FRONTEND_URL = "https://app.example.com/"
    settings.MAIL_FROM_EMAIL = "no-reply@example.com"
    settings.MAIL_FROM_NAME = "Gatekeeper"
    settings.RESET_TOKEN_TTL_MINUTES = 60
    return settings


def _mailer(settings: Settings, handler) -> BrevoMailer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BrevoMailer(settings, client=client)


class TestBrevoMailer:
    """Tests for the Brevo HTTP notifier."""

    async def test_password_reset_email(self, settings: Settings):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"messageId": "<1@brevo>"})

        mailer = _mailer(settings, handler)
        assert await mailer.notify_password_reset_requested("alice@example.com", "Alice", RAW_SECRET)
        await mailer.aclose()

        assert len(requests) == 1
        request = requests[0]
        assert str(request.url) == BREVO_API_URL
        assert request.headers["api-key"] == "brevo-test-key"

        payload = json.loads(request.content)
        assert payload["to"] == [{"email": "alice@example.com", "name": "Alice"}]
        assert payload["sender"] == {"email": "no-reply@example.com", "name": "Gatekeeper"}
        link = f"https://app.example.com/reset-password?token={RAW_SECRET}"
        assert link in payload["htmlContent"]
        assert link in payload["textContent"]
        assert "60 minutes" in payload["textContent"]

    async def test_rejected_status_is_not_delivered(self, settings: Settings):
        mailer = _mailer(settings, lambda request: httpx.Response(401, json={"code": "unauthorized"}))
        assert await mailer.notify_welcome("alice@example.com", "Alice") is False

    async def test_transport_error_is_not_delivered(self, settings: Settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        mailer = _mailer(settings, handler)
        assert await mailer.notify_password_reset_completed("alice@example.com", "Alice") is False

    def test_html_is_escaped(self, settings: Settings):
        mailer = BrevoMailer(settings, client=httpx.AsyncClient())
        html_body, text_body = mailer.render("welcome", name="<script>alert(1)</script>")
        assert "<script>" not in html_body
        assert "&lt;script&gt;" in html_body
        assert "https://app.example.com/login" in text_body


class TestLoggingNotifier:
    """Tests for the log-only notifier."""

    async def test_reset_secret_not_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="gatekeeper"):
            assert await LoggingNotifier().notify_password_reset_requested("a@example.com", "A", RAW_SECRET)
        assert "a@example.com" in caplog.text
        assert RAW_SECRET not in caplog.text

    def test_build_notifier(self, settings: Settings):
        assert isinstance(build_notifier(settings), BrevoMailer)
        settings.BREVO_API_KEY = ""
        assert isinstance(build_notifier(settings), LoggingNotifier)


class TestEventDispatcher:
    """Tests for post-commit event delivery."""

    async def test_routes_each_event(self, notifier):
        dispatcher = EventDispatcher(notifier)
        assert await dispatcher.publish(UserRegistered(email="a@example.com", name="A"))
        assert await dispatcher.publish(PasswordResetRequested(email="a@example.com", name="A", raw_secret=RAW_SECRET))
        assert await dispatcher.publish(PasswordResetCompleted(email="a@example.com", name="A"))
        assert [call[0] for call in notifier.sent] == ["welcome", "reset_requested", "reset_completed"]

    async def test_notifier_exception_is_contained(self, notifier, caplog):
        notifier.fail = True
        dispatcher = EventDispatcher(notifier)
        with caplog.at_level(logging.ERROR, logger="gatekeeper"):
            delivered = await dispatcher.publish(
                PasswordResetRequested(email="a@example.com", name="A", raw_secret=RAW_SECRET)
            )
        assert delivered is False
        assert "RuntimeError" in caplog.text
        assert RAW_SECRET not in caplog.text

    def test_event_repr_hides_secret(self):
        event = PasswordResetRequested(email="a@example.com", name="A", raw_secret=RAW_SECRET)
        assert RAW_SECRET not in repr(event)
