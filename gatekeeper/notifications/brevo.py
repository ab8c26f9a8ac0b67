"""Brevo transactional-email implementation of Notifier."""

import logging
import os

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from gatekeeper.config import Settings

logger = logging.getLogger("gatekeeper")

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"
DEFAULT_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "emails")


class BrevoMailer:
    """Renders Jinja2 email templates and posts them to Brevo's HTTP API."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        template_dir: str = DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.MAIL_TIMEOUT_SECONDS)
        self._app_url = settings.FRONTEND_URL.rstrip("/")
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def render(self, template: str, **context) -> tuple[str, str]:
        """Render the (html, text) bodies of an email template."""
        context.setdefault("app_url", self._app_url)
        html_body = self._jinja.get_template(f"{template}.html").render(**context)
        text_body = self._jinja.get_template(f"{template}.txt").render(**context)
        return html_body, text_body

    async def _send(self, to_email: str, to_name: str, subject: str, template: str, **context) -> bool:
        html_body, text_body = self.render(template, name=to_name, **context)
        payload = {
            "sender": {"email": self._settings.MAIL_FROM_EMAIL, "name": self._settings.MAIL_FROM_NAME},
            "to": [{"email": to_email, "name": to_name or to_email}],
            "subject": subject,
            "htmlContent": html_body,
            "textContent": text_body,
        }
        headers = {"api-key": self._settings.BREVO_API_KEY, "accept": "application/json"}

        try:
            response = await self._client.post(BREVO_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Email '%s' to %s failed: %s", template, to_email, type(e).__name__)
            return False

        if response.status_code in (200, 201, 202):
            return True
        logger.error("Email '%s' to %s rejected with status %d", template, to_email, response.status_code)
        return False

    async def notify_welcome(self, email: str, name: str) -> bool:
        return await self._send(email, name, f"Welcome to {self._settings.MAIL_FROM_NAME}!", "welcome")

    async def notify_password_reset_requested(self, email: str, name: str, raw_secret: str) -> bool:
        reset_link = f"{self._app_url}/reset-password?token={raw_secret}"
        ttl_minutes = self._settings.RESET_TOKEN_TTL_MINUTES
        return await self._send(
            email, name, "Reset your password", "password_reset", reset_link=reset_link, ttl_minutes=ttl_minutes
        )

    async def notify_password_reset_completed(self, email: str, name: str) -> bool:
        return await self._send(email, name, "Your password was changed", "password_reset_completed")

    async def aclose(self) -> None:
        await self._client.aclose()
