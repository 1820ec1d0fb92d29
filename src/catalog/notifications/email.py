"""
Outbound email notifications.

Bodies are rendered from Jinja2 templates stored next to this module. Each
template ``<name>`` ships as ``<name>.subject.txt``, ``<name>.txt`` and
``<name>.html``.
"""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from src.catalog.config import MailConfig
from src.catalog.logging_utils import configure_logger

logger = configure_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


class NotificationError(RuntimeError):
    """Raised when a notification cannot be rendered or delivered."""


class Notifier(Protocol):
    def send(self, to: str, subject: Optional[str], template: str, data: Mapping[str, Any]) -> None:
        ...


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


class TemplateRenderer:
    def __init__(self, templates_dir: Path = TEMPLATES_DIR, frontend_url: str = "") -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
            keep_trailing_newline=True,
        )
        self._frontend_url = frontend_url

    def render(self, template: str, data: Mapping[str, Any], subject: Optional[str] = None) -> RenderedEmail:
        context = {"frontend_url": self._frontend_url, **data}
        try:
            default_subject = self._env.get_template(f"{template}.subject.txt").render(context).strip()
            text = self._env.get_template(f"{template}.txt").render(context)
            html = self._env.get_template(f"{template}.html").render(context)
        except TemplateNotFound as exc:
            raise NotificationError(f'Email template "{template}" not found') from exc

        resolved_subject = self._env.from_string(subject).render(context) if subject else default_subject
        return RenderedEmail(subject=resolved_subject, text=text, html=html)


class SmtpEmailSender:
    """Send rendered templates over SMTP (STARTTLS, or implicit TLS on port 465)."""

    def __init__(self, config: MailConfig, renderer: Optional[TemplateRenderer] = None) -> None:
        self._config = config
        self._renderer = renderer or TemplateRenderer(frontend_url=config.frontend_url)

    def _build_message(self, to: str, rendered: RenderedEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f'"{self._config.from_name}" <{self._config.from_email}>'
        message["To"] = to
        message["Subject"] = rendered.subject
        message.set_content(rendered.text)
        message.add_alternative(rendered.html, subtype="html")
        return message

    def send(self, to: str, subject: Optional[str], template: str, data: Mapping[str, Any]) -> None:
        if not to:
            raise NotificationError("Missing recipient address")

        rendered = self._renderer.render(template, data, subject)
        message = self._build_message(to, rendered)

        try:
            if self._config.use_ssl:
                smtp: smtplib.SMTP = smtplib.SMTP_SSL(self._config.host, self._config.port, timeout=30)
            else:
                smtp = smtplib.SMTP(self._config.host, self._config.port, timeout=30)
            with smtp:
                if not self._config.use_ssl:
                    smtp.starttls()
                if self._config.username:
                    smtp.login(self._config.username, self._config.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "Email delivery failed",
                extra={
                    "event": "email.failed",
                    "recipient": to,
                    "template": template,
                    "error_type": type(exc).__name__,
                },
            )
            raise NotificationError(f"Failed to send email to {to}: {exc}") from exc

        logger.info(
            "Email sent",
            extra={"event": "email.sent", "recipient": to, "template": template},
        )


class LogOnlyNotifier:
    """Used when SMTP is not configured: renders the template and logs instead of sending."""

    def __init__(self, renderer: Optional[TemplateRenderer] = None) -> None:
        self._renderer = renderer or TemplateRenderer()

    def send(self, to: str, subject: Optional[str], template: str, data: Mapping[str, Any]) -> None:
        rendered = self._renderer.render(template, data, subject)
        logger.info(
            rendered.subject,
            extra={"event": "email.skipped", "recipient": to, "template": template},
        )


def build_notifier(config: MailConfig) -> Notifier:
    if config.enabled:
        return SmtpEmailSender(config)
    return LogOnlyNotifier(TemplateRenderer(frontend_url=config.frontend_url))
