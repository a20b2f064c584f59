# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Outbound e-mail: template rendering, SMTP transport and delivery.

Request handlers never talk SMTP.  They render a :class:`MailMessage` in the
request and schedule :meth:`Mailer.deliver` on the request's
``BackgroundTasks``, so it runs after the response has been sent.  Each
message is delivered on its own, with tenacity retries and exponential
back-off; a failure is logged and never reaches the request that triggered
it, nor holds back mail scheduled by any other request.

Lifecycle: ``main.create_app`` builds one ``Mailer`` at startup and parks it
on ``app.state``; handlers receive it through :func:`get_mailer`.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from urllib.parse import quote

from fastapi import BackgroundTasks, Request
from jinja2 import Environment, FileSystemLoader, select_autoescape
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_exponential

from core.config import Settings
from core.logger import logger

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "email_templates"


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    text: str
    html: str


def _give_up(retry_state) -> bool:
    """tenacity ``retry_error_callback``: log the dropped message, report failure."""
    message = retry_state.args[0]
    logger.error(
        "mail dropped after %d attempts | to=%s subject=%r error=%s",
        retry_state.attempt_number,
        message.to,
        message.subject,
        retry_state.outcome.exception(),
    )
    return False


class Mailer:
    """Renders templates and delivers messages over SMTP."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._env = Environment(
            loader=FileSystemLoader(str(_TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    @property
    def configured(self) -> bool:
        s = self.settings
        return bool(s.smtp_host and s.smtp_user and s.smtp_password)

    @property
    def sender(self) -> str:
        s = self.settings
        return formataddr((s.app_name, s.mail_from or "no-reply@localhost"))

    def render(self, template: str, to: str, subject: str, **context) -> MailMessage:
        """Render ``<template>.html`` and ``<template>.txt`` into one message."""
        context.setdefault("app_name", self.settings.app_name)
        context.setdefault("app_url", self.settings.app_url)
        context.setdefault("logo_url", f"{self.settings.app_url}/vrchat-remix.png")
        html = self._env.get_template(f"{template}.html").render(**context)
        text = self._env.get_template(f"{template}.txt").render(**context)
        return MailMessage(to=to, subject=subject, text=text, html=html)

    def send(self, message: MailMessage) -> None:
        """One SMTP attempt.  Raises on any transport error."""
        if not self.configured:
            logger.info("mail skipped (SMTP not configured) | to=%s subject=%r", message.to, message.subject)
            return

        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.text)
        msg.add_alternative(message.html, subtype="html")

        s = self.settings
        secure = s.smtp_secure or s.smtp_port == 465
        smtp_cls = smtplib.SMTP_SSL if secure else smtplib.SMTP
        with smtp_cls(s.smtp_host, s.smtp_port, timeout=30) as server:
            if not secure:
                server.starttls()
            server.login(s.smtp_user, s.smtp_password)
            server.send_message(msg)

    def deliver(self, message: MailMessage) -> bool:
        """
        Send *message*, retrying up to ``mail_max_attempts`` times.  Returns
        False once the attempts are spent; never raises.
        """
        s = self.settings
        attempt = retry(
            stop=stop_after_attempt(max(1, s.mail_max_attempts)),
            wait=wait_exponential(multiplier=s.mail_retry_wait, max=30),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            retry_error_callback=_give_up,
        )(self._send_once)
        return attempt(message)

    def _send_once(self, message: MailMessage) -> bool:
        self.send(message)
        return True


def get_mailer(request: Request) -> Mailer:
    """FastAPI dependency: the app-wide mailer built at startup."""
    return request.app.state.mailer


# ---------------------------------------------------------------------------
# Notifications – render now, deliver after the response
# ---------------------------------------------------------------------------


def _schedule(background_tasks: BackgroundTasks, mailer: Mailer, message: MailMessage) -> None:
    background_tasks.add_task(mailer.deliver, message)


def send_verification_email(
    background_tasks: BackgroundTasks, mailer: Mailer, to: str, token: str, username: str
) -> None:
    app_url = mailer.settings.app_url
    app_name = mailer.settings.app_name
    _schedule(background_tasks, mailer, mailer.render(
        "verification",
        to,
        f"{app_name} – Verify your e-mail address",
        username=username,
        verify_url=f"{app_url}/api/auth/verify?token={quote(token)}",
    ))


def send_verified_confirmation(background_tasks: BackgroundTasks, mailer: Mailer, to: str, username: str) -> None:
    app_name = mailer.settings.app_name
    _schedule(background_tasks, mailer, mailer.render(
        "email_verified",
        to,
        f"Welcome to {app_name}!",
        username=username,
    ))


def send_password_reset_email(
    background_tasks: BackgroundTasks, mailer: Mailer, to: str, token: str, username: str
) -> None:
    app_url = mailer.settings.app_url
    app_name = mailer.settings.app_name
    _schedule(background_tasks, mailer, mailer.render(
        "password_reset",
        to,
        f"{app_name} – Reset your password",
        username=username,
        reset_url=f"{app_url}/reset-password?token={quote(token)}",
    ))


def send_password_changed_email(background_tasks: BackgroundTasks, mailer: Mailer, to: str, username: str) -> None:
    app_name = mailer.settings.app_name
    _schedule(background_tasks, mailer, mailer.render(
        "password_changed",
        to,
        f"{app_name} – Your password was changed",
        username=username,
    ))


def send_two_factor_code_email(
    background_tasks: BackgroundTasks, mailer: Mailer, to: str, code: str, username: str
) -> None:
    app_name = mailer.settings.app_name
    _schedule(background_tasks, mailer, mailer.render(
        "two_factor_code",
        to,
        f"{app_name} – Your sign-in code",
        username=username,
        code=code,
    ))


def send_two_factor_disabled_email(background_tasks: BackgroundTasks, mailer: Mailer, to: str, username: str) -> None:
    app_name = mailer.settings.app_name
    _schedule(background_tasks, mailer, mailer.render(
        "two_factor_disabled",
        to,
        f"{app_name} – Two-factor authentication disabled",
        username=username,
    ))
