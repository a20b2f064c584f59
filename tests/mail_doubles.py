"""Test doubles for outbound mail."""

import re

from core.config import settings
from core.mail import Mailer


class RecordingMailer(Mailer):
    """Renders like the real mailer but keeps messages instead of sending them."""

    def __init__(self, **overrides):
        overrides.setdefault("mail_retry_wait", 0)
        super().__init__(settings.model_copy(update=overrides))
        self.sent = []

    def send(self, message):
        self.sent.append(message)


class Inbox:
    """Mail delivered by background tasks; they finish before TestClient returns."""

    def __init__(self, mailer):
        self.mailer = mailer

    def messages(self, to=None):
        return [m for m in self.mailer.sent if to is None or m.to == to]

    def last(self, to):
        found = self.messages(to)
        assert found, f"no mail sent to {to}"
        return found[-1]

    def token(self, to):
        match = re.search(r"token=([0-9a-f]{64})", self.last(to).text)
        assert match, "no token link in mail"
        return match.group(1)

    def code(self, to):
        match = re.search(r"^\s*(\d{6})\s*$", self.last(to).text, re.MULTILINE)
        assert match, "no sign-in code in mail"
        return match.group(1)
