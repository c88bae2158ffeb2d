import logging

from app.integrations.http import HttpFailure, request_json


class MailerError(Exception):
    pass


class ResendMailer:
    api_url = "https://api.resend.com/emails"

    def __init__(self, api_key, sender, timeout=10, logger=None):
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    @property
    def is_configured(self):
        return bool(self.api_key)

    def send(self, to_email, subject, html):
        """Send one message; returns the provider message id or raises ``MailerError``."""
        if not self.is_configured:
            raise MailerError("Email service not configured")
        try:
            status, payload = request_json(
                "POST",
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json_body={"from": self.sender, "to": [to_email], "subject": subject, "html": html},
                timeout=self.timeout,
            )
        except HttpFailure as exc:
            raise MailerError(str(exc)) from exc
        if not 200 <= status < 300:
            message = (payload or {}).get("message") or f"HTTP {status}"
            raise MailerError(message)
        return (payload or {}).get("id")
