"""
Email Service with Provider Abstraction

Outreach emails go through a provider picked by EMAIL_PROVIDER.
Default: Mailjet. Set EMAIL_PROVIDER=console for dev/testing.
"""

import os
from abc import ABC, abstractmethod
from ..logging_config import get_logger, log_action

logger = get_logger(__name__)

DEFAULT_FROM_EMAIL = os.getenv("EMAIL_FROM", "noreply@levrix.app")
DEFAULT_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "levrix")
DEFAULT_SUBJECT = "Following up on your property inquiry"


class EmailProvider(ABC):
    """Abstract base for email providers."""

    name = "base"

    @abstractmethod
    def send(self, to_email: str, from_email: str, from_name: str,
             subject: str, body: str, reply_to: str = None) -> bool:
        pass


class MailjetProvider(EmailProvider):
    name = "mailjet"

    def __init__(self):
        from mailjet_rest import Client as MailjetClient
        api_key = os.getenv("MAILJET_API_KEY")
        api_secret = os.getenv("MAILJET_API_SECRET")
        if not api_key or not api_secret:
            raise ValueError("MAILJET_API_KEY and MAILJET_API_SECRET required")
        self.client = MailjetClient(auth=(api_key, api_secret), version='v3.1')

    def send(self, to_email: str, from_email: str, from_name: str,
             subject: str, body: str, reply_to: str = None) -> bool:
        message = {
            'From': {'Email': from_email, 'Name': from_name},
            'To': [{'Email': to_email}],
            'Subject': subject,
            'TextPart': body,
        }
        if reply_to:
            message['ReplyTo'] = {'Email': reply_to}

        result = self.client.send.create(data={'Messages': [message]})
        success = result.status_code == 200

        if success:
            log_action(logger, "info", "email_sent", "Email sent",
                       provider=self.name, to_email=to_email, status_code=result.status_code)
        else:
            log_action(logger, "error", "email_send_failed", f"Email send failed: {result.json()}",
                       provider=self.name, to_email=to_email, status_code=result.status_code)
        return success


class ConsoleProvider(EmailProvider):
    """Dev/testing - logs email instead of sending."""

    name = "console"

    def send(self, to_email: str, from_email: str, from_name: str,
             subject: str, body: str, reply_to: str = None) -> bool:
        log_action(
            logger, "info", "email_sent", "Email sent (console provider)",
            provider=self.name,
            to_email=to_email,
            from_email=from_email,
            from_name=from_name,
            subject=subject,
            reply_to=reply_to,
            body_preview=body[:200] + "..." if len(body) > 200 else body,
        )
        return True


def get_provider() -> EmailProvider:
    provider = os.getenv("EMAIL_PROVIDER", "mailjet")
    if provider == "mailjet":
        return MailjetProvider()
    elif provider == "console":
        return ConsoleProvider()
    else:
        raise ValueError(f"Unknown EMAIL_PROVIDER: {provider}")


def send_email(
    to_email: str,
    from_email: str = None,
    subject: str = DEFAULT_SUBJECT,
    body: str = "",
    reply_to: str = None,
    from_name: str = None
) -> bool:
    """Send email via configured provider. Returns True on success."""
    provider = get_provider()
    return provider.send(
        to_email=to_email,
        from_email=from_email or DEFAULT_FROM_EMAIL,
        from_name=from_name or DEFAULT_FROM_NAME,
        subject=subject,
        body=body,
        reply_to=reply_to
    )
