# account_service/notifications.py
"""Delivery of verification codes over email (SendGrid) and SMS (Twilio)."""

import enum
from dataclasses import dataclass
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail as SendGridMail
from twilio.rest import Client as TwilioClient

from .config import Settings
from .log import get_logger

logger = get_logger("notifications")


class Channel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"


@dataclass
class DispatchResult:
    ok: bool
    error: Optional[str] = None


class NotificationDispatcher:
    def send(self, channel: Channel, destination: str, code: str) -> DispatchResult:
        raise NotImplementedError


def _minutes(seconds: int) -> int:
    return max(1, seconds // 60)


class SendGridEmailSender:
    subject = "Password reset code"

    def __init__(self, api_key: str, from_email: str, code_ttl_seconds: int = 600, client=None):
        self.from_email = from_email
        self.code_ttl_seconds = code_ttl_seconds
        self.client = client or SendGridAPIClient(api_key)

    def build_message(self, destination: str, code: str) -> SendGridMail:
        minutes = _minutes(self.code_ttl_seconds)
        return SendGridMail(
            from_email=self.from_email,
            to_emails=destination,
            subject=self.subject,
            plain_text_content=f"Your verification code is {code}. It expires in {minutes} minutes.",
            html_content=(
                f"<h1>Password reset</h1><p>Your verification code is <b>{code}</b>.</p>"
                f"<p>It expires in {minutes} minutes. If you did not ask for it, ignore this email.</p>"
            ),
        )

    def send(self, destination: str, code: str) -> DispatchResult:
        try:
            response = self.client.send(self.build_message(destination, code))
        except Exception as exc:
            logger.exception("Error sending email via SendGrid to %s", destination)
            return DispatchResult(ok=False, error=str(exc))
        if response.status_code >= 400:
            logger.error("SendGrid rejected email to %s, status: %s", destination, response.status_code)
            return DispatchResult(ok=False, error=f"SendGrid status {response.status_code}")
        logger.info("Email sent to %s, status: %s", destination, response.status_code)
        return DispatchResult(ok=True)


class TwilioSmsSender:
    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        country_code: str = "+86",
        code_ttl_seconds: int = 600,
        client=None,
    ):
        self.from_number = from_number
        self.country_code = country_code
        self.code_ttl_seconds = code_ttl_seconds
        self.client = client or TwilioClient(account_sid, auth_token)

    def to_e164(self, phone: str) -> str:
        if phone.startswith("+"):
            return phone
        return f"{self.country_code}{phone}"

    def send(self, destination: str, code: str) -> DispatchResult:
        body = f"Your verification code is {code}, valid for {_minutes(self.code_ttl_seconds)} minutes."
        try:
            message = self.client.messages.create(
                to=self.to_e164(destination), from_=self.from_number, body=body
            )
        except Exception as exc:
            logger.exception("Error sending SMS via Twilio to %s", destination)
            return DispatchResult(ok=False, error=str(exc))
        logger.info("SMS sent to %s, sid: %s", destination, getattr(message, "sid", None))
        return DispatchResult(ok=True)


class LogOnlySender:
    """Stand-in for an unconfigured transport: the code only goes to the log.

    Refuses to report success when ``allow`` is false, so a production
    deployment without credentials fails loudly instead of silently.
    """

    def __init__(self, channel: Channel, allow: bool = True):
        self.channel = channel
        self.allow = allow

    def send(self, destination: str, code: str) -> DispatchResult:
        if not self.allow:
            logger.error("%s transport is not configured, cannot reach %s", self.channel.value, destination)
            return DispatchResult(ok=False, error=f"{self.channel.value} transport not configured")
        logger.warning(
            "%s transport not configured. Code for %s: %s", self.channel.value, destination, code
        )
        return DispatchResult(ok=True)


class ChannelDispatcher(NotificationDispatcher):
    def __init__(self, email_sender, sms_sender):
        self.senders = {Channel.EMAIL: email_sender, Channel.SMS: sms_sender}

    def send(self, channel: Channel, destination: str, code: str) -> DispatchResult:
        return self.senders[channel].send(destination, code)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChannelDispatcher":
        allow_log_only = not settings.is_production
        if settings.email_configured:
            email_sender = SendGridEmailSender(
                settings.sendgrid_api_key,
                settings.mail_from_email,
                code_ttl_seconds=settings.reset_code_expire_seconds,
            )
        else:
            email_sender = LogOnlySender(Channel.EMAIL, allow=allow_log_only)
        if settings.sms_configured:
            sms_sender = TwilioSmsSender(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                settings.twilio_phone_number,
                country_code=settings.sms_country_code,
                code_ttl_seconds=settings.reset_code_expire_seconds,
            )
        else:
            sms_sender = LogOnlySender(Channel.SMS, allow=allow_log_only)
        return cls(email_sender, sms_sender)
