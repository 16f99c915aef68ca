"""Verification code delivery: SendGrid email, or the log when no API key is configured."""
import asyncio
import logging
from abc import ABC, abstractmethod

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

from hustlrs.settings import settings

logger = logging.getLogger(__name__)

_SUBJECTS = {
    "registration": "Your Hustlrs verification code",
    "inactivity": "Confirm it's you: Hustlrs login code",
}


class CodeSender(ABC):
    """Out-of-band channel for one-time codes."""

    @abstractmethod
    async def send_code(self, to_email: str, code: str, purpose: str, ttl_minutes: int) -> None:
        ...


class ConsoleCodeSender(CodeSender):
    """Logs codes instead of sending them (local development)."""

    async def send_code(self, to_email: str, code: str, purpose: str, ttl_minutes: int) -> None:
        logger.info("[CODE] %s code for %s: %s (expires in %d min)", purpose, to_email, code, ttl_minutes)


class SendGridCodeSender(CodeSender):
    def __init__(self, api_key: str, from_email: str, from_name: str):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name

    def _send_sync(self, message: Mail) -> int:
        return SendGridAPIClient(self.api_key).send(message).status_code

    async def send_code(self, to_email: str, code: str, purpose: str, ttl_minutes: int) -> None:
        text = (
            f"Your Hustlrs code is {code}.\n\n"
            f"It expires in {ttl_minutes} minutes. If you did not request it, ignore this email."
        )
        message = Mail(
            from_email=Email(self.from_email, self.from_name),
            to_emails=To(to_email),
            subject=_SUBJECTS.get(purpose, "Your Hustlrs code"),
            plain_text_content=Content("text/plain", text),
        )
        status = await asyncio.to_thread(self._send_sync, message)
        if status not in (200, 201, 202):
            logger.error("SendGrid returned %s sending %s code to %s", status, purpose, to_email)
            raise RuntimeError(f"SendGrid API returned status {status}")
        logger.info("Sent %s code to %s", purpose, to_email)


def get_code_sender() -> CodeSender:
    if settings.sendgrid_api_key:
        return SendGridCodeSender(
            api_key=settings.sendgrid_api_key,
            from_email=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    logger.warning("No SendGrid API key configured; verification codes are only logged")
    return ConsoleCodeSender()
