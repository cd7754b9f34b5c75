"""Mail delivery backends."""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

import structlog

from emaillogin.config import Config
from emaillogin.core.modules.mail.models import Mail

logger = structlog.get_logger(__name__)


class MailTransport(ABC):
    @abstractmethod
    async def send(self, mail: Mail) -> None:
        """Deliver a message. Raises on delivery failure."""


class BlockedTransport(MailTransport):
    """Drops every message. Used when mail is disabled."""

    async def send(self, mail: Mail) -> None:
        logger.debug("mail_blocked", to=mail.to, subject=mail.subject)


class SmtpTransport(MailTransport):
    """Sends through an SMTP relay, optionally upgrading to TLS and authenticating."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        starttls: bool = True,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._starttls = starttls

    async def send(self, mail: Mail) -> None:
        await asyncio.to_thread(self._send_sync, self._build_message(mail))

    def _build_message(self, mail: Mail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = mail.to
        message["Subject"] = mail.subject
        message.set_content(mail.text)
        message.add_alternative(mail.html, subtype="html")
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port) as server:
            if self._starttls:
                server.starttls()
            if self._username:
                server.login(self._username, self._password)
            server.send_message(message)


def build_transport(config: Config) -> MailTransport:
    if config.mail_block:
        return BlockedTransport()
    return SmtpTransport(
        host=config.smtp_host,
        port=config.smtp_port,
        sender=config.mail_from,
        username=config.smtp_username,
        password=config.smtp_password,
        starttls=config.smtp_starttls,
    )
