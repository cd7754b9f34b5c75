import structlog

from emaillogin.core.core import Service
from emaillogin.core.modules.mail.models import Mail
from emaillogin.core.modules.mail.transport import MailTransport, build_transport

logger = structlog.get_logger(__name__)


class MailService(Service):
    """Delivers mail through the configured transport."""

    _transport: MailTransport | None = None

    @property
    def transport(self) -> MailTransport:
        if self._transport is None:
            self._transport = self.core.mail_transport or build_transport(self.core.config)
        return self._transport

    async def send(self, mail: Mail) -> None:
        """Send a message; delivery errors are logged and re-raised."""
        try:
            await self.transport.send(mail)
        except Exception as e:
            logger.exception("mail_send_failed", to=mail.to, error=str(e))
            raise
        logger.info("mail_sent", to=mail.to)
