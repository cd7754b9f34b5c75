import structlog

from emaillogin.core.core import Service
from emaillogin.core.modules.ratelimit.limiter import SendRateLimiter, email_domain

logger = structlog.get_logger(__name__)


class RateLimitService(Service):
    """Throttles proof mail per destination domain."""

    _limiter: SendRateLimiter | None = None

    @property
    def limiter(self) -> SendRateLimiter:
        if self._limiter is None:
            config = self.core.config
            self._limiter = SendRateLimiter(
                spacing_ms=config.send_spacing_ms,
                ceiling_ms=config.send_delay_ceiling_ms,
                clock=self.core.clock,
            )
        return self._limiter

    def reserve_send(self, email: str) -> int:
        """Reserve a send slot for the address's domain and return the wait in ms.

        Raises:
            ValidationError: If the address has no usable domain
            RateLimitedError: If the wait would exceed the configured ceiling
        """
        domain = email_domain(email)
        delay_ms = self.limiter.check(domain)
        if delay_ms > 0:
            logger.debug("proof_mail_delayed", domain=domain, delay_ms=delay_ms)
        return delay_ms
