"""Per-domain spacing of outgoing proof mail."""

from threading import Lock

from emaillogin.errors import RateLimitedError, ValidationError
from emaillogin.utils import Clock, now_ms


def email_domain(identifier: str) -> str:
    """Return the part of an email address after its last "@".

    Raises:
        ValidationError: If there is no "@", or the local part or domain is empty
    """
    local, sep, domain = identifier.rpartition("@")
    if not sep or not local or not domain:
        raise ValidationError(f"Invalid email address '{identifier}'")
    return domain


class SendRateLimiter:
    """Schedules sends so two sends to one domain are at least `spacing_ms` apart.

    The domain map is never evicted.
    """

    def __init__(self, spacing_ms: int = 1000, ceiling_ms: int | None = None, clock: Clock | None = None) -> None:
        self._spacing_ms = spacing_ms
        self._ceiling_ms = ceiling_ms if ceiling_ms is not None else 120 * spacing_ms
        self._clock = clock or now_ms
        self._next_send: dict[str, int] = {}
        self._lock = Lock()

    @property
    def spacing_ms(self) -> int:
        return self._spacing_ms

    @property
    def ceiling_ms(self) -> int:
        return self._ceiling_ms

    def delay(self, domain: str, now: int | None = None) -> int:
        """Reserve the next send slot for a domain and return how long to wait for it, in ms."""
        if now is None:
            now = self._clock()
        with self._lock:
            scheduled = max(self._next_send.get(domain, now), now)
            self._next_send[domain] = scheduled + self._spacing_ms
        return scheduled - now

    def check(self, domain: str, now: int | None = None) -> int:
        """Reserve a send slot, rejecting it when the wait exceeds the ceiling.

        Raises:
            RateLimitedError: If the computed delay is above the ceiling
        """
        delay_ms = self.delay(domain, now)
        if delay_ms > self._ceiling_ms:
            raise RateLimitedError(delay_ms)
        return delay_ms

    def next_send_at(self, domain: str) -> int | None:
        with self._lock:
            return self._next_send.get(domain)
