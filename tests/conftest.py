"""Shared pytest fixtures."""

import pytest

from emaillogin.app import App
from emaillogin.config import Config
from emaillogin.core.core import Core
from emaillogin.core.modules.mail.models import Mail
from emaillogin.core.modules.mail.transport import MailTransport
from emaillogin.core.modules.registry.service import RegistryService
from emaillogin.core.modules.storage.memory import MemoryStorage

START_TIME = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class CapturingTransport(MailTransport):
    """Keeps sent mail in memory."""

    def __init__(self) -> None:
        self.sent: list[Mail] = []

    async def send(self, mail: Mail) -> None:
        self.sent.append(mail)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Test configuration: in-memory storage, no renewal, near-zero send spacing."""
    return Config(
        storage_backend="memory",
        mail_block=True,
        renewal_period_ms=0,
        send_spacing_ms=1,
        send_delay_ceiling_ms=120,
        site_name="example",
        root_url="https://example.com/",
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def core(config, storage, clock):
    return Core(config, storage=storage, clock=clock)


@pytest.fixture
def registry(core) -> RegistryService:
    return core.services.registry


@pytest.fixture
def transport():
    return CapturingTransport()


@pytest.fixture
def app(config, storage, clock, transport):
    return App(config, storage=storage, clock=clock, mail_transport=transport)
