from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, cast

from emaillogin.config import Config
from emaillogin.core.modules.storage.factory import build_storage
from emaillogin.core.modules.storage.port import Storage
from emaillogin.utils import Clock, now_ms

if TYPE_CHECKING:
    from emaillogin.core.modules.mail.service import MailService
    from emaillogin.core.modules.mail.transport import MailTransport
    from emaillogin.core.modules.ratelimit.service import RateLimitService
    from emaillogin.core.modules.registry.service import RegistryService

# (attribute on Services, module, class), started in this order and stopped in reverse
SERVICE_SPECS = [
    ("registry", "emaillogin.core.modules.registry.service", "RegistryService"),
    ("rate_limit", "emaillogin.core.modules.ratelimit.service", "RateLimitService"),
    ("mail", "emaillogin.core.modules.mail.service", "MailService"),
]


class Service:
    """Base for services sharing one storage backend and the owning Core."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Hook run once storage is ready."""

    async def on_stop(self) -> None:
        """Hook run before storage is closed."""

    @property
    def core(self) -> Core:
        if self._core is None:
            raise RuntimeError(f"{type(self).__name__} is not attached to a Core")
        return self._core

    def set_core(self, core: Core) -> None:
        self._core = core


class Services:
    """Holds one instance of every service, importing their modules lazily."""

    registry: RegistryService
    rate_limit: RateLimitService
    mail: MailService

    def __init__(self, storage: Storage) -> None:
        self._services: list[Service] = []
        for attr_name, module_path, class_name in SERVICE_SPECS:
            service_class = cast(type[Service], getattr(importlib.import_module(module_path), class_name))
            service = service_class(storage)
            setattr(self, attr_name, service)
            self._services.append(service)

    def set_core(self, core: Core) -> None:
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, storage, clock, and all service instances."""

    config: Config
    storage: Storage
    clock: Clock
    mail_transport: MailTransport | None
    services: Services

    def __init__(
        self,
        config: Config,
        storage: Storage | None = None,
        clock: Clock | None = None,
        mail_transport: MailTransport | None = None,
    ) -> None:
        """Wire config, storage and clock into a fresh set of services.

        Args:
            config: Application configuration
            storage: Storage backend; built from config when omitted
            clock: Millisecond clock; wall clock when omitted
            mail_transport: Mail transport; built from config when omitted
        """
        self.config = config
        self.storage = storage if storage is not None else build_storage(config)
        self.clock = clock or now_ms
        self.mail_transport = mail_transport
        self.services = Services(self.storage)
        self.services.set_core(self)

    def now(self) -> int:
        return self.clock()

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Prepare storage and start services, then shut both down on exit."""
        await self.storage.setup()
        await self.services.start_all()
        try:
            yield
        finally:
            await self.services.stop_all()
            await self.storage.close()
