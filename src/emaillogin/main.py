"""Entry point for the expired-session sweep, meant to run from cron."""

import asyncio

import structlog

from emaillogin.app import App
from emaillogin.config import Config
from emaillogin.logging import setup_logging

logger = structlog.get_logger(__name__)


async def rm_expired_sessions(config: Config) -> int:
    app = App(config)
    async with app.lifespan():
        return await app.rm_expired_sessions()


def main() -> None:
    config = Config()
    setup_logging(config)
    with structlog.contextvars.bound_contextvars(command="rm-expired", storage=config.storage_backend):
        deleted = asyncio.run(rm_expired_sessions(config))
        logger.info("sweep_finished", deleted=deleted)


if __name__ == "__main__":
    main()
