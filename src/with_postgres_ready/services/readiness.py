"""Database readiness probing for with_postgres_ready."""

import asyncio

import asyncpg


class ReadinessProber:
    """Polls a database URL until a connection can be opened.

    The loop has no deadline of its own. Callers bound it by cancelling the
    coroutine, which is safe at any point of an attempt.
    """

    def __init__(self, logger, connect=None):
        self.logger = logger
        self.connect = connect or asyncpg.connect

    async def probe_once(self, url: str) -> bool:
        try:
            connection = await self.connect(url)
        except Exception as exc:
            # Refused, reset, unresolved host and server-side startup errors all mean "not yet".
            self.logger.debug("Readiness probe failed: %s", exc)
            return False

        try:
            await connection.close()
        except Exception as exc:
            self.logger.debug("Closing readiness probe connection failed: %s", exc)
        return True

    async def probe_until_ready(self, url: str, interval: float) -> int:
        attempt = 0
        while True:
            attempt += 1
            if await self.probe_once(url):
                self.logger.debug("Database accepted a connection on attempt %s", attempt)
                return attempt
            await asyncio.sleep(interval)
