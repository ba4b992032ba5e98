"""Zero-configuration entry points."""

from typing import Any

from .runner import Runner, TestBody


def with_postgres_ready(body: TestBody) -> Any:
    """Run a test with a postgres container.

    The test body is passed a postgres connection URL.
    """
    return Runner().run(body)


async def with_postgres_ready_async(body: TestBody) -> Any:
    return await Runner().run_async(body)
