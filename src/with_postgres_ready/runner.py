import asyncio
import concurrent.futures
import inspect
import logging
from typing import Any, Callable, Optional

from rich.console import Console

from .constants import ENGINE_COMMAND_TIMEOUT, POSTGRES_PASSWORD, POSTGRES_PORT
from .errors import ReadinessTimeoutError
from .errors_catalog import actionable_error, format_seconds
from .models import ConnectionTarget, RunConfig, RunOutcome, Seconds, to_seconds
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader
from .services.container_runtime import ContainerRuntimeService
from .services.readiness import ReadinessProber

console = Console(stderr=True)
logger = logging.getLogger("with_postgres_ready")

TestBody = Callable[[str], Any]


class Runner:
    """A test helper that runs a postgres container and waits for it to be ready.

    Setters return a new ``Runner`` so a configured instance can be shared::

        Runner().connection_timeout(5).run(test_body)

    The test body receives a ``postgresql://`` URL. It may be a coroutine
    function or a plain callable; plain callables run in a worker thread.
    """

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        runtime_service: Optional[ContainerRuntimeService] = None,
        prober: Optional[ReadinessProber] = None,
    ):
        self._config = config or RunConfig()
        self.runtime_service = runtime_service or ContainerRuntimeService(
            logger=logger,
            console=console,
            command_runner=CommandRunner(logger=logger, default_timeout=ENGINE_COMMAND_TIMEOUT),
        )
        self.prober = prober or ReadinessProber(logger=logger)

    @classmethod
    def from_config_file(cls, config_path: str, **kwargs) -> "Runner":
        """Create a runner whose defaults are overridden by a YAML file."""
        values = ConfigLoader().load(config_path)
        return cls(config=RunConfig.from_mapping(values), **kwargs)

    @property
    def config(self) -> RunConfig:
        return self._config

    def _with(self, **overrides) -> "Runner":
        return Runner(
            config=self._config.with_overrides(**overrides),
            runtime_service=self.runtime_service,
            prober=self.prober,
        )

    def container_tag(self, container_tag: str) -> "Runner":
        """Set the postgres image tag to use.

        See https://hub.docker.com/_/postgres for available tags.
        Defaults to ``15.3-alpine3.18``.
        """
        return self._with(image_tag=container_tag)

    def container_timeout(self, container_timeout: Seconds) -> "Runner":
        """Set how long the engine may take to report the container as running.

        Defaults to 10 seconds.
        """
        return self._with(container_timeout=to_seconds(container_timeout))

    def connection_timeout(self, timeout: Seconds) -> "Runner":
        """Set how long to wait for the database to accept connections.

        Defaults to 2 seconds.
        """
        return self._with(connection_timeout=to_seconds(timeout))

    def connection_test_interval(self, connection_test_interval: Seconds) -> "Runner":
        """Set the pause between connection attempts.

        Defaults to 100 milliseconds.
        """
        return self._with(connection_test_interval=to_seconds(connection_test_interval))

    def run(self, body: TestBody) -> Any:
        """Run the test body against a fresh database and return its result.

        Raises ``ReadinessTimeoutError`` if postgres does not accept connections
        within the connection timeout, or re-raises whatever the test body raised.
        The container is removed before either happens.

        Called from a thread whose event loop is already running, the run
        happens on a private loop in a helper thread and the calling thread,
        including its loop, is blocked until it finishes. Coroutines should
        ``await runner.run_async(body)`` instead.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.run_async(body))

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            return executor.submit(asyncio.run, self.run_async(body)).result()

    async def run_async(self, body: TestBody) -> Any:
        config = self._config
        handle = await self.runtime_service.start(
            image_tag=config.image_tag,
            env={"POSTGRES_PASSWORD": POSTGRES_PASSWORD},
            published_port=POSTGRES_PORT,
            container_timeout=config.container_timeout,
        )

        try:
            endpoint = await self.runtime_service.endpoint(handle, POSTGRES_PORT)
            target = ConnectionTarget.from_endpoint(endpoint)
            outcome = await self._probe_and_execute(config, target.url, body)
        finally:
            await self.runtime_service.stop(handle)

        logger.debug("Run finished with status %s", outcome.status.value)
        return outcome.resurface()

    async def _probe_and_execute(self, config: RunConfig, url: str, body: TestBody) -> RunOutcome:
        if not await self._wait_until_ready(config, url):
            message = actionable_error(
                "readiness_timeout",
                seconds=format_seconds(config.connection_timeout),
            )
            return RunOutcome.timed_out(ReadinessTimeoutError(message, timeout=config.connection_timeout))

        try:
            value = await self._invoke(body, url)
        except BaseException as exc:
            logger.debug("Test body raised %s", type(exc).__name__)
            return RunOutcome.failed(exc)
        return RunOutcome.succeeded(value)

    async def _wait_until_ready(self, config: RunConfig, url: str) -> bool:
        console.print("[yellow]Waiting for database to be ready...[/yellow]")
        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            attempts = await asyncio.wait_for(
                self.prober.probe_until_ready(url, config.connection_test_interval),
                timeout=config.connection_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Database did not accept connections within %ss",
                format_seconds(config.connection_timeout),
            )
            return False

        elapsed = loop.time() - started
        console.print("[green]Database is ready.[/green]")
        logger.info("Database ready after %s attempt(s) in %.2fs", attempts, elapsed)
        return True

    @staticmethod
    async def _invoke(body: TestBody, url: str) -> Any:
        if inspect.iscoroutinefunction(body):
            return await body(url)

        result = await asyncio.to_thread(body, url)
        if inspect.isawaitable(result):
            return await result
        return result
