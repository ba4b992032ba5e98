"""Container engine lifecycle services for with_postgres_ready."""

import asyncio
import math
from typing import List, Mapping, Optional, Tuple

from with_postgres_ready.constants import (
    CONTAINER_CHECK_INTERVAL,
    CONTAINER_LABEL,
    DOCKER_BINARY,
    POSTGRES_REPOSITORY,
)
from with_postgres_ready.errors import CommandError, ContainerStartError, PortMappingError
from with_postgres_ready.errors_catalog import actionable_error
from with_postgres_ready.models import ContainerHandle, Endpoint

_WILDCARD_HOSTS = {"0.0.0.0": "127.0.0.1", "::": "::1", "": "127.0.0.1"}
_TERMINAL_STATES = {"exited", "dead"}


class ContainerRuntimeService:
    """Starts, resolves and removes the disposable database container."""

    def __init__(
        self,
        logger,
        console,
        command_runner,
        engine_binary: str = DOCKER_BINARY,
        check_interval: float = CONTAINER_CHECK_INTERVAL,
    ):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.engine_binary = engine_binary
        self.check_interval = check_interval

    async def start(
        self,
        image_tag: str,
        env: Mapping[str, str],
        published_port: int,
        container_timeout: float,
    ) -> ContainerHandle:
        image = f"{POSTGRES_REPOSITORY}:{image_tag}"
        self.console.print(f"[blue]Starting {image} container...[/blue]")

        cmd = [
            self.engine_binary,
            "create",
            "--label",
            CONTAINER_LABEL,
            "--publish",
            str(published_port),
        ]
        for key, value in sorted(env.items()):
            cmd.extend(["--env", f"{key}={value}"])
        cmd.append(image)

        try:
            result = await self.command_runner.run(cmd, check=True)
        except CommandError as exc:
            message = actionable_error("container_start_failed", image=image)
            raise ContainerStartError(f"{message}\n{exc}") from exc

        lines = [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]
        if not lines:
            raise ContainerStartError(actionable_error("container_start_failed", image=image))

        handle = ContainerHandle(container_id=lines[-1], image=image)
        self.logger.info("Created container %s from %s", handle.short_id, image)

        # From here on a container exists, so every failure removes it before raising.
        max_checks = max(1, math.ceil(container_timeout))
        running = False
        try:
            await self.command_runner.run([self.engine_binary, "start", handle.container_id], check=True)
            running = await self._wait_until_running(handle, max_checks)
        except CommandError as exc:
            message = actionable_error("container_start_failed", image=image)
            raise ContainerStartError(f"{message}\n{exc}") from exc
        finally:
            if not running:
                await self.stop(handle)

        if not running:
            raise ContainerStartError(
                actionable_error(
                    "container_not_running",
                    container_id=handle.short_id,
                    checks=str(max_checks),
                )
            )
        self.logger.info("Started container %s", handle.short_id)
        return handle

    async def _container_status(self, handle: ContainerHandle) -> str:
        result = await self.command_runner.run(
            [self.engine_binary, "inspect", "--format", "{{.State.Status}}", handle.container_id],
            check=False,
        )
        if result.returncode != 0:
            return ""
        return (result.stdout or "").strip().lower()

    async def _wait_until_running(self, handle: ContainerHandle, max_checks: int) -> bool:
        for check in range(1, max_checks + 1):
            status = await self._container_status(handle)
            self.logger.debug("Container %s status on check %s/%s: %s", handle.short_id, check, max_checks, status)
            if status == "running":
                return True
            if status in _TERMINAL_STATES:
                self.logger.warning("Container %s stopped before it was running (%s)", handle.short_id, status)
                return False
            if check < max_checks:
                await asyncio.sleep(self.check_interval)
        return False

    @staticmethod
    def _parse_port_line(line: str) -> Optional[Tuple[str, int]]:
        # Accepts "0.0.0.0:49153", "[::]:49153", ":::49153" and "5432/tcp -> 0.0.0.0:49153".
        host, sep, port = line.split("->")[-1].strip().rpartition(":")
        if not sep or not port.isdigit():
            return None
        host = host.strip("[]")
        return _WILDCARD_HOSTS.get(host, host), int(port)

    async def endpoint(self, handle: ContainerHandle, internal_port: int) -> Endpoint:
        message = actionable_error(
            "port_not_published",
            container_id=handle.short_id,
            port=str(internal_port),
        )
        try:
            result = await self.command_runner.run(
                [self.engine_binary, "port", handle.container_id, f"{internal_port}/tcp"],
                check=False,
            )
        except CommandError as exc:
            raise PortMappingError(f"{message}\n{exc}") from exc
        if result.returncode != 0:
            raise PortMappingError(message)

        mappings: List[Tuple[str, int]] = []
        for line in (result.stdout or "").splitlines():
            parsed = self._parse_port_line(line)
            if parsed:
                mappings.append(parsed)
        if not mappings:
            raise PortMappingError(message)

        ipv4 = [mapping for mapping in mappings if ":" not in mapping[0]]
        host, port = (ipv4 or mappings)[0]
        self.logger.debug("Container %s port %s is published at %s:%s", handle.short_id, internal_port, host, port)
        return Endpoint(host=host, port=port)

    async def stop(self, handle: ContainerHandle):
        if handle.removed:
            self.logger.debug("Container %s already removed", handle.short_id)
            return

        self.console.print(f"[dim]Removing container {handle.short_id}...[/dim]")
        try:
            result = await self.command_runner.run(
                [self.engine_binary, "rm", "--force", "--volumes", handle.container_id],
                check=False,
            )
        except Exception as exc:
            self.logger.warning("Could not remove container %s: %s", handle.short_id, exc)
            return

        stderr = (result.stderr or "").strip()
        if result.returncode == 0 or "no such container" in stderr.lower():
            handle.removed = True
            self.logger.info("Removed container %s", handle.short_id)
            return

        self.logger.warning(
            "Could not remove container %s (%s): %s",
            handle.short_id,
            result.returncode,
            stderr,
        )
