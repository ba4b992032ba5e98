import subprocess

import pytest

from with_postgres_ready.errors import CommandError, ContainerStartError, PortMappingError
from with_postgres_ready.models import ContainerHandle, Endpoint
from with_postgres_ready.services.container_runtime import ContainerRuntimeService


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, message, *args, **_kwargs):
        self.warnings.append(message % args)


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeCommandRunner:
    """Answers engine commands by sub-command; the last queued answer repeats."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def calls_for(self, subcommand):
        return [cmd for cmd in self.calls if cmd[1] == subcommand]

    async def run(self, cmd, check=True, timeout=None):
        self.calls.append(cmd)
        queue = self.responses[cmd[1]]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if check and response.returncode != 0:
            raise CommandError(f"Command failed ({response.returncode}): {' '.join(cmd)}\n{response.stderr}")
        return response


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(["docker"], returncode, stdout=stdout, stderr=stderr)


def _service(runner, logger=None):
    return ContainerRuntimeService(
        logger=logger or DummyLogger(),
        console=DummyConsole(),
        command_runner=runner,
        check_interval=0,
    )


CONTAINER_ID = "f00dbabe1234567890abcdef"


@pytest.mark.asyncio
async def test_start_publishes_port_and_waits_until_running():
    runner = FakeCommandRunner(
        {
            "create": [_completed(f"{CONTAINER_ID}\n")],
            "start": [_completed(f"{CONTAINER_ID}\n")],
            "inspect": [_completed("created\n"), _completed("running\n")],
        }
    )
    service = _service(runner)

    handle = await service.start(
        image_tag="15.3-alpine3.18",
        env={"POSTGRES_PASSWORD": "postgres"},
        published_port=5432,
        container_timeout=10,
    )

    assert handle == ContainerHandle(container_id=CONTAINER_ID, image="postgres:15.3-alpine3.18")
    create_cmd = runner.calls_for("create")[0]
    assert create_cmd[-1] == "postgres:15.3-alpine3.18"
    assert ["--publish", "5432"] == create_cmd[create_cmd.index("--publish"):create_cmd.index("--publish") + 2]
    assert "POSTGRES_PASSWORD=postgres" in create_cmd
    assert len(runner.calls_for("inspect")) == 2
    assert runner.calls_for("rm") == []


@pytest.mark.asyncio
async def test_start_failure_raises_without_cleanup():
    runner = FakeCommandRunner(
        {"create": [_completed(returncode=125, stderr="manifest for postgres:nope not found")]}
    )
    service = _service(runner)

    with pytest.raises(ContainerStartError, match="manifest for postgres:nope not found"):
        await service.start("nope", {}, 5432, container_timeout=1)

    assert [cmd[1] for cmd in runner.calls] == ["create"]


@pytest.mark.asyncio
async def test_start_removes_container_that_never_runs():
    runner = FakeCommandRunner(
        {
            "create": [_completed(f"{CONTAINER_ID}\n")],
            "start": [_completed(f"{CONTAINER_ID}\n")],
            "inspect": [_completed("created\n")],
            "rm": [_completed(f"{CONTAINER_ID}\n")],
        }
    )
    service = _service(runner)

    with pytest.raises(ContainerStartError, match="after 3 check"):
        await service.start("15.3-alpine3.18", {}, 5432, container_timeout=2.5)

    assert len(runner.calls_for("inspect")) == 3
    assert len(runner.calls_for("rm")) == 1


@pytest.mark.asyncio
async def test_start_stops_checking_when_container_exits():
    runner = FakeCommandRunner(
        {
            "create": [_completed(f"{CONTAINER_ID}\n")],
            "start": [_completed(f"{CONTAINER_ID}\n")],
            "inspect": [_completed("exited\n")],
            "rm": [_completed(f"{CONTAINER_ID}\n")],
        }
    )
    logger = DummyLogger()
    service = _service(runner, logger)

    with pytest.raises(ContainerStartError):
        await service.start("15.3-alpine3.18", {}, 5432, container_timeout=10)

    assert len(runner.calls_for("inspect")) == 1
    assert any("exited" in warning for warning in logger.warnings)


@pytest.mark.asyncio
async def test_start_removes_created_container_when_engine_cannot_start_it():
    runner = FakeCommandRunner(
        {
            "create": [_completed(f"{CONTAINER_ID}\n")],
            "start": [_completed(returncode=125, stderr="Bind for 0.0.0.0:49153 failed: port is already allocated")],
            "rm": [_completed(f"{CONTAINER_ID}\n")],
        }
    )
    service = _service(runner)

    with pytest.raises(ContainerStartError, match="port is already allocated"):
        await service.start("15.3-alpine3.18", {}, 5432, container_timeout=2)

    assert runner.calls_for("inspect") == []
    assert runner.calls_for("rm") == [["docker", "rm", "--force", "--volumes", CONTAINER_ID]]


@pytest.mark.asyncio
async def test_start_wraps_engine_errors_while_waiting_for_running_state():
    runner = FakeCommandRunner(
        {
            "create": [_completed(f"{CONTAINER_ID}\n")],
            "start": [_completed(f"{CONTAINER_ID}\n")],
            "inspect": [CommandError("Command timed out after 300s: docker inspect")],
            "rm": [_completed(f"{CONTAINER_ID}\n")],
        }
    )
    service = _service(runner)

    with pytest.raises(ContainerStartError, match="timed out after 300s: docker inspect") as excinfo:
        await service.start("15", {}, 5432, container_timeout=2)

    assert isinstance(excinfo.value.__cause__, CommandError)
    assert len(runner.calls_for("rm")) == 1


@pytest.mark.asyncio
async def test_endpoint_prefers_ipv4_and_maps_wildcard_host():
    runner = FakeCommandRunner({"port": [_completed("0.0.0.0:49153\n[::]:49153\n")]})
    service = _service(runner)

    endpoint = await service.endpoint(ContainerHandle(CONTAINER_ID, "postgres:15"), 5432)

    assert endpoint == Endpoint(host="127.0.0.1", port=49153)
    assert runner.calls_for("port")[0][-1] == "5432/tcp"


@pytest.mark.asyncio
async def test_endpoint_understands_ipv6_only_mapping():
    runner = FakeCommandRunner({"port": [_completed("[::]:49154\n")]})
    service = _service(runner)

    endpoint = await service.endpoint(ContainerHandle(CONTAINER_ID, "postgres:15"), 5432)

    assert endpoint == Endpoint(host="::1", port=49154)


@pytest.mark.asyncio
async def test_endpoint_raises_when_port_not_published():
    runner = FakeCommandRunner(
        {"port": [_completed(returncode=1, stderr="Error: No public port '5432/tcp' published")]}
    )
    service = _service(runner)

    with pytest.raises(PortMappingError, match="5432/tcp"):
        await service.endpoint(ContainerHandle(CONTAINER_ID, "postgres:15"), 5432)


@pytest.mark.asyncio
async def test_endpoint_wraps_engine_errors():
    runner = FakeCommandRunner({"port": [CommandError("Command timed out after 300s: docker port")]})
    service = _service(runner)

    with pytest.raises(PortMappingError, match="5432/tcp") as excinfo:
        await service.endpoint(ContainerHandle(CONTAINER_ID, "postgres:15"), 5432)

    assert isinstance(excinfo.value.__cause__, CommandError)


@pytest.mark.asyncio
async def test_stop_is_idempotent():
    runner = FakeCommandRunner({"rm": [_completed(f"{CONTAINER_ID}\n")]})
    service = _service(runner)
    handle = ContainerHandle(CONTAINER_ID, "postgres:15")

    await service.stop(handle)
    await service.stop(handle)

    assert len(runner.calls_for("rm")) == 1


@pytest.mark.asyncio
async def test_stop_treats_missing_container_as_removed():
    runner = FakeCommandRunner(
        {"rm": [_completed(returncode=1, stderr=f"Error: No such container: {CONTAINER_ID}")]}
    )
    logger = DummyLogger()
    service = _service(runner, logger)
    handle = ContainerHandle(CONTAINER_ID, "postgres:15")

    await service.stop(handle)
    await service.stop(handle)

    assert len(runner.calls_for("rm")) == 1
    assert logger.warnings == []


@pytest.mark.asyncio
async def test_stop_logs_engine_failure_instead_of_raising():
    runner = FakeCommandRunner({"rm": [CommandError("Command timed out after 300s: docker rm")]})
    logger = DummyLogger()
    service = _service(runner, logger)

    await service.stop(ContainerHandle(CONTAINER_ID, "postgres:15"))

    assert len(logger.warnings) == 1
    assert "timed out" in logger.warnings[0]


@pytest.mark.asyncio
async def test_stop_tracks_removal_on_the_handle_not_the_service():
    runner = FakeCommandRunner({"rm": [_completed("")]})
    service = _service(runner)
    first = ContainerHandle(CONTAINER_ID, "postgres:15")
    second = ContainerHandle("beefcafe0987654321fedcba", "postgres:15")

    await service.stop(first)
    await service.stop(second)
    await service.stop(first)

    assert first.removed is True
    assert second.removed is True
    assert [cmd[-1] for cmd in runner.calls_for("rm")] == [CONTAINER_ID, "beefcafe0987654321fedcba"]
    assert not any(isinstance(value, (set, list, dict)) for value in vars(service).values())
