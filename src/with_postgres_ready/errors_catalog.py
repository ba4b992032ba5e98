"""Actionable error catalog for with_postgres_ready."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "engine_not_found": {
        "what": "Container engine binary not found: {binary}",
        "next": "Install Docker and make sure `{binary}` is on PATH.",
    },
    "container_start_failed": {
        "what": "Could not start a container from image {image}.",
        "next": "Check that the Docker daemon is running and the image tag exists on Docker Hub.",
    },
    "container_not_running": {
        "what": "Container {container_id} did not report a running state after {checks} check(s).",
        "next": "Increase the container timeout or inspect `docker logs {container_id}`.",
    },
    "port_not_published": {
        "what": "Container {container_id} has no host mapping for port {port}/tcp.",
        "next": "Make sure the engine publishes container ports to the host.",
    },
    "readiness_timeout": {
        "what": "Timed out waiting for postgres to be ready after {seconds} seconds.",
        "next": "Raise the connection timeout if the database needs longer to boot.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"


def format_seconds(value: float) -> str:
    """Render a duration without a trailing ``.0`` for whole seconds."""
    return f"{float(value):g}"
