"""
with_postgres_ready - run tests against a disposable PostgreSQL container

Starts postgres in Docker, polls it until it accepts connections, hands the
test body a connection URL and removes the container afterwards.
"""

__version__ = "0.1.0"

from .errors import (
    ContainerStartError,
    PortMappingError,
    PostgresReadyError,
    ReadinessTimeoutError,
)
from .helper import with_postgres_ready, with_postgres_ready_async
from .logging_setup import configure_logging
from .models import RunConfig
from .runner import Runner

__all__ = [
    "ContainerStartError",
    "PortMappingError",
    "PostgresReadyError",
    "ReadinessTimeoutError",
    "RunConfig",
    "Runner",
    "configure_logging",
    "with_postgres_ready",
    "with_postgres_ready_async",
]
