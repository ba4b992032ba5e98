"""Shared domain models for with_postgres_ready."""

import enum
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Union

from .constants import (
    DEFAULT_CONNECTION_TEST_INTERVAL,
    DEFAULT_CONNECTION_TIMEOUT,
    DEFAULT_CONTAINER_TIMEOUT,
    DEFAULT_IMAGE_TAG,
    POSTGRES_DATABASE,
    POSTGRES_PASSWORD,
    POSTGRES_USER,
)

Seconds = Union[int, float, timedelta]


def to_seconds(value: Seconds) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


@dataclass(frozen=True)
class RunConfig:
    """Settings consumed by a single run. Durations are in seconds."""

    image_tag: str = DEFAULT_IMAGE_TAG
    container_timeout: float = DEFAULT_CONTAINER_TIMEOUT
    connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT
    connection_test_interval: float = DEFAULT_CONNECTION_TEST_INTERVAL

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "RunConfig":
        config = cls()
        overrides: Dict[str, Any] = {}
        if "image_tag" in values:
            overrides["image_tag"] = str(values["image_tag"])
        for key in ("container_timeout", "connection_timeout", "connection_test_interval"):
            if key in values:
                overrides[key] = to_seconds(values[key])
        return replace(config, **overrides)

    def with_overrides(self, **overrides: Any) -> "RunConfig":
        return replace(self, **overrides)


@dataclass
class ContainerHandle:
    """Reference to a container started for one run."""

    container_id: str
    image: str
    removed: bool = field(default=False, compare=False)

    @property
    def short_id(self) -> str:
        return self.container_id[:12]


@dataclass(frozen=True)
class Endpoint:
    host: str
    port: int


@dataclass(frozen=True)
class ConnectionTarget:
    """Connection parameters handed to the test body as a URL."""

    host: str
    port: int
    user: str = POSTGRES_USER
    password: str = POSTGRES_PASSWORD
    database: str = POSTGRES_DATABASE

    @classmethod
    def from_endpoint(cls, endpoint: Endpoint) -> "ConnectionTarget":
        return cls(host=endpoint.host, port=endpoint.port)

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"postgresql://{self.user}:{self.password}@{host}:{self.port}/{self.database}"


class OutcomeStatus(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RunOutcome:
    """Terminal result of a run, inspected only after teardown."""

    status: OutcomeStatus
    error: Optional[BaseException] = None
    value: Any = None

    @classmethod
    def succeeded(cls, value: Any = None) -> "RunOutcome":
        return cls(OutcomeStatus.SUCCEEDED, value=value)

    @classmethod
    def failed(cls, error: BaseException) -> "RunOutcome":
        return cls(OutcomeStatus.FAILED, error=error)

    @classmethod
    def timed_out(cls, error: BaseException) -> "RunOutcome":
        return cls(OutcomeStatus.TIMED_OUT, error=error)

    def resurface(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value
