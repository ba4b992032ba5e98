"""Domain errors for with_postgres_ready."""


class PostgresReadyError(RuntimeError):
    """Raised when a disposable database run cannot continue."""


class CommandError(PostgresReadyError):
    """Raised when a container engine command cannot be executed or fails."""


class ConfigError(PostgresReadyError):
    """Raised when a configuration file is missing or malformed."""


class ContainerStartError(PostgresReadyError):
    """Raised when the database container never reaches a running state."""


class PortMappingError(PostgresReadyError):
    """Raised when the database port has no host mapping."""


class ReadinessTimeoutError(PostgresReadyError):
    """Raised after teardown when the database did not accept connections in time."""

    def __init__(self, message: str, timeout: float):
        super().__init__(message)
        self.timeout = timeout
