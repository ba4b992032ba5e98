"""Read-only defaults for with_postgres_ready."""

POSTGRES_REPOSITORY = "postgres"
DEFAULT_IMAGE_TAG = "15.3-alpine3.18"

POSTGRES_USER = "postgres"
POSTGRES_PASSWORD = "postgres"
POSTGRES_DATABASE = "postgres"
POSTGRES_PORT = 5432

# Durations are expressed in seconds.
DEFAULT_CONTAINER_TIMEOUT = 10.0
DEFAULT_CONNECTION_TIMEOUT = 2.0
DEFAULT_CONNECTION_TEST_INTERVAL = 0.1

CONTAINER_CHECK_INTERVAL = 1.0
ENGINE_COMMAND_TIMEOUT = 300.0

DOCKER_BINARY = "docker"
CONTAINER_LABEL = "with-postgres-ready.managed=true"
