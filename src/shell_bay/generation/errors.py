class GenerationError(Exception):
    """Base class for failures in the generation pipeline."""


class ConfigError(GenerationError):
    """The active provider is not usable (missing credential, no client)."""


class AuthError(ConfigError):
    """No API key is configured for the provider."""


class TransportError(GenerationError):
    """The connection failed or the response body could not be streamed."""


class RequestError(GenerationError):
    """The provider answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(GenerationError):
    """A single event payload was not valid JSON."""


class EmptyInputError(GenerationError):
    """The prompt was blank."""


class GenerationInProgressError(GenerationError):
    """A turn is already running for the project."""


class ProjectNotFoundError(GenerationError):
    """No project exists with the requested id."""
