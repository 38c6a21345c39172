"""
Error types raised by the chat services.

SDK exceptions from the OpenAI and Anthropic clients are not wrapped;
they reach the HTTP layer as-is.
"""


class CodeChatError(Exception):
    """Base class for service errors."""


class ConfigValidationError(CodeChatError):
    """The requested provider configuration is incomplete or out of range."""


class ContextUnavailableError(CodeChatError):
    """The codebase context for a container could not be read."""

    def __init__(self, container_id: str, reason: str) -> None:
        super().__init__(f"Codebase context unavailable for {container_id}: {reason}")
        self.container_id = container_id


class ProviderRequestError(CodeChatError):
    """A provider answered with an error status."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
