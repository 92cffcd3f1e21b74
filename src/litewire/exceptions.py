class LitewireError(Exception):
    """Base class for errors raised by litewire."""


class InvalidToolCallError(LitewireError):
    """The server finished a turn while a buffered tool call held
    arguments that are not a JSON object.

    Callers should treat the whole response as failed.
    """

    def __init__(self, index: int, snippet: str = ""):
        super().__init__("Invalid JSON for tool call")
        self.index = index
        self.snippet = snippet


class RequestValidationError(LitewireError, ValueError):
    """The outbound request was rejected before it was sent."""


class ProviderResponseError(LitewireError):
    """The completion server answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderAuthenticationError(ProviderResponseError):
    """The completion server rejected the configured credentials."""
