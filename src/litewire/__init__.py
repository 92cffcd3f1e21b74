from litewire.config import ProviderSettings
from litewire.decoder import StreamDecoder
from litewire.events import ResponsePart, TextPart, ThinkingPart, ToolCallPart
from litewire.exceptions import (
    InvalidToolCallError,
    LitewireError,
    ProviderAuthenticationError,
    ProviderResponseError,
    RequestValidationError,
)
from litewire.instrumentation import instrument, uninstrument
from litewire.provider import LiteLLMProvider, ModelProvider
from litewire.state import ResponseStreamState

__all__ = [
    "InvalidToolCallError",
    "LiteLLMProvider",
    "LitewireError",
    "ModelProvider",
    "ProviderAuthenticationError",
    "ProviderResponseError",
    "ProviderSettings",
    "RequestValidationError",
    "ResponsePart",
    "ResponseStreamState",
    "StreamDecoder",
    "TextPart",
    "ThinkingPart",
    "ToolCallPart",
    "instrument",
    "uninstrument",
]
