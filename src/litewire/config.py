import os
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_BASE_URL = "http://localhost:4000"
DEFAULT_MAX_OUTPUT_TOKENS = 16000


class ProviderSettings(BaseModel):
    """Connection and request defaults for a completion server.

    ``model_parameters`` maps a model id or id prefix to extra request
    parameters; the longest matching prefix wins.

    Example:
        settings = ProviderSettings(
            base_url="http://localhost:4000",
            model_parameters={"openai/": {"top_p": 0.9}},
        )
    """

    base_url: str = Field(DEFAULT_BASE_URL, validate_default=True)
    api_key: str | None = None
    user_agent: str = "litewire"
    timeout: float = 600.0
    max_retries: int = 5
    default_max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    default_temperature: float = 0.7
    model_parameters: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        value = value.rstrip("/")
        if not value.endswith("/v1"):
            value = f"{value}/v1"
        return value

    @classmethod
    def from_env(cls, **overrides: Any) -> "ProviderSettings":
        """Build settings from ``LITELLM_BASE_URL`` / ``LITELLM_API_KEY``."""
        values: dict[str, Any] = {}
        base_url = os.getenv("LITELLM_BASE_URL")
        if base_url:
            values["base_url"] = base_url
        api_key = os.getenv("LITELLM_API_KEY")
        if api_key:
            values["api_key"] = api_key
        values.update(overrides)
        return cls(**values)

    def model_parameters_for(self, model_id: str) -> dict[str, Any]:
        """Return a copy of the parameters for the longest matching prefix."""
        best: str | None = None
        for key in self.model_parameters:
            if model_id.startswith(key) and (best is None or len(key) > len(best)):
                best = key
        return dict(self.model_parameters[best]) if best is not None else {}
