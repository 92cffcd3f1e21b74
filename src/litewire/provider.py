import logging
from collections import Counter
from typing import Any

from openai import APIStatusError, AsyncOpenAI, AuthenticationError

from litewire.config import ProviderSettings
from litewire.decoder import StreamDecoder
from litewire.events import ResponsePart, Sink, as_report
from litewire.exceptions import (
    ProviderAuthenticationError,
    ProviderResponseError,
    RequestValidationError,
)
from litewire.instrumentation import completion_span, record_error, record_parts
from litewire.message import Message

logger = logging.getLogger(__name__)

MAX_TOOLS = 128
DEFAULT_MAX_TOKENS = 4096
# Runtime options copied into the request body when of the expected type.
_NUMERIC_OPTIONS = ("temperature", "frequency_penalty", "presence_penalty", "top_p")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ModelProvider:
    def __init__(self):
        pass

    async def stream_chat(
            self,
            model: str,
            messages: list[Message | dict],
            sink: Sink,
            tools: list[dict] | None = None,
            tool_choice: Any = None,
            model_options: dict | None = None,
            cancel: Any = None,
    ) -> int:
        pass


class LiteLLMProvider(ModelProvider):
    """Streams chat completions from an OpenAI-compatible server.

    Messages and tools are sent as given (OpenAI chat format); the streamed
    response is decoded by a fresh :class:`StreamDecoder` per request and
    every part is reported to the caller's sink.

    Args:
        settings: Connection settings. Defaults to
            :meth:`ProviderSettings.from_env`.
        http_client: Optional ``httpx.AsyncClient`` handed to the openai
            client, e.g. for proxies or tests.
    """

    system = "litellm"

    def __init__(
            self,
            settings: ProviderSettings | None = None,
            http_client=None,
    ):
        self.settings = settings or ProviderSettings.from_env()
        headers = {"User-Agent": self.settings.user_agent}
        if self.settings.api_key:
            # Some proxies only look at X-API-Key.
            headers["X-API-Key"] = self.settings.api_key
        self.client = AsyncOpenAI(
            base_url=self.settings.base_url,
            api_key=self.settings.api_key or "DUMMY",
            max_retries=self.settings.max_retries,
            timeout=self.settings.timeout,
            default_headers=headers,
            http_client=http_client,
        )

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    def get_model_parameters(self, model_id: str) -> dict[str, Any]:
        return self.settings.model_parameters_for(model_id)

    def build_request(
            self,
            model: str,
            messages: list[Message | dict],
            tools: list[dict] | None = None,
            tool_choice: Any = None,
            model_options: dict | None = None,
    ) -> dict[str, Any]:
        """Assemble the streaming request body.

        Precedence, lowest first: defaults, per-model parameters, runtime
        ``model_options``. ``max_tokens`` from runtime options or model
        parameters is used as is; the default is clamped to the configured
        output limit.
        """
        if tools and len(tools) > MAX_TOOLS:
            raise RequestValidationError(
                f"Cannot have more than {MAX_TOOLS} tools per request."
            )
        options = model_options or {}
        model_params = self.get_model_parameters(model)

        if _is_number(options.get("max_tokens")):
            max_tokens = options["max_tokens"]
        elif _is_number(model_params.get("max_tokens")):
            max_tokens = model_params["max_tokens"]
        else:
            max_tokens = min(DEFAULT_MAX_TOKENS, self.settings.default_max_output_tokens)

        body: dict[str, Any] = {
            "model": model,
            "messages": [
                m.model_dump() if isinstance(m, Message) else m
                for m in messages
            ],
            "stream": True,
            "max_tokens": max_tokens,
            "temperature": self.settings.default_temperature,
        }
        for key, value in model_params.items():
            if key != "max_tokens":
                body[key] = value

        for key in _NUMERIC_OPTIONS:
            if _is_number(options.get(key)):
                body[key] = options[key]
        stop = options.get("stop")
        if isinstance(stop, (str, list)):
            body["stop"] = stop

        if tools:
            body["tools"] = tools
        if tool_choice:
            body["tool_choice"] = tool_choice
        return body

    async def stream_chat(
            self,
            model: str,
            messages: list[Message | dict],
            sink: Sink,
            tools: list[dict] | None = None,
            tool_choice: Any = None,
            model_options: dict | None = None,
            cancel: Any = None,
    ) -> int:
        """Send the request and report decoded parts to *sink*.

        Returns the number of parts produced.

        Raises:
            RequestValidationError: too many tools.
            ProviderAuthenticationError: the server answered 401.
            ProviderResponseError: any other error status.
            InvalidToolCallError: the turn finished with a malformed call.
        """
        body = self.build_request(model, messages, tools, tool_choice, model_options)
        logger.info(
            f"Sending chat request to {self.base_url} "
            f"(model={model}, messages={len(body['messages'])})"
        )
        report = as_report(sink)
        counts: Counter[str] = Counter()

        def counting_sink(part: ResponsePart) -> None:
            counts[type(part).__name__] += 1
            report(part)

        extra_body = {
            k: v for k, v in body.items()
            if k not in ("model", "messages", "stream")
        }
        async with completion_span(self.system, model) as span:
            try:
                async with self.client.chat.completions.with_streaming_response.create(
                    model=model,
                    messages=body["messages"],
                    stream=True,
                    extra_body=extra_body,
                ) as response:
                    produced = await StreamDecoder().run(
                        response.iter_bytes(), counting_sink, cancel=cancel,
                    )
            except APIStatusError as e:
                error = self._translate_status_error(e)
                logger.error(f"Chat request failed for {model}: {error}")
                record_error(span, error)
                raise error from e
            except Exception as e:
                logger.error(f"Chat request failed for {model}: {e}")
                record_error(span, e)
                raise
            record_parts(span, counts)
        return produced

    @staticmethod
    def _translate_status_error(e: APIStatusError) -> ProviderResponseError:
        body = "" if e.body is None else str(e.body)
        if isinstance(e, AuthenticationError):
            return ProviderAuthenticationError(
                "Authentication failed: the server requires an API key. "
                "Set LITELLM_API_KEY or pass api_key in ProviderSettings.",
                status_code=e.status_code,
                body=body,
            )
        return ProviderResponseError(
            f"API error: {e.status_code} {e.message}",
            status_code=e.status_code,
            body=body,
        )
