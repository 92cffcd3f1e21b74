"""Streaming chat against a LiteLLM (or any OpenAI-compatible) server.

Demonstrates:
- Configuring LiteLLMProvider from LITELLM_BASE_URL / LITELLM_API_KEY
- Printing text and thinking parts as they stream in
- Answering tool calls and sending the results back for the next turn

Usage:
    uv run --env-file=.env examples/stream_chat_example.py --model openai/gpt-4o-mini
    uv run examples/stream_chat_example.py --base-url http://localhost:4000 --model kimi-k2 --trace
"""

import argparse
import asyncio
import logging
import sys

from litewire.config import ProviderSettings
from litewire.events import ResponsePart, TextPart, ThinkingPart, ToolCallPart
from litewire.exceptions import LitewireError
from litewire.message import (
    Message,
    MessageRole,
    ToolCallRequestMessage,
    ToolCallResultMessage,
)
from litewire.provider import LiteLLMProvider

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    handlers=[
        logging.FileHandler('litewire.log'),
    ]
)

MAX_TOOL_ROUNDS = 5

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "get_weather",
            "description": "Current weather for a city.",
            "parameters": {
                "type": "object",
                "properties": {"city": {"type": "string"}},
                "required": ["city"],
            },
        },
    }
]


def get_weather(city: str) -> str:
    return f"It is 18 degrees and cloudy in {city}."


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from litewire.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


class ConsoleSink:
    """Writes streamed parts to stdout and keeps the turn's output."""

    def __init__(self, show_thinking: bool = False):
        self.show_thinking = show_thinking
        self.text: list[str] = []
        self.tool_calls: list[ToolCallPart] = []

    def report(self, part: ResponsePart) -> None:
        if isinstance(part, TextPart):
            self.text.append(part.value)
            sys.stdout.write(part.value)
        elif isinstance(part, ThinkingPart):
            if self.show_thinking:
                sys.stdout.write(f"\033[2m{part.text}\033[0m")
        elif isinstance(part, ToolCallPart):
            self.tool_calls.append(part)
            sys.stdout.write(f"\n[tool call] {part.name}({part.arguments})\n")
        sys.stdout.flush()


def run_tool(call: ToolCallPart) -> str:
    if call.name == "get_weather":
        return get_weather(**call.arguments)
    return f"Unknown tool '{call.name}'."


async def complete_turn(provider, model, transcript, show_thinking):
    for _ in range(MAX_TOOL_ROUNDS):
        sink = ConsoleSink(show_thinking=show_thinking)
        await provider.stream_chat(
            model,
            transcript,
            sink,
            tools=TOOLS,
            tool_choice="auto",
        )
        content = "".join(sink.text).strip()
        if not sink.tool_calls:
            transcript.append(Message(role=MessageRole.ASSISTANT, content=content))
            return
        transcript.append(ToolCallRequestMessage(
            role=MessageRole.ASSISTANT,
            content=content or None,
            tool_calls=sink.tool_calls,
        ))
        for call in sink.tool_calls:
            transcript.append(ToolCallResultMessage(
                role=MessageRole.TOOL,
                content=run_tool(call),
                tool_call_id=call.call_id,
            ))


async def main():
    parser = argparse.ArgumentParser(description="Streaming chat")
    parser.add_argument("--model", default="openai/gpt-4o-mini")
    parser.add_argument("--base-url", default=None)
    parser.add_argument("--thinking", action="store_true")
    parser.add_argument("--trace", action="store_true")
    args = parser.parse_args()

    if args.trace:
        setup_tracing("stream-chat")

    overrides = {"base_url": args.base_url} if args.base_url else {}
    provider = LiteLLMProvider(ProviderSettings.from_env(**overrides))

    transcript: list[Message] = [
        Message(role=MessageRole.SYSTEM, content="You are a concise assistant."),
    ]

    print(f"Streaming chat via {provider.base_url}\n")

    while True:
        try:
            user_input = input("You: ")
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        transcript.append(Message(role=MessageRole.USER, content=user_input))
        sys.stdout.write("Assistant: ")
        try:
            await complete_turn(provider, args.model, transcript, args.thinking)
        except LitewireError as e:
            print(f"\n[error] {e}")
        print("\n")


if __name__ == "__main__":
    asyncio.run(main())
