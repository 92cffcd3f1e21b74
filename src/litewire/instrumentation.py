"""Optional OpenTelemetry instrumentation for litewire.

Call ``litewire.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the library
works identically without it.
"""

import importlib.util
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "litewire") -> None:
    """Enable OpenTelemetry tracing for streamed completions.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install litewire[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        import litewire
        litewire.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install litewire[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured, spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("litewire instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def completion_span(system: str, model: str):
    """Wrap a streamed chat completion in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
        },
    ) as span:
        yield span


def record_parts(span, counts: Mapping[str, int]) -> None:
    """Set per-kind output part counts on a span.

    *counts* maps part class names (``"TextPart"``, ``"ToolCallPart"``,
    ...) to how many were emitted.
    """
    if span is None:
        return
    span.set_attribute(
        "litewire.response.parts", sum(counts.values())
    )
    span.set_attribute(
        "litewire.response.tool_calls",
        counts.get("ToolCallPart", 0),
    )


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    Sets ``error.type`` per GenAI semantic conventions.
    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
