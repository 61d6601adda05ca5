"""OpenTelemetry helpers for tracing wizard intents."""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.sdk.trace.sampling import (
    ALWAYS_OFF,
    ALWAYS_ON,
    ParentBased,
    Sampler,
    TraceIdRatioBased,
)

LOGGER = logging.getLogger("stepwizard.telemetry")

TRACER_NAME = "stepwizard"

_INITIALISED = False


def get_tracer(provider: trace.TracerProvider | None = None) -> trace.Tracer:
    """Return the wizard tracer from ``provider`` or the global provider."""

    if provider is not None:
        return provider.get_tracer(TRACER_NAME)
    return trace.get_tracer(TRACER_NAME)


def _coerce_ratio(raw: str, *, default: float) -> float:
    """Convert ``raw`` to a float ratio within [0.0, 1.0]."""

    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Invalid OTEL_TRACES_SAMPLER_ARG '%s'; using default %.2f", raw, default)
        return default
    return max(0.0, min(1.0, value))


def build_sampler() -> Sampler:
    """Create a sampler based on ``OTEL_TRACES_SAMPLER``/``OTEL_TRACES_SAMPLER_ARG``."""

    sampler_name = os.getenv("OTEL_TRACES_SAMPLER", "").strip().lower()
    sampler_arg = os.getenv("OTEL_TRACES_SAMPLER_ARG", "").strip()

    if sampler_name in {"", "parentbased_traceidratio"}:
        return ParentBased(TraceIdRatioBased(_coerce_ratio(sampler_arg, default=1.0)))
    if sampler_name == "traceidratio":
        return TraceIdRatioBased(_coerce_ratio(sampler_arg, default=1.0))
    if sampler_name == "always_on":
        return ALWAYS_ON
    if sampler_name == "always_off":
        return ALWAYS_OFF

    LOGGER.warning("Unknown OTEL_TRACES_SAMPLER '%s'; defaulting to parentbased_traceidratio", sampler_name)
    return ParentBased(TraceIdRatioBased(1.0))


def build_tracer_provider(exporter: SpanExporter, *, service_name: str | None = None) -> TracerProvider:
    """Return a provider exporting wizard spans through ``exporter``."""

    resource = Resource.create({"service.name": service_name or os.getenv("OTEL_SERVICE_NAME", "stepwizard")})
    provider = TracerProvider(resource=resource, sampler=build_sampler())
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def setup_tracing(exporter: SpanExporter | None = None, *, force: bool = False) -> bool:
    """Install a global tracer provider for wizard spans.

    Without an explicit ``exporter`` spans go to the console when
    ``STEPWIZARD_TRACE_CONSOLE`` is truthy; otherwise nothing is configured.
    Returns ``True`` when a provider was installed.
    """

    global _INITIALISED
    if _INITIALISED and not force:
        return False

    if exporter is None:
        console_flag = os.getenv("STEPWIZARD_TRACE_CONSOLE", "").strip().lower()
        if console_flag not in {"1", "true", "yes", "on"}:
            LOGGER.debug("No span exporter configured; skipping telemetry bootstrap")
            return False
        exporter = ConsoleSpanExporter()

    provider = build_tracer_provider(exporter)
    trace.set_tracer_provider(provider)
    _INITIALISED = True
    LOGGER.info("OpenTelemetry tracing initialised for wizard flows")
    return True


__all__ = ["TRACER_NAME", "build_sampler", "build_tracer_provider", "get_tracer", "setup_tracing"]
