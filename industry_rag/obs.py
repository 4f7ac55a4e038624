"""Observability utilities: logging setup and OpenTelemetry spans.

- configure_logging: one-line log format shared by the API and CLI entrypoints.
- init_tracing: installs an SDK tracer provider once, exporting to the console
  when OTEL_CONSOLE_EXPORT is enabled (plug in another exporter externally).
- span: context manager wrapping an OpenTelemetry span with attributes; records
  the exception and error status when the wrapped block raises.

Settings are read from industry_rag.config.settings.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

from industry_rag.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_tracing_lock = threading.Lock()
_tracing_inited = False

tracer = trace.get_tracer("industry_rag")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging with the project format.

    Args:
        level: Level name; defaults to settings.LOG_LEVEL.
    """
    name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)


def init_tracing() -> None:
    """Install the global tracer provider. Safe to call more than once."""
    global _tracing_inited
    with _tracing_lock:
        if _tracing_inited:
            return
        provider = TracerProvider()
        if settings.OTEL_CONSOLE_EXPORT:
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(provider)
        _tracing_inited = True


@contextmanager
def span(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[trace.Span]:
    """Run a block inside an OpenTelemetry span.

    Without init_tracing the global no-op provider is used, so spans cost nothing.
    """
    with tracer.start_as_current_span(name, record_exception=False, set_status_on_exception=False) as s:
        for k, v in (attributes or {}).items():
            if v is not None:
                s.set_attribute(k, v)
        try:
            yield s
        except Exception as exc:
            s.record_exception(exc)
            s.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
