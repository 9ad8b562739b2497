"""
Log correlation with the active trace.

Every record gets ``trace_id`` and ``span_id`` attributes taken from the
current OpenTelemetry span, so log lines emitted while handling an order or
a confirmation message can be joined with their spans.
"""

from __future__ import annotations

import logging

from orderflow.observability.propagation import current_trace_ids

DEFAULT_LOG_FORMAT = (
    "%(asctime)s [%(levelname)s] %(name)s "
    "trace_id=%(trace_id)s span_id=%(span_id)s: %(message)s"
)


class TraceContextFilter(logging.Filter):
    """Attach the active trace and span ids to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        ids = current_trace_ids()
        if ids is None:
            record.trace_id = "-"
            record.span_id = "-"
        else:
            record.trace_id, record.span_id = ids
        return True


def configure_logging(level: int | str = logging.INFO, fmt: str = DEFAULT_LOG_FORMAT) -> None:
    """
    Configure root logging for an orderflow process.

    Installs a stream handler with the trace-aware format. The filter sits
    on the handler so records from third-party loggers are covered as well.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logging.basicConfig(level=level, format=fmt, force=True)
    for handler in logging.getLogger().handlers:
        handler.addFilter(TraceContextFilter())


__all__ = ["DEFAULT_LOG_FORMAT", "TraceContextFilter", "configure_logging"]
