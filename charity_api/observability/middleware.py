# SPDX-License-Identifier: Apache-2.0

"""
Per-request tracing and access logging.

Flask is instrumented with OpenTelemetry; on top of that every response is
logged with its latency and the authenticated user, and carries the trace ID
in ``X-Trace-Id`` so clients can quote it when reporting a problem.
"""

import time
import logging
from typing import Optional

from flask import Flask, Response, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

TRACE_HEADER = 'X-Trace-Id'


def current_trace_id() -> Optional[str]:
    """Hex trace ID of the active span, or None when nothing is being recorded."""
    span = trace.get_current_span()
    if not span.is_recording():
        return None
    return format(span.get_span_context().trace_id, "032x")


def _start_timer():
    g.request_started = time.perf_counter()
    g.trace_id = current_trace_id()


def _finish_request(response: Response) -> Response:
    elapsed_ms = round((time.perf_counter() - g.get('request_started', time.perf_counter())) * 1000, 2)
    user_context = g.get('user_context')

    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute("http.duration_ms", elapsed_ms)
        if user_context is not None:
            span.set_attributes({"user.id": user_context.user_id, "user.role": user_context.role})

    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"{request.method} {request.path} -> {response.status_code}",
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "user_id": getattr(user_context, 'user_id', None),
                "role": getattr(user_context, 'role', None),
                "trace_id": g.get('trace_id')
            }
        }
    )

    if g.get('trace_id'):
        response.headers[TRACE_HEADER] = g.trace_id
    return response


def add_observability_middleware(app: Flask):
    """Instrument the app and register the request timing hooks."""
    FlaskInstrumentor().instrument_app(app)
    app.before_request(_start_timer)
    app.after_request(_finish_request)
