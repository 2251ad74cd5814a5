"""Observability infrastructure: logging setup and optional tracing.

setup_logging:
    Console + rotating file handlers, text or JSON output.

set_run_context / set_item_context / clear_context:
    Context variables stamped onto every log record.

setup_tracing / trace_operation:
    Optional Logfire spans (pip install idx-watch[tracing], ENABLE_LOGFIRE=true).
"""

from observability.logging import clear_context, set_item_context, set_run_context, setup_logging
from observability.tracing import setup_tracing, trace_operation, tracing_enabled

__all__ = [
    "setup_logging",
    "set_run_context",
    "set_item_context",
    "clear_context",
    "setup_tracing",
    "trace_operation",
    "tracing_enabled",
]
