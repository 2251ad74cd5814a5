"""Optional Logfire spans for triage runs.

Each run gets a `triage_run` span and each analyzed announcement a
`triage_announcement` child span. Logfire also instruments PydanticAI, so
every model call, retries included, nests under the announcement that
made it. Without Logfire the same context managers only time the block.

Requirements:
    pip install idx-watch[tracing]

Enable via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional for cloud dashboard
"""

import logging
import time
from contextlib import contextmanager
from types import ModuleType
from typing import Any, Generator

logger = logging.getLogger(__name__)

# The configured logfire module, or None while tracing is off
_logfire: ModuleType | None = None


def setup_tracing(
    enabled: bool = False,
    service_name: str = "idx-watch",
    token: str = "",
) -> bool:
    """Configure Logfire once per process.

    A missing package or a configuration error leaves tracing off and
    the run continues.

    Returns:
        True if spans will be exported
    """
    global _logfire

    if not enabled:
        _logfire = None
        return False
    if _logfire is not None:
        return True

    try:
        import logfire

        logfire.configure(service_name=service_name, token=token or None)
        logfire.instrument_pydantic_ai()
    except ImportError:
        logger.warning("ENABLE_LOGFIRE is set but logfire is not installed; tracing disabled")
        return False
    except Exception as e:
        logger.error("Failed to configure Logfire: %s", e)
        return False

    _logfire = logfire
    logger.info("Logfire tracing enabled | service=%s", service_name)
    return True


def tracing_enabled() -> bool:
    return _logfire is not None


@contextmanager
def trace_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[dict[str, Any], None, None]:
    """Wrap a block in a span.

    Yields a dict; whatever the block puts in it (outcome, bucket counts)
    is attached to the span when the block finishes.

    Example:
        >>> with trace_operation("triage_announcement", {"title": title}) as attrs:
        ...     verdict = await triage(ann)
        ...     attrs["outcome"] = verdict.outcome.value
    """
    results: dict[str, Any] = {}
    start = time.monotonic()

    try:
        if _logfire is None:
            yield results
        else:
            with _logfire.span(name, **(attributes or {})) as span:
                yield results
                for key, value in results.items():
                    span.set_attribute(key, value)
    finally:
        logger.debug("Span %s finished in %.2fs %s", name, time.monotonic() - start, results or "")
