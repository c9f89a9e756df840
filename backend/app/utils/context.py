# backend/app/utils/context.py
"""
Request context for the Inventory Value Tracker.

Holds the correlation ID of the request being served in a ContextVar so
every log line of that request can carry it.

ContextVars follow async/await automatically but NOT work handed to a
ThreadPoolExecutor. Use bind_context() when submitting work to a pool
(the concurrent price lookups do) so worker threads log with the
correlation ID of the request that started them.

Usage:
    from app.utils.context import get_correlation_id, bind_context

    executor.submit(bind_context(provider.fetch_spot_price), name)
"""

from contextvars import ContextVar, copy_context
from functools import partial
from typing import Callable, TypeVar

T = TypeVar("T")

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


# =============================================================================
# CORRELATION ID
# =============================================================================

def get_correlation_id() -> str | None:
    """Correlation ID of the current request, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID (called by middleware at request start)."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Clear the correlation ID (called by middleware at request end)."""
    _correlation_id_var.set(None)


# =============================================================================
# THREAD HAND-OFF
# =============================================================================

def bind_context(func: Callable[..., T]) -> Callable[..., T]:
    """
    Wrap func so it runs in a snapshot of the caller's context.

    Each call of bind_context() takes a fresh copy; a single Context cannot
    be entered by two threads at once, so bind once per submitted task.
    """
    return partial(copy_context().run, func)
