"""Launchers for work that must run after Slack has been acknowledged."""

from __future__ import annotations

from contextvars import copy_context
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Protocol

import structlog
from structlog.contextvars import bind_contextvars, get_contextvars

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="slack-handler")


class TaskLauncher(Protocol):
    """Callable that schedules ``func(*args, **kwargs)`` and returns a Future."""

    def __call__(
        self,
        func: Callable[..., Any],
        /,
        *args: Any,
        trace_id: str | None = None,
        **kwargs: Any,
    ) -> Future: ...


def _guarded(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run *func*, logging and dropping any exception it raises."""

    log = structlog.get_logger()
    name = getattr(func, "__qualname__", repr(func))
    try:
        result = func(*args, **kwargs)
    except Exception:
        log.exception("handler_failed", handler=name)
        return None
    log.info("handler_completed", handler=name)
    return result


def _prepare_context(trace_id: str | None):
    context = copy_context()

    if trace_id is not None:
        existing_trace = context.run(lambda: get_contextvars().get("trace_id"))
        if existing_trace != trace_id:
            context.run(lambda: bind_contextvars(trace_id=trace_id))

    return context


def run_async(
    func: Callable[..., Any],
    /,
    *args: Any,
    trace_id: str | None = None,
    **kwargs: Any,
) -> Future:
    """Submit *func* to the shared thread pool and return a Future.

    The worker inherits the caller's structlog context. Exceptions raised by
    *func* are logged as ``handler_failed`` and the Future resolves to None.
    """

    context = _prepare_context(trace_id)

    def runner() -> Any:
        return context.run(_guarded, func, *args, **kwargs)

    return _executor.submit(runner)


def run_inline(
    func: Callable[..., Any],
    /,
    *args: Any,
    trace_id: str | None = None,
    **kwargs: Any,
) -> Future:
    """Run *func* immediately on the calling thread and return a done Future.

    Drop-in replacement for :func:`run_async` in tests and scripts that need
    handler work to finish before they continue.
    """

    context = _prepare_context(trace_id)
    future: Future = Future()
    future.set_result(context.run(_guarded, func, *args, **kwargs))
    return future
