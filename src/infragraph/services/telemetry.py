"""Per-invocation timing traces for service calls.

``--verbose`` turns tracing on for the current context.  Each
:func:`traced` service method then opens a span, every
:func:`trace_span` block inside it opens a child, and the finished tree
is attached to the returned ServiceResult under ``meta["telemetry"]``.
Full-graph analytics passes open one span per metric so their cost
shows up in the tree.

With tracing off, both entry points cost a single ContextVar lookup.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from infragraph.services.result import ServiceResult

log = structlog.get_logger("infragraph.telemetry")


@dataclass
class Span:
    """One timed step; children are the steps it opened, in order."""

    name: str
    children: list[Span] = field(default_factory=list)
    annotations: dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter)
    finished: float | None = None

    @property
    def duration_ms(self) -> float:
        if self.finished is None:
            return 0.0
        return (self.finished - self.started) * 1000

    def end(self) -> None:
        self.finished = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name, "duration_ms": round(self.duration_ms, 2)}
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        if self.children:
            out["children"] = [child.to_dict() for child in self.children]
        return out


@dataclass
class _Trace:
    """Open spans for the current context, innermost last."""

    stack: list[Span] = field(default_factory=list)


_trace: ContextVar[_Trace | None] = ContextVar("infragraph_trace", default=None)


def enable_telemetry() -> None:
    """Start collecting spans in the current context (called by AppContext)."""
    _trace.set(_Trace())


def disable_telemetry() -> None:
    _trace.set(None)


def telemetry_enabled() -> bool:
    return _trace.get() is not None


def get_current_span() -> Span | None:
    """The innermost open span, for manual annotation."""
    trace = _trace.get()
    if trace is None or not trace.stack:
        return None
    return trace.stack[-1]


@contextmanager
def _open(trace: _Trace, name: str) -> Generator[Span]:
    span = Span(name=name)
    if trace.stack:
        trace.stack[-1].children.append(span)
    trace.stack.append(span)
    try:
        yield span
    finally:
        span.end()
        trace.stack.pop()


@contextmanager
def trace_span(name: str) -> Generator[Span | None]:
    """Time the enclosed block as a child of the innermost open span.

    Yields None when tracing is off or no traced call is running, so a
    block never starts a tree of its own.
    """
    trace = _trace.get()
    if trace is None or not trace.stack:
        yield None
        return
    with _open(trace, name) as span:
        yield span


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Time a service method and attach its span tree to the result.

    A traced call made inside another traced call becomes a child span
    of the outer one.  Failed results record their error code on the
    span.
    """

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        trace = _trace.get()
        if trace is None:
            return func(*args, **kwargs)

        try:
            with _open(trace, func.__qualname__) as span:
                result = func(*args, **kwargs)
                if isinstance(result, ServiceResult) and result.error is not None:
                    span.annotate("error", result.error.code)
        except Exception:
            log.debug("span.failed", span_name=span.name, duration_ms=round(span.duration_ms, 2))
            raise

        log.debug(
            "span.complete",
            span_name=span.name,
            duration_ms=round(span.duration_ms, 2),
            children=len(span.children),
        )
        if isinstance(result, ServiceResult):
            meta = {**(result.meta or {}), "telemetry": span.to_dict()}
            return result.model_copy(update={"meta": meta})  # type: ignore[return-value]
        return result

    return wrapper
