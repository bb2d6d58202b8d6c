"""Scope controller: the active route table and its accounting.

A scope compiles a route declaration into a StubContext, makes it the
active context for its duration, validates call counts when the body
succeeds, and tears the context down on every exit path.

Two visibilities:
- ``http_stub`` binds the context in a ContextVar: visible to the body,
  to code it calls, and to asyncio tasks it creates. Plain threads start
  with an empty context and do not see it.
- ``global_http_stub`` additionally installs the context process-wide,
  so worker threads started inside the scope resolve against it too.

The local binding always wins over the process-wide one. Callers that
prefer explicit wiring can pass the yielded StubContext to ``resolve``
or to a transport instead of relying on either binding.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from httpstub._accounting import CallAccounting
from httpstub._errors import NoMatchingRouteError
from httpstub._matcher import find_route
from httpstub._request import normalize_request
from httpstub._response import create_response
from httpstub._routes import compile_routes

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping
    from contextlib import AbstractContextManager

    from httpstub._request import StubRequest
    from httpstub._response import StubResponse
    from httpstub._routes import CompiledRoute

logger = logging.getLogger("httpstub.scope")


@dataclass(frozen=True, slots=True)
class Matched:
    """A route answered the request."""

    response: StubResponse
    route: CompiledRoute


@dataclass(frozen=True, slots=True)
class Unmatched:
    """No route answered the request.

    When ``isolated`` is True the caller must fail the request instead of
    passing it on to the real transport.
    """

    request: StubRequest
    isolated: bool = False


type Resolution = Matched | Unmatched


class StubContext:
    """Compiled routes plus the call accounting shared by one scope."""

    __slots__ = ("accounting", "isolated", "routes")

    def __init__(self, routes: Mapping[Any, Any], *, isolated: bool = False) -> None:
        self.routes = compile_routes(routes)
        self.accounting = CallAccounting.for_routes(self.routes)
        self.isolated = isolated

    def resolve(self, request: Any) -> Resolution:
        """Match ``request``, count the call, and synthesize the response."""
        req = normalize_request(request)
        route = find_route(self.routes, req)
        if route is None:
            return Unmatched(req, self.isolated)
        count = self.accounting.record(route.route_key)
        logger.debug("stub route %s matched (call %d)", route.route_key, count)
        return Matched(create_response(route.handler, req), route)

    def validate(self) -> None:
        self.accounting.validate()

    def close(self) -> None:
        self.accounting.reset()


# ═══════════════════════════════════════════════════════════════════════════════
# Active context
# ═══════════════════════════════════════════════════════════════════════════════

_local_context: ContextVar[StubContext | None] = ContextVar("httpstub_context", default=None)

_global_lock = threading.Lock()
_global_context: StubContext | None = None


def active_context() -> StubContext | None:
    """The innermost active context: local binding, else process-wide."""
    local = _local_context.get()
    if local is not None:
        return local
    with _global_lock:
        return _global_context


def _swap_global(context: StubContext | None) -> StubContext | None:
    global _global_context
    with _global_lock:
        previous, _global_context = _global_context, context
    return previous


@contextmanager
def _stub_scope(
    routes: Mapping[Any, Any], *, isolated: bool, process_wide: bool
) -> Iterator[StubContext]:
    context = StubContext(routes, isolated=isolated)
    previous = _swap_global(context) if process_wide else None
    token = _local_context.set(context)
    logger.debug(
        "entering %s stub scope with %d route(s)",
        "global" if process_wide else "local",
        len(context.routes),
    )
    try:
        yield context
        context.validate()
    finally:
        _local_context.reset(token)
        if process_wide:
            _swap_global(previous)
        context.close()
        logger.debug("left stub scope")


def http_stub(
    routes: Mapping[Any, Any], *, isolated: bool = False
) -> AbstractContextManager[StubContext]:
    """Stub outbound requests made from the current context.

    Usable as a context manager or a decorator. Unmatched requests go to the
    real transport unless ``isolated`` is True, in which case they fail with
    NoMatchingRouteError.

    Raises:
        RouteDeclarationError: On entry, if ``routes`` is malformed.
        CallCountMismatchError: On exit, if a route with an expected count
            was called a different number of times.
    """
    return _stub_scope(routes, isolated=isolated, process_wide=False)


def http_stub_in_isolation(routes: Mapping[Any, Any]) -> AbstractContextManager[StubContext]:
    """``http_stub`` that fails every unmatched request."""
    return _stub_scope(routes, isolated=True, process_wide=False)


def global_http_stub(
    routes: Mapping[Any, Any], *, isolated: bool = False
) -> AbstractContextManager[StubContext]:
    """Stub outbound requests made from any thread in the process.

    Same semantics as ``http_stub``, but threads started inside the scope
    observe the stubs as well.
    """
    return _stub_scope(routes, isolated=isolated, process_wide=True)


def global_http_stub_in_isolation(
    routes: Mapping[Any, Any],
) -> AbstractContextManager[StubContext]:
    """``global_http_stub`` that fails every unmatched request."""
    return _stub_scope(routes, isolated=True, process_wide=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Interception seam
# ═══════════════════════════════════════════════════════════════════════════════


def resolve(request: Any, context: StubContext | None = None) -> Resolution:
    """Resolve ``request`` against ``context`` or the active context.

    Without any context the request is Unmatched and not isolated.
    """
    context = context if context is not None else active_context()
    if context is None:
        return Unmatched(normalize_request(request))
    return context.resolve(request)


def intercept[T](
    request: Any,
    delegate: Callable[[], T],
    context: StubContext | None = None,
) -> StubResponse | T:
    """Answer ``request`` from the stubs, or hand it to ``delegate``.

    Raises:
        NoMatchingRouteError: If nothing matched and the scope is isolated.
    """
    match resolve(request, context):
        case Matched(response=response):
            return response
        case Unmatched(request=req, isolated=True):
            raise NoMatchingRouteError(req)
        case Unmatched(request=req):
            logger.debug("no stub route for %s %s, delegating", req.method, req.url or req.host)
    return delegate()
