"""httpx transports that resolve requests against the active stub scope."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from httpstub._errors import NoMatchingRouteError
from httpstub._request import StubRequest
from httpstub._response import StubResponse
from httpstub._scope import Matched, Unmatched, intercept, resolve

if TYPE_CHECKING:
    from httpstub._scope import StubContext

logger = logging.getLogger("httpstub.transports")


def to_stub_request(request: httpx.Request) -> StubRequest:
    """Describe an httpx request for the route matcher.

    The request body must already have been read.
    """
    return StubRequest(
        method=request.method.lower(),
        url=str(request.url),
        headers=dict(request.headers),
        body=request.content,
    )


def to_httpx_response(response: StubResponse, request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        status_code=response.status,
        headers=dict(response.headers),
        content=response.body,
        request=request,
    )


class StubTransport(httpx.BaseTransport):
    """Synchronous httpx transport backed by stub routes.

    Requests are resolved against ``context`` when given, otherwise against
    whichever stub scope is active when the request is sent. Unmatched
    requests go to ``transport`` (a real ``httpx.HTTPTransport`` by default).
    """

    def __init__(
        self,
        transport: httpx.BaseTransport | None = None,
        *,
        context: StubContext | None = None,
    ) -> None:
        self._transport = transport if transport is not None else httpx.HTTPTransport()
        self._context = context

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        request.read()
        result = intercept(
            to_stub_request(request),
            lambda: self._transport.handle_request(request),
            self._context,
        )
        if isinstance(result, StubResponse):
            return to_httpx_response(result, request)
        return result

    def close(self) -> None:
        self._transport.close()


class AsyncStubTransport(httpx.AsyncBaseTransport):
    """Asynchronous counterpart of StubTransport.

    Matching and accounting still run synchronously; the response, or the
    no-match failure, is delivered through the awaitable.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        *,
        context: StubContext | None = None,
    ) -> None:
        self._transport = transport if transport is not None else httpx.AsyncHTTPTransport()
        self._context = context

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        match resolve(to_stub_request(request), self._context):
            case Matched(response=response):
                return to_httpx_response(response, request)
            case Unmatched(request=req, isolated=True):
                raise NoMatchingRouteError(req)
        logger.debug("no stub route for %s %s, delegating", request.method, request.url)
        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        await self._transport.aclose()
