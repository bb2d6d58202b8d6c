"""Tests for the httpx transports (httpstub.transports)."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from httpstub import (
    Address,
    CallCountMismatchError,
    NoMatchingRouteError,
    Regex,
    StubResponse,
    global_http_stub,
    http_stub,
    http_stub_in_isolation,
)
from httpstub.transports import (
    AsyncStubTransport,
    StubTransport,
    to_httpx_response,
    to_stub_request,
)


def real_server(request: httpx.Request) -> httpx.Response:
    """Stands in for the network behind the stubs."""
    return httpx.Response(200, text=f"real {request.url.host}")


@pytest.fixture
def client():  # noqa: ANN201
    with httpx.Client(transport=StubTransport(httpx.MockTransport(real_server))) as c:
        yield c


class TestConversions:
    def test_to_stub_request(self) -> None:
        request = httpx.Request(
            "POST", "http://example.com/api?a=1", headers={"X-Id": "7"}, content=b"payload"
        )
        stub = to_stub_request(request)
        assert stub.method == "post"
        assert stub.url == "http://example.com/api?a=1"
        assert stub.header("x-id") == "7"
        assert stub.body == b"payload"

    def test_to_httpx_response(self) -> None:
        request = httpx.Request("GET", "http://example.com")
        response = to_httpx_response(
            StubResponse(status=201, headers={"x-id": "7"}, body=b"made"), request
        )
        assert response.status_code == 201
        assert response.headers["x-id"] == "7"
        assert response.content == b"made"
        assert response.request is request


class TestStubTransport:
    def test_matched_request_is_stubbed(self, client: httpx.Client) -> None:
        with http_stub({"http://example.com/api": {"get": {"status": 202, "body": "stubbed"}}}):
            response = client.get("http://example.com/api")
        assert (response.status_code, response.text) == (202, "stubbed")

    def test_unmatched_request_reaches_real_transport(self, client: httpx.Client) -> None:
        with http_stub({"http://example.com/api": {"body": "stubbed"}}):
            response = client.get("http://other.com/")
        assert response.text == "real other.com"

    def test_no_scope_reaches_real_transport(self, client: httpx.Client) -> None:
        assert client.get("http://example.com/api").text == "real example.com"

    @pytest.mark.parametrize(
        ("url", "host"),
        [
            ("http://[::1]:8000/x", "::1"),
            ("http://user:pw@example.com/api", "example.com"),
        ],
    )
    def test_unmatched_unusual_authority_reaches_real_transport(
        self, client: httpx.Client, url: str, host: str
    ) -> None:
        with http_stub({"http://example.com/other": {"body": "stubbed"}}):
            assert client.get(url).text == f"real {host}"

    def test_ipv6_route(self, client: httpx.Client) -> None:
        with http_stub({"http://[::1]:8000/x": {"body": "loopback"}}):
            assert client.get("http://[::1]:8000/x").text == "loopback"

    def test_credentials_do_not_affect_matching(self, client: httpx.Client) -> None:
        with http_stub({"http://example.com/api": {"get": {"body": "stubbed"}, "times": 1}}):
            assert client.get("http://user:pw@example.com/api").text == "stubbed"

    def test_isolated_miss_raises(self, client: httpx.Client) -> None:
        with pytest.raises(NoMatchingRouteError, match="No matching stub route found"):
            with http_stub_in_isolation({"http://example.com/api": {"body": "stubbed"}}):
                client.get("http://other.com/")

    def test_params_in_any_order(self, client: httpx.Client) -> None:
        with http_stub({"http://example.com/search?q=cats&page=2": {"body": "found"}}):
            response = client.get("http://example.com/search", params={"page": 2, "q": "cats"})
        assert response.text == "found"

    def test_address_with_query_params(self, client: httpx.Client) -> None:
        routes = {Address("http://example.com/search", {"q": "cats"}): {"get": {"body": "found"}}}
        with http_stub(routes):
            assert client.get("http://example.com/search?q=cats").text == "found"
            assert client.get("http://example.com/search?q=dogs").text == "real example.com"

    def test_regex_route(self, client: httpx.Client) -> None:
        with http_stub({Regex(r"https://api\.example\.com/users/\d+"): {"body": "user"}}):
            assert client.get("https://api.example.com/users/42").text == "user"

    def test_handler_sees_body_and_headers(self, client: httpx.Client) -> None:
        def echo(request):  # noqa: ANN001, ANN202
            return {
                "status": 201,
                "headers": {"x-echo": request.header("x-token") or ""},
                "body": request.body,
            }

        with http_stub({"http://example.com/items": {"post": echo, "times": 1}}):
            response = client.post(
                "http://example.com/items", content=b"item", headers={"X-Token": "t0"}
            )
        assert response.status_code == 201
        assert response.headers["x-echo"] == "t0"
        assert response.content == b"item"

    def test_call_counts_are_validated(self, client: httpx.Client) -> None:
        with pytest.raises(CallCountMismatchError, match="'http://example.com/api:get'"):
            with http_stub({"http://example.com/api": {"get": {}, "times": 2}}):
                client.get("http://example.com/api")

    def test_explicit_context_from_worker_thread(self) -> None:
        with http_stub({"http://example.com/api": {"body": "stubbed"}}) as ctx:
            transport = StubTransport(httpx.MockTransport(real_server), context=ctx)
            with httpx.Client(transport=transport) as client:
                with ThreadPoolExecutor(max_workers=1) as pool:
                    response = pool.submit(client.get, "http://example.com/api").result()
        assert response.text == "stubbed"

    def test_global_scope_from_worker_thread(self, client: httpx.Client) -> None:
        with global_http_stub({"http://example.com/api": {"get": {"body": "stubbed"}, "times": 2}}):
            with ThreadPoolExecutor(max_workers=2) as pool:
                futures = [pool.submit(client.get, "http://example.com/api") for _ in range(2)]
                texts = [f.result().text for f in futures]
        assert texts == ["stubbed", "stubbed"]


class TestAsyncStubTransport:
    @staticmethod
    async def fetch(url: str, method: str = "GET") -> httpx.Response:
        transport = AsyncStubTransport(httpx.MockTransport(real_server))
        async with httpx.AsyncClient(transport=transport) as client:
            return await client.request(method, url)

    def test_matched_request_is_stubbed(self) -> None:
        with http_stub({"http://example.com/api": {"get": {"body": "async ok"}, "times": 1}}):
            response = asyncio.run(self.fetch("http://example.com/api"))
        assert response.text == "async ok"

    def test_concurrent_requests_are_counted(self) -> None:
        async def main() -> list[str]:
            responses = await asyncio.gather(
                self.fetch("http://example.com/async"),
                self.fetch("http://example.com/async"),
            )
            return [r.text for r in responses]

        with http_stub({"http://example.com/async": {"get": {"body": "async ok"}, "times": 2}}):
            assert "-".join(asyncio.run(main())) == "async ok-async ok"

    def test_unmatched_request_reaches_real_transport(self) -> None:
        with http_stub({"http://example.com/api": {"body": "stubbed"}}):
            response = asyncio.run(self.fetch("http://other.com/"))
        assert response.text == "real other.com"

    def test_isolated_miss_raises(self) -> None:
        with pytest.raises(NoMatchingRouteError):
            with http_stub_in_isolation({}):
                asyncio.run(self.fetch("http://other.com/"))
