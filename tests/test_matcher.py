"""Tests for the route matcher (httpstub._matcher)."""

from __future__ import annotations

import re

import pytest

from httpstub import (
    Address,
    Regex,
    StubRequest,
    address_matches,
    address_string,
    compile_address,
    compile_routes,
    find_route,
    matches,
    methods_match,
    normalize_request,
    potential_variants,
)


def req(url: str, method: str = "get", **fields: object) -> StubRequest:
    return normalize_request({"url": url, "method": method, **fields})


class TestMethodsMatch:
    def test_same_method(self) -> None:
        assert methods_match("get", req("http://h/")) is True

    def test_different_method(self) -> None:
        assert methods_match("post", req("http://h/")) is False

    def test_wildcard(self) -> None:
        assert methods_match("any", req("http://h/", "delete")) is True

    def test_request_method_is_case_insensitive(self) -> None:
        assert methods_match("post", req("http://h/", "POST")) is True


class TestMatches:
    def test_requires_method_and_address(self) -> None:
        pattern = compile_address("http://example.com/api")
        assert matches(pattern, "get", req("http://example.com/api")) is True
        assert matches(pattern, "post", req("http://example.com/api")) is False
        assert matches(pattern, "get", req("http://example.com/other")) is False

    def test_default_request_method_is_get(self) -> None:
        pattern = compile_address("http://example.com")
        assert matches(pattern, "get", normalize_request("http://example.com")) is True


class TestRegexAddress:
    def test_re2_regex(self) -> None:
        pattern = compile_address(Regex(r"http://example\.com/items/\d+"))
        assert address_matches(pattern, req("http://example.com/items/12")) is True
        assert address_matches(pattern, req("http://example.com/items/x")) is False

    def test_stdlib_regex(self) -> None:
        pattern = compile_address(re.compile(r"https?://example\.com/.*"))
        assert address_matches(pattern, req("https://example.com/anything/")) is True

    def test_matches_reconstructed_address_without_url(self) -> None:
        pattern = compile_address(Regex(r"http://example\.com/a/"))
        request = StubRequest(scheme="http", host="example.com", path="/a/")
        assert address_matches(pattern, request) is True

    def test_regex_sees_query_permutations(self) -> None:
        pattern = compile_address(Regex(r"http://example\.com/s\?a=1&b=\d"))
        assert address_matches(pattern, req("http://example.com/s?b=2&a=1")) is True


class TestAddressWithQueryParams:
    def test_params_in_any_order(self) -> None:
        pattern = compile_address(Address("http://example.com/search", {"q": "cats", "page": 1}))
        assert address_matches(pattern, req("http://example.com/search?page=1&q=cats")) is True

    def test_missing_param(self) -> None:
        pattern = compile_address(Address("http://example.com/search", {"q": "cats", "page": 1}))
        assert address_matches(pattern, req("http://example.com/search?q=cats")) is False

    def test_extra_param(self) -> None:
        pattern = compile_address(Address("http://example.com/search", {"q": "cats"}))
        assert address_matches(pattern, req("http://example.com/search?q=cats&x=1")) is False

    def test_structured_request_params(self) -> None:
        pattern = compile_address(Address("http://example.com/search", {"q": "cats"}))
        request = req("http://example.com/search", query_params={"q": "cats"})
        assert address_matches(pattern, request) is True

    def test_inner_address_still_checked(self) -> None:
        pattern = compile_address(Address("http://example.com/search", {"q": "cats"}))
        assert address_matches(pattern, req("http://example.com/find?q=cats")) is False

    def test_inner_regex(self) -> None:
        pattern = compile_address(Address(Regex(r"http://example\.com/\w+"), {"q": "1"}))
        assert address_matches(pattern, req("http://example.com/find/?q=1")) is True

    def test_without_params_behaves_like_inner(self) -> None:
        pattern = compile_address(Address("http://example.com/a?x=1"))
        assert address_matches(pattern, req("http://example.com/a?x=1")) is True
        assert address_matches(pattern, req("http://example.com/a")) is False


def enumerated_match(literal: str, request: StubRequest) -> bool:
    """Literal matching done the long way, over every variant."""
    if literal == (request.url or address_string(request)):
        return True
    return any(address_string(v) == literal for v in potential_variants(request))


STRUCTURED = {
    "scheme": "http",
    "host": "example.com",
    "path": "/s/",
    "query_params": {"b": 2, "a": 1},
}


class TestLiteralAddress:
    @pytest.mark.parametrize(
        ("literal", "request_fields", "expect"),
        [
            ("http://example.com/api", "http://example.com:80/api/", True),
            ("example.com/api/", "http://example.com/api", True),
            ("http://example.com/s?a=1&b=2", "http://example.com/s?b=2;a=1", True),
            ("http://example.com/s?a=1;b=2", "http://example.com/s?b=2&a=1", False),
            ("http://example.com/s?a=1&a=1", "http://example.com/s?a=1", False),
            ("http://example.com/s?a=1&a=1", "http://example.com/s?a=1;a=1", True),
            ("http://example.com/s?", "http://example.com/s", True),
            ("http://example.com/s", "http://example.com/s?", True),
            ("http://example.com/s?a=1", "http://example.com/s", False),
            ("http://example.com", "http://example.com/?x=1", False),
            ("http://example.com?x=1", "http://example.com/?x=1", True),
            ("https://example.com/s", "http://example.com/s", False),
            ("http://example.com:8080/s", "http://example.com/s", False),
            ("http://example.com/s?b=2&a=1", STRUCTURED, True),
            ("http://example.com/s?a=1&b=2", STRUCTURED, False),
        ],
    )
    def test_agrees_with_variant_enumeration(
        self, literal: str, request_fields: str | dict, expect: bool
    ) -> None:
        request = normalize_request(request_fields)
        assert address_matches(compile_address(literal), request) is expect
        assert enumerated_match(literal, request) is expect

    def test_many_query_params_behind_unrelated_route(self) -> None:
        query = "&".join(f"p{i}={i}" for i in range(9))
        routes = compile_routes(
            {
                "http://other.com/": {"body": "other"},
                f"http://example.com/api?{query}": {"body": "api"},
            }
        )
        reordered = "&".join(reversed(query.split("&")))
        route = find_route(routes, req(f"http://example.com/api?{reordered}"))
        assert route is not None
        assert route.handler == {"body": "api"}

    def test_many_query_params_miss(self) -> None:
        pattern = compile_address("http://example.com/api?p0=0")
        request = req("http://example.com/api?" + "&".join(f"p{i}={i}" for i in range(10)))
        assert address_matches(pattern, request) is False


class TestFindRoute:
    def test_first_match_wins(self) -> None:
        routes = compile_routes(
            {
                Regex(r"http://example\.com/.*"): {"body": "regex"},
                "http://example.com/api": {"body": "literal"},
            }
        )
        route = find_route(routes, req("http://example.com/api"))
        assert route is not None
        assert route.handler == {"body": "regex"}

    def test_skips_method_mismatch(self) -> None:
        routes = compile_routes(
            {"http://example.com": {"post": {"body": "p"}, "get": {"body": "g"}}}
        )
        route = find_route(routes, req("http://example.com"))
        assert route is not None
        assert route.route_key == "http://example.com:get"

    def test_no_match(self) -> None:
        routes = compile_routes({"http://example.com": {"get": {}}})
        assert find_route(routes, req("http://example.com", "put")) is None

    def test_empty_table(self) -> None:
        assert find_route((), req("http://example.com")) is None
