"""Route matcher: decide whether a compiled route answers a request.

Evaluation semantics:
- Routes are tried in declaration order (first-match-wins); ties are
  broken by order, never by specificity.
- A route's method must equal the request method unless it is ``any``.
- A URL pattern must fully match the raw request URL, its reconstructed
  address, or the address of any equivalent spelling of the request.
  Exact strings compare query parts as a multiset, not per ordering.
- A query pattern checks query params first, then matches its inner
  pattern against the request with its query discarded.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from httpstub._query import params_match
from httpstub._routes import ANY_METHOD, QueryPattern, UrlPattern
from httpstub._url import address_string, potential_variants, spells_address

if TYPE_CHECKING:
    from collections.abc import Iterable

    from httpstub._request import StubRequest
    from httpstub._routes import AddressPattern, CompiledRoute


def methods_match(method: str, request: StubRequest) -> bool:
    """The route method is ``any`` or equals the request method."""
    return method == ANY_METHOD or method == request.method


def address_matches(pattern: AddressPattern, request: StubRequest) -> bool:
    """Match an address pattern against every spelling of the request."""
    match pattern:
        case UrlPattern(literal=str() as literal):
            if literal == (request.url or address_string(request)):
                return True
            return spells_address(literal, request)
        case UrlPattern(regex=regex):
            request_url = request.url or address_string(request)
            if regex.fullmatch(request_url):
                return True
            return any(
                regex.fullmatch(address_string(variant))
                for variant in potential_variants(request)
            )
        case QueryPattern(inner=inner, query_params=expected):
            if expected is None:
                return address_matches(inner, request)
            if not params_match(expected, request):
                return False
            return address_matches(
                inner, replace(request, url=None, query_string=None, query_params=None)
            )
    return False  # pragma: no cover


def matches(pattern: AddressPattern, method: str, request: StubRequest) -> bool:
    """Both the method and the address of a route match the request."""
    return methods_match(method, request) and address_matches(pattern, request)


def find_route(routes: Iterable[CompiledRoute], request: StubRequest) -> CompiledRoute | None:
    """Return the first route matching ``request``, or None."""
    for route in routes:
        if matches(route.address, route.method, request):
            return route
    return None
