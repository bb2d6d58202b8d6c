"""Route table compiler: declared routes -> flat tuple of CompiledRoute.

A route declaration maps address keys to handlers:

    {
        "http://example.com/api": handler,                 # any method
        Regex(r"http://example\\.com/users/\\d+"): {
            "get": handler,
            "delete": {"status": 204},
            "times": {"get": 2, "delete": 1},
        },
        Address("http://example.com/search", {"q": "x"}): {"get": handler, "times": 1},
    }

The heterogeneous value shapes are resolved once, here, into a uniform
tuple of CompiledRoute entries in declaration order. Address keys are
compiled into AddressPattern values so the matcher never re-interprets
a declaration per request.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import re2

from httpstub._errors import RouteDeclarationError
from httpstub._query import QueryParams, normalize_query_params
from httpstub._response import RESPONSE_FIELDS

ANY_METHOD = "any"
TIMES_KEY = "times"
HANDLER_KEY = "handler"

_TIMES_ATTR = "httpstub_times"
_HANDLER_SPEC_FIELDS = frozenset({HANDLER_KEY, TIMES_KEY})


# ═══════════════════════════════════════════════════════════════════════════════
# Address keys (user-facing)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Regex:
    """A regular-expression address key.

    The pattern must fully match one spelling of the request URL. It is
    compiled with ``google-re2``, which guarantees linear-time matching and
    rejects backreferences and lookaround at construction time.

    Raises:
        RouteDeclarationError: If the pattern is not valid RE2 syntax.
    """

    pattern: str
    _compiled: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            compiled = re2.compile(self.pattern)
        except re2.error as e:
            msg = f'invalid regex pattern "{self.pattern}": {e}'
            raise RouteDeclarationError(msg) from e
        object.__setattr__(self, "_compiled", compiled)

    def __str__(self) -> str:
        return self.pattern


@dataclass(frozen=True, slots=True)
class Address:
    """An address key with a query parameter constraint.

    When ``query_params`` is given, the request's query params must equal it
    exactly, and the request's own query string is then ignored when
    matching ``address``.
    """

    address: str | Regex | re.Pattern[str]
    query_params: Mapping[str, Any] | None = field(default=None, hash=False)

    def __str__(self) -> str:
        if self.query_params is None:
            return _label(self.address)
        return f"{_label(self.address)} {normalize_query_params(self.query_params)}"


type AddressKey = str | Regex | re.Pattern[str] | Address


def _label(address: str | Regex | re.Pattern[str]) -> str:
    if isinstance(address, re.Pattern):
        return address.pattern
    return str(address)


# ═══════════════════════════════════════════════════════════════════════════════
# Compiled patterns
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class UrlPattern:
    """A regex that must fully match some spelling of the request URL.

    Exact-string addresses compile to an escaped (literal) RE2 pattern and
    keep the string in ``literal``, which lets the matcher compare it
    directly instead of trying every query ordering.
    """

    label: str
    regex: Any
    literal: str | None = None


@dataclass(frozen=True, slots=True)
class QueryPattern:
    """An inner address pattern guarded by exact query params."""

    label: str
    inner: AddressPattern
    query_params: QueryParams | None


type AddressPattern = UrlPattern | QueryPattern


def compile_address(address: Any) -> AddressPattern:
    """Compile an address key into an AddressPattern.

    Raises:
        RouteDeclarationError: If the key is not a supported address type.
    """
    match address:
        case str():
            return UrlPattern(
                label=address, regex=re2.compile(re2.escape(address)), literal=address
            )
        case Regex():
            return UrlPattern(label=address.pattern, regex=address._compiled)
        case re.Pattern():
            return UrlPattern(label=address.pattern, regex=address)
        case Address(address=inner, query_params=params):
            if isinstance(inner, Address):
                msg = "Address cannot wrap another Address"
                raise RouteDeclarationError(msg)
            return QueryPattern(
                label=str(address),
                inner=compile_address(inner),
                query_params=None if params is None else normalize_query_params(params),
            )
        case _:
            msg = (
                "route address must be a str, Regex, re.Pattern or Address, "
                f"got {type(address).__name__}"
            )
            raise RouteDeclarationError(msg)


# ═══════════════════════════════════════════════════════════════════════════════
# Expected counts
# ═══════════════════════════════════════════════════════════════════════════════


def _check_times(count: Any) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        msg = f"times must be a non-negative int, got {count!r}"
        raise RouteDeclarationError(msg)
    return count


def times[F: Callable[..., Any]](count: int) -> Callable[[F], F]:
    """Attach an expected call count to a handler function.

        @times(2)
        def handler(request):
            return {"body": "ok"}

    A ``times`` entry in the route declaration takes precedence.
    """
    expected = _check_times(count)

    def decorate(handler: F) -> F:
        @functools.wraps(handler)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return handler(*args, **kwargs)

        setattr(wrapper, _TIMES_ATTR, expected)
        return wrapper  # type: ignore[return-value]

    return decorate


def attached_times(handler: Any) -> int | None:
    """The expected count attached with ``times()``, if any."""
    if callable(handler):
        return getattr(handler, _TIMES_ATTR, None)
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# Flattening
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CompiledRoute:
    """One (method, address, handler) rule with its optional expected count.

    ``route_key`` identifies the rule for call accounting. It is not unique
    across a table: the first matching entry wins.
    """

    method: str
    address: AddressPattern
    handler: Any
    expected: int | None = None

    @property
    def route_key(self) -> str:
        return f"{self.address.label}:{self.method}"


def _normalize_method(method: Any) -> str:
    if not isinstance(method, str) or not method:
        msg = f"route method must be a non-empty str, got {method!r}"
        raise RouteDeclarationError(msg)
    return method.lower()


def _is_response_literal(value: Mapping[Any, Any]) -> bool:
    return set(value) <= RESPONSE_FIELDS


def _unwrap_handler(pattern: AddressPattern, method: str, value: Any) -> tuple[Any, Any]:
    """Split a method value into (handler, handler-spec ``times``).

    Raises:
        RouteDeclarationError: If a handler spec or literal response carries
            unknown fields.
    """
    if not isinstance(value, Mapping):
        return value, None
    where = f"{pattern.label}:{method}"

    handler, spec_times = value, None
    if HANDLER_KEY in value:
        extra = sorted(str(k) for k in set(value) - _HANDLER_SPEC_FIELDS)
        if extra:
            msg = f"handler spec for {where!r} has unknown fields {extra}"
            raise RouteDeclarationError(msg)
        handler, spec_times = value[HANDLER_KEY], value.get(TIMES_KEY)

    if isinstance(handler, Mapping):
        unknown = sorted(str(k) for k in set(handler) - RESPONSE_FIELDS)
        if TIMES_KEY in unknown:
            msg = (
                f"response for {where!r} carries 'times'; "
                "declare it as {'handler': response, 'times': n}"
            )
            raise RouteDeclarationError(msg)
        if unknown:
            msg = f"response for {where!r} has unknown fields {unknown}"
            raise RouteDeclarationError(msg)
    return handler, spec_times


def _times_by_method(raw: Any, methods: list[str]) -> tuple[int | None, dict[str, int]]:
    """Split a ``times`` entry into (shared count, per-method counts)."""
    if raw is None:
        return None, {}
    if not isinstance(raw, Mapping):
        return _check_times(raw), {}
    per_method = {_normalize_method(m): _check_times(c) for m, c in raw.items()}
    undeclared = sorted(set(per_method) - set(methods))
    if undeclared:
        msg = f"times given for undeclared methods: {undeclared}"
        raise RouteDeclarationError(msg)
    return None, per_method


def _method_routes(pattern: AddressPattern, handlers: Mapping[Any, Any]) -> list[CompiledRoute]:
    entries = [(_normalize_method(m), h) for m, h in handlers.items() if m != TIMES_KEY]
    mixed = sorted(m for m, _ in entries if m in RESPONSE_FIELDS)
    if mixed:
        msg = f"route for {pattern.label!r} mixes methods with response fields {mixed}"
        raise RouteDeclarationError(msg)

    shared, per_method = _times_by_method(handlers.get(TIMES_KEY), [m for m, _ in entries])
    routes = []
    for method, value in entries:
        handler, spec_times = _unwrap_handler(pattern, method, value)
        expected: int | None
        if method in per_method:
            expected = per_method[method]
        elif shared is not None:
            expected = shared
        elif spec_times is not None:
            expected = _check_times(spec_times)
        else:
            expected = attached_times(handler)
        routes.append(CompiledRoute(method, pattern, handler, expected))
    return routes


def compile_routes(declared: Any) -> tuple[CompiledRoute, ...]:
    """Flatten a route declaration into CompiledRoute entries.

    Raises:
        RouteDeclarationError: If the declaration is malformed.
    """
    if not isinstance(declared, Mapping):
        msg = f"routes must be a mapping, got {type(declared).__name__}"
        raise RouteDeclarationError(msg)

    routes: list[CompiledRoute] = []
    for address, handlers in declared.items():
        pattern = compile_address(address)
        if isinstance(handlers, Mapping) and not _is_response_literal(handlers):
            routes.extend(_method_routes(pattern, handlers))
        else:
            routes.append(CompiledRoute(ANY_METHOD, pattern, handlers, attached_times(handlers)))
    return tuple(routes)
