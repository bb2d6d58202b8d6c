"""URL normalizer: parsing and equivalent-address enumeration.

Two addresses that differ only in default scheme (absent vs ``http``),
default port (absent vs ``80``), trailing slash, or query parameter order
name the same endpoint. Rather than canonicalizing both sides, the matcher
enumerates every equivalent spelling of the request and tries each one
against the declared pattern. Exact-string addresses skip the query
orderings: spells_address() compares query parts as a multiset.
"""

from __future__ import annotations

import functools
import itertools
import re
from collections import Counter
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from httpstub._errors import StubError
from httpstub._query import encode_query

if TYPE_CHECKING:
    from collections.abc import Iterator

    from httpstub._request import StubRequest

DEFAULT_SCHEME = "http"
DEFAULT_PORT = 80

_QUERY_SEPARATOR = re.compile(r"[&;]")


@dataclass(frozen=True, slots=True)
class UrlParts:
    """The components of a URL string, as split by parse_url()."""

    scheme: str | None
    host: str
    port: int | None
    path: str
    query_string: str | None


@functools.lru_cache(maxsize=4096)
def normalize_path(path: str | None) -> str:
    """Return ``path`` with a trailing slash; blank paths become ``/``."""
    if path is None or not path.strip():
        return "/"
    if path.endswith("/"):
        return path
    return path + "/"


@functools.lru_cache(maxsize=4096)
def parse_url(url: str) -> UrlParts:
    """Split a URL string into scheme, host, port, path and query string.

    The scheme is optional. A missing path becomes ``/`` and every path is
    normalized to end with a slash. Userinfo (``user:pw@``) is dropped; an
    IPv6 literal host keeps its brackets.

    Raises:
        StubError: If the port is not an integer, or an IPv6 host is not
            closed by ``]``.
    """
    rest, sep, query = url.partition("?")
    query_string = query if sep else None

    scheme: str | None = None
    if "://" in rest:
        scheme, rest = rest.split("://", 1)

    authority, slash, path = rest.partition("/")
    path = slash + path if slash else "/"
    host, port = _split_authority(authority.rpartition("@")[2], url)

    return UrlParts(
        scheme=scheme,
        host=host,
        port=port,
        path=normalize_path(path),
        query_string=query_string,
    )


def _split_authority(hostport: str, url: str) -> tuple[str, int | None]:
    if hostport.startswith("["):
        end = hostport.find("]")
        if end == -1:
            msg = f"unterminated IPv6 host in url {url!r}"
            raise StubError(msg)
        host, raw_port = hostport[: end + 1], hostport[end + 1 :]
        if raw_port and not raw_port.startswith(":"):
            msg = f"invalid host {hostport!r} in url {url!r}"
            raise StubError(msg)
        raw_port = raw_port[1:]
    else:
        host, _, raw_port = hostport.partition(":")

    if not raw_port:
        return host, None
    try:
        return host, int(raw_port)
    except ValueError as e:
        msg = f"invalid port {raw_port!r} in url {url!r}"
        raise StubError(msg) from e


def address_string(request: StubRequest) -> str:
    """Reduce a request to ``scheme://host:port/path?query``.

    Each part is emitted only when present on the request.
    """
    query = request.query_string
    if query is None and request.query_params is not None:
        query = encode_query(request.query_params)

    parts = []
    if request.scheme:
        parts.append(f"{request.scheme}://")
    parts.append(request.host or "")
    if request.port is not None:
        parts.append(f":{request.port}")
    if request.path is not None:
        parts.append(request.path)
    if query is not None:
        parts.append(f"?{query}")
    return "".join(parts)


def _defaults_or_value[T](defaults: tuple[T, ...], value: T) -> tuple[T, ...]:
    """All defaults (the given one first) if ``value`` is a default, else just it."""
    if value in defaults:
        return (value, *(d for d in defaults if d != value))
    return (value,)


def potential_schemes(request: StubRequest) -> tuple[str | None, ...]:
    return _defaults_or_value((DEFAULT_SCHEME, None), request.scheme)


def potential_ports(request: StubRequest) -> tuple[int | None, ...]:
    return _defaults_or_value((DEFAULT_PORT, None), request.port)


def potential_paths(request: StubRequest) -> tuple[str | None, ...]:
    """Equivalent paths: with and without a trailing slash.

    A root path is equivalent to ``/``, the empty string, and no path.
    """
    path = request.path
    if path in ("/", "", None):
        return _defaults_or_value(("/", "", None), path)
    if path.endswith("/"):
        return (path, path.rstrip("/"))
    return (path, path + "/")


def potential_query_strings(request: StubRequest) -> Iterator[str | None]:
    """Equivalent query strings, lazily.

    Structured query params encode to a single string. A raw query string
    yields every ordering of its ``&``/``;`` separated parts.
    """
    if request.query_params is not None:
        yield encode_query(request.query_params)
        return

    query = request.query_string
    if query in ("", None):
        yield from _defaults_or_value(("", None), query)
        return

    for ordering in itertools.permutations(_QUERY_SEPARATOR.split(query)):
        yield "&".join(ordering)


def potential_variants(request: StubRequest) -> Iterator[StubRequest]:
    """Enumerate copies of ``request`` spelled every equivalent way.

    The Cartesian product of query strings, schemes, ports, and paths.
    Query strings are the outer loop and are generated lazily, since their
    permutations grow factorially with the number of parameters.
    """
    schemes = potential_schemes(request)
    ports = potential_ports(request)
    paths = potential_paths(request)
    for query in potential_query_strings(request):
        for scheme, port, path in itertools.product(schemes, ports, paths):
            yield replace(request, query_string=query, scheme=scheme, port=port, path=path)


def _is_query_spelling(query: str | None, request: StubRequest) -> bool:
    """``query`` is one of potential_query_strings(request)."""
    if request.query_params is not None:
        return query == encode_query(request.query_params)
    raw = request.query_string
    if raw in ("", None):
        return query in ("", None)
    if query is None:
        return False
    # Parts never contain "&", so join/split round-trips each ordering.
    return Counter(query.split("&")) == Counter(_QUERY_SEPARATOR.split(raw))


def spells_address(address: str, request: StubRequest) -> bool:
    """Some variant of ``request`` has ``address`` as its address string.

    Equivalent to comparing ``address`` with every address_string() of
    potential_variants(), but compares query parts as a multiset instead
    of enumerating their orderings.
    """
    bare = replace(request, query_string=None, query_params=None)
    schemes = potential_schemes(request)
    ports = potential_ports(request)
    paths = potential_paths(request)
    for scheme, port, path in itertools.product(schemes, ports, paths):
        base = address_string(replace(bare, scheme=scheme, port=port, path=path))
        if not address.startswith(base):
            continue
        rest = address[len(base) :]
        if rest == "":
            query = None
        elif rest.startswith("?"):
            query = rest[1:]
        else:
            continue
        if _is_query_spelling(query, request):
            return True
    return False
