"""StubRequest: the outbound request as seen by the route matcher.

A request may arrive as a bare URL string, a mapping of StubRequest field
names, or a StubRequest. normalize_request() turns all three into a
StubRequest whose URL parts (scheme, host, port, path, query string) have
been parsed out of ``url`` when one is given.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

from httpstub._errors import StubError
from httpstub._url import parse_url

DEFAULT_METHOD = "get"


@dataclass(frozen=True, slots=True)
class StubRequest:
    """An outbound HTTP request.

    ``method`` is stored lower-case. ``query_params`` holds structured
    parameters when the caller supplied them instead of (or as well as)
    a raw ``query_string``.
    """

    method: str = DEFAULT_METHOD
    url: str | None = None
    scheme: str | None = None
    host: str | None = None
    port: int | None = None
    path: str | None = None
    query_string: str | None = None
    query_params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | str | None = None

    def header(self, name: str) -> str | None:
        """Get a header value by name (case-insensitive)."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


_FIELD_NAMES = frozenset(f.name for f in fields(StubRequest))


def normalize_request(request: str | Mapping[str, Any] | StubRequest) -> StubRequest:
    """Coerce ``request`` into a StubRequest with parsed URL parts.

    Parts parsed from ``url`` take precedence over parts given alongside it.

    Raises:
        StubError: If a mapping carries keys that are not StubRequest fields,
            or ``request`` is of an unsupported type.
    """
    match request:
        case StubRequest():
            req = request
        case str():
            req = StubRequest(url=request)
        case Mapping():
            unknown = sorted(str(k) for k in set(request) - _FIELD_NAMES)
            if unknown:
                msg = f"unknown request fields: {unknown}"
                raise StubError(msg)
            req = StubRequest(**request)
        case _:
            msg = f"cannot build a request from {type(request).__name__}"
            raise StubError(msg)

    if isinstance(req.url, str):
        parts = parse_url(req.url)
        req = replace(
            req,
            scheme=parts.scheme,
            host=parts.host,
            port=parts.port,
            path=parts.path,
            query_string=parts.query_string,
        )
    return replace(req, method=(req.method or DEFAULT_METHOD).lower())
