"""Query parameter codec.

Query parameters compare as order-independent mappings of strings. A key
that repeats in the query string decodes to a tuple of its values.
"""

from __future__ import annotations

import functools
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlencode

if TYPE_CHECKING:
    from httpstub._request import StubRequest

type QueryValue = str | tuple[str, ...]
type QueryParams = dict[str, QueryValue]


def _normalize_value(value: Any) -> QueryValue:
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return str(value)


def normalize_query_params(params: Mapping[Any, Any] | None) -> QueryParams:
    """Convert every key and value to its string form."""
    if not params:
        return {}
    return {str(k): _normalize_value(v) for k, v in params.items()}


@functools.lru_cache(maxsize=4096)
def _decode(query_string: str) -> tuple[tuple[str, QueryValue], ...]:
    decoded: dict[str, list[str]] = {}
    for key, value in parse_qsl(query_string, keep_blank_values=True):
        decoded.setdefault(key, []).append(value)
    return tuple(
        (key, values[0] if len(values) == 1 else tuple(values))
        for key, values in decoded.items()
    )


def decode_query(query_string: str | None) -> QueryParams:
    """Form-decode a query string; blank input decodes to an empty mapping."""
    if query_string is None or not query_string.strip():
        return {}
    return dict(_decode(query_string))


def encode_query(params: Mapping[Any, Any]) -> str:
    """Form-encode query params; sequence values repeat their key."""
    return urlencode(normalize_query_params(params), doseq=True)


def request_query_params(request: StubRequest) -> QueryParams:
    """The request's effective query params.

    Structured ``query_params`` win over the raw ``query_string``.
    """
    if request.query_params is not None:
        return normalize_query_params(request.query_params)
    return decode_query(request.query_string)


def params_match(expected: Mapping[Any, Any] | None, request: StubRequest) -> bool:
    """Exact equality of normalized params; no subset semantics."""
    return normalize_query_params(expected) == request_query_params(request)
