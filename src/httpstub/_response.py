"""Response synthesizer: turn a route handler into a StubResponse."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from httpstub._errors import StubError

if TYPE_CHECKING:
    from httpstub._request import StubRequest

RESPONSE_FIELDS = frozenset({"status", "headers", "body"})


def body_bytes(body: Any) -> bytes:
    """Pass bytes-like bodies through; UTF-8 encode everything else."""
    if body is None:
        return b""
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    return str(body).encode("utf-8")


@dataclass(frozen=True, slots=True)
class StubResponse:
    """An in-memory HTTP response: status, headers, and body bytes.

    A ``str`` body is UTF-8 encoded at construction time.
    """

    status: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        if not isinstance(self.body, bytes):
            object.__setattr__(self, "body", body_bytes(self.body))


def create_response(handler: Any, request: StubRequest) -> StubResponse:
    """Build the response for a matched route.

    A callable handler is invoked with the request; its return value is the
    partial response. Anything else is the partial response itself. The
    partial response is a mapping with any of ``status``, ``headers`` and
    ``body`` (the empty mapping is the default 200 response), a StubResponse,
    or None.

    Raises:
        StubError: If the partial response has an unsupported shape.
    """
    partial = handler(request) if callable(handler) else handler

    match partial:
        case StubResponse():
            return partial
        case None:
            return StubResponse()
        case Mapping():
            unknown = sorted(str(k) for k in set(partial) - RESPONSE_FIELDS)
            if unknown:
                msg = f"unknown response fields: {unknown}"
                raise StubError(msg)
            return StubResponse(
                status=int(partial.get("status", 200)),
                headers=dict(partial.get("headers") or {}),
                body=body_bytes(partial.get("body", "")),
            )
        case _:
            msg = f"handler produced {type(partial).__name__}, expected a response mapping"
            raise StubError(msg)
