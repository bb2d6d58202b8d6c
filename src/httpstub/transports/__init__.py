"""httpstub.transports: interception seams for HTTP client libraries.

Hand a stub transport to the client under test; it answers from the
active stub scope and passes unmatched requests to a real transport.

    client = httpx.Client(transport=StubTransport())
"""

from httpstub.transports._httpx import (
    AsyncStubTransport,
    StubTransport,
    to_httpx_response,
    to_stub_request,
)

__all__ = [
    "StubTransport",
    "AsyncStubTransport",
    "to_stub_request",
    "to_httpx_response",
]
