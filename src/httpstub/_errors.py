"""Error taxonomy for httpstub.

Every failure surfaced at a stub scope boundary derives from StubError.
Messages are the contract: tests are expected to match on substrings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from httpstub._request import StubRequest


class StubError(Exception):
    """Base class for all httpstub errors."""


class RouteDeclarationError(StubError, TypeError):
    """The declared route table is malformed.

    Raised at scope entry, before any request is processed.
    """


@dataclass(frozen=True, slots=True)
class CallCountMismatch:
    """A route whose actual call count differs from its expected count."""

    route_key: str
    expected: int
    actual: int

    def __str__(self) -> str:
        return (
            f"Expected route '{self.route_key}' to be called {self.expected} times "
            f"but was called {self.actual} times"
        )


class CallCountMismatchError(StubError):
    """One or more routes were not called the expected number of times.

    The message carries one line per mismatch, in declaration order.
    """

    def __init__(self, mismatches: list[CallCountMismatch]) -> None:
        self.mismatches = tuple(mismatches)
        super().__init__("\n".join(str(m) for m in self.mismatches))


class NoMatchingRouteError(StubError):
    """No declared route matched a request in an isolated scope."""

    def __init__(self, request: StubRequest) -> None:
        self.request = request
        super().__init__(
            "No matching stub route found to handle request. Request details: "
            f"\n\t{request.scheme} \n\t{request.method} \n\t{request.host} "
            f"\n\t{request.path} \n\t{request.query_string} "
        )
