"""Call accounting: actual vs expected invocations per route key.

Counters are shared by every thread that dispatches through one stub
scope, so all reads and writes go through a single lock.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import TYPE_CHECKING

from httpstub._errors import CallCountMismatch, CallCountMismatchError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from httpstub._routes import CompiledRoute

logger = logging.getLogger("httpstub.accounting")


class CallAccounting:
    """Thread-safe actual and expected call counts.

    Expected counts are recorded when routes are compiled; actual counts
    are recorded on every matched dispatch. Actual counts may hold keys
    with no expectation; those are never validated.
    """

    __slots__ = ("_actual", "_expected", "_lock")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._actual: Counter[str] = Counter()
        self._expected: dict[str, int] = {}

    @classmethod
    def for_routes(cls, routes: Iterable[CompiledRoute]) -> CallAccounting:
        """Accounting with the expected counts of ``routes`` recorded."""
        accounting = cls()
        for route in routes:
            if route.expected is not None:
                accounting.expect(route.route_key, route.expected)
        return accounting

    def expect(self, route_key: str, count: int) -> None:
        with self._lock:
            self._expected[route_key] = count

    def record(self, route_key: str) -> int:
        """Count one call of ``route_key``; returns the new count."""
        with self._lock:
            self._actual[route_key] += 1
            return self._actual[route_key]

    def count(self, route_key: str) -> int:
        with self._lock:
            return self._actual[route_key]

    @property
    def actual(self) -> dict[str, int]:
        """Snapshot of actual counts."""
        with self._lock:
            return dict(self._actual)

    @property
    def expected(self) -> dict[str, int]:
        """Snapshot of expected counts."""
        with self._lock:
            return dict(self._expected)

    def mismatches(self) -> list[CallCountMismatch]:
        """Every expected count that differs from its actual count."""
        with self._lock:
            return [
                CallCountMismatch(route_key, expected, self._actual[route_key])
                for route_key, expected in self._expected.items()
                if self._actual[route_key] != expected
            ]

    def validate(self) -> None:
        """Check actual counts against expected counts.

        Raises:
            CallCountMismatchError: Reporting every mismatched route.
        """
        mismatches = self.mismatches()
        if mismatches:
            logger.warning("%d stub route(s) called an unexpected number of times", len(mismatches))
            raise CallCountMismatchError(mismatches)

    def reset(self) -> None:
        with self._lock:
            self._actual.clear()
            self._expected.clear()
