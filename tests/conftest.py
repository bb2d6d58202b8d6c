"""Shared fixtures for httpstub tests."""

from __future__ import annotations

from typing import Any

import pytest

from httpstub import active_context


def _unreachable() -> Any:
    msg = "request reached the real transport"
    raise AssertionError(msg)


@pytest.fixture
def unreachable():  # noqa: ANN201
    """A delegate that fails the test if a request falls through the stubs."""
    return _unreachable


@pytest.fixture(autouse=True)
def no_leaked_scope():  # noqa: ANN201
    """Every test must leave no stub scope active."""
    yield
    assert active_context() is None
