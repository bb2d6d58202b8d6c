"""Declarative route config: dict/YAML data -> route declaration.

Config-driven declaration path:
  YAML file → load_routes() → dict → parse_routes_config() → routes → http_stub()

Shape (JSON or YAML):

    routes:
      - url: http://example.com/api        # exactly one of url / regex
        query_params: {page: "1"}          # optional
        method: get                        # optional, default any
        times: 2                           # optional
        response:                          # optional, default 200
          status: 201
          headers: {x-request-id: abc}
          body: created                    # or json: {...}

Entries for the same address merge into one method mapping, so the result
feeds straight into the route table compiler.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from httpstub._errors import RouteDeclarationError, StubError
from httpstub._response import RESPONSE_FIELDS
from httpstub._routes import ANY_METHOD, HANDLER_KEY, TIMES_KEY, Address, Regex

_ROUTE_FIELDS = frozenset({"url", "regex", "query_params", "method", "times", "response"})
_RESPONSE_FIELDS = RESPONSE_FIELDS | {"json"}


class ConfigParseError(StubError):
    """Error parsing route config data."""


def load_routes(path: str | Path) -> dict[Any, Any]:
    """Read a YAML (or JSON) route file and parse it.

    Raises:
        ConfigParseError: If the file is not valid YAML or is malformed.
    """
    with Path(path).open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"invalid YAML in {path}: {e}"
            raise ConfigParseError(msg) from e
    return parse_routes_config(data)


def parse_routes_config(data: Any) -> dict[Any, Any]:
    """Parse config data into a route declaration for ``http_stub``.

    Raises:
        ConfigParseError: If the data is malformed.
    """
    if not isinstance(data, Mapping):
        msg = f"expected dict, got {type(data).__name__}"
        raise ConfigParseError(msg)

    raw_routes = data.get("routes")
    if raw_routes is None:
        msg = "missing required field 'routes'"
        raise ConfigParseError(msg)
    if not isinstance(raw_routes, list):
        msg = f"'routes' must be a list, got {type(raw_routes).__name__}"
        raise ConfigParseError(msg)

    declared: dict[Any, dict[str, Any]] = {}
    for index, raw in enumerate(raw_routes):
        address, method, handler = _parse_route(raw, index)
        methods = declared.setdefault(address, {})
        if method in methods:
            msg = f"routes[{index}]: duplicate route for {address} {method}"
            raise ConfigParseError(msg)
        methods[method] = handler
    return declared


def _parse_route(data: Any, index: int) -> tuple[Any, str, Any]:
    """Parse one route entry into (address key, method, handler)."""
    where = f"routes[{index}]"
    if not isinstance(data, Mapping):
        msg = f"{where} must be a dict, got {type(data).__name__}"
        raise ConfigParseError(msg)

    unknown = sorted(str(k) for k in set(data) - _ROUTE_FIELDS)
    if unknown:
        msg = f"{where} has unknown fields: {unknown}"
        raise ConfigParseError(msg)

    address = _parse_address(data, where)

    method = data.get("method", ANY_METHOD)
    if not isinstance(method, str) or not method:
        msg = f"{where}.method must be a non-empty string, got {method!r}"
        raise ConfigParseError(msg)

    response = _parse_response(data.get("response", {}), where)
    if "times" not in data:
        return address, method.lower(), response

    times = data["times"]
    if isinstance(times, bool) or not isinstance(times, int) or times < 0:
        msg = f"{where}.times must be a non-negative integer, got {times!r}"
        raise ConfigParseError(msg)
    return address, method.lower(), {HANDLER_KEY: response, TIMES_KEY: times}


def _parse_address(data: Mapping[str, Any], where: str) -> Any:
    has_url = "url" in data
    has_regex = "regex" in data
    if has_url == has_regex:
        msg = f"{where}: exactly one of 'url' or 'regex' must be set"
        raise ConfigParseError(msg)

    raw = data["url"] if has_url else data["regex"]
    if not isinstance(raw, str):
        msg = f"{where}.{'url' if has_url else 'regex'} must be a string, got {type(raw).__name__}"
        raise ConfigParseError(msg)

    try:
        address: str | Regex = raw if has_url else Regex(raw)
    except RouteDeclarationError as e:
        msg = f"{where}: {e}"
        raise ConfigParseError(msg) from e

    query_params = data.get("query_params")
    if query_params is None:
        return address
    if not isinstance(query_params, Mapping):
        msg = f"{where}.query_params must be a dict, got {type(query_params).__name__}"
        raise ConfigParseError(msg)
    return Address(address, dict(query_params))


def _parse_response(data: Any, where: str) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        msg = f"{where}.response must be a dict, got {type(data).__name__}"
        raise ConfigParseError(msg)

    unknown = sorted(str(k) for k in set(data) - _RESPONSE_FIELDS)
    if unknown:
        msg = f"{where}.response has unknown fields: {unknown}"
        raise ConfigParseError(msg)
    if "body" in data and "json" in data:
        msg = f"{where}.response: 'body' and 'json' are mutually exclusive"
        raise ConfigParseError(msg)

    response: dict[str, Any] = {}
    if "status" in data:
        status = data["status"]
        if isinstance(status, bool) or not isinstance(status, int):
            msg = f"{where}.response.status must be an integer, got {status!r}"
            raise ConfigParseError(msg)
        response["status"] = status

    headers = data.get("headers", {})
    if not isinstance(headers, Mapping):
        msg = f"{where}.response.headers must be a dict, got {type(headers).__name__}"
        raise ConfigParseError(msg)
    headers = {str(k): str(v) for k, v in headers.items()}

    if "json" in data:
        response["body"] = json.dumps(data["json"])
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"
    elif "body" in data:
        response["body"] = data["body"]

    if headers:
        response["headers"] = headers
    return response
