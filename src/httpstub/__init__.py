"""httpstub: declarative HTTP route stubs with call-count assertions.

All public types are exported from this module for flat imports:

    from httpstub import http_stub, Regex, Address, times

    with http_stub({"http://example.com/api": {"get": {"body": "ok"}, "times": 1}}):
        ...
"""

__version__ = "0.1.0"

# Accounting
from httpstub._accounting import CallAccounting

# Declarative config
from httpstub._config import ConfigParseError, load_routes, parse_routes_config

# Errors
from httpstub._errors import (
    CallCountMismatch,
    CallCountMismatchError,
    NoMatchingRouteError,
    RouteDeclarationError,
    StubError,
)

# Matching
from httpstub._matcher import address_matches, find_route, matches, methods_match

# Query codec
from httpstub._query import decode_query, encode_query, normalize_query_params, params_match

# Request / response
from httpstub._request import StubRequest, normalize_request
from httpstub._response import StubResponse, body_bytes, create_response

# Route declarations
from httpstub._routes import (
    ANY_METHOD,
    Address,
    CompiledRoute,
    Regex,
    compile_address,
    compile_routes,
    times,
)

# Scopes
from httpstub._scope import (
    Matched,
    StubContext,
    Unmatched,
    active_context,
    global_http_stub,
    global_http_stub_in_isolation,
    http_stub,
    http_stub_in_isolation,
    intercept,
    resolve,
)

# URL normalizer
from httpstub._url import (
    UrlParts,
    address_string,
    normalize_path,
    parse_url,
    potential_variants,
    spells_address,
)

__all__ = [
    # Scopes
    "http_stub",
    "http_stub_in_isolation",
    "global_http_stub",
    "global_http_stub_in_isolation",
    "StubContext",
    "active_context",
    "resolve",
    "intercept",
    "Matched",
    "Unmatched",
    # Route declarations
    "ANY_METHOD",
    "Address",
    "Regex",
    "times",
    "CompiledRoute",
    "compile_address",
    "compile_routes",
    # Matching
    "matches",
    "methods_match",
    "address_matches",
    "find_route",
    # Accounting
    "CallAccounting",
    # Request / response
    "StubRequest",
    "normalize_request",
    "StubResponse",
    "body_bytes",
    "create_response",
    # URL normalizer
    "UrlParts",
    "parse_url",
    "normalize_path",
    "address_string",
    "potential_variants",
    "spells_address",
    # Query codec
    "decode_query",
    "encode_query",
    "normalize_query_params",
    "params_match",
    # Declarative config
    "ConfigParseError",
    "load_routes",
    "parse_routes_config",
    # Errors
    "StubError",
    "RouteDeclarationError",
    "NoMatchingRouteError",
    "CallCountMismatch",
    "CallCountMismatchError",
]
