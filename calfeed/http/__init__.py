"""HTTP request abstraction."""

from .filters import RequestFilter, ValueFilter
from .request import (
    HttpRequest,
    ParameterDictionary,
    Request,
    Server,
    parse_cookie_header,
    parse_query_string,
)

__all__ = [
    "HttpRequest",
    "ParameterDictionary",
    "Request",
    "RequestFilter",
    "Server",
    "ValueFilter",
    "parse_cookie_header",
    "parse_query_string",
]
