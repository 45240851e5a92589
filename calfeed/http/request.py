"""Typed wrapper over the raw collections of an HTTP request."""

from __future__ import annotations

import logging
import posixpath
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping
from urllib.parse import parse_qsl, unquote, urlsplit

from starlette.datastructures import UploadFile
from starlette.requests import cookie_parser

from ..config import Settings
from .filters import RequestFilter

if TYPE_CHECKING:  # pragma: no cover
    from starlette.requests import Request as StarletteRequest

logger = logging.getLogger(__name__)

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class ParameterDictionary(Mapping[str, Any]):
    """Read-only mapping over one request collection.

    Replacing the values through :meth:`set_values` keeps the values the
    dictionary was created with, available through :meth:`get_raw`.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})
        self._raw_values: dict[str, Any] | None = None

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._values!r})"

    def get_raw(self, name: str, default: Any = None) -> Any:
        source = self._values if self._raw_values is None else self._raw_values
        return source.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def to_dict_raw(self) -> dict[str, Any]:
        source = self._values if self._raw_values is None else self._raw_values
        return dict(source)

    def set_values(self, values: Mapping[str, Any]) -> None:
        if self._raw_values is None:
            self._raw_values = self._values
        self._values = dict(values)

    def merge_missing(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            self._values.setdefault(name, value)


class Server:
    """Server and environment variables of the current request."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def get_request_uri(self) -> str:
        uri = self._values.get("REQUEST_URI")
        if uri:
            return str(uri)
        path = f"{self._values.get('SCRIPT_NAME') or ''}{self._values.get('PATH_INFO') or ''}"
        query = self._values.get("QUERY_STRING")
        if path and query:
            return f"{path}?{query}"
        return path

    def get_request_method(self) -> str:
        return str(self._values.get("REQUEST_METHOD") or "GET").upper()

    def get_http_host(self) -> str:
        return str(self._values.get("HTTP_HOST") or self._values.get("SERVER_NAME") or "")


class Request:
    """Request values merged from the query string and the posted form."""

    def __init__(self, server: Server, values: Mapping[str, Any]) -> None:
        self.server = server
        self.values = ParameterDictionary(values)
        self._requested_page: str | None = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def get_requested_page(self) -> str:
        if self._requested_page is None:
            self._requested_page = str(self.server.get("SCRIPT_NAME") or "/")
        return self._requested_page


class HttpRequest(Request):
    """HTTP specific request data: query, post, files and cookies."""

    def __init__(
        self,
        server: Server,
        query: Mapping[str, Any] | None = None,
        post: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
        cookies: Mapping[str, Any] | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        query = dict(query or {})
        post = dict(post or {})
        cookies = dict(cookies or {})
        super().__init__(server, {**query, **post})

        self.settings = settings or Settings()
        self._query = ParameterDictionary(query)
        self._post = ParameterDictionary(post)
        self._files = ParameterDictionary(files)
        self._cookies_raw = ParameterDictionary(cookies)
        self._cookies = ParameterDictionary(self._prepare_cookies(cookies))
        self._accepted_languages: list[str] | None = None
        self._host: str | None = None

    # Construction -------------------------------------------------------------------
    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, Any],
        *,
        post: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
        settings: Settings | None = None,
    ) -> "HttpRequest":
        query = parse_query_string(str(environ.get("QUERY_STRING") or ""))
        cookies = parse_cookie_header(str(environ.get("HTTP_COOKIE") or ""))
        return cls(Server(environ), query, post, files, cookies, settings=settings)

    @classmethod
    async def from_starlette(
        cls,
        request: "StarletteRequest",
        *,
        settings: Settings | None = None,
    ) -> "HttpRequest":
        query = _fold_pairs(request.query_params.multi_items())
        post: dict[str, Any] = {}
        files: dict[str, Any] = {}
        content_type = request.headers.get("content-type", "")
        if request.method == "POST" and content_type.startswith(_FORM_CONTENT_TYPES):
            form = await request.form()
            for name, value in form.multi_items():
                target = files if isinstance(value, UploadFile) else post
                _fold_pairs([(name, value)], into=target)
        return cls(
            Server(_starlette_server_values(request)),
            query,
            post,
            files,
            dict(request.cookies),
            settings=settings,
        )

    # Filtering ----------------------------------------------------------------------
    def add_filter(self, request_filter: RequestFilter) -> None:
        """Apply ``request_filter`` to the request data. Original values are preserved."""

        filtered = request_filter.filter(
            {
                "get": self._query.to_dict(),
                "post": self._post.to_dict(),
                "files": self._files.to_dict(),
                "cookie": self._cookies_raw.to_dict(),
            }
        )

        if filtered.get("get") is not None:
            self._query.set_values(filtered["get"])
        if filtered.get("post") is not None:
            self._post.set_values(filtered["post"])
        if filtered.get("files") is not None:
            self._files.set_values(filtered["files"])
        if filtered.get("cookie") is not None:
            self._cookies_raw.set_values(filtered["cookie"])
            self._cookies = ParameterDictionary(self._prepare_cookies(filtered["cookie"]))

        if filtered.get("get") is not None or filtered.get("post") is not None:
            self.values.set_values({**self._query.to_dict(), **self._post.to_dict()})
        logger.debug("Applied request filter %s", type(request_filter).__name__)

    # Collections --------------------------------------------------------------------
    def get_query(self, name: str) -> Any:
        return self._query.get(name)

    def get_query_list(self) -> ParameterDictionary:
        return self._query

    def get_post(self, name: str) -> Any:
        return self._post.get(name)

    def get_post_list(self) -> ParameterDictionary:
        return self._post

    def get_file(self, name: str) -> Any:
        return self._files.get(name)

    def get_file_list(self) -> ParameterDictionary:
        return self._files

    def get_cookie(self, name: str) -> Any:
        return self._cookies.get(name)

    def get_cookie_list(self) -> ParameterDictionary:
        return self._cookies

    def get_cookie_raw(self, name: str) -> Any:
        return self._cookies_raw.get(name)

    def get_cookie_raw_list(self) -> ParameterDictionary:
        return self._cookies_raw

    # Metadata -----------------------------------------------------------------------
    def get_remote_address(self) -> str | None:
        return self.server.get("REMOTE_ADDR")

    def get_request_uri(self) -> str:
        return self.server.get_request_uri()

    def get_request_method(self) -> str:
        return self.server.get_request_method()

    def is_post(self) -> bool:
        return self.get_request_method() == "POST"

    def get_user_agent(self) -> str | None:
        return self.server.get("HTTP_USER_AGENT")

    def get_accepted_languages(self) -> list[str]:
        if self._accepted_languages is None:
            header = str(self.server.get("HTTP_ACCEPT_LANGUAGE") or "")
            self._accepted_languages = [
                part.split(";", 1)[0].strip() for part in header.split(",") if part.strip()
            ]
        return list(self._accepted_languages)

    def get_requested_page(self) -> str:
        if self._requested_page is not None:
            return self._requested_page

        uri = self.get_request_uri()
        if not uri:
            return super().get_requested_page()

        path = urlsplit(unquote(uri)).path or "/"
        if not path.startswith("/"):
            path = f"/{path}"
        page = posixpath.normpath(path)
        if path.endswith("/"):
            page = f"{page.rstrip('/')}/{self.settings.directory_index}"
        self._requested_page = page
        return page

    def get_http_host(self, raw: bool = True) -> str:
        if raw:
            return self.server.get_http_host()

        if self._host is None:
            scheme = "https" if self.is_https() else "http"
            raw_host = self.server.get_http_host()
            try:
                host = urlsplit(f"{scheme}://{raw_host}").hostname or ""
            except ValueError:
                logger.warning("Malformed host header %r", raw_host)
                host = raw_host.rsplit(":", 1)[0] if raw_host.count(":") == 1 else raw_host
                host = host.lower()
            self._host = host.strip("\t\r\n\0 .")
        return self._host

    def is_https(self) -> bool:
        port = self.server.get("SERVER_PORT")
        https = self.server.get("HTTPS")
        return str(port) == "443" or (https is not None and str(https).lower() == "on")

    def modify_by_query_string(self, query_string: str) -> None:
        if not query_string:
            return
        parsed = parse_query_string(query_string)
        self.values.merge_missing(parsed)
        self._query.merge_missing(parsed)

    # Internal helpers ---------------------------------------------------------------
    def _prepare_cookies(self, cookies: Mapping[str, Any]) -> dict[str, Any]:
        prefix = self.settings.cookie_prefix
        return {
            name[len(prefix):]: value
            for name, value in cookies.items()
            if name.startswith(prefix)
        }


def parse_query_string(query_string: str) -> dict[str, Any]:
    """Parse a query string; repeated ``name[]`` keys are collected into lists."""

    return _fold_pairs(parse_qsl(query_string, keep_blank_values=True))


def parse_cookie_header(header: str) -> dict[str, str]:
    if not header:
        return {}
    return cookie_parser(header)


def _fold_pairs(
    pairs: Iterable[tuple[str, Any]],
    into: dict[str, Any] | None = None,
) -> dict[str, Any]:
    values = {} if into is None else into
    for name, value in pairs:
        if name.endswith("[]"):
            key = name[:-2]
            current = values.get(key)
            if not isinstance(current, list):
                current = values[key] = []
            current.append(value)
        else:
            values[name] = value
    return values


def _starlette_server_values(request: "StarletteRequest") -> dict[str, Any]:
    # Read the scope directly, request.url fails on a malformed Host header.
    scope = request.scope
    scheme = scope.get("scheme", "http")
    server_name, server_port = scope.get("server") or (None, None)
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "")
    query = scope.get("query_string", b"").decode("latin-1")
    values: dict[str, Any] = {
        "REMOTE_ADDR": request.client.host if request.client else None,
        "REQUEST_METHOD": request.method,
        "REQUEST_URI": f"{path}?{query}" if query else path,
        "QUERY_STRING": query,
        "SCRIPT_NAME": scope.get("root_path", ""),
        "PATH_INFO": scope.get("path", ""),
        "SERVER_NAME": server_name,
        "SERVER_PORT": server_port or (443 if scheme == "https" else 80),
    }
    if scheme == "https":
        values["HTTPS"] = "on"
    for name, value in request.headers.items():
        values[f"HTTP_{name.upper().replace('-', '_')}"] = value
    return values
