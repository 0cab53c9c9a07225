"""API routes, URL construction and HTTP error responses."""

from __future__ import annotations

import dataclasses
import json
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Sequence, Union
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from .accept import negotiate_content_type
from .errors import (
    ERROR_DEPRECATED,
    BaseError,
    Missing,
    ServerException,
    UserConfigProblem,
    cover_all_error,
)

_TEXT = "text/plain; charset=utf-8"
_JSON = "application/json; charset=utf-8"

AcceptValues = Optional[Union[str, Iterable[str]]]


@dataclass
class Response:
    """An HTTP response to be written back to a client."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass
class Route:
    """A named route; a route with no path matches any path."""

    name: str
    path: Optional[str] = None
    methods: tuple[str, ...] = ()
    queries: tuple[tuple[str, str], ...] = ()
    prefix: bool = False
    handler: Optional[Callable[[AcceptValues, str], Response]] = None

    def _match_queries(self, query: Mapping[str, list[str]]) -> Optional[dict[str, str]]:
        found: dict[str, str] = {}
        for key, pattern in self.queries:
            value = query.get(key, [""])[0]
            if pattern.startswith("{") and pattern.endswith("}"):
                found[pattern[1:-1]] = value
            elif value != pattern:
                return None
        return found


class Router:
    """An ordered collection of named routes."""

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._named: dict[str, Route] = {}

    def add(
        self,
        name: str,
        path: Optional[str] = None,
        methods: Iterable[str] = (),
        queries: Optional[Mapping[str, str]] = None,
        prefix: bool = False,
    ) -> Route:
        route = Route(
            name=name,
            path=path,
            methods=tuple(m.upper() for m in methods),
            queries=tuple((queries or {}).items()),
            prefix=prefix,
        )
        self._routes.append(route)
        self._named[name] = route
        return route

    def get(self, name: str) -> Route:
        """The route with this name; raises KeyError if there is none."""
        return self._named[name]

    def match(self, method: str, path: str) -> Optional[tuple[Route, dict[str, str]]]:
        """The first route matching a request, with its variables, or None."""
        parts = urlsplit(path)
        query = parse_qs(parts.query, keep_blank_values=True)
        for route in self._routes:
            if route.methods and method.upper() not in route.methods:
                continue
            if route.path is not None:
                if route.prefix:
                    if not parts.path.startswith(route.path):
                        continue
                elif parts.path != route.path:
                    continue
            found = route._match_queries(query)
            if found is not None:
                return route, found
        return None

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes)


def deprecate_versions(router: Router, *args: str) -> None:
    """Answer every request under the given API versions with 410 Gone."""

    def deprecated(accept_values: AcceptValues, path: str) -> Response:
        return write_error(accept_values, 410, ERROR_DEPRECATED)

    for version in args:
        route = router.add(f"Deprecated:{version}", f"/{version}/", prefix=True)
        route.handler = deprecated


def new_api_router() -> Router:
    router = Router()
    router.add("ListServices", "/v6/services", ["GET"], {"namespace": "{namespace}"})
    router.add("ListImages", "/v6/images", ["GET"], {"service": "{service}"})
    router.add(
        "UpdateImages",
        "/v6/update-images",
        ["POST"],
        {"service": "{service}", "image": "{image}", "kind": "{kind}"},
    )
    router.add("UpdatePolicies", "/v6/policies", ["PATCH"])
    router.add("SyncNotify", "/v6/sync", ["POST"])
    router.add("JobStatus", "/v6/jobs", ["GET"], {"id": "{id}"})
    router.add("SyncStatus", "/v6/sync", ["GET"], {"ref": "{ref}"})
    router.add("Export", "/v6/export", ["HEAD", "GET"])
    router.add("GetPublicSSHKey", "/v6/identity.pub", ["GET"])
    router.add("RegeneratePublicSSHKey", "/v6/identity.pub", ["POST"])
    return router


def upstream_routes(router: Router) -> None:
    router.add("RegisterDaemon", "/v6/daemon", ["GET"])
    router.add("LogEvent", "/v6/events", ["POST"])


def new_upstream_router() -> Router:
    router = Router()
    upstream_routes(router)
    return router


def _join_paths(*parts: str) -> str:
    joined = "/".join(part for part in parts if part)
    if not joined:
        return ""
    cleaned = posixpath.normpath(joined)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def make_url(endpoint: str, router: Router, route_name: str, *args: str) -> str:
    """Build the URL of a named route under an endpoint, with query pairs."""
    if len(args) % 2:
        raise ValueError("url params must come in key/value pairs")
    try:
        endpoint_parts = urlsplit(endpoint)
    except ValueError as exc:
        raise ValueError(f"parsing endpoint {endpoint}") from exc
    try:
        route = router.get(route_name)
    except KeyError as exc:
        raise ValueError(f"retrieving route path {route_name}") from exc
    pairs = sorted(zip(args[::2], args[1::2]), key=lambda pair: pair[0])
    return urlunsplit(
        endpoint_parts._replace(
            path=_join_paths(endpoint_parts.path, route.path or ""),
            query=urlencode(pairs),
        )
    )


def _accept_list(accept_values: AcceptValues) -> list[str]:
    if isinstance(accept_values, str):
        return [accept_values]
    return list(accept_values or ())


def write_error(accept_values: AcceptValues, code: int, err: BaseException) -> Response:
    """Render an error as JSON or plain text, as the client accepts."""
    values = _accept_list(accept_values)
    if values and values[0]:
        chosen = negotiate_content_type(values, ["application/json", "text/plain"])
        if chosen == "application/json":
            base = err if isinstance(err, BaseError) else cover_all_error(err)
            try:
                body = base.to_json().encode()
            except (TypeError, ValueError) as exc:
                text = f"Error encoding error response: {exc}\n\nOriginal error: {err}"
                return Response(500, {"Content-Type": _TEXT}, text.encode())
            return Response(code, {"Content-Type": _JSON}, body)
        if chosen == "text/plain":
            text = err.help if isinstance(err, BaseError) else str(err)
            return Response(code, {"Content-Type": _TEXT}, text.encode())
    return Response(code, {"Content-Type": _TEXT}, str(err).encode())


def _encode(obj: Any) -> Any:
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        return json.loads(to_json())
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def json_response(result: Any) -> Response:
    """A 200 response with the result encoded as JSON."""
    try:
        body = json.dumps(result, default=_encode)
    except (TypeError, ValueError) as exc:
        return error_response(None, exc)
    return Response(200, {"Content-Type": _JSON}, body.encode())


def error_response(accept_values: AcceptValues, err: BaseException) -> Response:
    """Choose a status code from the root cause of an error and render it."""
    root = err
    while root.__cause__ is not None:
        root = root.__cause__
    if isinstance(root, Missing):
        code, out = 404, root
    elif isinstance(root, UserConfigProblem):
        code, out = 422, root
    elif isinstance(root, ServerException):
        code, out = 500, root
    else:
        code, out = 500, cover_all_error(err)
    return write_error(accept_values, code, out)


_SCHEME_SWAP = {"ws": "http", "wss": "https", "http": "ws", "https": "wss"}


def infer_endpoints(endpoint: str) -> tuple[str, str]:
    """Return the (HTTP, websocket) pair of endpoints for either kind."""
    try:
        parts = urlsplit(endpoint)
    except ValueError as exc:
        raise ValueError(f"parsing endpoint {endpoint}") from exc
    other = _SCHEME_SWAP.get(parts.scheme)
    if other is None:
        raise ValueError(f"unsupported scheme {parts.scheme}")
    given = urlunsplit(parts)
    swapped = urlunsplit(parts._replace(scheme=other))
    if parts.scheme in ("ws", "wss"):
        return swapped, given
    return given, swapped