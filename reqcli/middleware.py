"""reqcli middleware - ordered interceptors around the transport call.

A middleware is a callable ``(request, call_next) -> HttpResponse``. It may
forward the request unchanged, forward and then observe the result, or
return a response of its own without forwarding. build_chain() folds a list
of them into one handler whose innermost call is the transport:

    handler = build_chain([follow_redirects(), trace_request], send_request)
    response = handler(request)

The first middleware in the list is the outermost.
"""

import json
from collections.abc import Callable
from urllib.parse import urljoin, urlsplit

import click

from reqcli.core import DEFAULT_MAX_REDIRECTS, EMPTY_BODY, RequestDescriptor
from reqcli.executor import HttpResponse

Handler = Callable[[RequestDescriptor], HttpResponse]
Middleware = Callable[[RequestDescriptor, Handler], HttpResponse]

TRACE_SEPARATOR = "=========="

# Headers describing a body that a method-changing redirect drops.
_BODY_HEADERS = ("content-type", "content-length")


def build_chain(middlewares: list[Middleware], transport: Handler) -> Handler:
    """Wrap transport in middlewares, first one outermost."""
    handler = transport
    for middleware in reversed(middlewares):
        handler = _link(middleware, handler)
    return handler


def _link(middleware: Middleware, call_next: Handler) -> Handler:
    def handler(request: RequestDescriptor) -> HttpResponse:
        return middleware(request, call_next)

    return handler


# ── Tracing ──────────────────────────────────────────────────────────────


def _echo(message: str = "") -> None:
    click.echo(message, err=True)


def describe_body(request: RequestDescriptor) -> str | None:
    """Summary of the request body for the trace, None when empty."""
    body = request.body
    if body.kind == "bytes":
        return f"<{len(body.content)} bytes>"
    if body.kind == "text":
        return body.content
    if body.kind == "json":
        return json.dumps(body.content, indent=2)
    return None


def trace_request(request: RequestDescriptor, call_next: Handler) -> HttpResponse:
    """Print the request and its outcome to stderr. Purely observational."""
    _echo(f"{request.method} {request.full_url}")
    if request.headers:
        _echo("Headers:")
    for name, value in request.headers:
        _echo(f"{name}: {value}")
    summary = describe_body(request)
    if summary is not None:
        _echo("Body:")
        _echo(summary)
    _echo(TRACE_SEPARATOR)

    try:
        response = call_next(request)
    except Exception as e:
        _echo(f"{type(e).__name__}: {e}")
        raise

    _echo(response.status_line)
    if response.headers:
        _echo("Headers:")
    for name, value in response.headers:
        _echo(f"{name}: {value}")
    return response


# ── Redirects ────────────────────────────────────────────────────────────


def redirect_request(request: RequestDescriptor, response: HttpResponse) -> RequestDescriptor:
    """Build the follow-up request for a redirect response.

    303, and 301/302 answering a POST, become a bodyless GET; 307 and 308
    repeat the method and body. Authorization is dropped when the host
    changes.
    """
    location = urljoin(request.full_url, response.header("Location") or "")
    method = request.method
    body = request.body
    headers = list(request.headers)

    status = response.status_code
    if (status == 303 and method != "HEAD") or (status in (301, 302) and method == "POST"):
        method = "GET"
        body = EMPTY_BODY
        headers = [(k, v) for k, v in headers if k.lower() not in _BODY_HEADERS]

    if urlsplit(location).netloc != urlsplit(request.full_url).netloc:
        headers = [(k, v) for k, v in headers if k.lower() != "authorization"]

    return request.replace(
        method=method,
        url=location,
        params=(),
        headers=tuple(headers),
        body=body,
    )


def follow_redirects(max_redirects: int = DEFAULT_MAX_REDIRECTS) -> Middleware:
    """Middleware re-issuing requests through the rest of the chain on 3xx.

    After max_redirects hops the last redirect response is returned as is.
    """

    def middleware(request: RequestDescriptor, call_next: Handler) -> HttpResponse:
        response = call_next(request)
        hops = 0
        while response.is_redirect:
            if hops >= max_redirects:
                return response
            request = redirect_request(request, response)
            response = call_next(request)
            hops += 1
        return response

    return middleware
