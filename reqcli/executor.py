"""reqcli executor - send one request descriptor over HTTP with requests."""

import json
import time
from typing import Any

import requests

from reqcli.core import DEFAULT_TIMEOUT, JSON_CONTENT_TYPE, RequestDescriptor
from reqcli.errors import TransportError

REDIRECT_STATUSES = (301, 302, 303, 307, 308)


class HttpResponse:
    """Response of a single HTTP exchange."""

    def __init__(
        self,
        status_code: int = 0,
        reason: str = "",
        headers: list[tuple[str, str]] | None = None,
        content: bytes = b"",
        url: str = "",
        encoding: str | None = None,
        elapsed_ms: float = 0,
    ):
        self.status_code = status_code
        self.reason = reason
        self.headers: list[tuple[str, str]] = list(headers or [])
        self.content = content
        self.url = url
        self.encoding = encoding
        self.elapsed_ms = elapsed_ms

    def header(self, name: str) -> str | None:
        """First value of a response header, case-insensitive."""
        lower = name.lower()
        for k, v in self.headers:
            if k.lower() == lower:
                return v
        return None

    @property
    def content_type(self) -> str:
        return self.header("Content-Type") or ""

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return self.status_code in REDIRECT_STATUSES and self.header("Location") is not None

    @property
    def status_line(self) -> str:
        return f"{self.status_code} {self.reason}".rstrip()


def wire_headers(headers: tuple[tuple[str, str], ...]) -> dict[str, str]:
    """Collapse the ordered header list into the mapping requests sends.

    Repeated names are combined into one comma-separated value ('; ' for
    Cookie); the first spelling of the name is kept.
    """
    merged: dict[str, str] = {}
    spelling: dict[str, str] = {}
    for name, value in headers:
        lower = name.lower()
        if lower not in spelling:
            spelling[lower] = name
            merged[name] = value
            continue
        key = spelling[lower]
        sep = "; " if lower == "cookie" else ", "
        merged[key] = f"{merged[key]}{sep}{value}"
    return merged


def encode_body(request: RequestDescriptor) -> tuple[bytes | None, str | None]:
    """Return (payload, implied content type) for the request body."""
    body = request.body
    if body.kind == "json":
        return json.dumps(body.content).encode("utf-8"), JSON_CONTENT_TYPE
    if body.kind == "text":
        return body.content.encode("utf-8"), None
    if body.kind == "bytes":
        return body.content, None
    return None, None


def send_request(
    request: RequestDescriptor,
    timeout: int = DEFAULT_TIMEOUT,
) -> HttpResponse:
    """Execute the request once, without following redirects.

    Transport failures raise TransportError; HTTP error statuses are
    returned like any other response.
    """
    headers = wire_headers(request.headers)
    data, implied_type = encode_body(request)
    if implied_type and request.header("Content-Type") is None:
        headers["Content-Type"] = implied_type

    kwargs: dict[str, Any] = {
        "method": request.method,
        "url": request.full_url,
        "headers": headers,
        "data": data,
        "timeout": timeout,
        "allow_redirects": False,
    }

    try:
        start = time.monotonic()
        resp = requests.request(**kwargs)
        elapsed_ms = (time.monotonic() - start) * 1000
    except requests.exceptions.Timeout as e:
        raise TransportError(f"Request timed out after {timeout}s") from e
    except requests.exceptions.ConnectionError as e:
        raise TransportError(f"Connection error: {e}") from e
    except requests.exceptions.RequestException as e:
        raise TransportError(f"Request failed: {e}") from e

    return HttpResponse(
        status_code=resp.status_code,
        reason=resp.reason or "",
        headers=list(resp.headers.items()),
        content=resp.content,
        url=resp.url or request.full_url,
        encoding=resp.encoding,
        elapsed_ms=elapsed_ms,
    )
