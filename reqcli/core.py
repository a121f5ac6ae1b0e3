"""reqcli core - config loading, key/value trees, headers, request building."""

import base64
import dataclasses
import json
import math
import mimetypes
import os
import re
from pathlib import Path
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit

import yaml
from dotenv import dotenv_values

from reqcli.errors import FileError, InputError

GLOBAL_DIR = Path.home() / ".reqcli"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

CWD_CONFIG_CANDIDATES = [
    ".reqcli.yaml",
    ".reqcli.yml",
    "reqcli.yaml",
    "reqcli.yml",
]

DEFAULT_TIMEOUT = 30
DEFAULT_MAX_REDIRECTS = 10

HTTP_METHODS = (
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "PATCH",
    "HEAD",
    "OPTIONS",
    "TRACE",
    "CONNECT",
)

PAIR_SEPARATORS = ("=", ":")
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"
OCTET_STREAM = "application/octet-stream"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


# ── Config ───────────────────────────────────────────────────────────────


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates, else default."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit --config flag (hard — no fallthrough if missing)
      2. .reqcli.yaml (variants) in CWD
      3. ~/.reqcli/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load YAML config file. Returns empty defaults if not found.

    Stores '_config_dir' in the returned dict so the env file can be
    resolved relative to the config file.
    """
    if config_path is None:
        return {"defaults": {}, "_config_dir": None}
    path = Path(config_path)
    if not path.exists():
        return {"defaults": {}, "_config_dir": None}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InputError(f"Invalid config file {path}: {e}") from e
    except OSError as e:
        raise FileError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise InputError(f"Invalid config file {path}: expected a mapping")
    return {
        "defaults": data.get("defaults") or {},
        "_config_dir": path.resolve().parent,
    }


def load_env(env_file: str | None, base_dir: str | Path | None = ".") -> dict[str, str]:
    """Load .env file and merge with os.environ.

    .env values take precedence over os.environ.
    """
    env = dict(os.environ)
    if env_file:
        dotenv_path = Path(base_dir or ".") / env_file
        if dotenv_path.exists():
            dotenv_vars = dotenv_values(str(dotenv_path))
            env.update({k: v for k, v in dotenv_vars.items() if v is not None})
    return env


def resolve_value(value: Any, env: dict[str, str]) -> Any:
    """Resolve $VAR and ${VAR} references in a string value.

    Unknown variables are left as written.
    """
    if value is None or not isinstance(value, str):
        return value

    def _replace(m: re.Match) -> str:
        var_name = m.group(1) or m.group(2)
        return env.get(var_name, m.group(0))

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", _replace, value)


def default_headers(defaults: dict, env: dict[str, str]) -> list[tuple[str, str]]:
    """Config 'headers' section as an ordered list, env references resolved."""
    headers = defaults.get("headers") or {}
    if not isinstance(headers, dict):
        raise InputError("Config 'headers' must be a mapping of name to value")
    return [(str(k), str(resolve_value(v, env))) for k, v in headers.items()]


# ── Key/value pairs ──────────────────────────────────────────────────────


def split_pair(pair: str, what: str = "pair") -> tuple[str, str]:
    """Split at the first '=' or ':', whichever comes first.

    >>> split_pair("a:b=c")
    ('a', 'b=c')
    """
    positions = [i for i in (pair.find(sep) for sep in PAIR_SEPARATORS) if i != -1]
    if not positions:
        raise InputError(
            f"Malformed {what} '{pair}': expected key=value or key:value",
        )
    idx = min(positions)
    return pair[:idx], pair[idx + 1 :]


def parse_key_path(key: str) -> list[str]:
    """Split a dotted key into path segments. Empty segments are rejected."""
    segments = key.split(".")
    if any(not s for s in segments):
        raise InputError(f"Malformed key path '{key}': empty path segment")
    return segments


def _reject_constant(name: str) -> Any:
    raise ValueError(f"not a JSON literal: {name}")


def parse_value(raw: str) -> Any:
    """Infer a scalar from a raw value.

    JSON scalars (true/false/null, numbers, quoted strings) are decoded;
    anything else, including JSON objects and arrays, stays a string.
    """
    try:
        value = json.loads(raw, parse_constant=_reject_constant)
    except ValueError:
        return raw
    if isinstance(value, dict | list):
        return raw
    if isinstance(value, float) and not math.isfinite(value):
        return raw
    return value


def build_tree(pairs: tuple[str, ...] | list[str]) -> dict:
    """Fold key=value pairs with dotted keys into a nested dict.

    "credential.username=a" and "credential.password=b" become
    {"credential": {"username": "a", "password": "b"}}. The last pair
    wins when two pairs address the same key.
    """
    tree: dict[str, Any] = {}
    for pair in pairs:
        key, raw = split_pair(pair)
        segments = parse_key_path(key)
        current = tree
        for depth, segment in enumerate(segments[:-1]):
            child = current.setdefault(segment, {})
            if not isinstance(child, dict):
                bound = ".".join(segments[: depth + 1])
                raise InputError(
                    f"Conflicting key path '{key}': '{bound}' is already set "
                    f"to {json.dumps(child)}",
                )
            current = child
        current[segments[-1]] = parse_value(raw)
    return tree


def encode_form(tree: dict) -> str:
    """URL-encode a flat tree. Non-string scalars keep their JSON spelling."""
    fields: list[tuple[str, str]] = []
    for key, value in tree.items():
        if isinstance(value, dict | list):
            raise InputError(
                f"Form field '{key}' is nested; form bodies only take flat keys",
            )
        fields.append((key, value if isinstance(value, str) else json.dumps(value)))
    return urlencode(fields)


# ── Headers ──────────────────────────────────────────────────────────────


def assemble_headers(
    headers: tuple[str, ...] | list[str] = (),
    bearer: str | None = None,
    token: str | None = None,
    user: str | None = None,
    cookies: tuple[str, ...] | list[str] = (),
    json_body: bool = False,
    form_body: bool = False,
    defaults: list[tuple[str, str]] | None = None,
) -> list[tuple[str, str]]:
    """Merge every header source, in order, without deduplicating.

    Order: config defaults, -H flags, bearer, token, basic auth, cookies,
    then the content negotiation headers for JSON and form bodies.
    """
    result: list[tuple[str, str]] = list(defaults or [])

    for h in headers:
        name, value = split_pair(h, what="header")
        result.append((name.strip(), value.strip()))

    if bearer is not None:
        result.append(("Authorization", f"Bearer {bearer}"))

    if token is not None:
        result.append(("Authorization", f"Token {token}"))

    if user is not None:
        credentials = base64.b64encode(user.encode()).decode()
        result.append(("Authorization", f"Basic {credentials}"))

    if cookies:
        result.append(("Cookie", "; ".join(cookies)))

    if json_body and not any(name.lower() == "accept" for name, _ in result):
        result.append(("Accept", JSON_CONTENT_TYPE))

    if form_body:
        result.append(("Content-Type", FORM_CONTENT_TYPE))
        result.append(("Accept", "*/*"))

    for name, value in result:
        _check_header(name, value)
    return result


def _check_header(name: str, value: str) -> None:
    """HTTP/1.1 carries header names as ASCII and values as Latin-1."""
    try:
        name.encode("ascii")
        value.encode("latin-1")
    except UnicodeEncodeError as e:
        raise InputError(
            f"Header '{name}' cannot be sent: {e.object[e.start:e.end]!r} is not "
            f"representable in an HTTP header",
        ) from e


# ── Request descriptor ───────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class Body:
    """Request body. kind is one of: empty, bytes, text, json."""

    kind: str = "empty"
    content: Any = None

    def is_empty(self) -> bool:
        return self.kind == "empty"


EMPTY_BODY = Body()


@dataclasses.dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to send one request. Never mutated; use replace()."""

    method: str
    url: str
    params: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    body: Body = EMPTY_BODY

    @property
    def full_url(self) -> str:
        if not self.params:
            return self.url
        parts = urlsplit(self.url)
        query = urlencode(self.params)
        if parts.query:
            query = f"{parts.query}&{query}"
        return urlunsplit(parts._replace(query=query))

    def header(self, name: str) -> str | None:
        """First value of a header, case-insensitive."""
        lower = name.lower()
        for k, v in self.headers:
            if k.lower() == lower:
                return v
        return None

    def replace(self, **changes: Any) -> "RequestDescriptor":
        return dataclasses.replace(self, **changes)


def normalize_url(url: str) -> str:
    """Make a URL absolute. ':5000/x' -> 'http://localhost:5000/x'."""
    if _SCHEME_RE.match(url):
        return url
    if url.startswith(":"):
        url = "localhost" + url
    return "http://" + url


def resolve_method(method: str | None, has_body: bool = False) -> str:
    """Explicit method (validated), else POST with a body, else GET."""
    if method:
        upper = method.upper()
        if upper not in HTTP_METHODS:
            raise InputError(
                f"Invalid method '{method}'. Must be one of: {', '.join(HTTP_METHODS)}",
            )
        return upper
    return "POST" if has_body else "GET"


def read_file_body(path: str) -> tuple[bytes, str]:
    """Read a request body from disk. Returns (content, guessed mime type)."""
    try:
        content = Path(path).read_bytes()
    except OSError as e:
        raise FileError(f"Cannot read file '{path}': {e.strerror or e}") from e
    mime = mimetypes.guess_type(path)[0] or OCTET_STREAM
    return content, mime


def build_request(
    url: str,
    params: tuple[str, ...] | list[str] = (),
    json_pairs: tuple[str, ...] | list[str] | None = None,
    form_pairs: tuple[str, ...] | list[str] | None = None,
    method: str | None = None,
    headers: tuple[str, ...] | list[str] = (),
    cookies: tuple[str, ...] | list[str] = (),
    bearer: str | None = None,
    token: str | None = None,
    user: str | None = None,
    file: str | None = None,
    defaults: list[tuple[str, str]] | None = None,
) -> RequestDescriptor:
    """Build the request descriptor from parsed command-line values.

    json_pairs / form_pairs are None when the flag was not given. When
    several body sources are given, file beats form beats json.
    """
    has_json = json_pairs is not None
    has_form = form_pairs is not None

    query = tuple(split_pair(p, what="query parameter") for p in params)

    body = EMPTY_BODY
    if has_json:
        body = Body("json", build_tree(json_pairs))
    if has_form:
        body = Body("text", encode_form(build_tree(form_pairs)))

    file_headers: list[tuple[str, str]] = []
    if file:
        content, mime = read_file_body(file)
        file_headers = [("Content-Length", str(len(content))), ("Content-Type", mime)]
        body = Body("bytes", content)

    assembled = assemble_headers(
        headers=headers,
        bearer=bearer,
        token=token,
        user=user,
        cookies=cookies,
        json_body=has_json,
        form_body=has_form,
        defaults=defaults,
    )

    return RequestDescriptor(
        method=resolve_method(method, has_body=has_json or has_form),
        url=normalize_url(url),
        params=query,
        headers=tuple(file_headers + assembled),
        body=body,
    )
