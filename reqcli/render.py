"""reqcli render - print or save the final response, decide the exit code."""

import json
from pathlib import Path
from urllib.parse import urlsplit

import click

from reqcli.core import JSON_CONTENT_TYPE
from reqcli.errors import FileError, InputError
from reqcli.executor import HttpResponse


def is_json(response: HttpResponse) -> bool:
    return response.content_type.startswith(JSON_CONTENT_TYPE)


def format_body(response: HttpResponse, raw: bool = False) -> str:
    """Response body as text, pretty-printed when it is JSON and not raw.

    A body labelled JSON that does not parse is returned verbatim.
    """
    text = response.text
    if raw or not is_json(response):
        return text
    try:
        return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
    except ValueError:
        return text


def remote_filename(url: str) -> str:
    """Last segment of the URL path, as curl -O names its output."""
    name = urlsplit(url).path.rsplit("/", 1)[-1]
    if name in ("", ".", ".."):
        raise InputError(f"Cannot derive a file name from URL '{url}': path has no final segment")
    return name


def save_response(
    response: HttpResponse,
    directory: Path | None = None,
    url: str | None = None,
) -> Path:
    """Write the raw response bytes to directory (default CWD).

    The file is named after url, the URL that was requested, and falls back
    to the response URL when none is given.
    """
    path = (directory or Path.cwd()) / remote_filename(url or response.url)
    try:
        path.write_bytes(response.content)
    except OSError as e:
        raise FileError(f"Cannot write file '{path}': {e.strerror or e}") from e
    return path


def render_response(
    response: HttpResponse,
    raw: bool = False,
    ignore_status: bool = False,
    remote_name: bool = False,
    url: str | None = None,
) -> int:
    """Output the response and return the process exit code.

    A non-2xx status (unless ignored) prints the body and returns 1 before
    any save-to-file handling.
    """
    if not ignore_status and not response.ok:
        click.echo(format_body(response, raw=raw))
        return 1

    if remote_name:
        path = save_response(response, url=url)
        click.echo(f"Saved: {path}", err=True)
        return 0

    click.echo(format_body(response, raw=raw))
    return 0
