"""reqcli errors - one exception per failure kind, each with its exit code."""

import click


class ReqError(click.ClickException):
    """Base error. Click's standalone mode prints it and exits with exit_code."""

    kind = "error"
    exit_code = 2

    def show(self, file=None) -> None:
        click.echo(f"ERROR: {self.format_message()}", file=file, err=True)


class InputError(ReqError):
    """Malformed pair, invalid method, conflicting key path, bad URL."""

    kind = "input"
    exit_code = 2


class FileError(ReqError):
    """Local file could not be read or written."""

    kind = "io"
    exit_code = 3


class TransportError(ReqError):
    """The HTTP engine failed before a response arrived."""

    kind = "transport"
    exit_code = 4
