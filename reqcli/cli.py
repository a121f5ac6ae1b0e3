"""reqcli CLI - terse command-line HTTP client."""

import sys

import click

GREEDY_OPTIONS = ("--json", "--form")

TOOL_HELP = """\
req — HTTP requests from terse command-line arguments.

\b
USAGE
─────
  req URL [KEY=VALUE ...] [options]

  URL is permissive: :5000, localhost:3000 and https://example.com all
  work. A leading ':' means localhost; a missing scheme means http://.
  KEY=VALUE (or KEY:VALUE) pairs after the URL become URL-encoded query
  parameters. Repeated keys are all sent.

\b
BODIES
──────
  --json and --form are greedy: every following token that does not
  start with '-' is a key/value pair. Query parameters go before them.
  Dots in keys build nested objects:

  \b
    --json user.name=ann user.age=30
    → {"user": {"name": "ann", "age": 30}}

  Values that are JSON scalars (true, false, null, numbers, "quoted")
  keep their type; everything else is sent as a string.
  --file PATH sends the file's bytes, with Content-Type guessed from
  the extension. A body implies POST unless -m is given.

\b
HEADERS
───────
  Sent in this order, duplicates included:
  \b
  1. headers from the config file
  2. -H NAME=VALUE / -H NAME:VALUE, in order
  3. --bearer, --token, -u (each adds an Authorization header)
  4. -c cookies, joined into one Cookie header
  5. Accept: application/json for --json (unless Accept was given),
     Content-Type and Accept for --form

\b
OUTPUT
──────
  JSON responses are pretty-printed unless -r/--raw is given.
  A non-2xx status prints the body and exits 1; --ignore-status exits 0.
  -O/--remote-name saves the body under the URL's last path segment.
  -v/--verbose traces the request and response headers on stderr.

\b
CONFIG FILE (.reqcli.yaml)
──────────────────────────
  Resolution order:
    1. --config flag (explicit path)
    2. .reqcli.yaml / .reqcli.yml / reqcli.yaml / reqcli.yml in CWD
    3. ~/.reqcli/config.yaml (global)

  \b
  defaults:
    timeout: 30                     # seconds
    max_redirects: 10
    env_file: .env                  # relative to the config file
    headers:
      X-Api-Key: ${API_KEY}         # env var resolved at runtime

\b
EXIT CODES
──────────
  0 success   1 non-2xx status   2 bad input   3 file error
  4 transport error
"""

EXAMPLES = """\
\b
EXAMPLES
────────
  # Plain GET request
  req jsonip.com

  # GET request with a URL encoded string
  req jsonip.com apiKey='foo bar'

  # Sends a POST request with a JSON body.
  req localhost:5000/signup --json email=test@example.com password=test

  # Sends a JSON POST request with URL params.
  # URL params before --json, JSON body after --json.
  req localhost:5000/search cache=0 --json query='search query'
"""


def expand_greedy_args(args: list[str], ctx: click.Context | None = None) -> list[str]:
    """Rewrite greedy options into repeated click options.

    ['--json', 'a=1', 'b=2', '-v'] -> ['--json', 'a=1', '--json', 'b=2', '-v']
    """
    expanded: list[str] = []
    greedy: str | None = None
    taken = 0

    def _close() -> None:
        if greedy and not taken:
            raise click.UsageError(f"{greedy} expects at least one KEY=VALUE pair.", ctx=ctx)

    for i, arg in enumerate(args):
        if arg == "--":
            _close()
            greedy = None
            expanded.extend(args[i:])
            return expanded
        if greedy and not arg.startswith("-"):
            expanded.extend([greedy, arg])
            taken += 1
            continue
        _close()
        greedy = None
        if arg in GREEDY_OPTIONS:
            greedy, taken = arg, 0
            continue
        expanded.append(arg)

    _close()
    return expanded


class GreedyCommand(click.Command):
    """Command whose --json/--form options take every following pair."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        return super().parse_args(ctx, expand_greedy_args(args, ctx))


@click.command(
    cls=GreedyCommand,
    help=TOOL_HELP,
    epilog=EXAMPLES,
    context_settings={"max_content_width": 88},
)
@click.version_option(package_name="reqcli", prog_name="req")
@click.argument("url", required=False)
@click.argument("params", nargs=-1)
@click.option(
    "--json",
    "json_pairs",
    multiple=True,
    metavar="KEY=VALUE...",
    help="Sets a JSON body. Greedy: every following KEY=VALUE is a JSON pair. "
    "Dots in keys nest objects.",
)
@click.option(
    "--form",
    "form_pairs",
    multiple=True,
    metavar="KEY=VALUE...",
    help="Sets a URL-encoded form body. Greedy, like --json.",
)
@click.option(
    "-m",
    "--method",
    default=None,
    help="Request method. Default: POST with a --json/--form body, else GET.",
)
@click.option(
    "-H",
    "--header",
    "headers",
    multiple=True,
    help="Header as 'Name=Value' or 'Name:Value'. Repeatable.",
)
@click.option("-c", "--cookie", "cookies", multiple=True, help="Cookie. Repeatable.")
@click.option("--bearer", default=None, help="Sets header `Authorization: Bearer <value>`.")
@click.option("--token", default=None, help="Sets header `Authorization: Token <value>`.")
@click.option(
    "-u",
    "--user",
    default=None,
    help="Basic auth as 'user:pass'. Sets `Authorization: Basic <base64>`.",
)
@click.option(
    "--file",
    "file_path",
    default=None,
    help="Send the contents of a file as the body.",
)
@click.option(
    "-O",
    "--remote-name",
    is_flag=True,
    default=False,
    help="Save the response to a file named like the URL's last path segment.",
)
@click.option(
    "-F",
    "--no-follow",
    is_flag=True,
    default=False,
    help="Do not follow redirects.",
)
@click.option("-r", "--raw", is_flag=True, default=False, help="Do not pretty-print JSON.")
@click.option(
    "--ignore-status",
    is_flag=True,
    default=False,
    help="Exit 0 even when the response status is not 2xx.",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Trace the request and response on stderr.",
)
@click.option(
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .reqcli.yaml in CWD, then ~/.reqcli/config.yaml.",
)
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    default=None,
    help="Request timeout in seconds. Default: 30.",
)
def main(
    url,
    params,
    json_pairs,
    form_pairs,
    method,
    headers,
    cookies,
    bearer,
    token,
    user,
    file_path,
    remote_name,
    no_follow,
    raw,
    ignore_status,
    verbose,
    config_file,
    timeout,
):
    """Send one HTTP request and print the response."""
    from reqcli.core import (
        DEFAULT_MAX_REDIRECTS,
        DEFAULT_TIMEOUT,
        build_request,
        default_headers,
        load_config,
        load_env,
        resolve_config_path,
    )
    from reqcli.executor import send_request
    from reqcli.middleware import build_chain, follow_redirects, trace_request
    from reqcli.render import render_response

    if not url:
        ctx = click.get_current_context()
        click.echo(ctx.get_help())
        ctx.exit(1)

    # --- Load config ---
    config_path = resolve_config_path(config_file)
    config = load_config(config_path)
    defaults = config.get("defaults", {})

    env = load_env(defaults.get("env_file"), config.get("_config_dir"))

    # --- Build request ---
    request = build_request(
        url,
        params=params,
        json_pairs=json_pairs or None,
        form_pairs=form_pairs or None,
        method=method,
        headers=headers,
        cookies=cookies,
        bearer=bearer,
        token=token,
        user=user,
        file=file_path,
        defaults=default_headers(defaults, env),
    )

    # --- Execute through the middleware chain ---
    middlewares = []
    if not no_follow:
        max_redirects = _config_int(defaults, "max_redirects", DEFAULT_MAX_REDIRECTS)
        middlewares.append(follow_redirects(max_redirects))
    if verbose:
        middlewares.append(trace_request)

    if timeout is None:
        timeout = _config_int(defaults, "timeout", DEFAULT_TIMEOUT, minimum=1)

    def transport(req):
        return send_request(req, timeout=timeout)

    response = build_chain(middlewares, transport)(request)

    exit_code = render_response(
        response,
        raw=raw,
        ignore_status=ignore_status,
        remote_name=remote_name,
        url=request.url,
    )
    if exit_code:
        sys.exit(exit_code)


# ── Helpers ──────────────────────────────────────────────────────────────


def _config_int(defaults, key, default, minimum=0):
    """Integer setting from the config defaults, at least minimum."""
    from reqcli.errors import InputError

    value = defaults.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InputError(
            f"Config '{key}' must be an integer >= {minimum}, got {value!r}",
        )
    return value
