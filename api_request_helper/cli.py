"""CLI application and commands for arh."""

from __future__ import annotations

import json
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Annotated, Any
from urllib.parse import urlparse

import typer
from rich.console import Console
from rich.logging import RichHandler

from api_request_helper.config import (
    CONFIG_FILE,
    HelperConfig,
    load_api_key,
    load_config,
    load_token_secret,
    save_config,
    verify_api_token,
)
from api_request_helper.content_type import ContentType
from api_request_helper.errors import DecodeError, ServiceException, TransportError
from api_request_helper.helper import ApiRequestHelper

# Key masking threshold
MIN_KEY_LENGTH_FOR_MASKING = 8

# Exit codes
EXIT_SERVICE_ERROR = 1
EXIT_TRANSPORT_ERROR = 2

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        try:
            print(f"arh {version('api-request-helper')}")
        except PackageNotFoundError:
            print("arh (not installed)")
        raise typer.Exit


app = typer.Typer(
    name="arh",
    help="Call enveloped JSON APIs with signed request headers.",
    no_args_is_help=True,
)


@app.callback()
def _main(
    _version: Annotated[
        bool,
        typer.Option("--version", "-V", callback=_version_callback, is_eager=True, help="Show version and exit."),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log requests and responses.")] = False,
    log_level: Annotated[str, typer.Option(help="Log level.")] = "warning",
) -> None:
    """Call enveloped JSON APIs with signed request headers."""
    levels = logging.getLevelNamesMapping()
    if log_level.upper() not in levels:
        valid = ", ".join(name.lower() for name in levels if name != "NOTSET")
        err_console.print(f"[red]Error: Unknown log level '{log_level}'. Valid: {valid}[/red]")
        raise typer.Exit(1)
    logging.basicConfig(
        level=logging.DEBUG if verbose else log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


# =============================================================================
# Request Commands
# =============================================================================

TokenOption = Annotated[str | None, typer.Option("--token", "-t", help="Authorization header value")]
TimeoutOption = Annotated[float | None, typer.Option("--timeout", help="Timeout in seconds")]
EnvelopeOption = Annotated[bool, typer.Option("--envelope", "-e", help="Print the whole envelope, not just result")]
ContentTypeOption = Annotated[str, typer.Option("--content-type", "-c", help="Content type name or MIME string")]
DataOption = Annotated[str | None, typer.Option("--data", "-d", help="JSON object body")]
FileOption = Annotated[
    list[str] | None, typer.Option("--file", "-f", help="Attach a file as FIELD=PATH (implies form-data)")
]


def _parse_data(data: str | None) -> dict[str, Any] | None:
    if data is None:
        return None
    try:
        parsed = json.loads(data)
    except ValueError as e:
        err_console.print(f"[red]Error: --data is not valid JSON: {e}[/red]")
        raise typer.Exit(1) from None
    if not isinstance(parsed, dict):
        err_console.print("[red]Error: --data must be a JSON object[/red]")
        raise typer.Exit(1)
    return parsed


def _parse_files(files: list[str] | None) -> dict[str, str] | None:
    if not files:
        return None
    file_data: dict[str, str] = {}
    for item in files:
        if "=" not in item:
            err_console.print(f"[red]Error: Use format FIELD=PATH (got '{item}')[/red]")
            raise typer.Exit(1)
        field_name, path = item.split("=", 1)
        file_data[field_name.strip()] = path.strip()
    return file_data


def _parse_content_type(value: str, has_files: bool) -> ContentType:
    try:
        content_type = ContentType.parse(value)
    except ValueError:
        valid = ", ".join(m.name for m in ContentType)
        err_console.print(f"[red]Error: Invalid content type '{value}'. Valid: {valid}[/red]")
        raise typer.Exit(1) from None
    if has_files:
        return ContentType.form_data
    return content_type


def _print_status(code: int | float) -> None:
    style = "green" if 200 <= code < 300 else "yellow" if 300 <= code < 400 else "red"
    err_console.print(f"[{style}]status {code}[/{style}]")


def _run(method: str, uri: str, **kwargs: Any) -> None:
    """Send one request through a fresh helper and print the result as JSON."""
    try:
        with ApiRequestHelper() as api:
            api.status_codes.subscribe(_print_status)
            try:
                result = getattr(api, method)(uri, **kwargs)
            finally:
                # status lines print on the delivery thread
                api.status_codes.drain()
    except ServiceException as e:
        err_console.print(f"[red]Error: {e.code}: {e.message}[/red]")
        if e.display_message_key:
            err_console.print(f"[dim]display message key: {e.display_message_key}[/dim]")
        raise typer.Exit(EXIT_SERVICE_ERROR) from None
    except (TransportError, DecodeError) as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(EXIT_TRANSPORT_ERROR) from None
    except FileNotFoundError as e:
        err_console.print(f"[red]Error: File not found: {e.filename}[/red]")
        raise typer.Exit(1) from None

    console.print_json(data=result)


@app.command()
def get(
    uri: Annotated[str, typer.Argument(help="Request URI")],
    token: TokenOption = None,
    envelope: EnvelopeOption = False,
    content_type: ContentTypeOption = "json",
    timeout: TimeoutOption = None,
) -> None:
    """Send a GET request."""
    _run(
        "get",
        uri,
        user_token=token,
        is_result=not envelope,
        content_type=_parse_content_type(content_type, has_files=False),
        timeout=timeout,
    )


def _body_command(method: str) -> Any:
    def command(
        uri: Annotated[str, typer.Argument(help="Request URI")],
        data: DataOption = None,
        file: FileOption = None,
        token: TokenOption = None,
        envelope: EnvelopeOption = False,
        content_type: ContentTypeOption = "json",
        timeout: TimeoutOption = None,
    ) -> None:
        file_data = _parse_files(file)
        _run(
            method,
            uri,
            data=_parse_data(data),
            file_data=file_data,
            user_token=token,
            is_result=not envelope,
            content_type=_parse_content_type(content_type, has_files=bool(file_data)),
            timeout=timeout,
        )

    command.__doc__ = f"Send a {method.upper()} request."
    return command


app.command("post")(_body_command("post"))
app.command("put")(_body_command("put"))
app.command("patch")(_body_command("patch"))


@app.command()
def delete(
    uri: Annotated[str, typer.Argument(help="Request URI")],
    data: DataOption = None,
    token: TokenOption = None,
    envelope: EnvelopeOption = False,
    timeout: TimeoutOption = None,
) -> None:
    """Send a DELETE request."""
    _run("delete", uri, data=_parse_data(data), user_token=token, is_result=not envelope, timeout=timeout)


@app.command()
def download(
    uri: Annotated[str, typer.Argument(help="URI of the file to download")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Destination file")] = None,
    token: TokenOption = None,
    timeout: TimeoutOption = None,
) -> None:
    """Download raw bytes to a file."""
    dest = output or Path(Path(urlparse(uri).path).name or "download.bin")
    try:
        with ApiRequestHelper() as api:
            content = api.download_bytes(uri, user_token=token, timeout=timeout)
    except ServiceException as e:
        err_console.print(f"[red]Error: {e.code}: {e.message}[/red]")
        raise typer.Exit(EXIT_SERVICE_ERROR) from None
    except TransportError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(EXIT_TRANSPORT_ERROR) from None

    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(content)
    console.print(f"[green]Saved {len(content)} bytes to {dest}[/green]")


# =============================================================================
# Token and Config Commands
# =============================================================================


@app.command()
def token() -> None:
    """Print a freshly signed request token."""
    cfg = HelperConfig.from_env()
    if not cfg.token_secret:
        err_console.print("[yellow]Warning: no token secret configured, signing with an empty key[/yellow]")
    print(cfg.create_token())


@app.command()
def verify(
    value: Annotated[str, typer.Argument(help="Token to verify")],
    max_age: Annotated[float | None, typer.Option("--max-age", help="Reject tokens older than this (seconds)")] = None,
) -> None:
    """Check a request token against the configured secret."""
    secret = load_token_secret() or ""
    if verify_api_token(value, secret, max_age=max_age):
        console.print("[green]valid[/green]")
        return
    console.print("[red]invalid[/red]")
    raise typer.Exit(1)


def _mask(key: str) -> str:
    return key[:4] + "..." + key[-4:] if len(key) > MIN_KEY_LENGTH_FOR_MASKING else "***"


@app.command()
def config(
    show: Annotated[bool, typer.Option("--show", help="Show current config")] = False,
    set_key: Annotated[str | None, typer.Option("--set-key", help="Set API key")] = None,
    set_secret: Annotated[str | None, typer.Option("--set-secret", help="Set token signing secret")] = None,
    set_base_url: Annotated[str | None, typer.Option("--set-base-url", help="Set base URL")] = None,
) -> None:
    """Manage configuration."""
    updates = {"key": set_key, "token_secret": set_secret, "base_url": set_base_url}
    updates = {k: v for k, v in updates.items() if v is not None}
    if updates:
        cfg = load_config()
        if "api" not in cfg:
            cfg["api"] = {}
        cfg["api"].update(updates)
        save_config(cfg)
        console.print(f"[green]Saved {', '.join(sorted(updates))} to {CONFIG_FILE}[/green]")
        if not show:
            return

    console.print(f"[bold]Config file:[/bold] {CONFIG_FILE}")
    console.print(f"[bold]Config exists:[/bold] {CONFIG_FILE.exists()}")

    key = load_api_key()
    if key:
        console.print(f"[bold]API key:[/bold] {_mask(key)}")
    else:
        console.print("[bold]API key:[/bold] [yellow]Not set[/yellow]")

    secret = load_token_secret()
    if secret:
        console.print(f"[bold]Token secret:[/bold] {_mask(secret)}")
    else:
        console.print("[bold]Token secret:[/bold] [yellow]Not set[/yellow]")

    cfg_values = HelperConfig.from_env()
    console.print(f"[bold]Base URL:[/bold] {cfg_values.base_url or '[dim](none)[/dim]'}")
    console.print(f"[bold]Timeout:[/bold] {cfg_values.timeout:g}s")

    console.print()
    console.print("[dim]Set API key with:      arh config --set-key YOUR_KEY[/dim]")
    console.print("[dim]Set token secret with: arh config --set-secret YOUR_SECRET[/dim]")


def main() -> int:
    """Main entry point."""
    app()
    return 0


if __name__ == "__main__":
    sys.exit(main())
