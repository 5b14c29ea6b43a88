"""
loom command line.

    loom run app.py            serve one app
    loom once app.py           headless: print what the user submits as JSON
    loom serve [app.py ...]    multi-app service
    loom list                  apps loaded in a running service
    loom version
"""

from __future__ import annotations

import json
import platform
import urllib.error
import urllib.request
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from loom_ui import __version__
from loom_ui.core.config import LoomConfig
from loom_ui.core.errors import LoomError
from loom_ui.core.logging import setup_logging
from loom_ui.runtime.app import App
from loom_ui.runtime.registry import load_app_from_file

app = typer.Typer(
    help="loom-ui: server-rendered reactive UIs from plain Python functions",
    no_args_is_help=True,
)

console = Console()
# Headless results go to stdout; everything else goes to stderr.
err_console = Console(stderr=True)


def _config(host: str | None, port: int | None) -> LoomConfig:
    try:
        config = LoomConfig.from_env()
    except LoomError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if host:
        config.host = host
    if port:
        config.port = port
    return config


def _load(file: Path) -> App:
    try:
        return load_app_from_file(file)
    except LoomError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def run(
    file: Annotated[Path, typer.Argument(help="Python file defining an app")],
    host: Annotated[str | None, typer.Option("--host", "-h", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Bind port")] = None,
    no_browser: Annotated[bool, typer.Option("--no-browser", help="Do not open a browser")] = False,
) -> None:
    """Serve one app."""
    from loom_ui.runtime.server import run_app

    config = _config(host, port)
    loom_app = _load(file)
    err_console.print(f"[bold]{loom_app.title}[/bold] at http://{config.host}:{config.port}/")
    run_app(loom_app, open_browser=not no_browser, config=config)


@app.command()
def once(
    file: Annotated[Path, typer.Argument(help="Python file defining an app")],
    timeout: Annotated[
        float | None, typer.Option("--timeout", "-t", help="Seconds to wait for a submission")
    ] = None,
    output_file: Annotated[
        Path | None, typer.Option("--output-file", "-o", help="Also write the JSON result here")
    ] = None,
    host: Annotated[str | None, typer.Option("--host", "-h", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Bind port")] = None,
    no_browser: Annotated[bool, typer.Option("--no-browser", help="Do not open a browser")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only print the JSON result")] = False,
) -> None:
    """Serve an app until the user submits, then print the submitted values as JSON."""
    from loom_ui.runtime.agentic import run_once

    config = _config(host, port)
    setup_logging("WARNING" if quiet else config.log_level, config.log_dir)
    loom_app = _load(file)
    if not quiet:
        err_console.print(f"Waiting for [bold]{loom_app.title}[/bold] at http://{config.host}:{config.port}/")

    result = run_once(loom_app, timeout=timeout, open_browser=not no_browser, config=config)
    payload = json.dumps(result, default=str)
    if output_file is not None:
        output_file.write_text(payload + "\n", encoding="utf-8")
    typer.echo(payload)


@app.command()
def serve(
    files: Annotated[list[Path] | None, typer.Argument(help="App files to preload")] = None,
    host: Annotated[str | None, typer.Option("--host", "-h", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Bind port")] = None,
) -> None:
    """Start the multi-app service."""
    from loom_ui.runtime.server import run_service

    config = _config(host, port)
    try:
        run_service(files or [], config=config)
    except LoomError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command(name="list")
def list_apps(
    host: Annotated[str | None, typer.Option("--host", "-h", help="Service address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Service port")] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List apps loaded in a running service."""
    config = _config(host, port)
    url = f"http://{config.host}:{config.port}/api/apps"
    try:
        with urllib.request.urlopen(url, timeout=5) as resp:
            data = json.loads(resp.read())
    except (urllib.error.URLError, OSError) as e:
        err_console.print(f"[red]Service not reachable at {url}: {e}[/red]")
        raise typer.Exit(1)

    apps = data.get("apps", [])
    if output_json:
        console.print_json(json.dumps(apps))
        return
    if not apps:
        console.print("No apps loaded")
        return

    table = Table(title="Loaded apps")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Title")
    table.add_column("Idle (s)", justify="right")
    for entry in apps:
        table.add_row(entry["id"], entry["name"], entry["title"], str(entry["idle_seconds"]))
    console.print(table)


@app.command()
def version() -> None:
    """Show version and environment information."""
    typer.echo(f"loom-ui version {__version__}")
    typer.echo(f"  Python:   {platform.python_implementation()} {platform.python_version()}")
    typer.echo(f"  Platform: {platform.system()} {platform.release()}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
