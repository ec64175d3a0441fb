"""httpsify CLI — Typer application with serve, rewrite, lookup, and init commands."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from httpsify import __version__

app = typer.Typer(
    name="httpsify",
    help="Upgrade plaintext HTTP to HTTPS with HTTPS Everywhere rulesets.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)


def _configure_logging(level: str, *, verbose: bool = False, debug: bool = False) -> None:
    """Send log records to stderr through Rich."""
    if debug:
        level = "debug"
    elif verbose and level not in ("debug", "info"):
        level = "info"
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config: Optional[str], catalogue: Optional[str]):
    """Load config from the working directory, exit 2 on failure."""
    from httpsify.config.loader import ConfigError, load_config

    try:
        cfg = load_config(Path.cwd(), config)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    if catalogue:
        cfg.rules.catalogue = catalogue
    return cfg


def _build_rewriter(cfg):
    """Load the ruleset library, exit 2 on failure."""
    from httpsify.engine import build_rewriter
    from httpsify.rules.catalogue import CatalogueError

    try:
        return build_rewriter(cfg, Path.cwd())
    except CatalogueError as exc:
        console.print(f"[bold red]Ruleset error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


# ── serve ─────────────────────────────────────────────────────────────────────


@app.command()
def serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to httpsify.toml"),
    catalogue: Optional[str] = typer.Option(None, "--catalogue", help="Ruleset library XML file"),
    address: Optional[str] = typer.Option(None, "--address", "-a", help="Listen address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Listen port"),
    aggressive: bool = typer.Option(False, "--aggressive", help="Rewrite non-text bodies too"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Debug output"),
) -> None:
    """Run the forward proxy."""
    from httpsify.proxy.server import serve as run_proxy

    cfg = _load_config(config, catalogue)
    _configure_logging(cfg.logging.level, verbose=verbose, debug=debug)

    if address:
        cfg.proxy.address = address
    if port is not None:
        cfg.proxy.port = port
    if aggressive:
        cfg.proxy.aggressive = True

    # loading takes a moment, so do it once before accepting connections
    rewriter = _build_rewriter(cfg)
    console.print(
        f"[dim]Rulesets loaded: {len(rewriter.catalogue)}[/dim]"
    )
    try:
        run_proxy(rewriter, cfg.proxy)
    except OSError as exc:
        console.print(f"[bold red]Cannot listen on {cfg.proxy.address}:{cfg.proxy.port}:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


# ── rewrite ───────────────────────────────────────────────────────────────────


@app.command()
def rewrite(
    source: str = typer.Argument("-", help="File to rewrite, or - for stdin"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to httpsify.toml"),
    catalogue: Optional[str] = typer.Option(None, "--catalogue", help="Ruleset library XML file"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write result to file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Debug output"),
) -> None:
    """Upgrade the http URLs in a document."""
    cfg = _load_config(config, catalogue)
    _configure_logging(cfg.logging.level, verbose=verbose, debug=debug)
    rewriter = _build_rewriter(cfg)

    if source == "-":
        content = sys.stdin.read()
    else:
        try:
            content = Path(source).read_text(encoding="utf-8")
        except OSError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            raise typer.Exit(code=2) from exc

    result = rewriter.rewrite_page_content(content)

    if output:
        Path(output).write_text(result, encoding="utf-8")
        if verbose:
            console.print(f"[dim]Result written to {output}[/dim]")
    else:
        sys.stdout.write(result)


# ── lookup ────────────────────────────────────────────────────────────────────


@app.command()
def lookup(
    host: str = typer.Argument(..., help="Host name to look up"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Also rewrite this URL"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to httpsify.toml"),
    catalogue: Optional[str] = typer.Option(None, "--catalogue", help="Ruleset library XML file"),
    format: str = typer.Option("terminal", "--format", "-f", help="Output format: terminal | json"),
    debug: bool = typer.Option(False, "--debug", help="Debug output"),
) -> None:
    """Show the rulesets that cover HOST."""
    from httpsify.lookup import lookup as run_lookup
    from httpsify.output import json_report, terminal

    if format not in ("terminal", "json"):
        console.print(f"[bold red]Invalid format:[/bold red] {format}")
        raise typer.Exit(code=2)

    cfg = _load_config(config, catalogue)
    _configure_logging("warning", debug=debug)
    rewriter = _build_rewriter(cfg)

    result = run_lookup(rewriter, host, url)
    if format == "json":
        print(json_report.render(result))
    else:
        terminal.render(result, console=console)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing httpsify.toml"),
) -> None:
    """Generate a starter httpsify.toml in the current directory."""
    from httpsify.config.defaults import DEFAULT_TOML
    from httpsify.config.loader import CONFIG_FILENAME

    config_path = Path.cwd() / CONFIG_FILENAME

    if config_path.exists() and not force:
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {config_path}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {config_path}")


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"httpsify {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
) -> None:
    """httpsify — upgrade plaintext HTTP to HTTPS."""
