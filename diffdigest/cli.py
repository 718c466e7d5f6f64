"""Diff Digest CLI — Typer + Rich terminal interface.

Commands: list, generate, serve, config.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from diffdigest import __version__
from diffdigest.config_loader import load_config
from diffdigest.keys import has_key, load_keys_env
from diffdigest.providers.base import NotesProvider
from diffdigest.schemas.config import AppConfig, SectionDetection
from diffdigest.schemas.streaming import NotesSnapshot
from diffdigest.sources.git import GitHistorySource

# Load API keys from ~/.diffdigest/keys.env and .env on startup
load_keys_env()

console = Console()

app = typer.Typer(
    name="diffdigest",
    help="Streamed developer and marketing release notes for merged changes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"diffdigest {__version__}")
        raise typer.Exit()


# ── App Callback ────────────────────────────────────────────────


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    config_file: Path = typer.Option(
        None, "--config", "-c",
        help="TOML config file (defaults to the packaged defaults.toml)",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show debug logging",
    ),
) -> None:
    """Diff Digest — dual-tone release notes, streamed as they are written."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    ctx.obj = config_file


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(ctx: typer.Context) -> AppConfig:
    """Load app config, exit on error."""
    try:
        return load_config(ctx.obj)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _make_source(config: AppConfig, repo: Path | None) -> GitHistorySource:
    source_cfg = config.source
    return GitHistorySource(
        repo or source_cfg.repo_path,
        ref=source_cfg.ref,
        merges_only=source_cfg.merges_only,
        web_url=source_cfg.web_url,
        per_page=source_cfg.per_page,
    )


def _make_provider(config: AppConfig, *, server: str | None, model: str | None) -> NotesProvider:
    """Pick the HTTP provider when a server is given, else call the model directly."""
    if server:
        from diffdigest.providers.http_provider import HttpNotesProvider

        return HttpNotesProvider(server, timeout=float(config.generator.timeout))

    from diffdigest.providers.litellm_provider import LiteLLMNotesProvider

    gen_cfg = config.generator
    if model:
        gen_cfg = gen_cfg.model_copy(update={"model": model, "display_name": model})
    if not has_key(gen_cfg.api_key_env):
        console.print(
            f"[yellow]Warning:[/yellow] {gen_cfg.api_key_env} is not set; "
            "the request will likely be rejected."
        )
    return LiteLLMNotesProvider(gen_cfg)


# ── diffdigest list ──────────────────────────────────────────────


@app.command("list")
def list_changes(
    ctx: typer.Context,
    repo: Path = typer.Option(None, "--repo", "-r", help="Repository path"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number"),
    per_page: int = typer.Option(None, "--per-page", "-n", min=1, help="Items per page"),
) -> None:
    """List merged changes, newest first."""
    from diffdigest.cli_display import render_diff_page
    from diffdigest.errors import SourceError

    config = _load_config(ctx)
    source = _make_source(config, repo)

    try:
        result = source.fetch_page(page, per_page)
    except SourceError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if not result.diffs:
        console.print("[dim]No merged changes found.[/dim]")
        return

    console.print(render_diff_page(result))
    if result.next_page is not None:
        console.print(f"[dim]More: diffdigest list --page {result.next_page}[/dim]")


# ── diffdigest generate ──────────────────────────────────────────


@app.command()
def generate(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Change id (PR number or short hash)"),
    repo: Path = typer.Option(None, "--repo", "-r", help="Repository path"),
    server: str = typer.Option(
        None, "--server", "-s",
        help="Stream from a running diffdigest server instead of the model",
    ),
    model: str = typer.Option(None, "--model", "-m", help="LiteLLM model override"),
    section_detection: SectionDetection = typer.Option(
        None, "--section-detection",
        help="How streamed text is assigned to notes: structural or marker",
    ),
) -> None:
    """Generate release notes for one change, streamed live."""
    from diffdigest.cli_display import NotesDisplay, render_notes
    from diffdigest.errors import SourceError
    from diffdigest.generator import NotesGenerator

    config = _load_config(ctx)
    source = _make_source(config, repo)

    try:
        item = source.find(item_id)
    except SourceError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    if item is None:
        console.print(f"[red]No change found with id:[/red] {item_id}")
        raise typer.Exit(1)

    provider = _make_provider(config, server=server, model=model)
    mode = section_detection or config.stream.section_detection

    async def _run() -> NotesSnapshot:
        async with provider:
            generator = NotesGenerator(provider, section_detection=mode)
            with NotesDisplay(console, item) as display:
                generator.publisher.add_listener(display.update)
                return await generator.generate(item)

    snapshot = asyncio.run(_run())

    console.print(
        Panel(
            f"[bold]#{item.id}[/bold]  {item.description}",
            subtitle=provider.display_name,
            border_style="blue",
        )
    )
    console.print(render_notes(snapshot))

    if snapshot.error is not None:
        raise typer.Exit(1)


# ── diffdigest serve ─────────────────────────────────────────────


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option(None, "--host", help="Interface to bind"),
    port: int = typer.Option(None, "--port", help="Port to listen on"),
    repo: Path = typer.Option(None, "--repo", "-r", help="Repository path"),
    model: str = typer.Option(None, "--model", "-m", help="LiteLLM model override"),
) -> None:
    """Run the notes HTTP server."""
    try:
        import uvicorn

        from diffdigest.server.app import create_app
    except ImportError:
        console.print(
            "[red]The server requires extra dependencies.[/red]\n"
            "Install with: [bold]pip install diffdigest[server][/bold]"
        )
        raise typer.Exit(1) from None

    config = _load_config(ctx)
    bind_host = host or config.server.host
    bind_port = port or config.server.port

    app_instance = create_app(
        _make_provider(config, server=None, model=model),
        _make_source(config, repo),
    )

    console.print(
        f"[bold green]Serving[/bold green] on http://{bind_host}:{bind_port}"
    )
    uvicorn.run(app_instance, host=bind_host, port=bind_port, log_level="warning")


# ── diffdigest config ────────────────────────────────────────────


@app.command("config")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    config = _load_config(ctx)

    table = Table(title="Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    gen = config.generator
    table.add_row("Model", f"{gen.display_name} ({gen.model})")
    key_status = "[green]set[/green]" if has_key(gen.api_key_env) else "[red]missing[/red]"
    table.add_row("API Key", f"{gen.api_key_env} {key_status}")
    if gen.api_base:
        table.add_row("API Base", gen.api_base)
    table.add_row("Timeout", f"{gen.timeout}s")
    table.add_row("Max Retries", str(gen.max_retries))
    table.add_row("JSON Mode", str(gen.json_mode))
    table.add_row("Repository", config.source.repo_path)
    table.add_row("Ref", config.source.ref)
    table.add_row("Merges Only", str(config.source.merges_only))
    table.add_row("Page Size", str(config.source.per_page))
    table.add_row("Web URL", config.source.web_url or "(none)")
    table.add_row("Section Detection", config.stream.section_detection.value)
    table.add_row("Server", f"{config.server.host}:{config.server.port}")

    console.print(table)
