"""
adapters.cli.main - CLI adapter for the Spot coding agent.

All wiring goes through ServiceFactory; this module only parses options,
renders output, and owns the asyncio entry points.

Commands
--------
  (none)     Interactive chat session in the current project
  chat       Same as running without a command
  ask        One-shot question (tools enabled, session updated)
  sessions   List archived sessions for the current project
  models     List models installed on the local Ollama server

Usage
-----
  spot
  spot ask "what does src/main.py do?"
  spot --verbose chat
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from spot import __version__
from spot.adapters.cli.repl import Repl, format_ms, format_size
from spot.agent.executor import ChatCallbacks
from spot.domain.exceptions import DomainError, ModelGatewayError, PersistenceError
from spot.factory import ServiceFactory
from spot.infrastructure.config import Settings
from spot.infrastructure.logging import configure_logging

console = Console()
app = typer.Typer(
    help="Spot - local AI agent for coding and Linux system tasks",
    add_completion=False,
)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _warn_save_error(exc: Exception) -> None:
    console.print(f"[yellow]Warning: autosave failed: {escape(str(exc))}[/yellow]", highlight=False)


async def _make_factory(model: Optional[str] = None) -> ServiceFactory:
    """Create and initialise a ServiceFactory for the working directory."""
    factory = ServiceFactory(Settings.from_env(), on_save_error=_warn_save_error)
    await factory.initialize()
    if model:
        factory.session.set_model(model)
    return factory


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"spot v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def chat(
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model to use for this session."),
) -> None:
    """Start an interactive chat session."""
    async def _run() -> None:
        factory = await _make_factory(model)
        await Repl(factory, console=console).run()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")


@app.command()
def ask(
    query: str = typer.Argument(..., help="Your question or task."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model to use."),
) -> None:
    """Ask a one-shot question; tool calls run as in chat."""
    async def _run() -> None:
        factory = await _make_factory(model)
        conversation = factory.create_conversation_service()
        callbacks = ChatCallbacks(
            on_token=lambda token: console.print(token, end="", markup=False, highlight=False, soft_wrap=True),
            on_tool_call=lambda name, args: console.print(f"\n  [blue]⚡ {name}[/blue]", highlight=False),
        )
        try:
            await conversation.send(query, callbacks)
            console.print()
        except ModelGatewayError as exc:
            console.print(f"\n[bold red]Model backend error:[/bold red] {escape(str(exc))}", highlight=False)
            raise typer.Exit(code=1)
        except DomainError as exc:
            console.print(f"\n[bold red]Error:[/bold red] {escape(str(exc))}", highlight=False)
            raise typer.Exit(code=1)
        finally:
            try:
                await factory.shutdown()
            except PersistenceError as exc:
                _warn_save_error(exc)

    asyncio.run(_run())


@app.command()
def sessions() -> None:
    """List archived sessions for the current project."""
    async def _run() -> None:
        factory = await _make_factory()
        archived = await factory.session.list_archived()
        if not archived:
            console.print("[dim]No archived sessions[/dim]")
            return
        table = Table(box=box.SIMPLE, title=f"Archived sessions - {factory.session.project_root}")
        table.add_column("ID", style="yellow")
        table.add_column("Model")
        table.add_column("Messages", justify="right")
        table.add_column("Updated", style="dim")
        for entry in archived:
            table.add_row(entry.id[:8], entry.model, str(entry.message_count), format_ms(entry.updated))
        console.print(table)

    asyncio.run(_run())


@app.command()
def models() -> None:
    """List models installed on the local Ollama server."""
    async def _run() -> None:
        settings = Settings.from_env()
        factory = ServiceFactory(settings)
        with console.status("[bold cyan]Contacting Ollama…", spinner="dots"):
            try:
                available = await factory.gateway.list_models()
            except ModelGatewayError as exc:
                console.print(f"[bold red]{escape(str(exc))}[/bold red]", highlight=False)
                raise typer.Exit(code=1)
        table = Table(box=box.SIMPLE)
        table.add_column("Model")
        table.add_column("Size", justify="right", style="dim")
        for info in available:
            marker = " [green](primary)[/green]" if info.name == settings.primary_model else ""
            table.add_row(f"{info.name}{marker}", format_size(info.size))
        console.print(table)

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------

@app.callback(invoke_without_command=True)
def _callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Log at DEBUG level."),
    version: bool = typer.Option(
        False, "--version", "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Spot - local AI agent for coding and Linux system tasks"""
    level = "DEBUG" if verbose else Settings.from_env().log_level
    configure_logging(level)
    if ctx.invoked_subcommand is None:
        chat(model=None)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
