"""
adapters.cli.repl - Interactive chat loop with slash commands.

Streams the model's answer token by token, shows tool activity inline,
and routes /commands to the session. Input is read on a daemon thread so
the event loop (and the debounced autosave) keeps running while the user
types, and Ctrl-C never waits for a blocked read.

Commands
--------
  /quit, /exit            Save and exit
  /clear                  Clear the conversation
  /model [name]           List models or switch
  /session [new|list|load <id>]
  /project [reload]
  /todo [add|start|done|rm|clear]
  /tools, /help
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from rich import box
from rich.console import Console
from rich.markup import escape as _escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from spot.agent.executor import ChatCallbacks
from spot.application.services.conversation import ConversationService
from spot.domain.exceptions import DomainError, ModelGatewayError, PersistenceError
from spot.domain.models import TaskStatus
from spot.factory import ServiceFactory

logger = logging.getLogger(__name__)


async def read_input(ask: Callable[[], str]) -> str:
    """Run a blocking prompt on a daemon thread and await its answer.

    Unlike the default executor, an abandoned read does not keep
    asyncio.run() from returning.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def settle(value: Optional[str], error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def reader() -> None:
        try:
            value, error = ask(), None
        except BaseException as exc:
            value, error = None, exc
        try:
            loop.call_soon_threadsafe(settle, value, error)
        except RuntimeError:
            logger.debug("Input arrived after the event loop closed")

    threading.Thread(target=reader, name="spot-input", daemon=True).start()
    return await future

EXIT_COMMANDS = ("/quit", "/exit")

HELP_ROWS = (
    ("/quit, /exit", "Exit Spot (saves session)"),
    ("/clear", "Clear conversation"),
    ("/model [name]", "List or switch models"),
    ("/session", "Show session info"),
    ("/session new", "Archive current, start fresh"),
    ("/session list", "List archived sessions"),
    ("/session load <id>", "Load an archived session"),
    ("/project", "Show detected project info"),
    ("/project reload", "Re-detect project context"),
    ("/todo", "List current tasks"),
    ("/todo add <task>", "Add a new task"),
    ("/todo start <id>", "Mark task as in progress"),
    ("/todo done <id>", "Mark task as completed"),
    ("/todo rm <id>", "Remove a task"),
    ("/todo clear", "Remove completed tasks"),
    ("/tools", "List available tools"),
)

_TASK_ICONS = {
    TaskStatus.PENDING: "[dim]○[/dim]",
    TaskStatus.IN_PROGRESS: "[yellow]→[/yellow]",
    TaskStatus.COMPLETED: "[green]✓[/green]",
}


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_tool_args(args: dict[str, Any]) -> str:
    """One-line preview of tool arguments."""
    if not args:
        return ""
    if len(args) == 1:
        value = next(iter(args.values()))
        text = value if isinstance(value, str) else json.dumps(value)
        return text[:50] + "..." if len(text) > 50 else text
    text = json.dumps(args)
    return text[:60] + "..." if len(text) > 60 else text


def preview_result(result: str, max_lines: int = 3) -> tuple[str, int]:
    """First *max_lines* lines of a tool result and the number left out."""
    lines = result.split("\n")
    return "\n".join(lines[:max_lines]), max(0, len(lines) - max_lines)


def format_size(size: int) -> str:
    if size >= 1e9:
        return f"{size / 1e9:.1f} GB"
    if size >= 1e6:
        return f"{size / 1e6:.0f} MB"
    return f"{size} B"


def format_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


class Repl:
    """Interactive session bound to one ServiceFactory."""

    def __init__(self, factory: ServiceFactory, console: Optional[Console] = None):
        self._factory = factory
        self._console = console or Console()
        self._conversation: Optional[ConversationService] = None

    @property
    def console(self) -> Console:
        return self._console

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        self._conversation = self._factory.create_conversation_service()
        self._print_header()
        try:
            while True:
                try:
                    line = await self._read_line()
                except (KeyboardInterrupt, EOFError):
                    self._console.print()
                    break

                line = line.strip()
                if not line:
                    continue
                if line.startswith("/"):
                    if not await self.handle_command(line):
                        break
                    continue
                await self._chat(line)
        finally:
            await self._final_save()

    async def _read_line(self) -> str:
        return await read_input(
            lambda: Prompt.ask("\n[bold green]>[/bold green]", console=self._console),
        )

    async def _chat(self, user_input: str) -> None:
        console = self._console
        console.print()
        console.print("[bold cyan]Spot:[/bold cyan] ", end="")

        callbacks = ChatCallbacks(
            on_token=self._on_token,
            on_tool_call=self._on_tool_call,
            on_tool_result=self._on_tool_result,
        )
        try:
            result = await self._conversation.send(user_input, callbacks)
        except ModelGatewayError as exc:
            console.print()
            console.print(f"[bold red]Model backend error:[/bold red] {_escape(str(exc))}", highlight=False)
            return
        except DomainError as exc:
            console.print()
            console.print(f"[bold red]Error:[/bold red] {_escape(str(exc))}", highlight=False)
            return

        console.print()
        if result.compacted:
            console.print("[dim]  (context compressed)[/dim]")

    def _on_token(self, token: str) -> None:
        self._console.print(token, end="", markup=False, highlight=False, soft_wrap=True)

    def _on_tool_call(self, name: str, args: dict[str, Any]) -> None:
        self._console.print()
        self._console.print(
            f"  [blue]⚡ {name}[/blue] [dim]{_escape(format_tool_args(args))}[/dim]",
            highlight=False,
        )

    def _on_tool_result(self, name: str, result: str) -> None:
        preview, more = preview_result(result)
        suffix = f" [dim](+{more} lines)[/dim]" if more else ""
        self._console.print(f"  [bright_black]{_escape(preview)}[/bright_black]{suffix}", highlight=False)
        self._console.print()
        self._console.print("[bold cyan]Spot:[/bold cyan] ", end="")

    async def _final_save(self) -> None:
        try:
            await self._factory.shutdown()
        except PersistenceError as exc:
            self._console.print(f"[bold red]Could not save session:[/bold red] {_escape(str(exc))}", highlight=False)
            return
        self._console.print("[dim]Session saved. Goodbye![/dim]")

    def _print_header(self) -> None:
        session = self._factory.session
        project = self._factory.project
        lines = [
            "[bold green]Spot[/bold green] - Local AI Agent",
            f"[dim]Model: {session.model}[/dim]",
        ]
        if project is not None:
            loaded = " (SPOT.md loaded)" if project.instructions else ""
            lines.append(f"[dim]Project: {project.name}{loaded}[/dim]")
        if self._factory.resumed:
            lines.append(f"[dim]Resumed session ({len(session.messages)} messages)[/dim]")
        self._console.print(Panel("\n".join(lines), border_style="cyan", expand=False))
        self._console.print("[dim]  Commands: /quit /clear /model /session /project /todo /help[/dim]")

    # ------------------------------------------------------------------
    # Slash commands
    # ------------------------------------------------------------------

    async def handle_command(self, line: str) -> bool:
        """Run a slash command. Returns False when the REPL should exit."""
        parts = line.split()
        command, args = parts[0].lower(), parts[1:]
        session = self._factory.session

        if command in EXIT_COMMANDS:
            return False

        if command == "/clear":
            session.clear()
            self._console.print("[green]✓ Conversation cleared[/green]")
        elif command == "/model":
            await self._model_command(args)
        elif command == "/session":
            await self._session_command(args)
        elif command == "/project":
            self._project_command(args)
        elif command == "/todo":
            self._todo_command(args)
        elif command == "/tools":
            self._console.print("[cyan]Available tools:[/cyan]")
            for tool in self._factory.tools.all():
                self._console.print(f"  [yellow]{tool.name}[/yellow]: {tool.description}", highlight=False)
        elif command == "/help":
            self._print_help()
        else:
            self._console.print("[yellow]Unknown command. Type /help for available commands.[/yellow]")
        return True

    async def _model_command(self, args: list[str]) -> None:
        session = self._factory.session
        if args:
            session.set_model(args[0])
            self._console.print(f"[green]✓ Switched to: {args[0]}[/green]", highlight=False)
            return

        try:
            models = await self._factory.gateway.list_models()
        except ModelGatewayError as exc:
            self._console.print(f"[bold red]{_escape(str(exc))}[/bold red]", highlight=False)
            return
        if not models:
            self._console.print("[dim]No models installed on the backend.[/dim]")
            return

        table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
        table.add_column("#", style="bold")
        table.add_column("Model")
        table.add_column("Size", style="dim")
        for index, model in enumerate(models, start=1):
            current = model.name == session.model
            name = f"[bold]{model.name}[/bold] (current)" if current else model.name
            table.add_row(str(index), name, format_size(model.size))
        self._console.print(Panel(table, title="Select model", border_style="blue"))

        choice = await read_input(
            lambda: Prompt.ask("Model number (empty to cancel)", default="", console=self._console),
        )
        choice = choice.strip()
        if not choice:
            self._console.print("[dim]Cancelled[/dim]")
            return
        if not choice.isdigit() or not 1 <= int(choice) <= len(models):
            self._console.print(f"[yellow]Invalid choice: {choice}[/yellow]", highlight=False)
            return
        selected = models[int(choice) - 1].name
        session.set_model(selected)
        self._console.print(f"[green]✓ Switched to: {selected}[/green]", highlight=False)

    async def _session_command(self, args: list[str]) -> None:
        session = self._factory.session
        sub = args[0].lower() if args else ""
        try:
            if sub == "new":
                location = await session.archive()
                self._console.print("[green]✓ Session archived[/green]")
                self._console.print(f"[dim]  Saved to: {location}[/dim]", highlight=False)
                self._console.print("[green]✓ Started new session[/green]")
            elif sub == "list":
                archived = await session.list_archived()
                if not archived:
                    self._console.print("[dim]No archived sessions[/dim]")
                    return
                self._console.print("[cyan]Archived sessions:[/cyan]")
                for entry in archived:
                    self._console.print(
                        f"  [yellow]{entry.id[:8]}[/yellow] - {entry.message_count} messages"
                        f" - {format_ms(entry.updated)}",
                        highlight=False,
                    )
            elif sub == "load":
                if len(args) < 2:
                    self._console.print("[yellow]Usage: /session load <id>[/yellow]")
                    return
                if session.messages:
                    await session.archive()
                if await session.load_archived(args[1]):
                    self._console.print("[green]✓ Session loaded[/green]")
                else:
                    self._console.print(f"[red]Session not found: {args[1]}[/red]", highlight=False)
            else:
                info = session.info()
                self._console.print("[cyan]Current session:[/cyan]")
                self._console.print(f"  ID: [yellow]{info.id}[/yellow]")
                self._console.print(f"  Model: {session.model}", highlight=False)
                self._console.print(f"  Messages: {info.message_count}")
                self._console.print(f"  Summarized: {'yes' if info.has_summary else 'no'}")
                self._console.print(f"  Tasks: {info.task_count}")
                self._console.print(f"  Created: {format_ms(info.created)}")
                self._console.print(f"  Updated: {format_ms(info.updated)}")
        except PersistenceError as exc:
            self._console.print(f"[bold red]Session storage error:[/bold red] {_escape(str(exc))}", highlight=False)

    def _project_command(self, args: list[str]) -> None:
        if args and args[0].lower() == "reload":
            self._factory.reload_project()
            self._console.print("[green]✓ Project context reloaded[/green]")
        project = self._factory.project
        if project is None:
            self._console.print("[dim]No project detected[/dim]")
            return

        table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Name", project.name)
        table.add_row("Root", str(project.root))
        if project.is_git_repo:
            branch = f" ({project.git_branch})" if project.git_branch else ""
            table.add_row("Git", f"[green]yes[/green]{branch}")
        if project.tech_stack:
            table.add_row("Stack", ", ".join(project.tech_stack))
        if project.instructions:
            count = len(project.instructions.split("\n"))
            table.add_row("SPOT.md", f"[green]loaded[/green] ({count} lines)")
        else:
            table.add_row("SPOT.md", "[dim]not found[/dim]")
        self._console.print(Panel(table, title="Project", border_style="blue"))

    def _todo_command(self, args: list[str]) -> None:
        session = self._factory.session
        sub = args[0].lower() if args else ""

        if sub == "add":
            content = " ".join(args[1:])
            if not content:
                self._console.print("[yellow]Usage: /todo add <task description>[/yellow]")
                return
            task = session.add_task(content)
            self._console.print(f"[green]✓ Added:[/green] {task.content} [dim]({task.id})[/dim]", highlight=False)
            return

        transitions = {
            "start": (TaskStatus.IN_PROGRESS, "Started"),
            "done": (TaskStatus.COMPLETED, "Completed"),
            "complete": (TaskStatus.COMPLETED, "Completed"),
        }
        if sub in transitions or sub in ("rm", "remove"):
            if len(args) < 2:
                self._console.print(f"[yellow]Usage: /todo {sub} <id>[/yellow]")
                return
            task_id = args[1]
            if sub in transitions:
                status, label = transitions[sub]
                found = session.update_task(task_id, status)
            else:
                label = "Removed"
                found = session.remove_task(task_id)
            if found:
                self._console.print(f"[green]✓ {label}:[/green] {task_id}", highlight=False)
            else:
                self._console.print(f"[red]Task not found: {task_id}[/red]", highlight=False)
            return

        if sub == "clear":
            count = session.clear_completed_tasks()
            self._console.print(f"[green]✓ Cleared {count} completed task(s)[/green]")
            return

        if not session.tasks:
            self._console.print("[dim]No tasks[/dim]")
            return
        self._console.print("[cyan]Tasks:[/cyan]")
        for task in session.tasks:
            style = "dim" if task.status == TaskStatus.COMPLETED else "default"
            self._console.print(
                f"  {_TASK_ICONS[task.status]} [{style}]{_escape(task.content)}[/{style}] [dim]({task.id})[/dim]",
                highlight=False,
            )

    def _print_help(self) -> None:
        table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
        table.add_column("Command", style="bold yellow")
        table.add_column("Description")
        for command, description in HELP_ROWS:
            table.add_row(_escape(command), description)
        self._console.print(Panel(table, title="Commands", border_style="cyan"))
