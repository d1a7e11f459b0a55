"""Action queue CLI commands.

This module provides CLI commands for inspecting and steering the queue
database that schedulers persist to:
- list: Display queued programs in table or JSON format
- show: Display a program's step tree
- add: Queue a program from a JSON file
- cancel: Cancel a queued program
- signal: Signal a push event

A running scheduler picks up added programs, cancellations and signaled
events from the database on its next cycle.

Per project patterns:
- typer.Typer() subcommand group
- asyncio.run() to execute async database operations in sync CLI commands
- Rich Table/Tree for formatted output, JSON for automation
"""

import asyncio
import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from actionqueue_core.actions.effects import ActionError, DoneEffect
from actionqueue_core.actions.types import (
    ActionProgram,
    ActionProgramState,
    ActionQueueItem,
    dump_queue,
)
from actionqueue_core.config import Settings
from actionqueue_core.db.queue import ActionQueueDB
from actionqueue_core.display import ActionDisplayInfo, get_action_display_info
from actionqueue_core.scheduler.runner import now_ms

queue_app = typer.Typer(help="Manage queued action programs")
console = Console()

DB_OPTION_HELP = "Queue database path (default: ~/.actionqueue/queue.db)"


def _get_db_path(db_path: Path | None) -> Path:
    """Get database path, ensuring parent directory exists."""
    path = db_path if db_path is not None else Settings().db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _status_text(info: ActionDisplayInfo) -> str:
    if isinstance(info.status, ActionError):
        return f"[red]failed: {escape(str(info.status))}[/red]"
    style = {"pending": "yellow", "active": "blue", "done": "green"}[info.status]
    return f"[{style}]{info.status}[/{style}]"


def _program_status(item: ActionQueueItem) -> str:
    effect = item.state.effect
    if isinstance(effect, DoneEffect) and effect.cancelled:
        return "[dim]cancelled[/dim]"
    return _status_text(get_action_display_info(item.program, item.state))


def _add_steps(tree: Tree, info: ActionDisplayInfo) -> None:
    for step in info.steps:
        branch = tree.add(f"{step.title} - {step.message} ({_status_text(step)})")
        _add_steps(branch, step)


@queue_app.command("list")
def list_programs(
    show_all: bool = typer.Option(False, "--all", "-a", help="Include finished programs"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    db_path: Path = typer.Option(
        None, "--db", envvar="ACTIONQUEUE_DB_PATH", help=DB_OPTION_HELP
    ),
) -> None:
    """List queued programs."""

    async def _list() -> None:
        async with ActionQueueDB(_get_db_path(db_path)) as db:
            items = await db.list_items(include_done=show_all)

        if json_output:
            queue = {item.program.program_id: item for item in items}
            print(json.dumps(dump_queue(queue), indent=2))
            return

        if not items:
            console.print("[dim]No programs queued.[/dim]")
            return

        table = Table(title="Action Queue")
        table.add_column("Program", style="cyan")
        table.add_column("Type", style="green")
        table.add_column("Client", style="dim")
        table.add_column("Status")
        table.add_column("Effect", style="dim")

        for item in items:
            effect = item.state.effect
            table.add_row(
                item.program.program_id,
                item.program.action_op.type,
                item.state.client_id,
                _program_status(item),
                effect.type if effect is not None else "-",
            )

        console.print(table)

    asyncio.run(_list())


@queue_app.command("show")
def show_program(
    program_id: str = typer.Argument(..., help="Program ID to show"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    db_path: Path = typer.Option(
        None, "--db", envvar="ACTIONQUEUE_DB_PATH", help=DB_OPTION_HELP
    ),
) -> None:
    """Show a program and the progress of its steps."""

    async def _show() -> None:
        async with ActionQueueDB(_get_db_path(db_path)) as db:
            item = await db.get_item(program_id)

        if item is None:
            console.print(f"[red]Program {program_id} not found.[/red]")
            raise typer.Exit(1)

        if json_output:
            print(item.model_dump_json(indent=2))
            return

        info = get_action_display_info(item.program, item.state)
        state = item.state
        console.print(f"\n[bold]Program {program_id}[/bold]")
        console.print(f"  Status: {_program_status(item)}")
        console.print(f"  Client: {state.client_id}")
        console.print(f"  Mock mode: {'Yes' if item.program.mock_mode else 'No'}")
        console.print(f"  Effective: {'Yes' if state.effective else 'No'}")
        console.print(f"  Last execution: {state.last_execution_time}")
        console.print(f"  Next execution: {state.next_execution_time}")
        console.print()

        tree = Tree(f"[bold]{info.title}[/bold] - {info.message} ({_status_text(info)})")
        _add_steps(tree, info)
        console.print(tree)

    asyncio.run(_show())


@queue_app.command("add")
def add_program(
    program_file: Path = typer.Argument(..., help="JSON file with the program", exists=True),
    client_id: str = typer.Option("cli", "--client", "-c", help="Owning client id"),
    db_path: Path = typer.Option(
        None, "--db", envvar="ACTIONQUEUE_DB_PATH", help=DB_OPTION_HELP
    ),
) -> None:
    """Queue a program from a JSON file."""

    async def _add() -> None:
        try:
            program = ActionProgram.model_validate_json(program_file.read_text())
        except ValidationError as e:
            console.print(f"[red]Invalid program: {escape(str(e))}[/red]")
            raise typer.Exit(1)

        async with ActionQueueDB(_get_db_path(db_path)) as db:
            if await db.get_item(program.program_id) is not None:
                console.print(f"[red]Program {program.program_id} is already queued.[/red]")
                raise typer.Exit(1)

            state = ActionProgramState(
                client_id=client_id,
                program_id=program.program_id,
                next_execution_time=now_ms(),
            )
            await db.save_item(ActionQueueItem(program=program, state=state))

        console.print(
            f"[green]Queued program {program.program_id}[/green] "
            f"({program.action_op.type}{', mock mode' if program.mock_mode else ''})"
        )

    asyncio.run(_add())


@queue_app.command("cancel")
def cancel_program(
    program_id: str = typer.Argument(..., help="Program ID to cancel"),
    db_path: Path = typer.Option(
        None, "--db", envvar="ACTIONQUEUE_DB_PATH", help=DB_OPTION_HELP
    ),
) -> None:
    """Cancel a queued program."""

    async def _cancel() -> None:
        async with ActionQueueDB(_get_db_path(db_path)) as db:
            item = await db.get_item(program_id)
            if item is None:
                console.print(f"[red]Program {program_id} not found.[/red]")
                raise typer.Exit(1)

            if item.state.is_done:
                console.print(f"[yellow]Program {program_id} has already finished.[/yellow]")
                return

            item.state.effect = DoneEffect(cancelled=True)
            item.state.effective = True
            await db.save_item(item)

        console.print(f"[green]Program {program_id} cancelled.[/green]")

    asyncio.run(_cancel())


@queue_app.command("signal")
def signal_event(
    event_id: str = typer.Argument(..., help="Push event ID to signal"),
    db_path: Path = typer.Option(
        None, "--db", envvar="ACTIONQUEUE_DB_PATH", help=DB_OPTION_HELP
    ),
) -> None:
    """Signal a push event."""

    async def _signal() -> None:
        async with ActionQueueDB(_get_db_path(db_path)) as db:
            is_new = await db.signal_event(event_id)

        if is_new:
            console.print(f"[green]Signaled event {event_id}[/green]")
        else:
            console.print(f"[dim]Event {event_id} was already signaled[/dim]")

    asyncio.run(_signal())
