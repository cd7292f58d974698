"""Main CLI application using Typer."""
import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from ..chat import ChatController
from ..config import Settings
from ..conversation import PendingAttachment
from ..errors import PersistenceError
from ..logging_setup import configure_logging
from ..persistence import SessionPersistenceManager
from ..streaming import MessageUpdate
from .formatting import render_message
from .providers import get_controller, get_store

# Create Typer app
app = typer.Typer(
    name="consultstream",
    help="Streaming business-intelligence assistant with live charts, KPIs and frameworks",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

CHAT_HELP = "[dim]Commands: /new (new session), /attach PATH, /history, /quit[/dim]"


def _settings() -> Settings:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return settings


async def _stream_answer(
    controller: ChatController,
    text: str,
    thinking: bool,
) -> None:
    """Send a message and render the answer live as it streams."""
    with Live(console=console, refresh_per_second=12, transient=False) as live:
        def on_update(update: MessageUpdate) -> None:
            message = controller.store.get(update.message_id)
            if message is not None:
                live.update(render_message(message))

        message_id = await controller.send(text, thinking=thinking, on_update=on_update)

        # Follow-ups land after the last stream update
        if message_id is not None:
            message = controller.store.get(message_id)
            if message is not None:
                live.update(render_message(message))


def _print_sessions(sessions: list, limit: int) -> None:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Id", style="dim", width=14)
    table.add_column("Title", style="cyan")
    table.add_column("Messages", justify="right", width=8)
    table.add_column("Last Modified", width=19)

    for session in sessions[:limit]:
        table.add_row(
            session.id[:12],
            session.title,
            str(len(session.messages)),
            session.last_modified.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


async def _saved_sessions(controller: ChatController) -> list:
    """Saved sessions for the controller's user, newest first."""
    try:
        return await controller.persistence.list_sessions()
    except PersistenceError as e:
        console.print(f"[red]Error: {e}[/red]")
        return []


@app.command()
def chat(
    new: bool = typer.Option(
        False,
        "--new",
        "-n",
        help="Start a new session instead of resuming the latest one"
    ),
    thinking: bool = typer.Option(
        False,
        "--thinking",
        "-t",
        help="Give the model a reasoning budget before answering"
    ),
    attach: Path | None = typer.Option(
        None,
        "--attach",
        "-a",
        exists=True,
        dir_okay=False,
        help="File to send with the first message"
    ),
):
    """Start an interactive conversation."""
    async def _chat():
        settings = _settings()
        backend = get_store(settings)
        await backend.connect()
        controller = get_controller(settings, backend, console)

        try:
            if not new:
                restored = await controller.start()
                if restored is not None:
                    console.print(f"[dim]Resuming '{restored.title}' ({len(restored.messages)} messages)[/dim]")
                    for message in restored.messages:
                        console.print(render_message(message))

            if attach is not None:
                controller.attach(attach)
                console.print(f"[dim]Attached {attach.name}[/dim]")

            console.print(CHAT_HELP)

            while True:
                text = await asyncio.to_thread(console.input, "[bold cyan]You[/bold cyan] > ")
                command = text.strip()

                if command in ("/quit", "/exit"):
                    break
                if command == "/new":
                    await controller.new_session()
                    console.print("[green]Started a new session[/green]")
                    continue
                if command == "/history":
                    _print_sessions(await _saved_sessions(controller), limit=20)
                    continue
                if command.startswith("/attach"):
                    path = Path(command[len("/attach"):].strip())
                    if not path.is_file():
                        console.print(f"[red]No such file: {path}[/red]")
                        continue
                    attachment = controller.attach(PendingAttachment.from_path(path))
                    console.print(f"[dim]Attached {attachment.name} ({attachment.mime_type})[/dim]")
                    continue
                if not command:
                    continue

                await _stream_answer(controller, text, thinking)

        except (KeyboardInterrupt, EOFError):
            console.print()
        finally:
            await controller.close()
            await backend.disconnect()

    asyncio.run(_chat())


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question for the assistant"),
    new: bool = typer.Option(
        False,
        "--new",
        "-n",
        help="Ask in a new session instead of the latest one"
    ),
    thinking: bool = typer.Option(
        False,
        "--thinking",
        "-t",
        help="Give the model a reasoning budget before answering"
    ),
    attach: Path | None = typer.Option(
        None,
        "--attach",
        "-a",
        exists=True,
        dir_okay=False,
        help="File to send with the question"
    ),
):
    """Ask a single question and stream the answer."""
    async def _ask():
        settings = _settings()
        backend = get_store(settings)
        await backend.connect()
        controller = get_controller(settings, backend, console)

        try:
            if not new:
                await controller.start()
            if attach is not None:
                controller.attach(attach)
            await _stream_answer(controller, question, thinking)
        finally:
            await controller.close()
            await backend.disconnect()

    asyncio.run(_ask())


@app.command()
def history(
    limit: int = typer.Option(
        20,
        "--limit",
        "-l",
        help="Maximum number of sessions to list"
    )
):
    """List saved sessions, most recent first."""
    async def _history():
        settings = _settings()
        backend = get_store(settings)
        await backend.connect()
        try:
            manager = SessionPersistenceManager(backend, user_key=settings.user_key)
            sessions = await manager.list_sessions()
            if not sessions:
                console.print("[yellow]No saved sessions[/yellow]")
                return
            _print_sessions(sessions, limit)
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await backend.disconnect()

    asyncio.run(_history())


@app.command()
def show(
    session_id: str | None = typer.Argument(None, help="Session id or id prefix (default: latest)")
):
    """Print a saved session."""
    async def _show():
        settings = _settings()
        backend = get_store(settings)
        await backend.connect()
        try:
            manager = SessionPersistenceManager(backend, user_key=settings.user_key)
            if session_id:
                session = await manager.get_session(session_id)
            else:
                session = await manager.load_latest()

            if session is None:
                console.print("[yellow]Session not found[/yellow]")
                raise typer.Exit(code=1)

            console.print(Panel(
                f"{len(session.messages)} messages, last modified {session.last_modified:%Y-%m-%d %H:%M}",
                title=session.title,
                border_style="cyan"
            ))
            for message in session.messages:
                console.print(render_message(message))
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await backend.disconnect()

    asyncio.run(_show())


@app.command()
def delete(
    session_id: str = typer.Argument(..., help="Session id or id prefix")
):
    """Delete a saved session."""
    async def _delete():
        settings = _settings()
        backend = get_store(settings)
        await backend.connect()
        try:
            manager = SessionPersistenceManager(backend, user_key=settings.user_key)
            session = await manager.get_session(session_id)
            if session is None or not await manager.delete_session(session.id):
                console.print("[yellow]Session not found[/yellow]")
                raise typer.Exit(code=1)
            console.print(f"[green]Deleted '{session.title}'[/green]")
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await backend.disconnect()

    asyncio.run(_delete())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
