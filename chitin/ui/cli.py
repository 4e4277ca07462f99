"""Main CLI entry point - subcommand architecture."""

import os
import signal
import socket
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from chitin.config import load_server_config
from chitin.service import ServiceType

app = typer.Typer(
    add_completion=False,
    help="Chitin - natural language shell assistant.",
)

# Everything user-facing goes to stderr; stdout carries only the command
err_console = Console(stderr=True)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Run the daemon when no subcommand is given."""
    if ctx.invoked_subcommand is None:
        daemon(socket_path=None)


@app.command()
def daemon(
    socket_path: Optional[str] = typer.Option(None, "--socket-path", help="Override the socket path"),
) -> None:
    """
    Start the backend daemon in the foreground.

    Lazy import: the server pulls in the backend stack, `ask` should not.
    """
    from chitin.daemon.server import run_daemon

    try:
        run_daemon(socket_path=socket_path)
    except ValueError as e:
        err_console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="What you want to do, in plain language"),
    pwd: str = typer.Option(".", "--pwd", help="Working directory to report to the daemon"),
) -> None:
    """
    Ask the daemon for a command and print it to stdout.

    Example: chitin ask "find python files changed today"
    """
    from chitin.daemon.client import DaemonClient, DaemonError, DaemonNotRunning

    try:
        server_config = load_server_config()
    except ValueError as e:
        err_console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)

    client = DaemonClient(socket_path=Path(server_config.socket_path))
    try:
        with err_console.status("Thinking...", spinner="dots"):
            command = client.ask(prompt, pwd=str(Path(pwd).resolve()))
    except DaemonNotRunning as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except DaemonError as e:
        err_console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)
    except (OSError, socket.timeout, ValueError) as e:
        err_console.print(f"[red]Error talking to daemon: {e}[/red]")
        raise typer.Exit(1)

    # Output without newline for capture by the shell widget
    typer.echo(command, nl=False)


@app.command()
def service(
    service_type: ServiceType = typer.Argument(..., help="Init system to generate a service file for"),
) -> None:
    """Print a service file for launchd, systemd or OpenRC."""
    from chitin.service import generate

    typer.echo(generate(service_type), nl=False)


@app.command()
def install() -> None:
    """Install the zsh widget and source it from ~/.zshrc."""
    from chitin.shell import install as install_plugin

    result = install_plugin()
    err_console.print(f"Installed shell plugin to {result.script_path}")
    if result.zshrc_created:
        err_console.print(f"[yellow]Warning: no {result.zshrc_path} found, created one.[/yellow]")
    if result.source_line_added:
        err_console.print(f"Added source line to {result.zshrc_path}")
        err_console.print("Please restart your shell or run 'source ~/.zshrc' to activate.")
    else:
        err_console.print(f"Shell plugin already sourced in {result.zshrc_path}")


@app.command()
def reload() -> None:
    """Make the running daemon reread its configuration (sends SIGHUP)."""
    from chitin.daemon.server import read_pid

    try:
        server_config = load_server_config()
    except ValueError as e:
        err_console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)

    pid_path = Path(server_config.pid_path)
    pid = read_pid(pid_path)
    if pid is None:
        err_console.print(f"[red]No daemon PID found at {pid_path}[/red]")
        raise typer.Exit(1)

    try:
        os.kill(pid, signal.SIGHUP)
    except ProcessLookupError:
        err_console.print(f"[red]Daemon process {pid} is not running (stale {pid_path})[/red]")
        raise typer.Exit(1)
    except PermissionError:
        err_console.print(f"[red]Not allowed to signal process {pid}[/red]")
        raise typer.Exit(1)

    err_console.print(f"[green]Reload requested (pid {pid})[/green]")


def run() -> None:
    """Entry point for console script mapping."""
    app()


if __name__ == "__main__":
    run()
