import sys
from typing import List, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

_console = Console()


def is_interactive() -> bool:
    """Check if we are in an interactive TTY session."""
    return sys.stdin.isatty() and sys.stdout.isatty()


def print_step(title: str) -> None:
    """Print a step header."""
    _console.rule(f"[bold blue]{title}[/]")


def print_success(message: str) -> None:
    _console.print(f"[bold green]SUCCESS:[/] {message}")


def print_warning(message: str) -> None:
    _console.print(f"[bold yellow]WARNING:[/] {message}")


def print_error(message: str, exit_code: Optional[int] = None) -> None:
    """Print an error message and optionally exit."""
    _console.print(f"[bold red]ERROR:[/] {message}")

    if exit_code is not None:
        sys.exit(exit_code)


def print_table(title: str, columns: List[str], rows: List[List[str]], footer: Optional[List[str]] = None) -> None:
    """Print a table with optional title and footer row."""
    table = Table(title=title, show_footer=footer is not None)
    for index, col in enumerate(columns):
        table.add_column(col, footer=footer[index] if footer else "")
    for row in rows:
        table.add_row(*row)
    _console.print(table)


def ask_input(prompt_text: str, default: Optional[str] = None, required: bool = True) -> str:
    """
    Prompt for user input (interactive only).
    If not interactive, returns default if present, else raises generic error.
    """
    if not is_interactive():
        if default is not None:
            return default
        if not required:
            return ""
        raise RuntimeError("Interactive input required but not in TTY mode.")

    if default is not None:
        return str(Prompt.ask(prompt_text, default=default))
    return str(Prompt.ask(prompt_text))


def ask_confirm(prompt_text: str, default: bool = False) -> bool:
    """Ask for yes/no confirmation."""
    if not is_interactive():
        return default

    return bool(Confirm.ask(prompt_text, default=default))
