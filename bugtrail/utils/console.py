"""Rich-based console output utilities."""

from rich.console import Console
from rich.theme import Theme

from bugtrail import __version__

custom_theme = Theme(
    {
        "error": "bold red",
        "success": "bold green",
        "warning": "bold yellow",
        "info": "bold blue",
        "header": "bold magenta",
        "highlight": "bold white",
    }
)

# Global console instances
console = Console(theme=custom_theme)
console_err = Console(theme=custom_theme, stderr=True)


def print_error(message: str) -> None:
    """Print error message in red."""
    from bugtrail.utils.logging import log_message

    console_err.print(f"[error][[ERROR]][/error] [red]{message}[/red]")
    log_message(f"ERROR: {message}")


def print_success(message: str) -> None:
    """Print success message in green."""
    from bugtrail.utils.logging import log_message

    console.print(f"[success][[SUCCESS]][/success] [green]{message}[/green]")
    log_message(f"SUCCESS: {message}")


def print_warning(message: str) -> None:
    """Print warning message in yellow."""
    from bugtrail.utils.logging import log_message

    console.print(f"[warning][[WARNING]][/warning] [yellow]{message}[/yellow]")
    log_message(f"WARNING: {message}")


def print_info(message: str) -> None:
    """Print info message in blue/cyan."""
    from bugtrail.utils.logging import log_message

    console.print(f"[info][[INFO]][/info] [cyan]{message}[/cyan]")
    log_message(f"INFO: {message}")


def print_header(title: str) -> None:
    """Print section header in magenta."""
    console.print()
    console.print(f"[header]=== {title} ===[/header]")
    console.print()


def show_version() -> None:
    """Display version information."""
    console.print(f"BUGTRAIL [bold]v{__version__}[/bold]")


__all__ = [
    "console",
    "console_err",
    "print_error",
    "print_success",
    "print_warning",
    "print_info",
    "print_header",
    "show_version",
]
