"""
ComfyPod UI - Console implementation.

Rich-based console for the health and model reports.
"""

from __future__ import annotations

from typing import IO, Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.theme import Theme

from comfypod.core.types import Severity, ValidationStatus

# Custom theme
COMFYPOD_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "red bold",
        "success": "green",
        "muted": "dim",
        "header": "blue bold",
    }
)

_SEVERITY_ICONS = {
    Severity.OK: "[green]✓[/green]",
    Severity.NOTICE: "[yellow]⚠[/yellow]",
    Severity.ISSUE: "[red]✗[/red]",
}

_VALIDATION_LABELS = {
    ValidationStatus.VALID: "[success]✓ VALID[/success]",
    ValidationStatus.MISSING: "[error]✗ NOT FOUND[/error]",
    ValidationStatus.TOO_SMALL: "[error]✗ TOO SMALL[/error]",
    ValidationStatus.CORRUPTED_HTML: "[error]✗ CORRUPTED (HTML)[/error]",
}


class ConsoleUI:
    """
    Console user interface.

    Provides rich formatting for report output.
    """

    def __init__(self, theme: Theme | None = None, file: IO[str] | None = None) -> None:
        """Initialize console."""
        self.console = Console(theme=theme or COMFYPOD_THEME, file=file, highlight=False)

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print to console."""
        self.console.print(*args, **kwargs)

    def header(self, title: str) -> None:
        """Display a section banner."""
        self.console.print(Panel(title, border_style="blue", expand=False))

    def section(self, title: str) -> None:
        """Display a numbered probe heading."""
        self.console.print(f"[header]{escape(title)}[/header]")

    def success(self, message: str) -> None:
        """Display success message."""
        self.console.print(f"[success]{message}[/success]")

    def error(self, message: str) -> None:
        """Display error message."""
        self.console.print(f"[error]{message}[/error]")

    def warning(self, message: str) -> None:
        """Display warning message."""
        self.console.print(f"[warning]{message}[/warning]")

    def newline(self) -> None:
        """Print empty line."""
        self.console.print()

    def finding(self, severity: Severity, message: str) -> None:
        """Display a health finding."""
        icon = _SEVERITY_ICONS.get(severity, "?")
        self.console.print(f"  {icon} {escape(message)}")

    def model_status(self, relative_path: str, status: ValidationStatus, detail: str) -> None:
        """Display one model file result."""
        self.console.print(f"Checking: {escape(relative_path)} ... {_VALIDATION_LABELS[status]}")
        if detail:
            self.console.print(f"  {escape(detail)}")


_console: ConsoleUI | None = None


def get_console() -> ConsoleUI:
    """Get the shared console (created lazily)."""
    global _console
    if _console is None:
        _console = ConsoleUI()
    return _console
