"""Rich-based logging helpers shared across the CLI and client layers."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.theme import Theme
from rich.traceback import install

install(show_locals=False)

_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "debug": "dim",
        "sql": "magenta",
    }
)

# Result sets go to stdout; request chatter and diagnostics go to stderr.
# Highlighting stays off so table and column names never pick up ANSI styles.
_stdout_console = Console(theme=_THEME, highlight=False)
_stderr_console = Console(stderr=True, theme=_THEME, highlight=False)
_verbose_console = Console(stderr=True, theme=_THEME, highlight=False)

SQL_PREVIEW_LIMIT = 160


@dataclass(slots=True)
class Logger:
    """Lightweight logger facade backed by Rich consoles."""

    verbose: bool = False

    @property
    def console(self) -> Console:
        return _stdout_console

    def info(self, message: str) -> None:
        _stderr_console.print(message, style="info", markup=False)

    def success(self, message: str) -> None:
        _stderr_console.print(message, style="success", markup=False)

    def warning(self, message: str) -> None:
        _stderr_console.print(message, style="warning", markup=False)

    def error(self, message: str) -> None:
        _stderr_console.print(message, style="error", markup=False)

    def debug(self, message: str) -> None:
        if self.verbose:
            _verbose_console.print(message, style="debug", markup=False)

    def sql(self, label: str, text: str) -> None:
        """Print a one-line preview of submitted or generated SQL when verbose."""
        if not self.verbose:
            return
        preview = " ".join(text.split())
        if len(preview) > SQL_PREVIEW_LIMIT:
            preview = preview[: SQL_PREVIEW_LIMIT - 3] + "..."
        _verbose_console.print(f"{label}: {preview}", style="sql", markup=False, soft_wrap=True)


def get_logger(verbose: bool = False) -> Logger:
    """Return a configured Logger instance."""
    return Logger(verbose=verbose)
