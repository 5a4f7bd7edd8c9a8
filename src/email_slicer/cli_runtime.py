"""Runtime data structures and CLI helpers shared between Click wiring and the dispatcher."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypedDict

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn

CONFIG_ENV_VAR = "EMAIL_SLICER_CONFIG"
NO_COLOR_ENV_VAR = "EMAIL_SLICER_NO_COLOR"

_TRUE_VALUES = {"1", "true", "yes", "on"}

PackageHandler = Callable[[Mapping[str, Any]], Path]

__all__ = [
    "CLIAppError",
    "CONFIG_ENV_VAR",
    "ConsoleMessageSink",
    "JsonTail",
    "NO_COLOR_ENV_VAR",
    "PackageHandler",
    "configure_logging",
    "env_flag_enabled",
]


def env_flag_enabled(value: Any) -> bool:
    """Return ``True`` when *value* represents an enabled environment flag."""
    if value is None:
        return False
    if isinstance(value, bytes):
        value = value.decode(errors="ignore")
    return str(value).strip().lower() in _TRUE_VALUES


class CLIAppError(RuntimeError):
    """Raised when the CLI cannot complete its work."""

    def __init__(self, message: str, *, code: int = 1, rich_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.rich_message = rich_message or message


class JsonTail(TypedDict, total=False):
    command: str
    ok: bool
    errors: List[str]
    selection: Dict[str, Any]
    slices_generated: Optional[int]
    exported: int
    archive: Optional[str]
    scene_saved: bool


def configure_logging(*, verbose: bool, console: Console) -> None:
    """Route library logging through Rich; ``--verbose`` lowers the threshold to INFO."""

    handler = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger("src.email_slicer")
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.INFO if verbose else logging.WARNING)


def _color_text(text: str, style: Optional[str]) -> str:
    if style:
        return f"[{style}]{text}[/]"
    return text


class ConsoleMessageSink:
    """
    UI stand-in that renders core messages on a Rich console.

    ``export-progress`` drives a progress bar, ``error`` messages are collected for
    the exit status, and ``package-zip`` is forwarded to *package_handler*.
    """

    def __init__(
        self,
        *,
        console: Console,
        quiet: bool = False,
        package_handler: Optional[PackageHandler] = None,
    ) -> None:
        self.console = console
        self.quiet = quiet
        self.package_handler = package_handler
        self.messages: List[Dict[str, Any]] = []
        self.errors: List[str] = []
        self.archive_path: Optional[Path] = None
        self.selection: Dict[str, Any] = {}
        self.generated: Optional[int] = None
        self.exported = 0
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def line(self, text: str) -> None:
        if self.quiet:
            return
        self.console.print(text)

    def _stop_progress(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None

    def _advance(self, current: int, total: int) -> None:
        if self.quiet:
            return
        if self._progress is None:
            self._progress = Progress(
                TextColumn("[cyan]Exporting slices"),
                BarColumn(),
                MofNCompleteColumn(),
                console=self.console,
                transient=True,
            )
            self._progress.start()
            self._task = self._progress.add_task("export", total=total)
        assert self._task is not None
        self._progress.update(self._task, completed=current - 1, total=total)

    def post_message(self, message: Mapping[str, Any]) -> None:
        payload = dict(message)
        self.messages.append(payload)
        kind = payload.get("type")
        if kind == "export-progress":
            self._advance(int(payload["current"]), int(payload["total"]))
            return
        self._stop_progress()
        if kind == "error":
            text = str(payload.get("message", ""))
            self.errors.append(text)
            self.console.print(f"[red]Error:[/red] {escape(text)}")
        elif kind == "selection-changed":
            self.selection = {key: value for key, value in payload.items() if key != "type"}
            if payload.get("valid"):
                self.line(
                    f"{_color_text('Frame', 'dim')} [bold]{escape(str(payload.get('frameName', '')))}[/] "
                    f"{payload.get('frameWidth')}x{payload.get('frameHeight')}, "
                    f"{payload.get('guideCount')} horizontal guide(s)"
                )
            else:
                self.line("[yellow]Select exactly one frame to slice.[/yellow]")
        elif kind == "slices-generated":
            self.generated = int(payload.get("count", 0))
            self.line(f"[green]Generated {self.generated} slice(s).[/green]")
        elif kind == "slices-cleared":
            self.line("[green]Slices cleared.[/green]")
        elif kind == "guides-cleared":
            self.line("[green]Horizontal guides cleared.[/green]")
        elif kind == "package-zip":
            self.exported = len(payload.get("slices", []))
            if self.package_handler is not None:
                self.archive_path = self.package_handler(payload)
                self.line(f"[green]Wrote[/green] {escape(str(self.archive_path))}")
        else:
            logging.getLogger(__name__).debug("Unhandled message %r", kind)
