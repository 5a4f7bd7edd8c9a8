"""CLI entry point that drives the slicer against a scene document."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, cast

import click
from rich import print
from rich.console import Console

from src.config_loader import ConfigError, load_config
from src.datatypes import AppConfig
from src.email_slicer.cli_runtime import (
    CONFIG_ENV_VAR,
    NO_COLOR_ENV_VAR,
    CLIAppError,
    ConsoleMessageSink,
    JsonTail,
    configure_logging,
    env_flag_enabled,
)
from src.email_slicer.dispatcher import CommandDispatcher
from src.email_slicer.errors import SceneError, SlicerError
from src.email_slicer.orchestrator import SliceOrchestrator
from src.email_slicer.packaging import ZipPackager
from src.email_slicer.scene import load_scene, save_scene

__all__ = [
    "main",
    "CLIAppError",
    "CommandDispatcher",
    "SliceOrchestrator",
    "SlicerError",
]

_MUTATING_COMMANDS = frozenset({"generate-slices", "export-html", "clear-slices", "clear-guides"})


def _load_app_config(config_path: Optional[str]) -> AppConfig:
    if not config_path:
        return AppConfig()
    try:
        return load_config(config_path)
    except FileNotFoundError as exc:
        raise CLIAppError(
            f"Config file not found: {config_path}",
            code=2,
            rich_message=f"[red]Config file not found:[/red] {config_path}",
        ) from exc
    except ConfigError as exc:
        raise CLIAppError(
            f"Invalid configuration: {exc}",
            code=2,
            rich_message=f"[red]Invalid configuration:[/red] {exc}",
        ) from exc


def _emit_json_tail(json_tail: JsonTail, *, pretty: bool) -> None:
    if pretty:
        click.echo(json.dumps(json_tail, indent=2))
    else:
        click.echo(json.dumps(json_tail, separators=(",", ":")))


def _run_command(
    params: Dict[str, Any],
    message: Dict[str, Any],
    *,
    out_dir: Optional[str] = None,
) -> None:
    """
    Load the scene, dispatch one command message and persist the scene.

    Raises:
        CLIAppError: When the scene or config cannot be loaded, no frame is selected,
            or the command reported an error.
    """

    cfg = _load_app_config(params.get("config_path"))
    no_color = bool(params.get("no_color")) or env_flag_enabled(os.environ.get(NO_COLOR_ENV_VAR))
    quiet = bool(params.get("quiet"))
    console = Console(no_color=no_color, highlight=False)
    configure_logging(verbose=bool(params.get("verbose")) and not quiet, console=console)

    scene_path = Path(params["scene_path"])
    try:
        scene = load_scene(scene_path, jpeg_quality=cfg.export.jpeg_quality)
        frame_name = params.get("frame_name")
        if frame_name:
            scene.select_frame(frame_name)
    except SceneError as exc:
        raise CLIAppError(str(exc), code=2, rich_message=f"[red]{exc}[/red]") from exc

    packager = ZipPackager(
        Path(out_dir or cfg.package.output_dir),
        package_cfg=cfg.package,
        template_cfg=cfg.template,
    )
    sink = ConsoleMessageSink(console=console, quiet=quiet, package_handler=packager.package)
    dispatcher = CommandDispatcher(SliceOrchestrator(scene, sink, cfg))

    command = str(message.get("type", "status"))
    dispatcher.selection_changed()
    if not sink.selection.get("valid") and command != "clear-slices":
        raise CLIAppError(
            "No frame selected. Pass --frame NAME or set a selection in the scene document.",
            rich_message="[red]No frame selected.[/red] Pass --frame NAME or set a selection in the scene document.",
        )

    ok = True
    saved = False
    if command in _MUTATING_COMMANDS:
        ok = asyncio.run(dispatcher.dispatch(message))
        if ok:
            save_scene(scene, scene_path)
            saved = True

    if cfg.cli.emit_json_tail and params.get("json_tail"):
        json_tail: JsonTail = {
            "command": command,
            "ok": ok and not sink.errors,
            "errors": list(sink.errors),
            "selection": dict(sink.selection),
            "slices_generated": sink.generated,
            "exported": sink.exported,
            "archive": str(sink.archive_path) if sink.archive_path else None,
            "scene_saved": saved,
        }
        _emit_json_tail(json_tail, pretty=bool(params.get("json_pretty")))

    if sink.errors:
        raise click.exceptions.Exit(1)


def _invoke(ctx: click.Context, message: Dict[str, Any], **kwargs: Any) -> None:
    params = cast(Dict[str, Any], ctx.ensure_object(dict))
    try:
        _run_command(params, message, **kwargs)
    except CLIAppError as exc:
        if exc.rich_message:
            print(exc.rich_message)
        raise click.exceptions.Exit(exc.code) from exc


@click.group()
@click.option(
    "--config",
    "config_path",
    envvar=CONFIG_ENV_VAR,
    default=None,
    help=f"Optional path to config.toml (defaults to ${CONFIG_ENV_VAR}, then built-in defaults).",
)
@click.option(
    "--scene",
    "scene_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Scene document (JSON) describing frames, guides and slices.",
)
@click.option("--frame", "frame_name", default=None, help="Select the frame with this name before running.")
@click.option("--quiet", is_flag=True, help="Suppress progress and status lines.")
@click.option("--verbose", is_flag=True, help="Show diagnostic log output.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colour output.")
@click.option("--json", "json_tail", is_flag=True, help="Print a JSON summary after the command.")
@click.option("--json-pretty", is_flag=True, help="Pretty-print the JSON summary.")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Optional[str],
    scene_path: str,
    frame_name: Optional[str],
    quiet: bool,
    verbose: bool,
    no_color: bool,
    json_tail: bool,
    json_pretty: bool,
) -> None:
    """Slice a design frame along its horizontal guides into an HTML email."""

    params_map = cast(Dict[str, Any], ctx.ensure_object(dict))
    params_map.update(
        {
            "config_path": config_path,
            "scene_path": scene_path,
            "frame_name": frame_name,
            "quiet": quiet,
            "verbose": verbose,
            "no_color": no_color,
            "json_tail": json_tail or json_pretty,
            "json_pretty": json_pretty,
        }
    )
    ctx.obj = params_map


@main.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Report the selected frame and its horizontal guide count."""

    _invoke(ctx, {"type": "status"})


@main.command("generate")
@click.pass_context
def generate_command(ctx: click.Context) -> None:
    """Create one slice per guide region, replacing existing slices."""

    _invoke(ctx, {"type": "generate-slices"})


@main.command("export")
@click.option("--out", "out_dir", default=None, help="Directory for the ZIP archive (overrides [package].output_dir).")
@click.option("--footer/--no-footer", "add_footer", default=True, show_default=True, help="Append the email footer.")
@click.pass_context
def export_command(ctx: click.Context, out_dir: Optional[str], add_footer: bool) -> None:
    """Export every slice and package the HTML email as a ZIP archive."""

    _invoke(ctx, {"type": "export-html", "addFooter": add_footer}, out_dir=out_dir)


@main.command("clear-slices")
@click.pass_context
def clear_slices_command(ctx: click.Context) -> None:
    """Remove the generated slice group."""

    _invoke(ctx, {"type": "clear-slices"})


@main.command("clear-guides")
@click.pass_context
def clear_guides_command(ctx: click.Context) -> None:
    """Remove the horizontal guides from the selected frame."""

    _invoke(ctx, {"type": "clear-guides"})


if __name__ == "__main__":
    main()
