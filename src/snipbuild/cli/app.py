# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring the build, targets and gc commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer

from ..config.loaders import load_config
from ..config.models import Config
from ..core.errors import ConfigurationError, SnipbuildError
from ..core.models import Target
from ..discovery import discover_targets, select_targets
from ..graph import build_graph
from ..orchestration.build import collect_garbage, run_build
from ..reporting import render_report
from .shared import CLIError, CLILogger, build_cli_logger, configure_debug_logging, exit_on_cli_error

app = typer.Typer(
    name="snipbuild",
    help="Incremental builder for evaluated code snippets.",
    add_completion=False,
    no_args_is_help=True,
)

RootOption = Annotated[
    Path,
    typer.Option("--root", "-r", help="Project root.", file_okay=False, resolve_path=True),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="TOML configuration layered over pyproject.toml.", dir_okay=False),
]
EmojiOption = Annotated[bool, typer.Option("--emoji/--no-emoji", help="Toggle emoji output.")]
ColorOption = Annotated[bool, typer.Option("--color/--no-color", help="Toggle coloured output.")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Stream internal log records to stderr.")]


def _output_overrides(*, emoji: bool, color: bool) -> dict[str, Any]:
    output: dict[str, Any] = {}
    if not emoji:
        output["emoji"] = False
    if not color:
        output["color"] = False
    return {"output": output} if output else {}


def _prepare(
    root: Path,
    config_path: Path | None,
    overrides: dict[str, Any],
    logger: CLILogger,
) -> tuple[Config, list[Target]]:
    """Load configuration and discover targets.

    Raises:
        CLIError: When the settings or a build description are invalid.
    """

    try:
        config = load_config(root, config_path=config_path, overrides=overrides)
        targets = discover_targets(root, config.discovery)
    except ConfigurationError as exc:
        raise CLIError.from_error(exc) from exc
    if not targets:
        logger.warn(f"no {config.discovery.filename} targets found under {root}")
    logger.debug(f"root={root} targets={len(targets)} jobs={config.execution.jobs}")
    return config, targets


@app.command("build")
def build_command(
    names: Annotated[
        list[str] | None,
        typer.Argument(help="Targets to build, by id or output path. Defaults to every target."),
    ] = None,
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    jobs: Annotated[int | None, typer.Option("--jobs", "-j", min=1, help="Concurrent evaluations.")] = None,
    bail: Annotated[bool, typer.Option("--bail", help="Cancel dependents as soon as a target fails.")] = False,
    no_cache: Annotated[bool, typer.Option("--no-cache", help="Ignore cached transcripts.")] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", min=0.001, help="Per-evaluation timeout in seconds."),
    ] = None,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only report failures.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Also list cached targets.")] = False,
    emoji: EmojiOption = True,
    color: ColorOption = True,
    debug: DebugOption = False,
) -> None:
    """Bring the outputs of the selected targets up to date."""

    if debug:
        configure_debug_logging()
    logger = build_cli_logger(emoji=emoji, debug=debug, no_color=not color)

    overrides = _output_overrides(emoji=emoji, color=color)
    execution: dict[str, Any] = {}
    if jobs is not None:
        execution["jobs"] = jobs
    if bail:
        execution["bail"] = True
    if timeout is not None:
        execution["timeout"] = timeout
    if execution:
        overrides["execution"] = execution
    if quiet or verbose:
        overrides.setdefault("output", {}).update({"quiet": quiet, "verbose": verbose})

    with exit_on_cli_error(logger):
        config, targets = _prepare(root, config_path, overrides, logger)
        try:
            selected = select_targets(targets, names) if names else None
            report = run_build(
                targets,
                root=root,
                config=config,
                selected=selected,
                use_cache=not no_cache,
            )
        except SnipbuildError as exc:
            raise CLIError.from_error(exc) from exc

    render_report(report, config.output)
    raise typer.Exit(code=report.exit_code)


@app.command("targets")
def targets_command(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    emoji: EmojiOption = True,
    color: ColorOption = True,
) -> None:
    """List discovered targets in build order."""

    logger = build_cli_logger(emoji=emoji, no_color=not color)
    with exit_on_cli_error(logger):
        _config, targets = _prepare(root, config_path, _output_overrides(emoji=emoji, color=color), logger)
        try:
            graph = build_graph(targets)
        except ConfigurationError as exc:
            raise CLIError.from_error(exc) from exc
    for target_id in graph.topological_order():
        target = graph.target(target_id)
        logger.echo(f"{target_id}\t{target.action.kind.value}\t{target.output}")


@app.command("gc")
def gc_command(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    emoji: EmojiOption = True,
    color: ColorOption = True,
) -> None:
    """Remove cache entries no current target can reuse."""

    logger = build_cli_logger(emoji=emoji, no_color=not color)
    with exit_on_cli_error(logger):
        config, targets = _prepare(root, config_path, _output_overrides(emoji=emoji, color=color), logger)
        try:
            removed = collect_garbage(targets, root=root, config=config)
        except ConfigurationError as exc:
            raise CLIError.from_error(exc) from exc
    if not removed:
        logger.info("cache holds no stale entries")
        return
    logger.ok(f"removed {len(removed)} cache entr{'y' if len(removed) == 1 else 'ies'}")


def main() -> None:
    """Console script entry point."""

    app()


__all__ = ["app", "main"]
