"""Typer-based CLI for packguard."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .config import CONFIG_FILENAME, Configuration, write_default_config
from .errors import PackguardError
from .files import FilesForProcessing
from .formatter import FORMATTERS, OffensesFormatter, ProgressFormatter, formatter_for
from .package import PACKAGE_FILENAME
from .parse_run import ParseRun, Result
from .run_context import RunContext
from .validator import validate_all

app = typer.Typer(
    help="📦 packguard: enforce package boundaries in Ruby applications.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

DEFAULT_ROOT_MANIFEST = """\
# Turn on dependency checks for this package
enforce_dependencies: true

# Turn on privacy checks for this package
enforce_privacy: false

# this allows you to modify what your package's public path is within the package
# public_path: app/public/

# A list of this package's dependencies
# Note that packages in this list require their own `package.yml` file
# dependencies:
# - "packages/billing"
"""


@dataclass
class CLIState:
    root: Optional[Path] = None
    formatter: str = "default"


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"packguard v{__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )
    else:
        logging.basicConfig(level=logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", file_okay=False, help="Application root (default: current directory)."
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output."),
    offenses_formatter: str = typer.Option(
        "default",
        "--offenses-formatter",
        help=f"How offenses are printed: {', '.join(sorted(FORMATTERS))}.",
    ),
):
    """packguard: dependency and privacy checks between the packages of a Ruby application."""
    if offenses_formatter not in FORMATTERS:
        raise typer.BadParameter(
            f"must be one of: {', '.join(sorted(FORMATTERS))}", param_hint="--offenses-formatter"
        )
    _setup_logging(verbose)
    ctx.obj = CLIState(root=root, formatter=offenses_formatter)


def _state(ctx: typer.Context) -> CLIState:
    return ctx.obj if isinstance(ctx.obj, CLIState) else CLIState()


def _load_configuration(ctx: typer.Context) -> Configuration:
    return Configuration.from_path(_state(ctx).root)


def _print(message: str, formatter: Optional[OffensesFormatter] = None) -> None:
    markup = formatter.markup if formatter is not None else False
    console.print(message, markup=markup, highlight=False, soft_wrap=True)


def _guarded(action: Callable[[], None]) -> None:
    """Run *action*, turning packguard errors into a red message and exit code 1."""
    try:
        action()
    except PackguardError as exc:
        console.print(f"[red]Error:[/red] {exc}", highlight=False, soft_wrap=True)
        raise typer.Exit(code=1)


def _execute(
    ctx: typer.Context,
    command: str,
    paths: Optional[List[str]] = None,
) -> None:
    """Process the application's files and finish with the *command* result."""
    configuration = _load_configuration(ctx)
    relative_files = FilesForProcessing(
        configuration.root_path, configuration.include, configuration.exclude, paths
    ).files()
    formatter = formatter_for(_state(ctx).formatter)
    progress = ProgressFormatter(console) if console.is_terminal else None
    run = ParseRun(
        relative_files,
        configuration,
        formatter=formatter,
        progress=progress.mark if progress is not None else None,
        scoped=bool(paths),
    )

    if progress is not None:
        progress.started(len(relative_files))
    started_at = time.monotonic()
    result: Result = getattr(run, command)()
    if progress is not None:
        progress.finished(time.monotonic() - started_at)

    _print(result.message, formatter)
    if not result.status:
        raise typer.Exit(code=1)


# ===================================================================
# Commands
# ===================================================================

@app.command("check")
def check(
    ctx: typer.Context,
    paths: Optional[List[str]] = typer.Argument(
        None, help="Files or directories to check, relative to the root (default: everything included)."
    ),
):
    """Check the application for new dependency and privacy violations."""
    _guarded(lambda: _execute(ctx, "check", paths))


@app.command("update-todo")
def update_todo(ctx: typer.Context):
    """Rewrite every package_todo.yml from the violations found now."""
    _guarded(lambda: _execute(ctx, "update_todo"))


@app.command("detect-stale-violations")
def detect_stale_violations(ctx: typer.Context):
    """Report whether any package_todo.yml lists violations that no longer exist."""
    _guarded(lambda: _execute(ctx, "detect_stale_violations"))


@app.command("validate")
def validate(ctx: typer.Context):
    """Validate package manifests and the package dependency graph."""

    def action() -> None:
        configuration = _load_configuration(ctx)
        run_context = RunContext(configuration)
        result = validate_all(
            run_context.package_set,
            configuration.root_path,
            run_context.context_provider,
            run_context.inflector,
        )
        if result.ok:
            console.print("[green]Validation successful 🎉[/green]")
            return
        console.print("[red]Validation failed ❗[/red]\n")
        console.print(result.error_value, markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(code=1)

    _guarded(action)


@app.command("init")
def init(ctx: typer.Context):
    """Write a default packguard.toml and a root package.yml."""
    root = (_state(ctx).root or Path.cwd()).resolve()
    config_path = root / CONFIG_FILENAME
    if config_path.exists():
        console.print(f"[yellow]{CONFIG_FILENAME} already exists in {root}[/yellow]", highlight=False)
        raise typer.Exit(code=1)

    write_default_config(root)
    console.print(f"[green]✓[/green] Wrote {config_path}", highlight=False)

    manifest_path = root / PACKAGE_FILENAME
    if not manifest_path.exists():
        manifest_path.write_text(DEFAULT_ROOT_MANIFEST, encoding="utf-8")
        console.print(f"[green]✓[/green] Wrote {manifest_path}", highlight=False)


@app.command("version")
def version():
    """Print the packguard version."""
    typer.echo(f"packguard v{__version__}")


if __name__ == "__main__":
    app()
