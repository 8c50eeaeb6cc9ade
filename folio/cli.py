"""Command-line interface for Folio.

This module defines the CLI commands using Click framework.

Commands:
- build: Build the site into the output directory.
- serve: Run development server with live reload.
"""

from __future__ import annotations

from pathlib import Path

import click

from . import __version__
from .errors import BuildError

root_option = click.option(
    "--root",
    "project_root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path("."),
    envvar="FOLIO_ROOT",
    show_envvar=True,
    help="Project root containing folio.yaml",
)


def _relative(path: Path, project_root: Path) -> Path:
    try:
        return path.resolve().relative_to(project_root.resolve())
    except ValueError:
        return path


def _report_failure(exc: BuildError, project_root: Path) -> None:
    """Print a build error and exit with status 1."""
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if exc.source_path is not None:
        source = _relative(Path(exc.source_path), project_root)
        click.echo(click.style(f"  File: {source}", fg="yellow"), err=True)
    if exc.target_path is not None:
        marker = _relative(Path(exc.target_path), project_root)
        click.echo(
            click.style(f"  Target: /{exc.route} ({marker})", fg="yellow"), err=True
        )
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    raise SystemExit(1) from None


@click.group()
@click.version_option(version=__version__, prog_name="folio")
def cli():
    """Folio static site generator."""


@cli.command()
@root_option
@click.option(
    "--output",
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory (overrides folio.yaml)",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of targets rendered in parallel",
)
def build(project_root: Path, output: Path | None, jobs: int):
    """Build the site into the output directory."""
    from .build import build_site

    try:
        result = build_site(project_root, output_dir_override=output, jobs=jobs)
    except BuildError as exc:
        _report_failure(exc, project_root)
    click.echo(f"Built {len(result.targets)} targets into {result.output_dir}")


@cli.command()
@root_option
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides folio.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides folio.yaml ws_port)",
)
def serve(project_root: Path, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    from .server import DevServer

    try:
        server = DevServer(project_root, http_port=port, ws_port=ws_port)
    except BuildError as exc:
        _report_failure(exc, project_root)
    server.start()


def main():
    """Entry point for the CLI application."""
    cli()
