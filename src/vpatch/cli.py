"""CLI commands for patching Unity Android exports into white or B-side builds."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import (
    DEFAULT_CONFIG_NAME,
    ConfigError,
    PatcherConfig,
    default_config,
    load_config,
    parse_import_row,
    read_config_data,
    write_config,
)
from .documents import PatchError, read_document
from .patchers.attributes import ATTRIBUTE_OPERATION, DEFAULT_ATTRIBUTE, annotate_file, collect_source_files
from .patchers.manifest import find_activity_fragments, patch_manifest_file
from .pipeline import PipelineReport, resolve_activity, run_postbuild, run_prebuild
from .schema import DEFAULT_THEME, ActivityConfig, PackageMode, PackageType, PatchOutcome

APP_HELP = "Variant patcher CLI entry point."

app = typer.Typer(help=APP_HELP)

_CONFIG_OPTION_HELP = "Path to the patcher configuration file."


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Configure logging before running a command."""
    level = getattr(logging, log_level.strip().upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load(config: str) -> PatcherConfig:
    try:
        return load_config(Path(config))
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _echo_outcome(outcome: PatchOutcome) -> None:
    typer.echo(f"- {outcome.describe()}")


def _finish(report: PipelineReport) -> None:
    for outcome in report.outcomes:
        _echo_outcome(outcome)
    typer.echo(report.summary())
    if not report.ok:
        raise typer.Exit(code=1)


@app.command()
def init(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_OPTION_HELP),
    package_type: str = typer.Option(
        "white",
        "--package-type",
        "-t",
        help="Initial package type: white, bside or custom.",
    ),
    class_name: Optional[str] = typer.Option(
        None,
        "--class-name",
        help="Secondary activity class name for B-side builds.",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration."),
) -> None:
    """Write a default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=0)

    try:
        chosen = PackageType[package_type.strip().upper()]
    except KeyError as error:
        raise typer.BadParameter(f"Unknown package type: {package_type}", param_hint="--package-type") from error

    data = default_config()
    profile = data["profile"]
    profile["package_type"] = chosen.name.lower()
    if chosen.preset_version_code is not None:
        profile["version_code"] = chosen.preset_version_code
    if class_name:
        profile["class_name"] = class_name.strip()
    write_config(config_path, data)
    typer.echo(f"Created configuration at {config_path}.")


@app.command()
def status(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_OPTION_HELP),
) -> None:
    """Report the configured profile and the manifest's current registration."""
    settings = _load(config)
    profile = settings.profile
    activity = resolve_activity(settings)

    typer.echo(f"Loaded configuration from {config}")
    typer.echo(f"Package: {profile.package_name or '<unset>'} ({profile.app_name or 'unnamed'})")
    typer.echo(f"Version: {profile.version} ({profile.version_code})")
    typer.echo(f"Package type: {profile.package_type.name.lower()} -> mode {settings.mode.value}")
    if settings.mode is PackageMode.INJECT:
        typer.echo(f"Secondary activity: {activity.qualified_name}")
        for problem in activity.problems():
            typer.echo(f"  ! {problem}")

    manifest = settings.resolve(settings.paths.manifest)
    if not manifest.is_file():
        typer.echo(f"Manifest: {manifest} (missing)")
        return
    try:
        text, _ = read_document(manifest)
    except PatchError as error:
        typer.echo(f"Manifest: {manifest} (unreadable: {error})")
        raise typer.Exit(code=1) from error
    fragments = find_activity_fragments(text, activity)
    typer.echo(f"Manifest: {manifest} ({len(fragments)} secondary activity fragment(s))")
    for fragment in fragments:
        typer.echo(f"  {fragment.group(0).splitlines()[0]}")


@app.command()
def prebuild(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_OPTION_HELP),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report changes without writing files."),
) -> None:
    """Patch plugin sources, manifest and Gradle templates before a build."""
    settings = _load(config)
    try:
        report = run_prebuild(settings, dry_run=dry_run)
    except PatchError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    _finish(report)


@app.command()
def postbuild(
    export_dir: str = typer.Argument(..., help="Root of the exported Gradle project."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_OPTION_HELP),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report changes without writing files."),
) -> None:
    """Patch an exported Gradle project after the build."""
    settings = _load(config)
    export_root = Path(export_dir)
    if not export_root.is_dir():
        typer.echo(f"Export directory not found: {export_root}")
        raise typer.Exit(code=1)
    try:
        report = run_postbuild(settings, export_root, dry_run=dry_run)
    except PatchError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    _finish(report)


@app.command()
def manifest(
    path: str = typer.Argument(..., help="Manifest file to patch."),
    mode: PackageMode = typer.Option(..., "--mode", "-m", help="clean removes the activity, inject registers it."),
    class_name: str = typer.Option("", "--class-name", help="Secondary activity class name."),
    theme: str = typer.Option(DEFAULT_THEME, "--theme", help="Theme that marks the secondary activity."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report changes without writing files."),
) -> None:
    """Apply the manifest patch to a single file."""
    activity = ActivityConfig(class_name=class_name, theme=theme)
    try:
        outcome = patch_manifest_file(Path(path), mode, activity, dry_run=dry_run)
    except PatchError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    _echo_outcome(outcome)
    if outcome.failed:
        raise typer.Exit(code=1)


@app.command()
def annotate(
    paths: List[str] = typer.Argument(..., help="C# files or directories to annotate."),
    attribute: str = typer.Option(DEFAULT_ATTRIBUTE, "--attribute", "-a", help="Attribute to insert."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report changes without writing files."),
) -> None:
    """Insert an attribute above every class and struct declaration."""
    files = collect_source_files(paths)
    if not files:
        typer.echo("No .cs files found.")
        raise typer.Exit(code=1)
    modified = 0
    failures = 0
    for file_path in files:
        try:
            outcome = annotate_file(file_path, attribute, dry_run=dry_run)
        except PatchError as error:
            failures += 1
            typer.echo(f"- {ATTRIBUTE_OPERATION}: failed | {file_path.as_posix()} | {error}")
            continue
        if outcome.changed:
            modified += 1
            _echo_outcome(outcome)
        elif outcome.failed:
            failures += 1
            _echo_outcome(outcome)
    typer.echo(f"Annotated {modified} of {len(files)} file(s).")
    if failures:
        raise typer.Exit(code=1)


@app.command("import-row")
def import_row(
    row: str = typer.Argument(..., help="Tab-separated row copied from the tracking spreadsheet."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=_CONFIG_OPTION_HELP),
) -> None:
    """Fill the profile section from a spreadsheet row."""
    config_path = Path(config)
    try:
        data = read_config_data(config_path) if config_path.exists() else default_config()
        parsed = parse_import_row(row)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    profile = data.setdefault("profile", {})
    profile.update(parsed)
    write_config(config_path, data)
    typer.echo(f"Package: {parsed.get('package_name', '<not found>')}")
    typer.echo(f"App name: {parsed.get('app_name', '<not found>')}")
    typer.echo(f"Package type: {parsed.get('package_type', '<unchanged>')}")
    typer.echo(f"Updated configuration at {config_path}.")


if __name__ == "__main__":
    app()
