from __future__ import annotations

import json
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Optional, cast

import typer
from rich.console import Console
from rich.table import Table

from princess_scheduler.core.config import ConfigError, SchedulerConfig, load_and_merge
from princess_scheduler.core.errors import (
    CatalogLoadError,
    CatalogValidationError,
    OverrideError,
    ScheduleError,
    SchedulerError,
)
from princess_scheduler.core.io.load_catalog import (
    dump_overrides,
    load_catalog,
    load_overrides,
    parse_date,
)
from princess_scheduler.core.lint.lint_catalog import lint_catalog
from princess_scheduler.core.model import DateOverride, Schedule, StageCatalog
from princess_scheduler.core.permissions import Role, check_override_permission
from princess_scheduler.core.schedule.cascade import critical_path, shift_stage
from princess_scheduler.core.schedule.compute import (
    apply_override,
    compute_schedule,
    remove_override,
)
from princess_scheduler.core.validate.validate_catalog import summarize_catalog, validate_catalog
from princess_scheduler.logging_config import configure_logging

app = typer.Typer(add_completion=False, no_args_is_help=True)
override_app = typer.Typer(add_completion=False, no_args_is_help=True)
app.add_typer(override_app, name="override", help="Edit a date overrides file.")


class RoleChoice(str, Enum):
    admin = "admin"
    agency = "agency"
    client = "client"


@app.callback()
def _callback(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar="PRINCESS_SCHEDULER_LOG_LEVEL",
        help="Log level for stderr diagnostics: DEBUG|INFO|WARNING|ERROR",
    ),
) -> None:
    """Princess stage scheduler CLI."""
    configure_logging(log_level)


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a stage catalog (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a stage catalog."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    def _emit_json(ok: bool, *, exit_code: int, errors: list[SchedulerError], summary: dict | None) -> None:
        payload = {
            "tool": "princess",
            "command": "validate",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        raw = load_catalog(path)
    except CatalogLoadError as e:
        if format == "json":
            _emit_json(False, exit_code=1, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=1)

    catalog, errors = validate_catalog(raw)
    if errors or catalog is None:
        if format == "json":
            _emit_json(False, exit_code=2, errors=list(errors), summary=None)
        _print_errors(list(errors))
        raise typer.Exit(code=2)

    if format == "text":
        typer.echo(summarize_catalog(catalog))
        return

    summary = {
        "schema_version": catalog.schema_version,
        "stage_count": len(catalog.stages),
        "deliverable_count": sum(1 for s in catalog.stages if s.is_deliverable),
        "dependent_count": sum(1 for s in catalog.stages if s.dependencies),
    }
    _emit_json(True, exit_code=0, errors=[], summary=summary)


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a stage catalog (.yaml/.yml/.json)"),
    overrides_file: Optional[str] = typer.Option(None, "--overrides", help="Optional overrides file to check"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a stage catalog (rules beyond validation)."""
    _check_format(format, "E_LINT_UNKNOWN_FORMAT")

    def _emit_json(ok: bool, errors: list[SchedulerError], exit_code: int) -> None:
        payload = {
            "tool": "princess",
            "command": "lint",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        raw = load_catalog(path)
        overrides = load_overrides(overrides_file) if overrides_file else {}
    except CatalogLoadError as e:
        if format == "json":
            _emit_json(False, [e], 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    lint_errors = lint_catalog(raw, overrides)
    _, validation_errors = validate_catalog(raw)
    errors: list[SchedulerError] = [*lint_errors, *validation_errors]

    if format == "text":
        if errors:
            _print_errors(errors)
            raise typer.Exit(code=2)
        typer.echo("OK: lint passed")
        return

    if errors:
        _emit_json(False, errors, 2)
    _emit_json(True, [], 0)


@app.command("schedule")
def schedule(
    path: str = typer.Argument(..., help="Path to a stage catalog (.yaml/.yml/.json)"),
    start: str = typer.Option(..., "--start", help="Project start date (YYYY-MM-DD)"),
    overrides_file: Optional[str] = typer.Option(None, "--overrides", help="Date overrides file"),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        envvar="PRINCESS_SCHEDULER_CONFIG",
        help="Optional YAML file with scheduler settings",
    ),
    on_unknown_dependency: str = typer.Option(
        "error",
        "--on-unknown-dependency",
        help="What to do with dependency ids missing from the catalog: error|drop",
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Compute start/end dates for every stage."""
    _check_format(format, "E_SCHEDULE_UNKNOWN_FORMAT")
    if on_unknown_dependency not in ("error", "drop"):
        _print_errors(
            [
                CatalogValidationError(
                    code="E_SCHEDULE_UNKNOWN_POLICY",
                    message=f"unknown policy: {on_unknown_dependency} (choose one of: error, drop)",
                    path="on_unknown_dependency",
                )
            ]
        )
        raise typer.Exit(code=2)

    start_date = _parse_date_arg(start, "start")
    cfg = _load_config(config_file)
    catalog = _load_valid_catalog(path, allow_unknown_dependencies=on_unknown_dependency == "drop")
    overrides = _load_overrides_or_exit(overrides_file)

    try:
        result = compute_schedule(
            catalog.stages,
            start_date,
            overrides,
            config=cfg,
            on_unknown_dependency="drop" if on_unknown_dependency == "drop" else "error",
        )
    except ScheduleError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    chain = critical_path(result, catalog.stages)

    if format == "json":
        names = {s.id: s.name for s in catalog.stages}
        payload = {
            "tool": "princess",
            "command": "schedule",
            "ok": True,
            "start_date": result.start_date.isoformat(),
            "end_date": result.end_date.isoformat(),
            "duration_weeks": result.duration_weeks,
            "stages": [
                {
                    "stage_id": s.stage_id,
                    "name": names.get(s.stage_id),
                    "start_date": s.start_date.isoformat(),
                    "end_date": s.end_date.isoformat(),
                    "overridden": s.overridden,
                    "locked": s.locked,
                }
                for s in result.stages
            ],
            "critical_path": chain,
            "warning_count": len(result.warnings),
            "warnings": [_to_item(w) for w in result.warnings],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    _print_schedule_table(result, catalog)
    typer.echo(f"Project end: {result.end_date.isoformat()} ({result.duration_weeks} weeks)")
    typer.echo("Critical path: " + " -> ".join(chain))
    for w in result.warnings:
        typer.echo(f"WARN: {w}", err=True)


@app.command("shift")
def shift(
    path: str = typer.Argument(..., help="Path to a stage catalog (.yaml/.yml/.json)"),
    stage_id: str = typer.Argument(..., help="Stage to move"),
    new_start: str = typer.Argument(..., help="New start date for the stage (YYYY-MM-DD)"),
    start: str = typer.Option(..., "--start", help="Project start date (YYYY-MM-DD)"),
    new_end: Optional[str] = typer.Option(None, "--end", help="New end date; defaults to keeping the length"),
    overrides_file: Optional[str] = typer.Option(None, "--overrides", help="Date overrides file"),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        envvar="PRINCESS_SCHEDULER_CONFIG",
        help="Optional YAML file with scheduler settings",
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Move one stage and cascade the change to everything downstream."""
    _check_format(format, "E_SHIFT_UNKNOWN_FORMAT")

    start_date = _parse_date_arg(start, "start")
    moved_start = _parse_date_arg(new_start, "new_start")
    moved_end = _parse_date_arg(new_end, "new_end") if new_end is not None else None
    cfg = _load_config(config_file)
    catalog = _load_valid_catalog(path)
    overrides = _load_overrides_or_exit(overrides_file)

    try:
        base = compute_schedule(catalog.stages, start_date, overrides, config=cfg)
        result = shift_stage(base, catalog.stages, stage_id, moved_start, moved_end, config=cfg)
    except ScheduleError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    if format == "json":
        payload = {
            "tool": "princess",
            "command": "shift",
            "ok": True,
            "stage_id": stage_id,
            "end_date": result.schedule.end_date.isoformat(),
            "shift_count": len(result.shifts),
            "shifts": [
                {
                    "stage_id": s.stage_id,
                    "old_start": s.old_start.isoformat(),
                    "old_end": s.old_end.isoformat(),
                    "new_start": s.new_start.isoformat(),
                    "new_end": s.new_end.isoformat(),
                    "adjustment_days": s.adjustment_days,
                }
                for s in result.shifts
            ],
            "warning_count": len(result.warnings),
            "warnings": [_to_item(w) for w in result.warnings],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    for w in result.warnings:
        typer.echo(f"WARN: {w}", err=True)
    if not result.shifts:
        typer.echo("OK: no stages moved")
        return
    for s in result.shifts:
        typer.echo(
            f"- {s.stage_id}: {s.old_start.isoformat()} -> {s.new_start.isoformat()} ({s.adjustment_days:+d}d)"
        )
    typer.echo(f"OK: moved {len(result.shifts)} stages; project end {result.schedule.end_date.isoformat()}")


@override_app.command("set")
def override_set(
    file: str = typer.Argument(..., help="Overrides file (created if missing)"),
    stage_id: str = typer.Argument(..., help="Stage to pin"),
    pin_date: str = typer.Argument(..., help="Pinned start date (YYYY-MM-DD)"),
    locked: bool = typer.Option(False, "--lock/--no-lock", help="Lock the date against recalculation"),
    role: RoleChoice = typer.Option(RoleChoice.agency, "--role", help="Acting role"),
) -> None:
    """Pin a stage to a start date."""
    pinned = _parse_date_arg(pin_date, "pin_date")
    overrides = _load_overrides_or_exit(file) if Path(file).exists() else {}

    try:
        check_override_permission(cast(Role, role.value), overrides.get(stage_id))
    except OverrideError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    dump_overrides(apply_override(overrides, stage_id, pinned, locked), file)
    state = "locked" if locked else "unlocked"
    typer.echo(f"OK: pinned {stage_id} to {pinned.isoformat()} ({state})")


@override_app.command("remove")
def override_remove(
    file: str = typer.Argument(..., help="Overrides file"),
    stage_id: str = typer.Argument(..., help="Stage to release"),
    role: RoleChoice = typer.Option(RoleChoice.agency, "--role", help="Acting role"),
) -> None:
    """Remove the override on a stage so it is scheduled normally again."""
    overrides = _load_overrides_or_exit(file)

    try:
        if stage_id not in overrides:
            raise OverrideError(
                code="E_UNKNOWN_OVERRIDE",
                message=f"no override on stage: {stage_id}",
                file=file,
                path=stage_id,
            )
        check_override_permission(cast(Role, role.value), overrides[stage_id])
    except OverrideError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    dump_overrides(remove_override(overrides, stage_id), file)
    typer.echo(f"OK: removed override on {stage_id}")


@override_app.command("list")
def override_list(
    file: str = typer.Argument(..., help="Overrides file"),
) -> None:
    """List pinned stages."""
    overrides = _load_overrides_or_exit(file)
    if not overrides:
        typer.echo("No overrides.")
        return
    typer.echo("Overrides:")
    for stage_id in sorted(overrides):
        o = overrides[stage_id]
        typer.echo(f"- {stage_id}: {o.date.isoformat()}{' (locked)' if o.locked else ''}")


def _print_schedule_table(result: Schedule, catalog: StageCatalog) -> None:
    names = {s.id: s.name for s in catalog.stages}
    table = Table(title="Stage schedule")
    table.add_column("Stage")
    table.add_column("Name")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Days", justify="right")
    table.add_column("Pinned")
    for s in result.stages:
        pinned = "locked" if s.locked else "yes" if s.overridden else ""
        table.add_row(
            s.stage_id,
            names.get(s.stage_id, ""),
            s.start_date.isoformat(),
            s.end_date.isoformat(),
            str((s.end_date - s.start_date).days),
            pinned,
        )
    Console().print(table)


def _load_valid_catalog(path: str, *, allow_unknown_dependencies: bool = False) -> StageCatalog:
    try:
        raw = load_catalog(path)
    except CatalogLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    catalog, errors = validate_catalog(raw, allow_unknown_dependencies=allow_unknown_dependencies)
    if errors or catalog is None:
        _print_errors(list(errors))
        raise typer.Exit(code=2)
    return catalog


def _load_overrides_or_exit(path: Optional[str]) -> dict[str, DateOverride]:
    if not path:
        return {}
    try:
        return load_overrides(path)
    except CatalogLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)


def _load_config(config_file: Optional[str]) -> SchedulerConfig:
    try:
        return load_and_merge(config_file)
    except FileNotFoundError:
        _print_errors(
            [
                CatalogLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"config file not found: {config_file}",
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=1)
    except ConfigError as e:
        _print_errors(
            [
                CatalogValidationError(
                    code="E_CONFIG_FILE_INVALID",
                    message=str(e),
                    file=config_file,
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=2)


def _parse_date_arg(value: str, name: str) -> date:
    try:
        return parse_date(value)
    except ValueError as e:
        _print_errors(
            [
                CatalogValidationError(
                    code="E_INVALID_DATE",
                    message=str(e),
                    path=name,
                )
            ]
        )
        raise typer.Exit(code=2)


def _check_format(format: str, code: str) -> None:
    if format in ("text", "json"):
        return
    _print_errors(
        [
            CatalogValidationError(
                code=code,
                message=f"unknown format: {format} (choose one of: text, json)",
                path="format",
            )
        ]
    )
    raise typer.Exit(code=2)


def _to_item(e: SchedulerError) -> dict[str, Any]:
    if isinstance(e, CatalogLoadError):
        source = "load"
    elif e.code.startswith("L_"):
        source = "lint"
    elif isinstance(e, ScheduleError):
        source = "schedule"
    else:
        source = "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "warning" if e.code.startswith("W_") else "error",
        "source": source,
    }


def _print_errors(errors: list[SchedulerError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="princess")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
