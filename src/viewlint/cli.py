"""viewlint CLI entry point."""

# viewlint:service=cli

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from viewlint import __version__
from viewlint.rules.catalog import VALID_SEVERITIES


@click.group()
@click.version_option(version=__version__, prog_name="viewlint")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """viewlint - structural lint for declarative UI components."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@main.command()
@click.argument(
    "models",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--config",
    "config_paths",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Configuration file; repeat to layer (default: nearest .viewlint.yml).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain", "github"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--fail-on",
    type=click.Choice(sorted(VALID_SEVERITIES)),
    default=None,
    help="Lowest severity that makes the run fail (default: from config, else error).",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of source units analyzed in parallel.",
)
@click.pass_context
def lint(
    ctx: click.Context,
    *,
    models: tuple[Path, ...],
    config_paths: tuple[Path, ...],
    fmt: str | None,
    fail_on: str | None,
    jobs: int,
) -> None:
    """Run the rule catalog against structural model documents.

    Exit codes: 0 = no finding at or above the fail-on severity,
    1 = failing findings, 2 = configuration error.
    """
    from viewlint.config import discover_config
    from viewlint.linter import FORMATTERS, LintError
    from viewlint.linter import lint as run_lint

    quiet = bool(ctx.obj and ctx.obj.get("quiet"))

    if not config_paths:
        discovered = discover_config(Path.cwd())
        config_paths = (discovered,) if discovered is not None else ()

    # Resolve output format: explicit flag > TTY detection.
    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    try:
        result = run_lint(models, config_paths=config_paths, fail_on=fail_on, jobs=jobs)
    except LintError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "rich":
        output = FORMATTERS[fmt](result, color=sys.stdout.isatty())
    else:
        output = FORMATTERS[fmt](result)
    if output:
        click.echo(output)

    if fmt in ("porcelain", "github") and not quiet:
        for error in result.report.errors:
            click.echo(f"rule error: {error}", err=True)
        for unit in result.skipped:
            click.echo(f"skipped: {unit.path}: {unit.reason}", err=True)
        for config_error in result.config_errors:
            click.echo(f"config: {config_error}", err=True)

    if result.should_fail:
        sys.exit(1)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def rules(*, as_json: bool) -> None:
    """List the rule catalog with default severities and parameters."""
    from viewlint.rules.builtin import default_catalog

    catalog = default_catalog()

    if as_json:
        payload = [
            {
                "rule_id": d.rule_id,
                "category": d.category,
                "severity": d.default_severity,
                "enabled": d.enabled_by_default,
                "description": d.description,
                "params": {p.name: _jsonable(p.default) for p in d.params},
            }
            for d in catalog
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Rule", style="bold", no_wrap=True)
    table.add_column("Category", no_wrap=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Default", no_wrap=True)
    table.add_column("Parameters", style="dim")
    for d in catalog:
        params = ", ".join(f"{p.name}={_display(p.default)}" for p in d.params)
        table.add_row(
            d.rule_id,
            d.category,
            d.default_severity,
            "on" if d.enabled_by_default else "off",
            params or "-",
        )
    Console().print(table)


def _jsonable(value: object) -> object:
    return list(value) if isinstance(value, tuple) else value


def _display(value: object) -> str:
    return ",".join(str(v) for v in value) if isinstance(value, tuple) else str(value)
