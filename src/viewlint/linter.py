# viewlint:domain=linter
"""Linter orchestrator: resolve configuration, analyze each unit, merge and format results."""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from io import StringIO
from typing import TYPE_CHECKING

from rich.console import Console
from rich.text import Text

from viewlint.config import ConfigParseError, load_config_file, resolve_configuration
from viewlint.engine.aggregator import Report, aggregate
from viewlint.engine.matcher import analyze
from viewlint.model.loader import load_model
from viewlint.model.nodes import MalformedModel
from viewlint.rules.builtin import default_catalog
from viewlint.rules.catalog import ERROR, SEVERITY_RANK, CatalogError

if TYPE_CHECKING:
    import threading
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from viewlint.model.nodes import StructuralModel
    from viewlint.rules.catalog import ActiveRuleSet, Finding, RuleCatalog

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LintError(Exception):
    """Raised when lint encounters a configuration error; nothing was analyzed."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SkippedUnit:
    """A source unit that was not analyzed, and why."""

    path: str
    reason: str


@dataclass
class LintResult:
    """Result of a lint run over one or more source units."""

    report: Report = field(default_factory=Report)
    units_analyzed: int = 0
    rules_evaluated: int = 0
    skipped: list[SkippedUnit] = field(default_factory=list)
    config_errors: list[ConfigParseError] = field(default_factory=list)
    fail_on: str = ERROR
    cancelled: bool = False
    elapsed_ms: float = 0.0

    @property
    def findings(self) -> tuple[Finding, ...]:
        return self.report.findings

    @property
    def should_fail(self) -> bool:
        return self.report.has_at_least(self.fail_on)

    @property
    def exit_code(self) -> int:
        """0 when clean, 1 when any finding reaches ``fail_on``."""
        return 1 if self.should_fail else 0


# ---------------------------------------------------------------------------
# Main entry points
# ---------------------------------------------------------------------------


def lint_model(model: StructuralModel, rules: ActiveRuleSet) -> Report:
    """Analyze one already-built unit and aggregate its findings."""
    analysis = analyze(model, rules)
    return aggregate(
        analysis.findings,
        model.suppressions,
        errors=analysis.errors,
        rules=rules,
    )


def _lint_path(
    path: Path,
    rules: ActiveRuleSet,
    cancel: threading.Event | None = None,
) -> Report | SkippedUnit:
    if cancel is not None and cancel.is_set():
        return SkippedUnit(path=str(path), reason="cancelled")
    try:
        model = load_model(path)
    except MalformedModel as exc:
        logger.warning("Skipping malformed unit %s: %s", path, exc)
        return SkippedUnit(path=str(path), reason=str(exc))
    except Exception as exc:  # RecursionError on very deep documents
        logger.warning("Skipping unit %s: %s: %s", path, type(exc).__name__, exc)
        return SkippedUnit(path=str(path), reason=f"cannot load model: {type(exc).__name__}")
    return lint_model(model, rules)


def lint(
    model_paths: Iterable[Path],
    *,
    config_paths: Sequence[Path] = (),
    catalog: RuleCatalog | None = None,
    fail_on: str | None = None,
    jobs: int = 1,
    cancel: threading.Event | None = None,
) -> LintResult:
    """Run the lint process over model documents and return merged results.

    Parameters
    ----------
    model_paths:
        Structural model documents (YAML/JSON), one per source unit.
    config_paths:
        Configuration documents, weakest first.
    catalog:
        Rule catalog; the built-in catalog when *None*.
    fail_on:
        Overrides the configured ``fail_on`` severity.
    jobs:
        Number of worker threads; units share no mutable state.
    cancel:
        When set, units not yet started are skipped as ``cancelled``.

    Raises
    ------
    LintError
        When configuration cannot be loaded or names unknown rules or
        invalid parameters.  No unit is analyzed in that case.
    """
    start = time.monotonic()
    catalog = catalog if catalog is not None else default_catalog()

    # Step a: configuration is resolved once, before any traversal.
    try:
        layers = [load_config_file(path) for path in config_paths]
    except ConfigParseError as exc:
        msg = f"Invalid configuration: {exc}"
        raise LintError(msg) from exc

    configuration = resolve_configuration(catalog, *layers)
    try:
        rules = catalog.resolve(configuration)
    except CatalogError as exc:
        msg = f"Invalid configuration: {exc}"
        raise LintError(msg) from exc

    effective_fail_on = fail_on if fail_on is not None else configuration.fail_on
    if effective_fail_on not in SEVERITY_RANK:
        msg = f"Invalid fail-on severity '{effective_fail_on}'"
        raise LintError(msg)

    # Step b: analyze units, possibly in parallel.
    paths = list(model_paths)
    worker = partial(_lint_path, rules=rules, cancel=cancel)
    if jobs > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            outcomes = list(pool.map(worker, paths))
    else:
        outcomes = [worker(path) for path in paths]

    # Step c: merge per-unit reports.
    reports: list[Report] = []
    skipped: list[SkippedUnit] = []
    for outcome in outcomes:
        if isinstance(outcome, SkippedUnit):
            skipped.append(outcome)
        else:
            reports.append(outcome)

    elapsed = (time.monotonic() - start) * 1000
    return LintResult(
        report=Report.merge(reports),
        units_analyzed=len(reports),
        rules_evaluated=len(rules),
        skipped=skipped,
        config_errors=list(configuration.errors),
        fail_on=effective_fail_on,
        cancelled=any(s.reason == "cancelled" for s in skipped),
        elapsed_ms=elapsed,
    )


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

_SEVERITY_STYLES: dict[str, tuple[str, str]] = {
    "error": ("✗", "bold red"),
    "warning": ("!", "yellow"),
    "info": ("i", "cyan"),
}


def _summary_line(result: LintResult) -> str:
    counts = result.report.counts()
    parts = ", ".join(f"{count} {severity}" for severity, count in counts.items())
    total = len(result.findings)
    noun = "finding" if total == 1 else "findings"
    return (
        f"{total} {noun} ({parts}) in {result.units_analyzed} units, "
        f"{result.rules_evaluated} rules, {result.elapsed_ms / 1000:.1f}s"
    )


def format_rich(result: LintResult, *, color: bool = False, width: int = 100) -> str:
    """Render a LintResult for the terminal.

    Example output::

        Rules: 7 active
        Units: 2 analyzed, 0 skipped

        ✗ error  Sources/Profile.swift:12:5  state-ownership
          '@StateObject model' in 'ProfileView' is initialized from a passed-in value ...
          hint: Use @ObservedObject or @Bindable for values the component only observes.

        1 finding (1 error, 0 warning, 0 info) in 2 units, 7 rules, 0.0s
    """
    buf = StringIO()
    console = Console(file=buf, force_terminal=color, no_color=not color, width=width)

    console.print(Text(f"Rules: {result.rules_evaluated} active"))
    console.print(
        Text(f"Units: {result.units_analyzed} analyzed, {len(result.skipped)} skipped")
    )
    console.print()

    for finding in result.findings:
        marker, style = _SEVERITY_STYLES[finding.severity]
        header = Text()
        header.append(f"{marker} {finding.severity:<8}", style=style)
        header.append(f"{finding.span}  ", style="bold")
        header.append(finding.rule_id, style="dim")
        console.print(header)
        console.print(Text(f"  {finding.message}"))
        if finding.suggestion:
            console.print(Text(f"  hint: {finding.suggestion}", style="green"))
        console.print()

    for error in result.report.errors:
        console.print(Text(f"rule error: {error}", style="bold magenta"))
    for unit in result.skipped:
        console.print(Text(f"skipped: {unit.path}: {unit.reason}", style="magenta"))
    for config_error in result.config_errors:
        console.print(Text(f"config: {config_error}", style="magenta"))
    if result.report.errors or result.skipped or result.config_errors:
        console.print()

    if result.findings:
        console.print(Text(_summary_line(result), style="bold"))
    else:
        console.print(Text(f"✓ No findings ({_summary_line(result)})", style="green"))

    return buf.getvalue().rstrip("\n")


def _finding_to_dict(finding: Finding) -> dict[str, object]:
    span = finding.span
    return {
        "rule_id": finding.rule_id,
        "severity": finding.severity,
        "file": span.file,
        "line": span.start_line,
        "column": span.start_col,
        "end_line": span.end_line,
        "end_column": span.end_col,
        "message": finding.message,
        "suggestion": finding.suggestion,
    }


def format_json(result: LintResult) -> str:
    """Format a LintResult as structured JSON with ``findings`` and ``summary``."""
    output: dict[str, object] = {
        "findings": [_finding_to_dict(f) for f in result.findings],
        "errors": [
            {
                "rule_id": e.rule_id,
                "file": e.span.file,
                "line": e.span.start_line,
                "column": e.span.start_col,
                "message": str(e),
            }
            for e in result.report.errors
        ],
        "skipped": [{"path": s.path, "reason": s.reason} for s in result.skipped],
        "config_errors": [str(e) for e in result.config_errors],
        "summary": {
            "counts": result.report.counts(),
            "findings_count": len(result.findings),
            "highest_severity": result.report.highest_severity,
            "fail_on": result.fail_on,
            "units_analyzed": result.units_analyzed,
            "rules_evaluated": result.rules_evaluated,
            "elapsed_ms": result.elapsed_ms,
        },
    }
    return json.dumps(output, indent=2)


def format_porcelain(result: LintResult) -> str:
    """One line per finding: ``file:line:col:severity:rule_id:message``.

    Returns an empty string when there are no findings.
    """
    lines: list[str] = []
    for f in result.findings:
        message = f.message.replace("\n", " ")
        span = f.span
        lines.append(
            f"{span.file}:{span.start_line}:{span.start_col}:{f.severity}:{f.rule_id}:{message}"
        )
    return "\n".join(lines)


_ANNOTATION_LEVELS: dict[str, str] = {"error": "error", "warning": "warning", "info": "notice"}


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_data(value).replace(":", "%3A").replace(",", "%2C")


def format_github(result: LintResult) -> str:
    """GitHub Actions workflow-command annotations, one per finding and rule error."""
    lines: list[str] = []
    for f in result.findings:
        span = f.span
        attributes = [
            f"file={_escape_property(span.file)}",
            f"line={span.start_line}",
            f"col={span.start_col}",
        ]
        if span.end_line != span.start_line:
            attributes.append(f"endLine={span.end_line}")
        attributes.append(f"title={_escape_property(f.rule_id)}")
        body = f.message
        if f.suggestion:
            body = f"{body}\n{f.suggestion}"
        level = _ANNOTATION_LEVELS[f.severity]
        lines.append(f"::{level} {','.join(attributes)}::{_escape_data(body)}")

    for error in result.report.errors:
        location = f"file={_escape_property(error.span.file)},line={error.span.start_line}"
        lines.append(f"::error {location},title=rule-error::{_escape_data(str(error))}")
    return "\n".join(lines)


FORMATTERS = {
    "rich": format_rich,
    "json": format_json,
    "porcelain": format_porcelain,
    "github": format_github,
}
