# viewlint:domain=engine
"""Diagnostic aggregator: deduplicate, apply suppressions, sort, and count findings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from viewlint.engine.suppressions import ALL_RULES
from viewlint.model.nodes import SourceSpan
from viewlint.rules.builtin import UNUSED_SUPPRESSION
from viewlint.rules.catalog import INFO, SEVERITY_RANK, Finding

if TYPE_CHECKING:
    from collections.abc import Iterable

    from viewlint.engine.matcher import RuleEvaluationError
    from viewlint.engine.suppressions import Suppression
    from viewlint.rules.catalog import ActiveRuleSet


@dataclass(frozen=True)
class Report:
    """Sorted, deduplicated findings plus the rule errors met along the way."""

    findings: tuple[Finding, ...] = ()
    errors: tuple[RuleEvaluationError, ...] = ()

    def counts(self) -> dict[str, int]:
        """Return ``{severity: count}`` for every severity level, most severe first."""
        counts = {
            severity: 0 for severity in sorted(SEVERITY_RANK, key=SEVERITY_RANK.get, reverse=True)
        }
        for finding in self.findings:
            counts[finding.severity] += 1
        return counts

    @property
    def highest_severity(self) -> str | None:
        if not self.findings:
            return None
        return max(self.findings, key=lambda f: SEVERITY_RANK[f.severity]).severity

    def has_at_least(self, severity: str) -> bool:
        threshold = SEVERITY_RANK[severity]
        return any(SEVERITY_RANK[f.severity] >= threshold for f in self.findings)

    @classmethod
    def merge(cls, reports: Iterable[Report]) -> Report:
        """Combine per-unit reports into one, keeping the report order contract."""
        findings: list[Finding] = []
        errors: list[RuleEvaluationError] = []
        for report in reports:
            findings.extend(report.findings)
            errors.extend(report.errors)
        findings.sort(key=lambda f: f.sort_key)
        errors.sort(key=lambda e: (e.span.sort_key, e.rule_id))
        return cls(findings=tuple(findings), errors=tuple(errors))


def aggregate(
    findings: Iterable[Finding],
    suppressions: Iterable[Suppression] = (),
    *,
    errors: Iterable[RuleEvaluationError] = (),
    rules: ActiveRuleSet | None = None,
) -> Report:
    """Build the final report for one unit.

    Identical ``(rule_id, span)`` pairs are reported once.  Suppressed findings
    are dropped; a suppression that silenced nothing becomes an
    ``unused-suppression`` finding.  When *rules* is given, that finding is
    only produced while ``unused-suppression`` is active, at its configured
    severity, and never for directives naming a registered rule that is
    disabled.  Unknown rule ids are always reported.
    """
    unique: list[Finding] = []
    seen: set[tuple[str, SourceSpan]] = set()
    for finding in findings:
        key = (finding.rule_id, finding.span)
        if key in seen:
            continue
        seen.add(key)
        unique.append(finding)

    pending = list(suppressions)
    used = [False] * len(pending)
    kept: list[Finding] = []
    for finding in unique:
        silenced = False
        for idx, suppression in enumerate(pending):
            if suppression.matches(finding.rule_id, finding.span.file, finding.span.start_line):
                used[idx] = True
                silenced = True
        if not silenced:
            kept.append(finding)

    kept.extend(_unused_findings(pending, used, rules))
    kept.sort(key=lambda f: f.sort_key)
    return Report(findings=tuple(kept), errors=tuple(errors))


def _unused_findings(
    suppressions: list[Suppression],
    used: list[bool],
    rules: ActiveRuleSet | None,
) -> list[Finding]:
    severity = INFO
    if rules is not None:
        active = rules.get(UNUSED_SUPPRESSION)
        if active is None:
            return []
        severity = active.severity

    result: list[Finding] = []
    for suppression, was_used in zip(suppressions, used):
        if was_used:
            continue
        named = suppression.rule_id
        unknown = False
        if rules is not None and named != ALL_RULES and named not in rules:
            # Disabled rules stay quiet.
            if rules.is_registered(named):
                continue
            unknown = True
        span = SourceSpan(
            suppression.file,
            suppression.line,
            suppression.column,
            suppression.line,
            suppression.column,
        )
        if unknown:
            message = f"Suppression names unknown rule '{named}' and silences nothing"
            suggestion = "Fix the rule id or remove the directive."
        else:
            message = (
                f"Suppression of '{named}' for line "
                f"{suppression.target_line} did not match any finding"
            )
            suggestion = "Remove the directive."
        result.append(
            Finding(
                rule_id=UNUSED_SUPPRESSION,
                severity=severity,
                span=span,
                message=message,
                suggestion=suggestion,
            )
        )
    return result
