# viewlint:domain=engine
"""Matcher engine: one pre-order walk offering each node to the rules that inspect its kind."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from viewlint.rules.catalog import ENTER, EXIT, RuleContext

if TYPE_CHECKING:
    from viewlint.model.nodes import Node, SourceSpan, StructuralModel
    from viewlint.rules.catalog import ActiveRule, ActiveRuleSet, Finding

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RuleEvaluationError(RuntimeError):
    """A rule raised while inspecting one node; recorded, never fatal to the run."""

    def __init__(self, rule_id: str, span: SourceSpan, cause: BaseException) -> None:
        super().__init__(f"{span}: rule '{rule_id}' failed: {type(cause).__name__}: {cause}")
        self.rule_id = rule_id
        self.span = span
        self.cause = cause


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Analysis:
    """Raw output of one traversal, before aggregation."""

    findings: list[Finding] = field(default_factory=list)
    errors: list[RuleEvaluationError] = field(default_factory=list)
    nodes_visited: int = 0


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def analyze(model: StructuralModel, rules: ActiveRuleSet) -> Analysis:
    """Walk *model* once and evaluate every applicable rule at every node.

    Enter-phase rules see a node before its children; exit-phase rules see it
    after its whole subtree has been walked.  The walk keeps an explicit
    stack, so tree depth is bounded only by memory.  Each run owns its
    ancestor tuples and finding buffer, so separate units can be analyzed
    concurrently.
    """
    analysis = Analysis()
    # Entries are (node, ancestors, leaving); a node is pushed again to run its exit rules.
    stack: list[tuple[Node, tuple[Node, ...], bool]] = [
        (node, (), False) for node in reversed(model.nodes)
    ]
    while stack:
        node, ancestors, leaving = stack.pop()
        if leaving:
            for rule in rules.for_node(node.kind, EXIT):
                _evaluate(rule, node, ancestors, model, analysis)
            continue

        analysis.nodes_visited += 1
        for rule in rules.for_node(node.kind, ENTER):
            _evaluate(rule, node, ancestors, model, analysis)

        stack.append((node, ancestors, True))
        inner = (*ancestors, node)
        stack.extend((child, inner, False) for child in reversed(node.children))

    logger.debug(
        "%s: %d nodes, %d findings, %d rule errors",
        model.file,
        analysis.nodes_visited,
        len(analysis.findings),
        len(analysis.errors),
    )
    return analysis


def _evaluate(
    rule: ActiveRule,
    node: Node,
    ancestors: tuple[Node, ...],
    model: StructuralModel,
    analysis: Analysis,
) -> None:
    check = rule.descriptor.check
    if check is None:
        return
    try:
        ctx = RuleContext(node=node, ancestors=ancestors, model=model, rule=rule)
        # Materialize inside the guard: a rule failing halfway contributes nothing here.
        produced = list(check(ctx))
    except Exception as exc:  # any failure inside a rule
        error = RuleEvaluationError(rule.rule_id, node.span, exc)
        logger.warning("%s", error)
        analysis.errors.append(error)
        return
    analysis.findings.extend(produced)
