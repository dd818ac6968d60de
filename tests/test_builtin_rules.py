"""Tests for the built-in rules, driven through the matcher and aggregator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from viewlint.config import resolve_configuration
from viewlint.linter import lint_model
from viewlint.model.nodes import (
    CLOSURE,
    COMPONENT,
    FUNCTION,
    IDENTIFIER,
    MODIFIER,
    PROPERTY,
    Node,
    SourceSpan,
    StructuralModel,
)
from viewlint.rules.builtin import default_catalog
from viewlint.rules.catalog import ERROR, INFO, WARNING

if TYPE_CHECKING:
    from viewlint.engine.aggregator import Report

FILE = "Sources/View.swift"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _n(
    kind: str,
    start: int,
    end: int,
    name: str | None = None,
    *children: Node,
    annotations: dict[str, list[str]] | None = None,
    **attributes: Any,
) -> Node:
    """Build a node spanning whole lines ``start..end`` (columns 1..80)."""
    return Node(
        kind=kind,
        span=SourceSpan(FILE, start, 1, end, 80),
        name=name,
        children=children,
        annotations=annotations or {},
        attributes=attributes,
    )


def _analyze(
    *nodes: Node,
    rules: dict[str, Any] | None = None,
    source_lines: list[str] | None = None,
) -> Report:
    catalog = default_catalog()
    active = catalog.resolve(resolve_configuration(catalog, {"rules": rules or {}}))
    model = StructuralModel(FILE, nodes, source_lines=source_lines or ())
    return lint_model(model, active)


def _ids(report: Report) -> list[str]:
    return [f.rule_id for f in report.findings]


# ---------------------------------------------------------------------------
# body-size-limit
# ---------------------------------------------------------------------------


class TestBodySizeLimit:
    def _component(self, body_lines: int, body_name: str = "body") -> Node:
        body = _n(FUNCTION, 2, 1 + body_lines, body_name)
        return _n(COMPONENT, 1, body_lines + 2, "ProfileView", body)

    def test_at_threshold_no_finding(self) -> None:
        assert _analyze(self._component(50)).findings == ()

    def test_one_over_threshold_single_finding(self) -> None:
        report = _analyze(self._component(51))
        assert _ids(report) == ["body-size-limit"]
        finding = report.findings[0]
        assert finding.severity == WARNING
        assert finding.span.start_line == 2
        assert "51 lines (max 50)" in finding.message

    def test_only_rendering_function_is_measured(self) -> None:
        assert _analyze(self._component(120, body_name="helper")).findings == ()

    def test_configured_threshold_and_names(self) -> None:
        report = _analyze(
            self._component(12, body_name="render"),
            rules={"body-size-limit": {"maxBodyLines": 10, "bodyNames": ["body", "render"]}},
        )
        assert _ids(report) == ["body-size-limit"]

    def test_blank_and_comment_lines_not_counted(self) -> None:
        # 51 physical lines in the body, one of them a comment.
        source = ["struct ProfileView: View {"]
        source += ["    Text(\"row\")"] * 50
        source[25] = "    // section"
        source += ["}", "}"]
        report = _analyze(self._component(51), source_lines=source)
        assert report.findings == ()


# ---------------------------------------------------------------------------
# state-ownership
# ---------------------------------------------------------------------------


class TestStateOwnership:
    def test_owning_annotation_on_parameter(self) -> None:
        prop = _n(
            PROPERTY, 2, 2, "model",
            annotations={"StateObject": []}, initializer_kind="parameter",
        )
        report = _analyze(_n(COMPONENT, 1, 5, "ProfileView", prop))
        assert _ids(report) == ["state-ownership"]
        assert report.findings[0].severity == ERROR
        assert report.findings[0].suggestion is not None

    def test_owning_annotation_constructed_in_place(self) -> None:
        prop = _n(
            PROPERTY, 2, 2, "model",
            annotations={"StateObject": []}, initializer_kind="construction",
        )
        assert _analyze(_n(COMPONENT, 1, 5, "ProfileView", prop)).findings == ()

    def test_observing_annotation_constructed_in_place(self) -> None:
        prop = _n(
            PROPERTY, 2, 2, "model",
            annotations={"ObservedObject": []}, initializer_kind="construction",
        )
        report = _analyze(_n(COMPONENT, 1, 5, "ProfileView", prop))
        assert _ids(report) == ["state-ownership"]
        assert "recreated" in report.findings[0].message

    def test_property_outside_component_ignored(self) -> None:
        prop = _n(
            PROPERTY, 1, 1, "model",
            annotations={"StateObject": []}, initializer_kind="parameter",
        )
        assert _analyze(prop).findings == ()


# ---------------------------------------------------------------------------
# isolation-consistency
# ---------------------------------------------------------------------------


class TestIsolationConsistency:
    def _component(self, closure_child: Node, **closure_attrs: Any) -> Node:
        state = _n(PROPERTY, 2, 2, "count", annotations={"State": []})
        closure = _n(CLOSURE, 5, 8, None, closure_child, **closure_attrs)
        body = _n(FUNCTION, 3, 10, "body", _n(IDENTIFIER, 4, 4, "count"), closure)
        return _n(COMPONENT, 1, 12, "CounterView", state, body, annotations={"MainActor": []})

    def test_access_from_other_domain(self) -> None:
        ident = _n(IDENTIFIER, 6, 6, "self.count")
        report = _analyze(self._component(ident, is_async=True, isolation="global"))
        assert _ids(report) == ["isolation-consistency"]
        finding = report.findings[0]
        assert finding.span.start_line == 6
        assert "'count'" in finding.message
        assert "MainActor" in finding.message

    def test_explicit_hop_is_allowed(self) -> None:
        ident = _n(IDENTIFIER, 7, 7, "count")
        hop = _n(MODIFIER, 6, 7, "run", ident, hop="MainActor")
        report = _analyze(self._component(hop, is_async=True, isolation="global"))
        assert report.findings == ()

    def test_hop_below_container_is_allowed(self) -> None:
        ident = _n(IDENTIFIER, 8, 8, "count")
        hop = _n(MODIFIER, 7, 8, "run", ident, hop="MainActor")
        stack = _n(MODIFIER, 6, 8, "VStack", hop)
        report = _analyze(self._component(stack, is_async=True, isolation="global"))
        assert report.findings == ()

    def test_container_without_hop_is_reported(self) -> None:
        ident = _n(IDENTIFIER, 8, 8, "count")
        stack = _n(MODIFIER, 6, 8, "VStack", _n(MODIFIER, 7, 8, "padding", ident))
        report = _analyze(self._component(stack, is_async=True, isolation="global"))
        assert _ids(report) == ["isolation-consistency"]
        assert report.findings[0].span == ident.span

    def test_inherited_domain_is_allowed(self) -> None:
        ident = _n(IDENTIFIER, 6, 6, "count")
        assert _analyze(self._component(ident)).findings == ()

    def test_nonisolated_is_exempt(self) -> None:
        ident = _n(IDENTIFIER, 6, 6, "count")
        state = _n(PROPERTY, 2, 2, "count", annotations={"State": []})
        fn = _n(FUNCTION, 3, 8, "describe", ident, annotations={"nonisolated": []})
        comp = _n(COMPONENT, 1, 10, "CounterView", state, fn, annotations={"MainActor": []})
        assert _analyze(comp).findings == ()

    def test_unisolated_component_ignored(self) -> None:
        ident = _n(IDENTIFIER, 6, 6, "count")
        state = _n(PROPERTY, 2, 2, "count", annotations={"State": []})
        closure = _n(CLOSURE, 5, 8, None, ident, isolation="global")
        comp = _n(COMPONENT, 1, 10, "CounterView", state, closure)
        assert _analyze(comp).findings == ()


# ---------------------------------------------------------------------------
# capture-discipline
# ---------------------------------------------------------------------------


class TestCaptureDiscipline:
    def _model(self, closure: Node, *, reference_type: bool = True) -> Node:
        return _n(COMPONENT, 1, 10, "ProfileModel", closure, reference_type=reference_type)

    def test_escaping_strong_capture(self) -> None:
        closure = _n(CLOSURE, 2, 4, None, escaping=True, captures=["self"])
        report = _analyze(self._model(closure))
        assert _ids(report) == ["capture-discipline"]
        assert "strongly" in report.findings[0].message

    def test_weak_capture_is_fine_when_guarded(self) -> None:
        guard = _n(IDENTIFIER, 3, 3, "self", guard="self")
        closure = _n(
            CLOSURE, 2, 5, None, guard,
            is_async=True, captures=["self"], capture_list={"self": "weak"},
        )
        assert _analyze(self._model(closure)).findings == ()

    def test_weak_async_capture_without_guard(self) -> None:
        work = _n(IDENTIFIER, 3, 3, "self.reload")
        closure = _n(
            CLOSURE, 2, 5, None, work,
            is_async=True, captures=["self"], capture_list={"self": "weak"},
        )
        report = _analyze(self._model(closure))
        assert _ids(report) == ["capture-discipline"]
        assert "still alive" in report.findings[0].message

    def test_unowned_capture_is_fine(self) -> None:
        work = _n(IDENTIFIER, 3, 3, "self.reload")
        closure = _n(
            CLOSURE, 2, 5, None, work,
            escaping=True, is_async=True, captures=["self"], capture_list={"self": "unowned"},
        )
        assert _analyze(self._model(closure)).findings == ()

    def test_non_escaping_closure_ignored(self) -> None:
        closure = _n(CLOSURE, 2, 4, None, captures=["self"])
        assert _analyze(self._model(closure)).findings == ()

    def test_value_type_component_ignored(self) -> None:
        closure = _n(CLOSURE, 2, 4, None, escaping=True, captures=["self"])
        assert _analyze(self._model(closure, reference_type=False)).findings == ()


# ---------------------------------------------------------------------------
# stable-identity
# ---------------------------------------------------------------------------


class TestStableIdentity:
    def _list_view(self, repeater: Node) -> Node:
        body = _n(FUNCTION, 2, 9, "body", repeater)
        return _n(COMPONENT, 1, 10, "ListView", body)

    def test_positional_identifier(self) -> None:
        repeater = _n(MODIFIER, 3, 7, "ForEach", data="items.enumerated()", id="\\.offset")
        report = _analyze(self._list_view(repeater))
        assert _ids(report) == ["stable-identity"]
        assert report.findings[0].span == repeater.span

    def test_index_range_without_identifier(self) -> None:
        repeater = _n(MODIFIER, 3, 7, "ForEach", data="0..<items.count", id="\\.self")
        assert _ids(_analyze(self._list_view(repeater))) == ["stable-identity"]

    def test_list_component_with_positional_identifier(self) -> None:
        row = _n(COMPONENT, 4, 6, "RowView")
        repeater = _n(COMPONENT, 3, 7, "ForEach", row, data="items", id="index")
        report = _analyze(self._list_view(repeater))
        assert _ids(report) == ["stable-identity"]
        assert report.findings[0].span == repeater.span
        assert "'index'" in report.findings[0].message

    def test_stable_identifier(self) -> None:
        repeater = _n(MODIFIER, 3, 7, "ForEach", data="items", id="\\.id")
        assert _analyze(self._list_view(repeater)).findings == ()

    def test_identifiable_items(self) -> None:
        repeater = _n(MODIFIER, 3, 7, "List", data="items")
        assert _analyze(self._list_view(repeater)).findings == ()


# ---------------------------------------------------------------------------
# lifecycle-task-binding
# ---------------------------------------------------------------------------


class TestLifecycleTaskBinding:
    def _view(self, modifier: Node) -> Node:
        return _n(COMPONENT, 1, 10, "FeedView", _n(FUNCTION, 2, 9, "body", modifier))

    def test_task_started_on_appear(self) -> None:
        launcher = _n(IDENTIFIER, 4, 4, "Task")
        appear = _n(MODIFIER, 3, 6, "onAppear", _n(CLOSURE, 4, 5, None, launcher))
        report = _analyze(self._view(appear))
        assert _ids(report) == ["lifecycle-task-binding"]
        assert report.findings[0].span == appear.span

    def test_async_closure_on_appear(self) -> None:
        appear = _n(MODIFIER, 3, 6, "onAppear", _n(CLOSURE, 4, 5, None, is_async=True))
        assert _ids(_analyze(self._view(appear))) == ["lifecycle-task-binding"]

    def test_synchronous_on_appear(self) -> None:
        appear = _n(MODIFIER, 3, 6, "onAppear", _n(IDENTIFIER, 4, 4, "track"))
        assert _analyze(self._view(appear)).findings == ()

    def test_task_modifier_is_bound(self) -> None:
        task = _n(MODIFIER, 3, 6, "task", _n(CLOSURE, 4, 5, None, is_async=True))
        assert _analyze(self._view(task)).findings == ()


# ---------------------------------------------------------------------------
# Opt-in rules
# ---------------------------------------------------------------------------


def _depth_rules(max_depth: int) -> dict[str, Any]:
    return {"nesting-depth": {"enabled": True, "maxDepth": max_depth}}


class TestNestingDepth:
    def _nested(self) -> Node:
        inner = _n(MODIFIER, 5, 5, "Text")
        mid = _n(MODIFIER, 4, 6, "HStack", inner)
        outer = _n(MODIFIER, 3, 7, "VStack", mid)
        return _n(COMPONENT, 1, 10, "CardView", _n(FUNCTION, 2, 9, "body", outer))

    def test_disabled_by_default(self) -> None:
        assert _analyze(self._nested()).findings == ()

    def test_reports_when_enabled(self) -> None:
        report = _analyze(self._nested(), rules=_depth_rules(2))
        assert _ids(report) == ["nesting-depth"]
        assert report.findings[0].severity == INFO

    def test_within_limit(self) -> None:
        report = _analyze(self._nested(), rules=_depth_rules(3))
        assert report.findings == ()


class TestNamingConvention:
    def test_reports_when_enabled(self) -> None:
        prop = _n(PROPERTY, 2, 2, "UserName")
        fn = _n(FUNCTION, 3, 4, "_loadData")
        comp = _n(COMPONENT, 1, 5, "profileView", prop, fn)
        report = _analyze(comp, rules={"naming-convention": True})
        assert [f.span.start_line for f in report.findings] == [1, 2]

    def test_disabled_by_default(self) -> None:
        comp = _n(COMPONENT, 1, 5, "profileView")
        assert _analyze(comp).findings == ()


# ---------------------------------------------------------------------------
# Combined scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    def test_large_body_and_misowned_state(self) -> None:
        prop = _n(
            PROPERTY, 2, 2, "model",
            annotations={"StateObject": []}, initializer_kind="parameter",
        )
        body = _n(FUNCTION, 3, 62, "body")
        comp = _n(COMPONENT, 1, 63, "ProfileView", prop, body)

        report = _analyze(comp)

        assert [(f.rule_id, f.severity) for f in report.findings] == [
            ("state-ownership", ERROR),
            ("body-size-limit", WARNING),
        ]
        assert report.counts() == {"error": 1, "warning": 1, "info": 0}
