# viewlint:domain=rules
"""Built-in rules for declarative, component-based UI code.

Each rule is a pure function of a :class:`RuleContext` that yields findings.
Rules read semantic facts from node ``attributes``/``annotations`` supplied by
the front-end; they never look outside the node, its subtree, its ancestors,
and the unit's source text.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from viewlint.model.nodes import (
    ANNOTATION,
    CLOSURE,
    COMPONENT,
    FUNCTION,
    IDENTIFIER,
    MODIFIER,
    PROPERTY,
)
from viewlint.rules.catalog import (
    ERROR,
    EXIT,
    INFO,
    WARNING,
    ParamSpec,
    RuleCatalog,
    RuleDescriptor,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from viewlint.model.nodes import Node
    from viewlint.rules.catalog import Finding, RuleContext

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

UNUSED_SUPPRESSION = "unused-suppression"

NONISOLATED = "nonisolated"
WEAK_CAPTURES: frozenset[str] = frozenset({"weak", "unowned"})

_INDEX_SOURCE_RE = re.compile(r"\.indices\b|\.\.<|\.\.\.|\benumerated\s*\(\s*\)")
_UPPER_CAMEL_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")
_LOWER_CAMEL_RE = re.compile(r"^[a-z][A-Za-z0-9]*$")

_NESTING_KINDS: frozenset[str] = frozenset({MODIFIER, CLOSURE, COMPONENT})

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _is_render_function(ctx: RuleContext) -> bool:
    """True when the node is a component's primary rendering function."""
    parent = ctx.parent
    return (
        parent is not None
        and parent.kind == COMPONENT
        and ctx.node.name in ctx.params["bodyNames"]
    )


def _strip_sigil(name: str) -> str:
    """``self.count`` / ``$count`` / ``_count`` -> ``count``."""
    if name.startswith("self."):
        name = name[len("self.") :]
    return name.lstrip("$_")


def _own_domain(node: Node, isolation_annotations: tuple[str, ...]) -> str | None:
    if node.has_annotation(NONISOLATED):
        return NONISOLATED
    annotation = node.first_annotation(isolation_annotations)
    if annotation is not None:
        return annotation
    explicit = node.attr("isolation")
    return str(explicit) if explicit else None


def _effective_domain(ctx: RuleContext, isolation_annotations: tuple[str, ...]) -> str | None:
    for candidate in (ctx.node, *reversed(ctx.ancestors)):
        if candidate.kind not in (FUNCTION, CLOSURE, COMPONENT):
            continue
        domain = _own_domain(candidate, isolation_annotations)
        if domain is not None:
            return domain
    return None


def _label(node: Node) -> str:
    return f"{node.kind} '{node.name}'" if node.name else f"anonymous {node.kind}"


# ---------------------------------------------------------------------------
# body-size-limit
# ---------------------------------------------------------------------------


def check_body_size(ctx: RuleContext) -> Iterator[Finding]:
    if not _is_render_function(ctx):
        return
    limit: int = ctx.params["maxBodyLines"]
    measured = ctx.model.measured_lines(ctx.node.span)
    if measured > limit:
        component = ctx.parent
        assert component is not None
        yield ctx.report(
            f"Rendering body of '{component.name}' spans {measured} lines (max {limit})",
            suggestion="Extract parts of the body into smaller child components.",
        )


# ---------------------------------------------------------------------------
# state-ownership
# ---------------------------------------------------------------------------


def check_state_ownership(ctx: RuleContext) -> Iterator[Finding]:
    component = ctx.nearest(COMPONENT)
    if component is None:
        return
    node = ctx.node
    owning: tuple[str, ...] = ctx.params["owningAnnotations"]
    observing: tuple[str, ...] = ctx.params["observingAnnotations"]
    initializer = node.attr("initializer_kind")

    owning_used = node.first_annotation(owning)
    if owning_used is not None and initializer == "parameter":
        alternatives = " or ".join(f"@{a}" for a in observing) or "a non-owning annotation"
        yield ctx.report(
            f"'@{owning_used} {node.name}' in '{component.name}' is initialized from a "
            f"passed-in value, but @{owning_used} declares ownership",
            suggestion=f"Use {alternatives} for values the component only observes.",
        )

    observing_used = node.first_annotation(observing)
    if observing_used is not None and initializer == "construction":
        alternatives = " or ".join(f"@{a}" for a in owning) or "an owning annotation"
        yield ctx.report(
            f"'@{observing_used} {node.name}' constructs its value in place; it is "
            f"recreated whenever '{component.name}' is rebuilt",
            suggestion=f"Use {alternatives} for values the component creates and owns.",
        )


# ---------------------------------------------------------------------------
# isolation-consistency
# ---------------------------------------------------------------------------


def _state_properties(component: Node, state_annotations: tuple[str, ...]) -> set[str]:
    return {
        _strip_sigil(child.name)
        for child in component.children
        if child.kind == PROPERTY
        and child.name
        and (child.first_annotation(state_annotations) is not None or child.attr("stateful"))
    }


def _unhopped_identifiers(node: Node, domain: str) -> Iterator[Node]:
    """Yield identifiers under *node* that run in *node*'s own context.

    Nested functions/closures are checked on their own visit; ``hop`` nodes
    into *domain* are explicit context switches.
    """
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        if current.kind in (FUNCTION, CLOSURE):
            continue
        if current.attr("hop") == domain:
            continue
        if current.kind == IDENTIFIER:
            yield current
        stack.extend(reversed(current.children))


def check_isolation(ctx: RuleContext) -> Iterator[Finding]:
    component = ctx.nearest(COMPONENT)
    if component is None:
        return
    isolation_annotations: tuple[str, ...] = ctx.params["isolationAnnotations"]
    component_domain = _own_domain(component, isolation_annotations)
    if component_domain is None or component_domain == NONISOLATED:
        return

    domain = _effective_domain(ctx, isolation_annotations)
    if domain in (component_domain, NONISOLATED):
        return

    state = _state_properties(component, ctx.params["stateAnnotations"])
    if not state:
        return

    reported: set[str] = set()
    for ident in _unhopped_identifiers(ctx.node, component_domain):
        name = _strip_sigil(ident.name or "")
        if name not in state or name in reported:
            continue
        reported.add(name)
        yield ctx.report(
            f"'{name}' belongs to {component_domain}-isolated '{component.name}' but is "
            f"accessed from {_label(ctx.node)} running on {domain or 'an unspecified executor'}",
            node=ident,
            suggestion=(
                f"Hop to {component_domain} before touching '{name}' "
                f"(e.g. 'await {component_domain}.run {{ ... }}') or mark the "
                f"{ctx.node.kind} @{component_domain}."
            ),
        )


# ---------------------------------------------------------------------------
# capture-discipline
# ---------------------------------------------------------------------------


def _starts_with_guard(closure: Node, name: str) -> bool:
    for child in closure.children:
        if child.kind == ANNOTATION:
            continue
        return child.attr("guard") == name
    return False


def check_capture_discipline(ctx: RuleContext) -> Iterator[Finding]:
    component = ctx.nearest(COMPONENT)
    if component is None or not component.attr("reference_type", False):
        return
    node = ctx.node
    is_async = bool(node.attr("is_async", False))
    escaping = is_async or bool(node.attr("escaping", False))
    captures = set(node.attr("captures", ()) or ())
    capture_list = dict(node.attr("capture_list", {}) or {})

    for name in ctx.params["ownerNames"]:
        if name not in captures and name not in capture_list:
            continue
        mode = str(capture_list.get(name, "strong"))
        if mode not in WEAK_CAPTURES:
            if escaping:
                yield ctx.report(
                    f"Escaping closure in '{component.name}' captures '{name}' strongly "
                    f"and can keep its owner alive",
                    suggestion=f"Capture '[weak {name}]' or '[unowned {name}]' instead.",
                )
            continue
        if mode == "weak" and is_async and not _starts_with_guard(node, name):
            yield ctx.report(
                f"Async closure in '{component.name}' captures '{name}' weakly but does "
                f"not check that it is still alive before doing work",
                suggestion=f"Start the closure with 'guard let {name} else {{ return }}'.",
            )


# ---------------------------------------------------------------------------
# stable-identity
# ---------------------------------------------------------------------------


def check_stable_identity(ctx: RuleContext) -> Iterator[Finding]:
    node = ctx.node
    if node.name not in ctx.params["repeaters"]:
        return
    identity = node.attr("id")
    identity_text = str(identity).strip() if identity is not None else None
    data = node.attr("data")

    if identity_text is not None and identity_text in ctx.params["positionalIds"]:
        yield ctx.report(
            f"'{node.name}' identifies items by position ('{identity_text}')",
            suggestion="Use a stable per-item identifier such as '\\.id'.",
        )
        return

    if identity_text in (None, "\\.self") and data is not None:
        data_text = str(data)
        if _INDEX_SOURCE_RE.search(data_text):
            yield ctx.report(
                f"'{node.name}' iterates over positions ('{data_text}') without a stable "
                f"per-item identifier",
                suggestion="Iterate the items themselves and supply 'id:' with a stable key.",
            )


# ---------------------------------------------------------------------------
# lifecycle-task-binding
# ---------------------------------------------------------------------------


def _find_async_work(node: Node, launchers: tuple[str, ...]) -> Node | None:
    for descendant in node.iter_subtree():
        if descendant is node:
            continue
        if descendant.kind == CLOSURE and descendant.attr("is_async", False):
            return descendant
        if descendant.kind in (MODIFIER, IDENTIFIER) and descendant.name in launchers:
            return descendant
    return None


def check_lifecycle_task(ctx: RuleContext) -> Iterator[Finding]:
    node = ctx.node
    if node.name not in ctx.params["appearanceEvents"]:
        return
    if _find_async_work(node, ctx.params["asyncLaunchers"]) is None:
        return
    yield ctx.report(
        f"Asynchronous work started in '.{node.name}' is not bound to the component's "
        f"visible lifetime",
        suggestion=(
            "Use '.task(id:)' so the work is cancelled when the value changes "
            "or the component disappears."
        ),
    )


# ---------------------------------------------------------------------------
# nesting-depth
# ---------------------------------------------------------------------------


def _max_nesting(node: Node) -> int:
    deepest = 0
    stack: list[tuple[Node, int]] = [(child, 0) for child in node.children]
    while stack:
        current, depth = stack.pop()
        if current.kind in _NESTING_KINDS:
            depth += 1
        deepest = max(deepest, depth)
        stack.extend((child, depth) for child in current.children)
    return deepest


def check_nesting_depth(ctx: RuleContext) -> Iterator[Finding]:
    if not _is_render_function(ctx):
        return
    limit: int = ctx.params["maxDepth"]
    depth = _max_nesting(ctx.node)
    if depth > limit:
        component = ctx.parent
        assert component is not None
        yield ctx.report(
            f"Rendering body of '{component.name}' nests {depth} levels deep (max {limit})",
            suggestion="Flatten the hierarchy by extracting nested sections into components.",
        )


# ---------------------------------------------------------------------------
# naming-convention
# ---------------------------------------------------------------------------


def check_naming(ctx: RuleContext) -> Iterator[Finding]:
    node = ctx.node
    if not node.name:
        return
    name = node.name.lstrip("_$")
    if not name or not name[0].isalpha():
        return  # operators, subscripts
    if node.kind == COMPONENT:
        if not _UPPER_CAMEL_RE.match(name):
            yield ctx.report(
                f"Component name '{node.name}' is not UpperCamelCase",
                suggestion="Name components like types, e.g. 'ProfileHeader'.",
            )
    elif not _LOWER_CAMEL_RE.match(name):
        yield ctx.report(
            f"{node.kind.capitalize()} name '{node.name}' is not lowerCamelCase",
            suggestion="Name functions and properties like values, e.g. 'userName'.",
        )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

BUILTIN_RULES: tuple[RuleDescriptor, ...] = (
    RuleDescriptor(
        rule_id="body-size-limit",
        category="Performance",
        default_severity=WARNING,
        description="A component's rendering body must stay within a line limit.",
        kinds=frozenset({FUNCTION}),
        check=check_body_size,
        phase=EXIT,
        params=(
            ParamSpec("maxBodyLines", 50, minimum=1, description="Counted lines allowed."),
            ParamSpec("bodyNames", "body", kind="names", description="Rendering functions."),
        ),
    ),
    RuleDescriptor(
        rule_id="state-ownership",
        category="Architecture",
        default_severity=ERROR,
        description="Owning state annotations only on values the component constructs.",
        kinds=frozenset({PROPERTY}),
        check=check_state_ownership,
        params=(
            ParamSpec("owningAnnotations", "State,StateObject", kind="names"),
            ParamSpec("observingAnnotations", "ObservedObject,Bindable", kind="names"),
        ),
    ),
    RuleDescriptor(
        rule_id="isolation-consistency",
        category="Concurrency",
        default_severity=ERROR,
        description="Component state is only touched from the component's isolation domain.",
        kinds=frozenset({FUNCTION, CLOSURE}),
        check=check_isolation,
        params=(
            ParamSpec("isolationAnnotations", "MainActor", kind="names"),
            ParamSpec(
                "stateAnnotations",
                "State,StateObject,ObservedObject,Published,Binding,Bindable,EnvironmentObject",
                kind="names",
            ),
        ),
    ),
    RuleDescriptor(
        rule_id="capture-discipline",
        category="Memory",
        default_severity=WARNING,
        description="Escaping closures capture their owner weakly and check liveness first.",
        kinds=frozenset({CLOSURE}),
        check=check_capture_discipline,
        params=(ParamSpec("ownerNames", "self", kind="names"),),
    ),
    RuleDescriptor(
        rule_id="stable-identity",
        category="Performance",
        default_severity=WARNING,
        description="Repeated lists supply a stable per-item identifier.",
        kinds=frozenset({MODIFIER, COMPONENT}),
        check=check_stable_identity,
        params=(
            ParamSpec("repeaters", "ForEach,List", kind="names"),
            ParamSpec("positionalIds", "\\.offset,offset,index,\\.index", kind="names"),
        ),
    ),
    RuleDescriptor(
        rule_id="lifecycle-task-binding",
        category="Concurrency",
        default_severity=WARNING,
        description="Async work on appearance is bound to the component's lifetime.",
        kinds=frozenset({MODIFIER}),
        check=check_lifecycle_task,
        params=(
            ParamSpec("appearanceEvents", "onAppear", kind="names"),
            ParamSpec("asyncLaunchers", "Task,Task.detached", kind="names"),
        ),
    ),
    RuleDescriptor(
        rule_id="nesting-depth",
        category="Performance",
        default_severity=INFO,
        description="A rendering body does not nest containers beyond a depth limit.",
        kinds=frozenset({FUNCTION}),
        check=check_nesting_depth,
        phase=EXIT,
        params=(
            ParamSpec("maxDepth", 8, minimum=1),
            ParamSpec("bodyNames", "body", kind="names"),
        ),
        enabled_by_default=False,
    ),
    RuleDescriptor(
        rule_id="naming-convention",
        category="Style",
        default_severity=INFO,
        description="Components are UpperCamelCase; functions and properties lowerCamelCase.",
        kinds=frozenset({COMPONENT, FUNCTION, PROPERTY}),
        check=check_naming,
        enabled_by_default=False,
    ),
    RuleDescriptor(
        rule_id=UNUSED_SUPPRESSION,
        category="Style",
        default_severity=INFO,
        description="A suppression directive that silenced nothing.",
    ),
)


def default_catalog() -> RuleCatalog:
    """Return a fresh catalog holding every built-in rule."""
    return RuleCatalog(BUILTIN_RULES)
