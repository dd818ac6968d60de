# viewlint:domain=rules
"""Rule catalog: descriptors, parameter domains, and resolution into an active rule set."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable

from viewlint.model.nodes import VALID_NODE_KINDS

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from viewlint.config import Configuration
    from viewlint.model.nodes import Node, SourceSpan, StructuralModel

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ERROR = "error"
WARNING = "warning"
INFO = "info"

SEVERITY_RANK: Mapping[str, int] = MappingProxyType({INFO: 0, WARNING: 1, ERROR: 2})
VALID_SEVERITIES: frozenset[str] = frozenset(SEVERITY_RANK)

VALID_CATEGORIES: frozenset[str] = frozenset(
    {"Architecture", "Performance", "Concurrency", "Memory", "Style"}
)

ENTER = "enter"
EXIT = "exit"
VALID_PHASES: frozenset[str] = frozenset({ENTER, EXIT})

VALID_PARAM_KINDS: frozenset[str] = frozenset({"int", "str", "names"})

_RULE_ID_RE = re.compile(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)*$")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CatalogError(ValueError):
    """Base class for rule-catalog errors; always carries the offending rule id."""

    def __init__(self, rule_id: str, message: str) -> None:
        super().__init__(f"{rule_id}: {message}")
        self.rule_id = rule_id


class DuplicateRuleId(CatalogError):
    """Raised when a rule id is registered twice."""


class UnknownRuleId(CatalogError):
    """Raised when configuration references a rule that was never registered."""


class InvalidParameter(CatalogError):
    """Raised when a parameter override does not fit the declared domain."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Finding:
    """A single reported rule violation."""

    rule_id: str
    severity: str  # "error" | "warning" | "info"
    span: SourceSpan
    message: str
    suggestion: str | None = None

    @property
    def sort_key(self) -> tuple[str, int, int, str, int, int, int, str]:
        """Report order: file, line, severity descending, rule id; column breaks ties."""
        span = self.span
        return (
            span.file,
            span.start_line,
            -SEVERITY_RANK[self.severity],
            self.rule_id,
            span.start_col,
            span.end_line,
            span.end_col,
            self.message,
        )


@dataclass(frozen=True)
class ParamSpec:
    """A named rule parameter with a default and a value domain.

    ``kind`` is ``int`` (optionally bounded below by ``minimum``), ``str``,
    or ``names`` (a list of identifiers; a comma-separated string is accepted).
    """

    name: str
    default: Any
    kind: str = "int"
    minimum: int | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.kind not in VALID_PARAM_KINDS:
            msg = f"parameter '{self.name}': invalid kind '{self.kind}'"
            raise ValueError(msg)
        if self.kind == "names":
            object.__setattr__(self, "default", _split_names(self.default))

    def coerce(self, value: object, rule_id: str) -> Any:
        """Validate an override against this parameter's domain and normalize it."""
        if self.kind == "int":
            if isinstance(value, bool) or not isinstance(value, int):
                msg = f"parameter '{self.name}' must be an integer, got {value!r}"
                raise InvalidParameter(rule_id, msg)
            if self.minimum is not None and value < self.minimum:
                msg = f"parameter '{self.name}' must be >= {self.minimum}, got {value}"
                raise InvalidParameter(rule_id, msg)
            return value

        if self.kind == "str":
            if not isinstance(value, str):
                msg = f"parameter '{self.name}' must be a string, got {value!r}"
                raise InvalidParameter(rule_id, msg)
            return value

        if isinstance(value, str) or (
            isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)
        ):
            return _split_names(value)
        msg = f"parameter '{self.name}' must be a list of names, got {value!r}"
        raise InvalidParameter(rule_id, msg)


def _split_names(value: object) -> tuple[str, ...]:
    if isinstance(value, str):
        parts: Iterable[str] = value.split(",")
    else:
        parts = (str(v) for v in value)  # type: ignore[attr-defined]
    return tuple(p.strip() for p in parts if p.strip())


RuleCheck = Callable[["RuleContext"], "Iterable[Finding]"]


@dataclass(frozen=True)
class RuleDescriptor:
    """Declarative description of one rule.

    ``kinds`` lists the node kinds the rule inspects; ``phase`` says whether
    ``check`` runs when the walk enters a node or when it leaves the node's
    subtree.  A descriptor without ``check`` is emitted by the engine itself
    (e.g. ``unused-suppression``) and exists so it can be configured.
    """

    rule_id: str
    category: str
    default_severity: str
    description: str
    kinds: frozenset[str] = frozenset()
    check: RuleCheck | None = None
    phase: str = ENTER
    params: tuple[ParamSpec, ...] = ()
    enabled_by_default: bool = True

    def __post_init__(self) -> None:
        if not _RULE_ID_RE.match(self.rule_id):
            msg = f"invalid rule id '{self.rule_id}', expected kebab-case"
            raise ValueError(msg)
        if self.category not in VALID_CATEGORIES:
            msg = (
                f"{self.rule_id}: invalid category '{self.category}', "
                f"must be one of {sorted(VALID_CATEGORIES)}"
            )
            raise ValueError(msg)
        if self.default_severity not in VALID_SEVERITIES:
            msg = (
                f"{self.rule_id}: invalid severity '{self.default_severity}', "
                f"must be one of {sorted(VALID_SEVERITIES)}"
            )
            raise ValueError(msg)
        if self.phase not in VALID_PHASES:
            msg = f"{self.rule_id}: invalid phase '{self.phase}'"
            raise ValueError(msg)
        unknown = set(self.kinds) - VALID_NODE_KINDS
        if unknown:
            msg = f"{self.rule_id}: unknown node kinds {sorted(unknown)}"
            raise ValueError(msg)
        object.__setattr__(self, "kinds", frozenset(self.kinds))
        object.__setattr__(self, "params", tuple(self.params))

    def param(self, name: str) -> ParamSpec:
        for spec in self.params:
            if spec.name == name:
                return spec
        declared = sorted(p.name for p in self.params)
        msg = f"unknown parameter '{name}', declared parameters: {declared}"
        raise InvalidParameter(self.rule_id, msg)


@dataclass(frozen=True)
class ActiveRule:
    """A descriptor bound to its effective severity and parameters for one run."""

    descriptor: RuleDescriptor
    severity: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def rule_id(self) -> str:
        return self.descriptor.rule_id


@dataclass(frozen=True)
class RuleContext:
    """What a rule sees at one node: the node, its ancestors (innermost last), and its rule."""

    node: Node
    ancestors: tuple[Node, ...]
    model: StructuralModel
    rule: ActiveRule

    @property
    def params(self) -> Mapping[str, Any]:
        return self.rule.params

    @property
    def parent(self) -> Node | None:
        return self.ancestors[-1] if self.ancestors else None

    def nearest(self, *kinds: str) -> Node | None:
        """Return the innermost ancestor whose kind is one of *kinds*."""
        for ancestor in reversed(self.ancestors):
            if ancestor.kind in kinds:
                return ancestor
        return None

    def report(
        self,
        message: str,
        *,
        node: Node | None = None,
        suggestion: str | None = None,
    ) -> Finding:
        target = node if node is not None else self.node
        return Finding(
            rule_id=self.rule.rule_id,
            severity=self.rule.severity,
            span=target.span,
            message=message,
            suggestion=suggestion,
        )


# ---------------------------------------------------------------------------
# Active rule set
# ---------------------------------------------------------------------------


class ActiveRuleSet:
    """Enabled rules for one run, ordered by rule id and indexed by (phase, kind)."""

    def __init__(
        self,
        rules: Iterable[ActiveRule] = (),
        *,
        registered: Iterable[str] = (),
    ) -> None:
        self._rules: tuple[ActiveRule, ...] = tuple(sorted(rules, key=lambda r: r.rule_id))
        self._by_id = {rule.rule_id: rule for rule in self._rules}
        self._registered = frozenset(registered) | frozenset(self._by_id)
        index: dict[tuple[str, str], list[ActiveRule]] = {}
        for rule in self._rules:
            if rule.descriptor.check is None:
                continue
            for kind in rule.descriptor.kinds:
                index.setdefault((rule.descriptor.phase, kind), []).append(rule)
        self._index = {key: tuple(value) for key, value in index.items()}

    def __iter__(self) -> Iterator[ActiveRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def get(self, rule_id: str) -> ActiveRule | None:
        return self._by_id.get(rule_id)

    def is_registered(self, rule_id: str) -> bool:
        """True for any catalog rule id, including rules disabled for this run."""
        return rule_id in self._registered

    def for_node(self, kind: str, phase: str) -> tuple[ActiveRule, ...]:
        return self._index.get((phase, kind), ())


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class RuleCatalog:
    """Registry of rule descriptors; immutable in practice once the process has started."""

    def __init__(self, descriptors: Iterable[RuleDescriptor] = ()) -> None:
        self._descriptors: dict[str, RuleDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: RuleDescriptor) -> None:
        if descriptor.rule_id in self._descriptors:
            msg = "rule id is already registered"
            raise DuplicateRuleId(descriptor.rule_id, msg)
        self._descriptors[descriptor.rule_id] = descriptor

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._descriptors

    def __iter__(self) -> Iterator[RuleDescriptor]:
        return iter(sorted(self._descriptors.values(), key=lambda d: d.rule_id))

    def __len__(self) -> int:
        return len(self._descriptors)

    def get(self, rule_id: str) -> RuleDescriptor:
        try:
            return self._descriptors[rule_id]
        except KeyError:
            msg = "rule id is not registered"
            raise UnknownRuleId(rule_id, msg) from None

    def resolve(self, configuration: Configuration) -> ActiveRuleSet:
        """Filter to enabled rules and bind severity/parameter overrides.

        Raises ``UnknownRuleId`` or ``InvalidParameter``; nothing has been
        analyzed at this point, so the caller should abort the run.
        """
        for rule_id in sorted(configuration.rules):
            if rule_id not in self._descriptors:
                msg = "configuration references an unregistered rule"
                raise UnknownRuleId(rule_id, msg)

        active: list[ActiveRule] = []
        for descriptor in self:
            rule_config = configuration.rules.get(descriptor.rule_id)
            enabled = descriptor.enabled_by_default
            severity = descriptor.default_severity
            params: dict[str, Any] = {spec.name: spec.default for spec in descriptor.params}

            if rule_config is not None:
                if rule_config.enabled is not None:
                    enabled = rule_config.enabled
                if rule_config.severity is not None:
                    severity = rule_config.severity
                for name, value in sorted(rule_config.params.items()):
                    params[name] = descriptor.param(name).coerce(value, descriptor.rule_id)

            if enabled:
                active.append(ActiveRule(descriptor=descriptor, severity=severity, params=params))

        return ActiveRuleSet(active, registered=self._descriptors)
