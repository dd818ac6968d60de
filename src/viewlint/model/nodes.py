# viewlint:domain=model
"""Structural model: immutable node tree for one UI source unit."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from viewlint.engine.suppressions import Suppression

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

COMPONENT = "component"
FUNCTION = "function"
CLOSURE = "closure"
PROPERTY = "property"
ANNOTATION = "annotation"
MODIFIER = "modifier"
IDENTIFIER = "identifier"

VALID_NODE_KINDS: frozenset[str] = frozenset(
    {COMPONENT, FUNCTION, CLOSURE, PROPERTY, ANNOTATION, MODIFIER, IDENTIFIER}
)

_BLOCK_COMMENT_OPEN = "/*"
_BLOCK_COMMENT_CLOSE = "*/"
_LINE_COMMENT = "//"
_STRING_QUOTE = '"'


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class MalformedModel(ValueError):
    """Raised when a front-end supplies a cyclic, overlapping, or otherwise corrupt tree."""

    def __init__(self, message: str, *, span: SourceSpan | None = None) -> None:
        if span is not None:
            message = f"{span}: {message}"
        super().__init__(message)
        self.span = span


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceSpan:
    """A 1-based, inclusive source range inside one file."""

    file: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}:{self.start_col}"

    @property
    def sort_key(self) -> tuple[str, int, int, int, int]:
        return (self.file, self.start_line, self.start_col, self.end_line, self.end_col)

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    @property
    def is_inverted(self) -> bool:
        return (self.start_line, self.start_col) > (self.end_line, self.end_col)

    def contains(self, other: SourceSpan) -> bool:
        """Return True if *other* lies fully inside this span (equal spans included)."""
        if self.file != other.file:
            return False
        return (self.start_line, self.start_col) <= (other.start_line, other.start_col) and (
            other.end_line,
            other.end_col,
        ) <= (self.end_line, self.end_col)

    def contains_position(self, line: int, col: int) -> bool:
        return (self.start_line, self.start_col) <= (line, col) <= (self.end_line, self.end_col)

    def overlaps(self, other: SourceSpan) -> bool:
        """Return True if the two spans share at least one position."""
        if self.file != other.file:
            return False
        return not (
            (self.end_line, self.end_col) < (other.start_line, other.start_col)
            or (other.end_line, other.end_col) < (self.start_line, self.start_col)
        )


@dataclass(frozen=True, eq=False)
class Node:
    """A structural unit of UI source.

    Nodes compare by identity: two nodes with the same shape at the same
    location are still distinct tree positions.  ``annotations`` maps an
    annotation name (``MainActor``, ``StateObject``) to its argument strings,
    preserving source order.  ``attributes`` carries semantic facts the
    front-end derived (``is_async``, ``initializer_kind``, ``capture_list`` ...).
    """

    kind: str
    span: SourceSpan
    name: str | None = None
    children: tuple[Node, ...] = ()
    annotations: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(
            self,
            "annotations",
            MappingProxyType({k: tuple(v) for k, v in self.annotations.items()}),
        )
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"<Node {self.kind}{label} at {self.span}>"

    def has_annotation(self, *names: str) -> bool:
        return any(name in self.annotations for name in names)

    def first_annotation(self, names: tuple[str, ...] | frozenset[str]) -> str | None:
        """Return the first annotation (in source order) that is listed in *names*."""
        for name in self.annotations:
            if name in names:
                return name
        return None

    def attr(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def iter_subtree(self) -> Iterator[Node]:
        """Yield this node and all descendants in pre-order."""
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


# ---------------------------------------------------------------------------
# Structural model
# ---------------------------------------------------------------------------


class StructuralModel:
    """Read-only tree for one source unit, validated once at construction.

    The unit's top-level ``nodes`` hang off an implicit synthetic root.
    """

    def __init__(
        self,
        file: str,
        nodes: tuple[Node, ...] | list[Node],
        *,
        source_lines: tuple[str, ...] | list[str] = (),
        suppressions: tuple[Suppression, ...] | list[Suppression] = (),
    ) -> None:
        self._file = file
        self._nodes = tuple(nodes)
        self._source_lines = tuple(source_lines)
        self._suppressions = tuple(suppressions)
        self._parents: dict[int, Node | None] = {}
        self._by_span: dict[SourceSpan, Node] = {}
        self._validate()

    @property
    def file(self) -> str:
        return self._file

    @property
    def nodes(self) -> tuple[Node, ...]:
        return self._nodes

    @property
    def source_lines(self) -> tuple[str, ...]:
        return self._source_lines

    @property
    def suppressions(self) -> tuple[Suppression, ...]:
        return self._suppressions

    def __len__(self) -> int:
        return len(self._parents)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(self) -> None:
        self._check_siblings(self._nodes, parent=None)
        stack: list[tuple[Node, Node | None]] = [(n, None) for n in reversed(self._nodes)]
        while stack:
            node, parent = stack.pop()
            if id(node) in self._parents:
                msg = f"node {node!r} appears more than once (shared or cyclic subtree)"
                raise MalformedModel(msg, span=node.span)
            self._parents[id(node)] = parent

            if node.kind not in VALID_NODE_KINDS:
                msg = f"unknown node kind '{node.kind}', must be one of {sorted(VALID_NODE_KINDS)}"
                raise MalformedModel(msg, span=node.span)
            if node.span.file != self._file:
                msg = f"node belongs to file '{node.span.file}', expected '{self._file}'"
                raise MalformedModel(msg, span=node.span)
            if node.span.is_inverted:
                msg = "span ends before it starts"
                raise MalformedModel(msg, span=node.span)

            for child in node.children:
                if not node.span.contains(child.span):
                    msg = f"child {child!r} is not contained in parent {node!r}"
                    raise MalformedModel(msg, span=child.span)
            self._check_siblings(node.children, parent=node)

            # Innermost wins for identical spans; children are visited later.
            self._by_span[node.span] = node
            stack.extend((child, node) for child in reversed(node.children))

    @staticmethod
    def _check_siblings(siblings: tuple[Node, ...], *, parent: Node | None) -> None:
        for prev, cur in zip(siblings, siblings[1:]):
            if prev.span.sort_key > cur.span.sort_key:
                owner = repr(parent) if parent is not None else "unit root"
                msg = f"children of {owner} are not in source order"
                raise MalformedModel(msg, span=cur.span)
            if prev.span.overlaps(cur.span):
                msg = f"sibling {cur!r} overlaps {prev!r}"
                raise MalformedModel(msg, span=cur.span)

    # ------------------------------------------------------------------
    # Traversal and lookup
    # ------------------------------------------------------------------

    def walk(self) -> Iterator[tuple[Node, tuple[Node, ...]]]:
        """Yield ``(node, ancestors)`` in pre-order; ancestors are innermost last."""
        stack: list[tuple[Node, tuple[Node, ...]]] = [(n, ()) for n in reversed(self._nodes)]
        while stack:
            node, ancestors = stack.pop()
            yield node, ancestors
            inner = (*ancestors, node)
            stack.extend((child, inner) for child in reversed(node.children))

    def parent_of(self, node: Node) -> Node | None:
        """Return the parent of *node*, or None for top-level nodes."""
        try:
            return self._parents[id(node)]
        except KeyError:
            msg = f"{node!r} does not belong to this model"
            raise KeyError(msg) from None

    def lookup(self, span: SourceSpan) -> Node | None:
        """Return the innermost node whose span is exactly *span*."""
        return self._by_span.get(span)

    def node_at(self, line: int, col: int) -> Node | None:
        """Return the innermost node containing the given position."""
        found: Node | None = None
        level: tuple[Node, ...] = self._nodes
        while True:
            for node in level:
                if node.span.contains_position(line, col):
                    found = node
                    level = node.children
                    break
            else:
                return found

    # ------------------------------------------------------------------
    # Source measurement
    # ------------------------------------------------------------------

    def measured_lines(self, span: SourceSpan) -> int:
        """Count lines in *span* that are neither blank nor comment-only.

        Without source text the raw span line count is returned.
        """
        if not self._source_lines:
            return span.line_count

        # A block comment may already be open when the span starts.
        depth = 0
        for raw in self._source_lines[: span.start_line - 1]:
            _, depth = _strip_comments(raw, depth)

        count = 0
        last = min(span.end_line, len(self._source_lines))
        for raw in self._source_lines[span.start_line - 1 : last]:
            code, depth = _strip_comments(raw, depth)
            if code.strip():
                count += 1
        return count


def _strip_comments(line: str, depth: int) -> tuple[str, int]:
    """Return the code on *line* outside comments and the block depth after it.

    *depth* is the number of block comments open before the line; block
    comments nest.  Comment markers inside string literals are code.
    """
    code: list[str] = []
    in_string = False
    i = 0
    while i < len(line):
        pair = line[i : i + 2]
        if depth:
            if pair == _BLOCK_COMMENT_OPEN:
                depth += 1
                i += 2
            elif pair == _BLOCK_COMMENT_CLOSE:
                depth -= 1
                i += 2
            else:
                i += 1
            continue

        char = line[i]
        if in_string:
            if char == "\\":
                code.append(pair)
                i += 2
                continue
            if char == _STRING_QUOTE:
                in_string = False
        elif pair == _LINE_COMMENT:
            break
        elif pair == _BLOCK_COMMENT_OPEN:
            depth += 1
            i += 2
            continue
        elif char == _STRING_QUOTE:
            in_string = True
        code.append(char)
        i += 1
    return "".join(code), depth
