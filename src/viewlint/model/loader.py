# viewlint:domain=model
"""Model ingestion: build a StructuralModel from a front-end's YAML/JSON document.

Document shape::

    file: Sources/ProfileView.swift
    source: |
      struct ProfileView: View { ... }
    suppressions:
      - { rule: body-size-limit, line: 12 }
    nodes:
      - kind: component
        name: ProfileView
        span: [1, 1, 80, 2]
        annotations: { MainActor: [] }
        attributes: { reference_type: false }
        children: [...]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import yaml

from viewlint.engine.suppressions import Suppression, parse_suppressions
from viewlint.model.nodes import MalformedModel, Node, SourceSpan, StructuralModel

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_SPAN_FIELDS = 4


def load_model(path: Path) -> StructuralModel:
    """Read and validate a model document from *path*.

    Raises ``MalformedModel`` for unreadable documents and corrupt trees.
    """
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"{path}: cannot read model document: {exc}"
        raise MalformedModel(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"{path}: invalid YAML/JSON in model document"
        raise MalformedModel(msg) from exc

    return parse_model(data, origin=str(path))


def parse_model(data: object, *, origin: str = "<model>") -> StructuralModel:
    """Build a StructuralModel from an already-decoded document."""
    if not isinstance(data, dict):
        msg = f"{origin}: model document must be a mapping"
        raise MalformedModel(msg)

    file = data.get("file")
    if not isinstance(file, str) or not file.strip():
        msg = f"{origin}: missing required 'file' field"
        raise MalformedModel(msg)

    source = data.get("source", "")
    if not isinstance(source, str):
        msg = f"{origin}: 'source' must be a string"
        raise MalformedModel(msg)
    source_lines = tuple(source.splitlines())

    nodes_raw = data.get("nodes", [])
    if not isinstance(nodes_raw, list):
        msg = f"{origin}: 'nodes' must be a list"
        raise MalformedModel(msg)

    nodes = [
        _parse_node(raw, file, f"{origin}: nodes[{idx}]") for idx, raw in enumerate(nodes_raw)
    ]

    suppressions = parse_suppressions(file, source_lines)
    suppressions.extend(_parse_declared_suppressions(data.get("suppressions"), file, origin))

    model = StructuralModel(
        file, nodes, source_lines=source_lines, suppressions=suppressions
    )
    logger.debug("Loaded %s: %d nodes, %d suppressions", file, len(model), len(suppressions))
    return model


def _parse_span(raw: object, file: str, context: str) -> SourceSpan:
    if isinstance(raw, dict):
        try:
            values = [raw["start_line"], raw["start_col"], raw["end_line"], raw["end_col"]]
        except KeyError as exc:
            msg = f"{context}: span is missing '{exc.args[0]}'"
            raise MalformedModel(msg) from None
    elif isinstance(raw, list):
        values = list(raw)
    else:
        msg = f"{context}: 'span' must be a list or mapping"
        raise MalformedModel(msg)

    if len(values) != _SPAN_FIELDS or not all(
        isinstance(v, int) and not isinstance(v, bool) and v >= 1 for v in values
    ):
        msg = f"{context}: span must be four positive integers, got {values!r}"
        raise MalformedModel(msg)

    start_line, start_col, end_line, end_col = values
    return SourceSpan(file, start_line, start_col, end_line, end_col)


def _parse_node(raw: object, file: str, context: str) -> Node:
    if not isinstance(raw, dict):
        msg = f"{context}: node must be a mapping"
        raise MalformedModel(msg)

    kind = raw.get("kind")
    if not isinstance(kind, str):
        msg = f"{context}: missing required 'kind' field"
        raise MalformedModel(msg)

    span = _parse_span(raw.get("span"), file, context)

    name = raw.get("name")
    if name is not None and not isinstance(name, str):
        name = str(name)

    annotations_raw = raw.get("annotations") or {}
    if isinstance(annotations_raw, list):
        # Shorthand: [MainActor, StateObject]
        annotations_raw = {str(a): [] for a in annotations_raw}
    if not isinstance(annotations_raw, dict):
        msg = f"{context}: 'annotations' must be a mapping or list"
        raise MalformedModel(msg)
    annotations: dict[str, tuple[str, ...]] = {}
    for ann_name, args in annotations_raw.items():
        if args is None:
            args = []
        elif not isinstance(args, list):
            args = [args]
        annotations[str(ann_name)] = tuple(str(a) for a in args)

    attributes = raw.get("attributes") or {}
    if not isinstance(attributes, dict):
        msg = f"{context}: 'attributes' must be a mapping"
        raise MalformedModel(msg)

    children_raw = raw.get("children") or []
    if not isinstance(children_raw, list):
        msg = f"{context}: 'children' must be a list"
        raise MalformedModel(msg)

    children = tuple(
        _parse_node(child, file, f"{context}.children[{idx}]")
        for idx, child in enumerate(children_raw)
    )

    return Node(
        kind=kind,
        span=span,
        name=name,
        children=children,
        annotations=annotations,
        attributes=_freeze(attributes),
    )


def _freeze(value: Any) -> Any:
    """Turn nested lists into tuples so attribute values cannot be mutated."""
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, dict):
        return {str(k): _freeze(v) for k, v in value.items()}
    return value


def _parse_declared_suppressions(raw: object, file: str, origin: str) -> list[Suppression]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        msg = f"{origin}: 'suppressions' must be a list"
        raise MalformedModel(msg)

    result: list[Suppression] = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            msg = f"{origin}: suppressions[{idx}] must be a mapping"
            raise MalformedModel(msg)
        rule_id = entry.get("rule")
        line = entry.get("line")
        if not isinstance(rule_id, str) or not isinstance(line, int) or line < 1:
            msg = f"{origin}: suppressions[{idx}] needs a 'rule' name and a positive 'line'"
            raise MalformedModel(msg)
        column = entry.get("column", 1)
        result.append(
            Suppression(
                file=file,
                rule_id=rule_id,
                target_line=line,
                line=line,
                column=int(column),
            )
        )
    return result
