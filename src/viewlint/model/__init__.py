"""Structural model: immutable node tree for one source unit, and its YAML loader."""

# viewlint:domain=model

from viewlint.model.loader import load_model, parse_model
from viewlint.model.nodes import (
    VALID_NODE_KINDS,
    MalformedModel,
    Node,
    SourceSpan,
    StructuralModel,
)

__all__ = [
    "VALID_NODE_KINDS",
    "MalformedModel",
    "Node",
    "SourceSpan",
    "StructuralModel",
    "load_model",
    "parse_model",
]
