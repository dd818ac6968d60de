"""Tests for the package layout: every module declares the area it belongs to."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

import viewlint

PACKAGE_DIR = Path(viewlint.__file__).parent
_AREA_TAG_RE = re.compile(r"^# viewlint:(domain|service)=[a-z][a-z-]*$", re.MULTILINE)

_MODULES = sorted(
    p for p in PACKAGE_DIR.rglob("*.py") if p != PACKAGE_DIR / "__init__.py"
)


@pytest.mark.parametrize("path", _MODULES, ids=lambda p: str(p.relative_to(PACKAGE_DIR)))
def test_module_declares_area(path: Path) -> None:
    head = "\n".join(path.read_text(encoding="utf-8").splitlines()[:5])
    assert _AREA_TAG_RE.search(head), f"{path.name} has no area tag"
