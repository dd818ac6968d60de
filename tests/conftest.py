"""Shared test fixtures for viewlint."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from viewlint.rules.builtin import default_catalog

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from viewlint.rules.catalog import RuleCatalog


@pytest.fixture()
def catalog() -> RuleCatalog:
    """A fresh catalog with every built-in rule."""
    return default_catalog()


@pytest.fixture()
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write *content* to ``tmp_path / name`` and return the path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
