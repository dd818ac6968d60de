"""Tests for viewlint.config: layered documents, shorthands, localized errors."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from viewlint.config import (
    ConfigParseError,
    RuleConfig,
    discover_config,
    load_config_file,
    resolve_configuration,
)
from viewlint.rules.catalog import ERROR, INFO, WARNING

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from viewlint.rules.catalog import RuleCatalog


class TestLoadConfigFile:
    def test_valid_document(self, write_file: Callable[[str, str], Path]) -> None:
        path = write_file(".viewlint.yml", "version: 1\nrules:\n  body-size-limit: error\n")
        layer = load_config_file(path)
        assert layer.source == str(path)
        assert layer.data["rules"] == {"body-size-limit": "error"}

    def test_empty_document(self, write_file: Callable[[str, str], Path]) -> None:
        layer = load_config_file(write_file("empty.yml", ""))
        assert layer.data == {}

    def test_invalid_yaml(self, write_file: Callable[[str, str], Path]) -> None:
        with pytest.raises(ConfigParseError, match="invalid YAML"):
            load_config_file(write_file("bad.yml", "rules: [unclosed\n"))

    def test_not_a_mapping(self, write_file: Callable[[str, str], Path]) -> None:
        with pytest.raises(ConfigParseError, match="mapping"):
            load_config_file(write_file("list.yml", "- a\n- b\n"))

    def test_unsupported_version(self, write_file: Callable[[str, str], Path]) -> None:
        with pytest.raises(ConfigParseError, match="version"):
            load_config_file(write_file("v2.yml", "version: 2\n"))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigParseError, match="cannot read"):
            load_config_file(tmp_path / "nope.yml")


class TestDiscoverConfig:
    def test_finds_nearest_parent(self, tmp_path: Path) -> None:
        (tmp_path / ".viewlint.yml").write_text("version: 1\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert discover_config(nested) == (tmp_path / ".viewlint.yml").resolve()

    def test_none_when_absent(self, tmp_path: Path) -> None:
        nested = tmp_path / "project"
        nested.mkdir()
        found = discover_config(nested)
        assert found is None or not found.is_relative_to(nested)


class TestResolveConfiguration:
    def test_defaults_from_catalog(self, catalog: RuleCatalog) -> None:
        config = resolve_configuration(catalog)
        body = config.rules["body-size-limit"]
        assert body.enabled is True
        assert body.severity == WARNING
        assert body.params["maxBodyLines"] == 50
        assert config.rules["nesting-depth"].enabled is False
        assert config.fail_on == ERROR
        assert config.errors == ()

    def test_later_layers_win_per_field(self, catalog: RuleCatalog) -> None:
        base = {"rules": {"body-size-limit": {"severity": "error", "maxBodyLines": 40}}}
        project = {"rules": {"body-size-limit": {"maxBodyLines": 30}}}
        config = resolve_configuration(catalog, base, project)
        body = config.rules["body-size-limit"]
        assert body.severity == ERROR
        assert body.params["maxBodyLines"] == 30

    def test_shorthands(self, catalog: RuleCatalog) -> None:
        config = resolve_configuration(
            catalog,
            {
                "rules": {
                    "capture-discipline": False,
                    "stable-identity": "info",
                    "lifecycle-task-binding": "warn",
                    "state-ownership": None,
                }
            },
        )
        assert config.rules["capture-discipline"].enabled is False
        assert config.rules["stable-identity"].severity == INFO
        assert config.rules["lifecycle-task-binding"].severity == WARNING
        assert config.rules["state-ownership"].severity == ERROR

    def test_bad_entry_is_localized(self, catalog: RuleCatalog) -> None:
        config = resolve_configuration(
            catalog,
            {
                "rules": {
                    "body-size-limit": {"severity": "fatal"},
                    "stable-identity": {"severity": "info"},
                }
            },
        )
        assert len(config.errors) == 1
        error = config.errors[0]
        assert error.rule_id == "body-size-limit"
        assert "rules.body-size-limit" in str(error)
        # Other overrides still apply and the bad entry keeps its defaults.
        assert config.rules["stable-identity"].severity == INFO
        assert config.rules["body-size-limit"].severity == WARNING

    @pytest.mark.parametrize("raw", [42, ["a"], {"enabled": "yes"}])
    def test_malformed_entries(self, catalog: RuleCatalog, raw: object) -> None:
        config = resolve_configuration(catalog, {"rules": {"capture-discipline": raw}})
        assert [e.rule_id for e in config.errors] == ["capture-discipline"]

    def test_fail_on(self, catalog: RuleCatalog) -> None:
        assert resolve_configuration(catalog, {"fail_on": "warning"}).fail_on == WARNING
        config = resolve_configuration(catalog, {"fail_on": "never"})
        assert config.fail_on == ERROR
        assert len(config.errors) == 1

    def test_rules_must_be_mapping(self, catalog: RuleCatalog) -> None:
        config = resolve_configuration(catalog, {"rules": ["body-size-limit"]})
        assert len(config.errors) == 1

    def test_configuration_is_read_only(self, catalog: RuleCatalog) -> None:
        config = resolve_configuration(catalog)
        with pytest.raises(TypeError):
            config.rules["body-size-limit"] = RuleConfig()  # type: ignore[index]


class TestRuleConfig:
    def test_merge(self) -> None:
        base = RuleConfig(enabled=True, severity=WARNING, params={"a": 1, "b": 2})
        merged = base.merged(RuleConfig(severity=ERROR, params={"b": 3}))
        assert merged.enabled is True
        assert merged.severity == ERROR
        assert dict(merged.params) == {"a": 1, "b": 3}
