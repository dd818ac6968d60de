# viewlint:domain=config
"""Configuration layer: merge layered YAML documents into one immutable snapshot.

Layers are applied weakest first: built-in catalog defaults, then each
project document in order.  A document looks like::

    version: 1
    fail_on: error
    rules:
      body-size-limit:
        severity: error
        maxBodyLines: 40
      capture-discipline: false      # shorthand for enabled: false
      stable-identity: info          # shorthand for severity: info
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import yaml

from viewlint.rules.catalog import ERROR, VALID_SEVERITIES

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from viewlint.rules.catalog import RuleCatalog

logger = logging.getLogger(__name__)

SUPPORTED_CONFIG_VERSIONS: frozenset[int] = frozenset({1})
CONFIG_FILENAMES: tuple[str, ...] = (".viewlint.yml", "viewlint.yml", ".viewlint.yaml")

_RESERVED_KEYS: frozenset[str] = frozenset({"enabled", "severity"})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigParseError(ValueError):
    """A malformed configuration entry (or document), with its origin."""

    def __init__(self, message: str, *, rule_id: str | None = None, source: str = "") -> None:
        where = source
        if rule_id is not None:
            where = f"{where}: rules.{rule_id}" if where else f"rules.{rule_id}"
        super().__init__(f"{where}: {message}" if where else message)
        self.rule_id = rule_id
        self.source = source


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleConfig:
    """Per-rule settings; ``None`` means "inherit from the weaker layer"."""

    enabled: bool | None = None
    severity: str | None = None
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def merged(self, override: RuleConfig) -> RuleConfig:
        return RuleConfig(
            enabled=override.enabled if override.enabled is not None else self.enabled,
            severity=override.severity if override.severity is not None else self.severity,
            params={**self.params, **override.params},
        )


@dataclass(frozen=True)
class ConfigLayer:
    """One raw configuration document and where it came from."""

    source: str
    data: Mapping[str, Any]


@dataclass(frozen=True)
class Configuration:
    """Resolved, immutable snapshot consumed by one analysis run."""

    rules: Mapping[str, RuleConfig] = field(default_factory=dict)
    fail_on: str = ERROR
    errors: tuple[ConfigParseError, ...] = ()
    sources: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_config_file(path: Path) -> ConfigLayer:
    """Read a YAML configuration document.

    Raises ``ConfigParseError`` when the file cannot be read or is not a
    mapping with a supported ``version``; individual rule entries are checked
    later by :func:`resolve_configuration`.
    """
    source = str(path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"cannot read configuration: {exc}"
        raise ConfigParseError(msg, source=source) from exc
    except yaml.YAMLError as exc:
        msg = "invalid YAML"
        raise ConfigParseError(msg, source=source) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = "configuration must be a YAML mapping"
        raise ConfigParseError(msg, source=source)

    version = data.get("version", 1)
    if version not in SUPPORTED_CONFIG_VERSIONS:
        msg = (
            f"unsupported version {version!r}, "
            f"expected one of {sorted(SUPPORTED_CONFIG_VERSIONS)}"
        )
        raise ConfigParseError(msg, source=source)

    return ConfigLayer(source=source, data=data)


def discover_config(start: Path) -> Path | None:
    """Find the nearest configuration file at or above *start*."""
    current = start.resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        for filename in CONFIG_FILENAMES:
            candidate = directory / filename
            if candidate.is_file():
                return candidate
    return None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _parse_rule_entry(rule_id: str, raw: object, source: str) -> RuleConfig:
    if raw is None:
        return RuleConfig()
    if isinstance(raw, bool):
        return RuleConfig(enabled=raw)
    if isinstance(raw, str):
        raw = {"severity": raw}
    if not isinstance(raw, dict):
        msg = f"entry must be a mapping, a boolean, or a severity, got {type(raw).__name__}"
        raise ConfigParseError(msg, rule_id=rule_id, source=source)

    enabled = raw.get("enabled")
    if enabled is not None and not isinstance(enabled, bool):
        msg = f"'enabled' must be true or false, got {enabled!r}"
        raise ConfigParseError(msg, rule_id=rule_id, source=source)

    severity = raw.get("severity")
    if severity is not None:
        severity = str(severity).strip().lower()
        if severity == "warn":
            severity = "warning"
        if severity not in VALID_SEVERITIES:
            msg = (
                f"invalid severity {raw.get('severity')!r}, "
                f"must be one of {sorted(VALID_SEVERITIES)}"
            )
            raise ConfigParseError(msg, rule_id=rule_id, source=source)

    params = {str(k): v for k, v in raw.items() if k not in _RESERVED_KEYS}
    return RuleConfig(enabled=enabled, severity=severity, params=params)


def resolve_configuration(
    catalog: RuleCatalog,
    *layers: ConfigLayer | Mapping[str, Any],
) -> Configuration:
    """Merge catalog defaults with *layers* (weakest first) into a Configuration.

    Later layers override earlier ones per rule id and per field.  A malformed
    rule entry is recorded in ``Configuration.errors`` and skipped; the other
    entries still apply.  Rule ids are not checked here: the catalog rejects
    unknown ids when it resolves the active rule set.
    """
    rules: dict[str, RuleConfig] = {
        descriptor.rule_id: RuleConfig(
            enabled=descriptor.enabled_by_default,
            severity=descriptor.default_severity,
            params={spec.name: spec.default for spec in descriptor.params},
        )
        for descriptor in catalog
    }
    fail_on = ERROR
    errors: list[ConfigParseError] = []
    sources: list[str] = []

    for idx, layer in enumerate(layers):
        if not isinstance(layer, ConfigLayer):
            layer = ConfigLayer(source=f"<layer {idx}>", data=layer)
        sources.append(layer.source)

        fail_on_raw = layer.data.get("fail_on")
        if fail_on_raw is not None:
            candidate = str(fail_on_raw).strip().lower()
            if candidate in VALID_SEVERITIES:
                fail_on = candidate
            else:
                errors.append(
                    ConfigParseError(
                        f"invalid fail_on {fail_on_raw!r}, "
                        f"must be one of {sorted(VALID_SEVERITIES)}",
                        source=layer.source,
                    )
                )

        rules_raw = layer.data.get("rules", {}) or {}
        if not isinstance(rules_raw, dict):
            errors.append(ConfigParseError("'rules' must be a mapping", source=layer.source))
            continue

        for key, raw in rules_raw.items():
            rule_id = str(key)
            try:
                override = _parse_rule_entry(rule_id, raw, layer.source)
            except ConfigParseError as exc:
                logger.warning("Skipping configuration entry: %s", exc)
                errors.append(exc)
                continue
            base = rules.get(rule_id, RuleConfig())
            rules[rule_id] = base.merged(override)

    return Configuration(
        rules=rules,
        fail_on=fail_on,
        errors=tuple(errors),
        sources=tuple(sources),
    )
