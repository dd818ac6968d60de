"""Rules: the rule catalog, its configuration resolution, and the built-in rules."""

# viewlint:domain=rules

from viewlint.rules.builtin import BUILTIN_RULES, UNUSED_SUPPRESSION, default_catalog
from viewlint.rules.catalog import (
    ERROR,
    INFO,
    SEVERITY_RANK,
    WARNING,
    ActiveRule,
    ActiveRuleSet,
    CatalogError,
    DuplicateRuleId,
    Finding,
    InvalidParameter,
    ParamSpec,
    RuleCatalog,
    RuleContext,
    RuleDescriptor,
    UnknownRuleId,
)

__all__ = [
    "BUILTIN_RULES",
    "ERROR",
    "INFO",
    "SEVERITY_RANK",
    "UNUSED_SUPPRESSION",
    "WARNING",
    "ActiveRule",
    "ActiveRuleSet",
    "CatalogError",
    "DuplicateRuleId",
    "Finding",
    "InvalidParameter",
    "ParamSpec",
    "RuleCatalog",
    "RuleContext",
    "RuleDescriptor",
    "UnknownRuleId",
    "default_catalog",
]
