"""viewlint: rule-based structural analysis for declarative UI components."""

__version__ = "0.1.0"
