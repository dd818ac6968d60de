# viewlint:domain=engine
"""Source-embedded suppression directives (``// viewlint:ignore rule-id``)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

ALL_RULES = "all"

# Matches ``// viewlint:ignore a, b`` and ``// viewlint:ignore-next-line a``.
_DIRECTIVE_RE = re.compile(
    r"//\s*viewlint:(?P<verb>ignore-next-line|ignore)\b(?P<rules>[^\n]*)",
)
_RULE_ID_RE = re.compile(r"[A-Za-z][A-Za-z0-9_-]*")


@dataclass(frozen=True)
class Suppression:
    """Silence ``rule_id`` for findings that start on ``target_line`` of ``file``.

    ``line``/``column`` locate the directive itself, so an unused suppression
    can be reported where the author wrote it.
    """

    file: str
    rule_id: str
    target_line: int
    line: int
    column: int = 1

    def matches(self, rule_id: str, file: str, start_line: int) -> bool:
        if file != self.file or start_line != self.target_line:
            return False
        return self.rule_id in (ALL_RULES, rule_id)


def parse_suppressions(file: str, lines: Iterable[str]) -> list[Suppression]:
    """Extract suppression directives from source text.

    ``ignore`` targets its own line, unless the directive is the only thing on
    the line, in which case it targets the next line.  ``ignore-next-line``
    always targets the next line.  A directive without rule ids silences
    every rule.
    """
    result: list[Suppression] = []
    for lineno, text in enumerate(lines, start=1):
        match = _DIRECTIVE_RE.search(text)
        if match is None:
            continue

        comment_only = not text[: match.start()].strip()
        if match.group("verb") == "ignore-next-line" or comment_only:
            target = lineno + 1
        else:
            target = lineno

        # Anything after " -- " is a free-form reason.
        rules_text = match.group("rules").split(" -- ", 1)[0]
        rule_ids = _RULE_ID_RE.findall(rules_text) or [ALL_RULES]
        for rule_id in dict.fromkeys(rule_ids):
            result.append(
                Suppression(
                    file=file,
                    rule_id=rule_id,
                    target_line=target,
                    line=lineno,
                    column=match.start() + 1,
                )
            )
    return result
