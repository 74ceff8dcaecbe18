"""FileRules / FileMatch evaluation.

Rules are written one per line as::

    [include|exclude] <scope> <action> <pattern>

where scope is one of ``filename``, ``pathname``, ``dirname`` (or
``directory``) and ``title``, and action is one of ``is``, ``contains`` and
``regex``. Lines without a polarity are exclusions. Rules are evaluated in
order and the first one that matches decides.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable

from swishprog.exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)

_RULE_RE = re.compile(
    r"^\s*(?:(include|exclude)\s+)?(filename|pathname|dirname|directory|title)\s+"
    r"(contains|is|regex)\s+(.+?)\s*$",
    re.I,
)

REGEX_DELIMITERS = frozenset("/!#@%,~")

_APPLIES_TO = {
    "filename": "file",
    "pathname": "path",
    "dirname": "dir",
    "directory": "dir",
    "title": "title",
}


@dataclass(frozen=True, slots=True)
class FileRule:
    applies_to: str
    action: str
    pattern: str
    include: bool = False
    text: str = ""

    def applies(self, is_dir: bool) -> bool:
        if self.applies_to == "path":
            return True
        if self.applies_to == "dir":
            return is_dir
        if self.applies_to == "file":
            return not is_dir
        return False

    def matches(self, value: str) -> bool:
        if self.action == "is":
            return value == self.pattern
        if self.action == "contains":
            return self.pattern in value
        return _compile(self.pattern).search(value) is not None


@lru_cache(maxsize=None)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _strip_delimiters(pattern: str) -> str:
    if len(pattern) >= 2 and pattern[0] == pattern[-1] and pattern[0] in REGEX_DELIMITERS:
        return pattern[1:-1]
    return pattern


@lru_cache(maxsize=256)
def parse_file_rule(text: str) -> FileRule:
    """Parse one rule line, raising ConfigurationError on bad syntax."""
    match = _RULE_RE.match(text)
    if match is None:
        raise ConfigurationError(f"Bad syntax in FileRule: {text}")
    polarity, scope, action, pattern = match.groups()
    action = action.lower()
    if action == "regex":
        pattern = _strip_delimiters(pattern)
        try:
            _compile(pattern)
        except re.error as exc:
            raise ConfigurationError(f"Bad regex in FileRule: {text}: {exc}") from exc
    return FileRule(
        applies_to=_APPLIES_TO[scope.lower()],
        action=action,
        pattern=pattern,
        include=(polarity or "").lower() == "include",
        text=text,
    )


class RuleSet:
    """Ordered rules with first-match-wins semantics."""

    def __init__(self, lines: Iterable[str] = ()) -> None:
        self.rules = [parse_file_rule(line) for line in lines]

    def __bool__(self) -> bool:
        return bool(self.rules)

    @property
    def has_title_rules(self) -> bool:
        return any(rule.applies_to == "title" for rule in self.rules)

    def is_excluded(self, path: Path | str, is_dir: bool) -> bool:
        path = Path(path)
        for rule in self.rules:
            if not rule.applies(is_dir):
                continue
            value = str(path) if rule.applies_to == "path" else path.name
            if rule.matches(value):
                LOGGER.debug("Rule %r decides %s (include=%s)", rule.text, path, rule.include)
                return not rule.include
        return False

    def title_excluded(self, title: str | None) -> bool:
        if title is None:
            return False
        for rule in self.rules:
            if rule.applies_to == "title" and rule.matches(title):
                LOGGER.debug("Rule %r decides title %r (include=%s)", rule.text, title, rule.include)
                return not rule.include
        return False
