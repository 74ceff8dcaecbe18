"""Key-value store for Swish-e configuration directives.

A ``Settings`` object collects directives from the aggregators and is written
to a plain text config file passed to ``swish-e -c``.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Iterator

from swishprog.exceptions import ConfigurationError
from swishprog.utils.xml import XMLBuilder

LOGGER = logging.getLogger(__name__)

DIRECTIVES = (
    "AbsoluteLinks",
    "BeginCharacters",
    "BumpPositionCounterCharacters",
    "Buzzwords",
    "ConvertHTMLEntities",
    "DefaultContents",
    "Delay",
    "DontBumpPositionOnEndTags",
    "DontBumpPositionOnStartTags",
    "EnableAltSearchSyntax",
    "EndCharacters",
    "EquivalentServer",
    "ExtractPath",
    "FileFilter",
    "FileFilterMatch",
    "FileInfoCompression",
    "FileMatch",
    "FileRules",
    "FollowSymLinks",
    "FuzzyIndexingMode",
    "HTMLLinksMetaName",
    "IgnoreFirstChar",
    "IgnoreLastChar",
    "IgnoreLimit",
    "IgnoreMetaTags",
    "IgnoreNumberChars",
    "IgnoreTotalWordCountWhenRanking",
    "IgnoreWords",
    "ImageLinksMetaName",
    "IncludeConfigFile",
    "IndexAdmin",
    "IndexAltTagMetaName",
    "IndexComments",
    "IndexContents",
    "IndexDescription",
    "IndexDir",
    "IndexFile",
    "IndexName",
    "IndexOnly",
    "IndexPointer",
    "IndexReport",
    "MaxDepth",
    "MaxWordLimit",
    "MetaNameAlias",
    "MetaNames",
    "MinWordLimit",
    "NoContents",
    "obeyRobotsNoIndex",
    "ParserWarnLevel",
    "PreSortedIndex",
    "PropCompressionLevel",
    "PropertyNameAlias",
    "PropertyNames",
    "PropertyNamesCompareCase",
    "PropertyNamesDate",
    "PropertyNamesIgnoreCase",
    "PropertyNamesMaxLength",
    "PropertyNamesNoStripChars",
    "PropertyNamesNumeric",
    "PropertyNamesSortKeyLength",
    "ReplaceRules",
    "ResultExtFormatName",
    "SpiderDirectory",
    "StoreDescription",
    "SwishProgParameters",
    "SwishSearchDefaultRule",
    "SwishSearchOperators",
    "TmpDir",
    "TranslateCharacters",
    "TruncateDocSize",
    "UndefinedMetaTags",
    "UndefinedXMLAttributes",
    "UseSoundex",
    "UseStemming",
    "UseWords",
    "WordCharacters",
    "XMLClassAttributes",
)

_CANONICAL = {name.lower(): name for name in DIRECTIVES}

# Unordered sets of names, written sorted on a single line.
NAME_SETS = frozenset({"MetaNames", "PropertyNames", "PropertyNamesNoStripChars"})

# Each value is written on its own line.
REPEATABLE = frozenset(
    {
        "ExtractPath",
        "FileMatch",
        "FileRules",
        "IndexContents",
        "MetaNameAlias",
        "PropertyNameAlias",
        "ReplaceRules",
    }
)

# Directives whose first word is an argument rather than a value (Swish3 XML).
TAKES_ARGUMENT = frozenset(
    {
        "StoreDescription",
        "PropertyNamesSortKeyLength",
        "PropertyNamesMaxLength",
        "PropertyNameAlias",
        "MetaNameAlias",
        "IndexContents",
        "IgnoreWords",
        "ExtractPath",
        "FileFilter",
    }
)

_LINE_RE = re.compile(r"^(\S+)\s*(.*)$")


def canonical_name(name: str) -> str:
    try:
        return _CANONICAL[name.lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown configuration directive: {name}") from None


class Settings:
    """Swish-e configuration directives with file serialisation."""

    def __init__(self, **directives: str | list[str] | tuple[str, ...]) -> None:
        self._values: dict[str, list[str]] = {}
        self.file: Path | None = None
        for name, value in directives.items():
            if isinstance(value, (list, tuple)):
                self.set(name, *value)
            else:
                self.set(name, value)

    def __contains__(self, name: str) -> bool:
        return canonical_name(name) in self._values

    def __bool__(self) -> bool:
        return bool(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def set(self, name: str, *values: str) -> None:
        """Replace all values of ``name``."""
        key = canonical_name(name)
        self._values.pop(key, None)
        self.add(key, *values)

    def add(self, name: str, *values: str) -> None:
        """Append values to ``name``; name sets ignore duplicates."""
        key = canonical_name(name)
        current = self._values.setdefault(key, [])
        for value in values:
            value = str(value)
            if key in NAME_SETS:
                for word in value.split():
                    if word not in current:
                        current.append(word)
            else:
                current.append(value)
        if not current:
            del self._values[key]
        self.file = None

    def get(self, name: str) -> str | None:
        values = self.get_all(name)
        if not values:
            return None
        return " ".join(values)

    def get_all(self, name: str) -> list[str]:
        key = canonical_name(name)
        values = self._values.get(key, [])
        if key in NAME_SETS:
            return sorted(values)
        return list(values)

    def lines(self) -> list[str]:
        out: list[str] = []
        for name in DIRECTIVES:
            values = self.get_all(name) if name in self._values else []
            if not values:
                continue
            if name in REPEATABLE:
                out.extend(f"{name} {value}" for value in values)
            else:
                out.append(f"{name} {' '.join(values)}")
        return out

    def write(self, path: str | Path | None = None) -> Path:
        """Write the config file and return its path.

        Without ``path`` a temporary file is created. The path is remembered
        in ``file``.
        """
        if path is None:
            fd, name = tempfile.mkstemp(prefix="swishprog-", suffix=".conf")
            os.close(fd)
            path = name
        path = Path(path)
        buf = "\n".join(self.lines()) + "\n"
        LOGGER.debug("Writing config %s:\n%s", path, buf)
        path.write_text(buf, encoding="utf-8")
        self.file = path
        return path

    def read(self, path: str | Path) -> "Settings":
        """Merge directives from a Swish-e 2.x config file."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Config file {path} is not readable: {exc}") from exc

        pending = ""
        for raw in text.splitlines():
            line = raw.rstrip()
            if line.endswith("\\"):
                pending += line[:-1] + " "
                continue
            line = (pending + line).strip()
            pending = ""
            if not line or line.startswith("#"):
                continue
            match = _LINE_RE.match(line)
            if match is None:
                continue
            name, value = match.groups()
            self.add(name, value)
        self.file = path
        return self

    def write_xml(self, path: str | Path) -> Path:
        """Write the directives in the Swish3 XML config format."""
        xml = XMLBuilder()
        path = Path(path)
        out = [
            '<?xml version="1.0" encoding="utf-8"?>',
            f"<!-- converted at {time.ctime()} -->",
            "<config>",
        ]
        for name in DIRECTIVES:
            if name not in self._values:
                continue
            for line_value in self._xml_values(name):
                arg, values = line_value
                attr = f' v="{xml.escape(arg)}"' if arg is not None else ""
                for value in values:
                    out.append(f"  <{name}{attr}>{xml.utf8_safe(value)}</{name}>")
        out.append("</config>")
        path.write_text("\n".join(out) + "\n", encoding="utf-8")
        return path

    def _xml_values(self, name: str) -> list[tuple[str | None, list[str]]]:
        if name in REPEATABLE or name in TAKES_ARGUMENT:
            groups = self.get_all(name)
        else:
            groups = [" ".join(self.get_all(name))]
        result = []
        for group in groups:
            words = _split_quoted(group)
            if name in TAKES_ARGUMENT and words:
                result.append((words[0], words[1:]))
            else:
                result.append((None, words))
        return result


def _split_quoted(value: str) -> list[str]:
    """Split on whitespace, keeping quoted phrases together without quotes."""
    return [a or b or c for a, b, c in re.findall(r'"([^"]*)"|\'([^\']*)\'|(\S+)', value)]
