"""Application configuration defaults."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from swishprog.models import IndexFormat
from swishprog.settings import Settings

DEFAULT_INDEX_NAME = "index.swish-e"
DEFAULT_EXE = "swish-e"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() not in ("", "0", "false", "no")


def _get_default_exe() -> str:
    """Locate the swish-e executable on PATH."""
    return shutil.which(DEFAULT_EXE) or DEFAULT_EXE


@dataclass(slots=True)
class AppConfig:
    index_name: Path | None = None
    exe: str | None = None
    verbose: int = 1
    warnings: int = 0
    opts: str = ""
    debug: bool = field(default_factory=lambda: _env_flag("SWISHPROG_DEBUG"))
    swish3: bool = field(default_factory=lambda: _env_flag("SWISH3"))
    strict: bool = False
    index_format: IndexFormat = IndexFormat.NATIVE
    include_extensions: frozenset[str] = frozenset()
    file_rules: list[str] = field(default_factory=list)
    follow_symlinks: bool = False

    def __post_init__(self) -> None:
        if self.index_name is None:
            self.index_name = Path(DEFAULT_INDEX_NAME)
        self.index_name = Path(self.index_name)
        if self.exe is None:
            self.exe = _get_default_exe()
        self.index_format = IndexFormat(self.index_format)
        self.include_extensions = frozenset(
            ext.lstrip(".").lower() for ext in self.include_extensions if ext.strip(".")
        )

    def resolve_index_path(self, base_dir: Path | None = None) -> Path:
        if self.index_name is None:
            self.index_name = Path(DEFAULT_INDEX_NAME)
        if Path(self.index_name).is_absolute() or base_dir is None:
            return Path(self.index_name)
        return base_dir / self.index_name

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "AppConfig":
        """Build a config from Swish-e directives; keyword overrides win."""
        values: dict[str, Any] = {}
        index_file = settings.get("IndexFile")
        if index_file:
            values["index_name"] = Path(index_file)
        index_only = settings.get("IndexOnly")
        if index_only:
            values["include_extensions"] = frozenset(index_only.split())
        rules = list(settings.get_all("FileRules"))
        rules += [f"include {line}" for line in settings.get_all("FileMatch")]
        if rules:
            values["file_rules"] = rules
        follow = settings.get("FollowSymLinks")
        if follow:
            values["follow_symlinks"] = follow.strip().lower() in ("yes", "1", "true", "on")

        known = {f.name for f in fields(cls)}
        values.update({k: v for k, v in overrides.items() if k in known and v is not None})
        return cls(**values)
