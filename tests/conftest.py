"""Shared fixtures: a stand-in ``swish-e`` executable."""

from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest

from swishprog.config import AppConfig

FAKE_SWISH = '''#!{python}
import json, os, sys

args = sys.argv[1:]
log = os.environ.get("FAKE_SWISH_LOG")
if log:
    with open(log, "a") as fh:
        fh.write(json.dumps(args) + "\\n")

code = os.environ.get("FAKE_SWISH_EXIT")
if code:
    if "-M" not in args:
        sys.stdin.buffer.read()
    sys.exit(int(code))

if "-M" in args:
    names = args[args.index("-M") + 1:]
    inputs, output = names[:-1], names[-1]
    data = b""
    for name in inputs:
        with open(name, "rb") as fh:
            data += fh.read()
    with open(output, "wb") as fh:
        fh.write(data)
    with open(output + ".prop", "wb") as fh:
        fh.write(b"")
    sys.exit(0)

name = args[args.index("-f") + 1]
data = sys.stdin.buffer.read()
if not data:
    sys.exit(1)
with open(name, "wb") as fh:
    fh.write(data)
with open(name + ".prop", "wb") as fh:
    fh.write(b"")
'''


@pytest.fixture
def fake_swish(tmp_path: Path) -> Path:
    """Path to an executable that mimics swish-e's -S prog and -M modes."""
    script = tmp_path / "bin" / "swish-e"
    script.parent.mkdir()
    script.write_text(FAKE_SWISH.format(python=sys.executable))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def swish_config(fake_swish: Path) -> AppConfig:
    """Config pointing at the fake executable."""
    return AppConfig(exe=str(fake_swish), debug=False)


@pytest.fixture
def swish_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """File collecting the argv of every fake swish-e call, one JSON list per line."""
    log = tmp_path / "swish-calls.jsonl"
    monkeypatch.setenv("FAKE_SWISH_LOG", str(log))
    return log
