"""Command line interface for swishprog."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from swishprog.config import AppConfig
from swishprog.exceptions import SwishProgError
from swishprog.headers import HeaderFramer
from swishprog.index.handle import IndexHandle
from swishprog.index.indexer import Indexer
from swishprog.index.process import SwishIndexer, merge_indexes
from swishprog.ingestion.dbi import DBIAggregator
from swishprog.ingestion.fs import FSAggregator
from swishprog.ingestion.mail import MailAggregator
from swishprog.models import IndexFormat
from swishprog.settings import Settings


console = Console()
app = typer.Typer(help="swishprog - feed documents to the Swish-e indexer")

NameOption = typer.Option(None, "--name", "-n", help="Index file name")
ConfigOption = typer.Option(None, "--config", "-c", help="Swish-e configuration file")
ExeOption = typer.Option(None, "--exe", help="Path to the swish-e executable")
OptsOption = typer.Option("", "--opts", help="Extra options passed to swish-e")
Swish3Option = typer.Option(False, "--swish3", help="Use swish3 header labels")
StdoutOption = typer.Option(False, "--stdout", help="Write the document stream to stdout")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_settings(config_file: Optional[Path]) -> Settings:
    settings = Settings()
    if config_file is not None:
        settings.read(config_file)
    return settings


def _build_config(
    settings: Settings,
    name: Optional[Path],
    exe: Optional[str],
    opts: str,
    swish3: bool,
    verbose: bool,
) -> AppConfig:
    return AppConfig.from_settings(
        settings,
        index_name=name,
        exe=exe,
        opts=opts,
        swish3=True if swish3 else None,
        debug=True if verbose else None,
    )


def _build_indexer(config: AppConfig, settings: Settings, stdout: bool) -> Indexer:
    if stdout:
        return Indexer(stream=sys.stdout.buffer, framer=HeaderFramer(swish3=config.swish3))
    resolved = config.resolve_index_path(Path.cwd())
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return Indexer(SwishIndexer(resolved, config=config, settings=settings))


def _report(indexer: Indexer, stdout: bool) -> None:
    out = Console(stderr=True) if stdout else console
    stats = indexer.stats
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Indexed")
    table.add_column("Skipped")
    table.add_column("Failed")
    table.add_column("Seconds")
    table.add_row(str(stats.indexed), str(stats.skipped), str(stats.failed), f"{indexer.elapsed:.2f}")
    out.print(table)
    if not stdout and indexer.process is not None:
        out.print(f"Index written to [bold]{indexer.process.name}[/bold]")


def _fail(exc: Exception) -> None:
    Console(stderr=True).print(f"[red]{exc}[/red]")
    raise typer.Exit(code=1)


@app.command()
def index(
    inputs: List[Path] = typer.Argument(..., help="Files and directories to index."),
    name: Optional[Path] = NameOption,
    config_file: Optional[Path] = ConfigOption,
    exe: Optional[str] = ExeOption,
    opts: str = OptsOption,
    swish3: bool = Swish3Option,
    stdout: bool = StdoutOption,
    follow_symlinks: bool = typer.Option(False, "--follow-symlinks", help="Descend into symlinked directories"),
    verbose: bool = VerboseOption,
) -> None:
    """Index files under one or more paths."""
    _setup_logging(verbose)
    try:
        settings = _load_settings(config_file)
        config = _build_config(settings, name, exe, opts, swish3, verbose)
        if follow_symlinks:
            config.follow_symlinks = True
        with _build_indexer(config, settings, stdout) as indexer:
            FSAggregator(indexer, config=config).crawl(*inputs)
    except SwishProgError as exc:
        _fail(exc)
    _report(indexer, stdout)


@app.command()
def db(
    url: str = typer.Argument(..., help="SQLAlchemy database URL"),
    tables: Optional[List[str]] = typer.Option(None, "--table", "-t", help="Table to index (repeatable)"),
    title: Optional[str] = typer.Option(None, "--title", help="Column holding the document title"),
    name: Optional[Path] = NameOption,
    config_file: Optional[Path] = ConfigOption,
    exe: Optional[str] = ExeOption,
    opts: str = OptsOption,
    swish3: bool = Swish3Option,
    stdout: bool = StdoutOption,
    verbose: bool = VerboseOption,
) -> None:
    """Index the rows of a database."""
    _setup_logging(verbose)
    try:
        settings = _load_settings(config_file)
        config = _build_config(settings, name, exe, opts, swish3, verbose)
        with _build_indexer(config, settings, stdout) as indexer:
            aggregator = DBIAggregator(indexer, db=url, config=config)
            selected = None
            if tables:
                selected = {table: {"title": title} if title else True for table in tables}
            aggregator.create(selected)
    except SwishProgError as exc:
        _fail(exc)
    _report(indexer, stdout)


@app.command()
def mail(
    maildir: Path = typer.Argument(..., help="Maildir to index"),
    strict: bool = typer.Option(False, "--strict", help="Trust attachment file names over declared types"),
    name: Optional[Path] = NameOption,
    config_file: Optional[Path] = ConfigOption,
    exe: Optional[str] = ExeOption,
    opts: str = OptsOption,
    swish3: bool = Swish3Option,
    stdout: bool = StdoutOption,
    verbose: bool = VerboseOption,
) -> None:
    """Index the messages of a Maildir."""
    _setup_logging(verbose)
    try:
        settings = _load_settings(config_file)
        config = _build_config(settings, name, exe, opts, swish3, verbose)
        with _build_indexer(config, settings, stdout) as indexer:
            MailAggregator(indexer, maildir=maildir, strict=strict, config=config).create()
    except SwishProgError as exc:
        _fail(exc)
    _report(indexer, stdout)


@app.command()
def merge(
    target: Path = typer.Argument(..., help="Index to merge into"),
    sources: List[Path] = typer.Argument(..., help="Indexes to merge"),
    exe: Optional[str] = ExeOption,
    opts: str = OptsOption,
    verbose: bool = VerboseOption,
) -> None:
    """Merge two or more indexes into TARGET."""
    _setup_logging(verbose)
    config = AppConfig(exe=exe, opts=opts, debug=verbose)
    try:
        merge_indexes(target, sources, config=config)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except SwishProgError as exc:
        _fail(exc)
    console.print(f"Merged {len(sources)} indexes into [bold]{target}[/bold]")


@app.command()
def rm(
    name: Path = typer.Argument(..., help="Index to remove"),
    incremental: bool = typer.Option(False, "--incremental", help="Index uses the incremental format"),
    verbose: bool = VerboseOption,
) -> None:
    """Remove an index and its associated files."""
    _setup_logging(verbose)
    handle = IndexHandle(name, IndexFormat.INCREMENTAL if incremental else IndexFormat.NATIVE)
    if not handle.exists():
        console.print(f"[yellow]Index not found: {name}[/yellow]")
        return
    if not handle.remove(missing_ok=True):
        console.print(f"[red]Some files of {name} could not be removed.[/red]")
        raise typer.Exit(code=1)
    console.print(f"Removed [bold]{name}[/bold]")
