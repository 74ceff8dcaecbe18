"""Index database rows through SQLAlchemy.

Each row becomes a small virtual XML document::

    <_movies_row>
      <table>movies</table>
      <swishtitle>...</swishtitle>
      <_body><title>...</title><year>...</year></_body>
    </_movies_row>
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence

import sqlalchemy
from sqlalchemy.engine import URL, Engine
from sqlalchemy.sql.expression import Executable, Select
from sqlalchemy.exc import SQLAlchemyError

from swishprog.exceptions import ConfigurationError
from swishprog.index.indexer import Indexer
from swishprog.ingestion.base import Aggregator
from swishprog.models import Document, ParserType
from swishprog.settings import Settings

LOGGER = logging.getLogger(__name__)

DBI_MIME_TYPE = "application/x-dbi"
NO_TITLE = "no title supplied"

RowFilter = Callable[[dict], None]
TitleFilter = Callable[[dict], str]


def _no_row_filter(row: dict) -> None:
    return None


def _no_title(row: dict) -> str:
    return NO_TITLE


@dataclass(slots=True)
class TableMeta:
    name: str
    columns: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class RowItem:
    table: str
    number: int
    row: dict
    title: str | None = None
    desc: frozenset[str] = frozenset()
    url: str | None = None

    def __str__(self) -> str:
        return f"{self.table}#{self.number}"


def connect(db: Any) -> Engine:
    """Return an Engine for ``db``: an Engine, a URL, or (url, engine kwargs)."""
    if isinstance(db, Engine):
        return db
    if isinstance(db, (str, URL)):
        return sqlalchemy.create_engine(db)
    if isinstance(db, Sequence) and db:
        url, *rest = db
        kwargs = dict(rest[0]) if rest and isinstance(rest[0], Mapping) else {}
        return sqlalchemy.create_engine(url, **kwargs)
    raise ConfigurationError(f"Can't connect to database with {db!r}")


class DBIAggregator(Aggregator):
    """Full-text index for database tables.

    ``create()`` indexes every table (or a selection), one SELECT per table.
    ``index_sql()`` can be called directly for custom queries with joins.
    """

    def __init__(
        self,
        indexer: Indexer | None = None,
        *,
        db: Any = None,
        alias_columns: bool = True,
        row_filter: RowFilter | None = None,
        title_filter: TitleFilter | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(indexer, **kwargs)
        if db is None:
            raise ConfigurationError("need database connection info in db param")
        self.engine = connect(db)
        self.alias_columns = alias_columns
        self.row_filter = row_filter or _no_row_filter
        self.title_filter = title_filter or _no_title
        self.table_meta: dict[str, TableMeta] = {}
        self.info()
        self._configure_indexer()

    def info(self) -> dict[str, TableMeta]:
        """Load and cache table and column names."""
        if self.table_meta:
            return self.table_meta
        inspector = sqlalchemy.inspect(self.engine)
        for name in inspector.get_table_names():
            columns = {col["name"]: str(col["type"]) for col in inspector.get_columns(name)}
            self.table_meta[name] = TableMeta(name=name, columns=columns)
        return self.table_meta

    def configure(self, settings: Settings) -> None:
        if not settings.get_all("MetaNames"):
            for meta in self.table_meta.values():
                settings.add("MetaNames", *sorted(meta.columns))
        settings.add("MetaNames", "table")
        if self.alias_columns and self.table_meta:
            rows = " ".join(f"_{self.xml.tag_safe(name)}_row" for name in sorted(self.table_meta))
            settings.add("MetaNameAlias", f"swishdefault {rows}")
        settings.set("StoreDescription", "XML* <_desc>")

    def items(self) -> Iterator[RowItem]:
        for name in sorted(self.table_meta):
            yield from self._rows(self._select(name, self.table_meta[name].columns), table=name)

    def create(self, tables: Mapping[str, Any] | Iterable[str] | None = None) -> int:
        """Index the given tables (default: all). Returns number of rows indexed.

        ``tables`` maps table names to ``True`` (all columns) or to a mapping
        with any of ``columns``, ``title``, ``desc`` and ``url``.
        """
        if tables is None:
            selected: Mapping[str, Any] = {name: True for name in self.table_meta}
        elif isinstance(tables, Mapping):
            selected = tables
        else:
            selected = {name: True for name in tables}

        count = 0
        for table in sorted(selected):
            if table not in self.table_meta:
                raise ConfigurationError(f"Unknown table: {table}")
            opts = selected[table] if isinstance(selected[table], Mapping) else {}
            columns = opts.get("columns") or self.table_meta[table].columns
            try:
                count += self.index_sql(
                    self._select(table, columns),
                    table=table,
                    title=opts.get("title"),
                    desc=opts.get("desc") or (),
                    url=opts.get("url"),
                )
            except SQLAlchemyError as exc:
                LOGGER.error("SELECT failed for table %s: %s - skipping", table, exc)
        return count

    @staticmethod
    def _select(table: str, columns: Iterable[str]) -> Select:
        cols = [sqlalchemy.column(name) for name in sorted(columns)]
        return sqlalchemy.select(*cols).select_from(sqlalchemy.table(table))

    def index_sql(
        self,
        sql: str | Executable,
        *,
        table: str = "",
        title: str | None = None,
        desc: Iterable[str] = (),
        url: str | None = None,
    ) -> int:
        """Run ``sql`` and index each row.

        ``title`` and ``url`` name columns holding the document title and URL;
        without a URL column rows are numbered 1, 2, 3, ... ``desc`` names
        columns stored in the description property for excerpts.
        """
        if sql is None or (isinstance(sql, str) and not sql.strip()):
            raise ConfigurationError("need SQL statement to index with")
        statement = sqlalchemy.text(sql) if isinstance(sql, str) else sql
        return self.run(
            self._rows(statement, table=table, title=title, desc=frozenset(desc), url=url)
        )

    def _rows(
        self,
        statement: Executable,
        *,
        table: str,
        title: str | None = None,
        desc: frozenset[str] = frozenset(),
        url: str | None = None,
    ) -> Iterator[RowItem]:
        with self.engine.connect() as conn:
            result = conn.execute(statement)
            for number, row in enumerate(result.mappings(), start=1):
                yield RowItem(table, number, dict(row), title, desc, url)

    def to_document(self, item: RowItem) -> Document:
        row = item.row
        self.row_filter(row)
        if item.title and item.title in row:
            title = row[item.title]
        else:
            title = self.title_filter(row)
        if item.url and row.get(item.url) is not None:
            url = str(row[item.url])
        else:
            url = str(item.number)

        xml = self.row2xml(item.table, row, title, item.desc)
        return self.make_document(
            content=xml,
            url=url,
            mod_time=int(time.time()),
            parser_hint=ParserType.XML,
            mime_type=DBI_MIME_TYPE,
            title="" if title is None else str(title),
            source=row,
        )

    def row2xml(self, table: str, row: Mapping[str, Any], title: Any, desc: Iterable[str] = ()) -> str:
        """Convert ``row`` to XML. The table name goes in a ``<table>`` element."""
        xml = self.xml
        tag = xml.tag_safe(table) if table else "_"
        desc = set(desc)
        parts = [
            f"<_{tag}_row>",
            f"<table>{xml.escape(table)}</table>",
            f"<swishtitle>{xml.utf8_safe(title)}</swishtitle>",
            "<_body>",
        ]
        for col in sorted(row):
            element = xml.element(col, row[col])
            if col in desc:
                element = f"<_desc>{element}</_desc>"
            parts.append(element)
        parts.append(f"</_body></_{tag}_row>")
        return "".join(parts)
