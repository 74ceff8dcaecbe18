"""Index in-memory Python objects.

Each object becomes an XML document whose root tag is the class name and
whose children are the values of the configured attributes or methods.
"""

from __future__ import annotations

import itertools
import logging
import re
import time
from typing import Any, Callable, Iterable, Iterator, Sequence

import yaml

from swishprog.index.indexer import Indexer
from swishprog.ingestion.base import Aggregator
from swishprog.models import Document, ParserType
from swishprog.settings import Settings

LOGGER = logging.getLogger(__name__)

OBJECT_MIME_TYPE = "application/x-object"
SCALARS = (str, int, float, bool, bytes)
_NON_WORD = re.compile(r"[^\w.]+")

Serializer = Callable[[Any], str]


def _epoch(value: Any) -> int:
    """Seconds since the epoch for a number or datetime; now when unset."""
    if value is None:
        return int(time.time())
    if hasattr(value, "timestamp"):
        return int(value.timestamp())
    try:
        return int(value)
    except (TypeError, ValueError):
        LOGGER.warning("Unusable mod_time %r; using the current time", value)
        return int(time.time())


def yaml_serializer(value: Any) -> str:
    """Dump ``value`` as YAML, or its repr when YAML can't represent it."""
    try:
        return yaml.safe_dump(value, default_flow_style=False, sort_keys=True)
    except yaml.representer.RepresenterError:
        return repr(value)


def _pull(data: Any) -> Iterator[Any]:
    while data.has_next():
        yield data.next()


def public_attributes(obj: Any) -> list[str]:
    names = vars(obj) if hasattr(obj, "__dict__") else {}
    return sorted(name for name in names if not name.startswith("_"))


class ObjectAggregator(Aggregator):
    """Feed arbitrary objects to the indexer.

    ``methods`` names the attributes (or zero-argument methods) to index.
    ``title``, ``url`` and ``mod_time`` name the accessors used for those
    document fields; missing ones fall back to ``title_filter(obj)`` (default
    ``str(obj)``), the running count and the current time.
    """

    def __init__(
        self,
        indexer: Indexer | None = None,
        *,
        methods: Sequence[str] | None = None,
        class_name: str | None = None,
        title: str = "title",
        url: str = "url",
        mod_time: str = "mod_time",
        serializer: Serializer | None = None,
        obj_filter: Callable[[Any], Any] | None = None,
        title_filter: Callable[[Any], str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(indexer, **kwargs)
        self.methods = list(methods or [])
        self.class_name = class_name
        self.title = title
        self.url = url
        self.mod_time = mod_time
        self.serializer = serializer or yaml_serializer
        self.obj_filter = obj_filter
        self.title_filter = title_filter or str
        self._counter = itertools.count(1)
        self._configure_indexer()

    def configure(self, settings: Settings) -> None:
        meta = ["class", *self.methods]
        settings.add("MetaNames", *meta)
        settings.add("PropertyNames", *meta)
        settings.add("PropertyNamesNoStripChars", *meta)
        if self.class_name:
            settings.set("IndexDescription", f"class:{self.class_name}")

    def create(self, data: Iterable[Any] | Any) -> int:
        """Index each object in ``data``. Returns the number indexed.

        ``data`` is any iterable, or an object exposing ``has_next()`` and
        ``next()``.
        """
        if hasattr(data, "has_next") and hasattr(data, "next"):
            items: Iterable[Any] = _pull(data)
        elif isinstance(data, (str, bytes)) or not isinstance(data, Iterable):
            raise TypeError(f"{type(data).__name__} is not a list or iterator")
        else:
            items = data
        return self.run(items)

    def items(self) -> Iterator[Any]:
        return iter(())

    def _get(self, obj: Any, name: str) -> Any:
        value = getattr(obj, name, None)
        if callable(value):
            value = value()
        return value

    def _has(self, obj: Any, name: str) -> bool:
        return bool(name) and hasattr(obj, name)

    def class_tag(self, obj: Any) -> str:
        name = self.class_name or type(obj).__name__
        return self.xml.tag_safe(_NON_WORD.sub(".", name))

    def to_document(self, item: Any) -> Document:
        obj = item
        if self.obj_filter is not None:
            obj = self.obj_filter(obj)
            if obj is None:
                raise ValueError("obj_filter must return an object")

        number = next(self._counter)
        title = self._get(obj, self.title) if self._has(obj, self.title) else self.title_filter(obj)
        url = self._get(obj, self.url) if self._has(obj, self.url) else number
        mod_time = self._get(obj, self.mod_time) if self._has(obj, self.mod_time) else None

        return self.make_document(
            content=self.obj2xml(obj, title),
            url=str(url),
            mod_time=_epoch(mod_time),
            parser_hint=ParserType.XML,
            mime_type=OBJECT_MIME_TYPE,
            title=str(title),
            source=obj,
        )

    def obj2xml(self, obj: Any, title: Any) -> str:
        xml = self.xml
        tag = self.class_tag(obj)
        methods = self.methods or public_attributes(obj)
        parts = [f"<{tag}>", f"<swishtitle>{xml.utf8_safe(title)}</swishtitle>"]
        for name in methods:
            value = self._get(obj, name)
            if value is None:
                text = ""
            elif isinstance(value, SCALARS):
                text = value
            else:
                text = self.serializer(value)
            parts.append(xml.element(name, text))
        parts.append(f"</{tag}>")
        return "".join(parts)
