"""Index a Maildir mail store.

Every message becomes one XML document with a ``<head>`` block of envelope
metadata and a ``<body>`` holding one ``<part>`` per MIME leaf part.
Attachments are run through the content filter so PDFs and friends are
searchable too.
"""

from __future__ import annotations

import logging
import mailbox
import mimetypes
import time
from dataclasses import dataclass
from email.message import EmailMessage
from email.parser import BytesParser
from email.policy import default as default_policy
from email.utils import getaddresses, parsedate_to_datetime
from pathlib import Path
from typing import Any, Callable, Iterator

from swishprog.exceptions import ConfigurationError
from swishprog.index.indexer import Indexer
from swishprog.ingestion.base import Aggregator
from swishprog.models import Document, ParserType
from swishprog.settings import Settings
from swishprog.utils.text import decode_text

LOGGER = logging.getLogger(__name__)

MAIL_MIME_TYPE = "application/x-mail"
NO_SUBJECT = "[ no subject ]"
ROOT_FOLDER = "INBOX"

META_NAMES = ("url", "id", "subject", "date", "size", "from", "to", "cc", "bcc", "type", "part")

MailFilter = Callable[[dict], None]
MailTitleFilter = Callable[[dict], str]


def _no_mail_filter(meta: dict) -> None:
    return None


def _subject_title(meta: dict) -> str:
    return meta["subject"]


@dataclass(slots=True)
class MailItem:
    folder: str
    key: str
    raw: bytes

    def __str__(self) -> str:
        return f"{self.folder}/{self.key}"


def _addresses(values: list[str] | None) -> str:
    if not values:
        return ""
    return ", ".join(f"{name} <{addr}>" if name else addr for name, addr in getaddresses(values))


def _timestamp(value: str | None) -> int:
    if not value:
        return int(time.time())
    try:
        return int(parsedate_to_datetime(value).timestamp())
    except (TypeError, ValueError):
        LOGGER.debug("Unparseable date %r", value)
        return int(time.time())


class MailAggregator(Aggregator):
    """Walk a Maildir and its subfolders depth-first, in sorted order."""

    def __init__(
        self,
        indexer: Indexer | None = None,
        *,
        maildir: Path | str | None = None,
        mail_filter: MailFilter | None = None,
        title_filter: MailTitleFilter | None = None,
        strict: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(indexer, **kwargs)
        if not maildir:
            raise ConfigurationError("maildir required")
        self.maildir = Path(maildir)
        self.mail_filter = mail_filter or _no_mail_filter
        self.title_filter = title_filter or _subject_title
        self.strict = strict or self.config.strict
        self._parser = BytesParser(policy=default_policy)
        self._configure_indexer()

    def configure(self, settings: Settings) -> None:
        settings.add("MetaNameAlias", "swishdefault mail")
        settings.add("MetaNames", *META_NAMES)
        settings.add("PropertyNames", *META_NAMES)
        settings.set("StoreDescription", "XML* <body>")

    def create(self) -> int:
        """Index every message. Returns the number of messages indexed."""
        if not self.maildir.is_dir():
            raise ConfigurationError(f"can't open {self.maildir}")
        return self.run()

    def items(self) -> Iterator[MailItem]:
        root = mailbox.Maildir(self.maildir, factory=None, create=False)
        yield from self._messages(ROOT_FOLDER, root)
        yield from self.process_folder(root, "")

    def process_folder(self, folder: mailbox.Maildir, path: str) -> Iterator[MailItem]:
        """Yield messages of every subfolder of ``folder``, recursively."""
        for name in sorted(folder.list_folders()):
            sub_path = f"{path}.{name}" if path else name
            LOGGER.info("searching %s", sub_path)
            sub = folder.get_folder(name)
            yield from self._messages(sub_path, sub)
            yield from self.process_folder(sub, sub_path)

    def _messages(self, folder_path: str, folder: mailbox.Maildir) -> Iterator[MailItem]:
        for key in sorted(folder.keys()):
            try:
                raw = folder.get_bytes(key)
            except (OSError, KeyError) as exc:
                LOGGER.warning("Can't read message %s in %s: %s - skipping", key, folder_path, exc)
                continue
            yield MailItem(folder_path, key, raw)

    def to_document(self, item: MailItem) -> Document:
        message = self._parser.parsebytes(item.raw)
        message_id = (message.get("Message-ID") or "").strip().strip("<>") or item.key
        url = f"{item.folder}.{message_id}"

        meta: dict[str, Any] = {
            "url": url,
            "id": message_id,
            "subject": str(message.get("Subject") or "") or NO_SUBJECT,
            "date": _timestamp(message.get("Date")),
            "size": len(item.raw),
            "from": _addresses(message.get_all("From")),
            "to": _addresses(message.get_all("To")),
            "cc": _addresses(message.get_all("Cc")),
            "bcc": _addresses(message.get_all("Bcc")),
            "type": message.get_content_type(),
            "parts": [self.filter_attachment(url, part) for part in self._leaf_parts(message)],
        }

        self.mail_filter(meta)
        title = self.title_filter(meta)
        return self.make_document(
            content=self.mail2xml(title, meta),
            url=url,
            mod_time=meta["date"],
            parser_hint=ParserType.XML,
            mime_type=MAIL_MIME_TYPE,
            title=title,
            source=meta,
        )

    @staticmethod
    def _leaf_parts(message: EmailMessage) -> list[EmailMessage]:
        return [part for part in message.walk() if not part.is_multipart()]

    def _part_type(self, part: EmailMessage, filename: str) -> str:
        declared = part.get_content_type()
        if self.strict and filename:
            guessed, _encoding = mimetypes.guess_type(filename, strict=False)
            if guessed and guessed != declared:
                LOGGER.warning(
                    "%s declared as %s but looks like %s; using %s",
                    filename,
                    declared,
                    guessed,
                    guessed,
                )
                return guessed
        return declared

    def filter_attachment(self, msg_url: str, part: EmailMessage) -> str:
        """Return the XML for one MIME part, filtering its content if possible."""
        filename = part.get_filename() or ""
        mime_type = self._part_type(part, filename)
        payload = part.get_payload(decode=True) or b""

        result = self.filter_content(payload, mime_type, filename or msg_url)
        if result is not None:
            if self.filter_failed(result):
                LOGGER.warning("skipping %s in message %s - filtering error", filename, msg_url)
                return ""
            text = decode_text(result.content)
        elif mime_type.startswith("text/"):
            text = decode_text(payload, part.get_content_charset())
        else:
            text = ""
        return f"<title>{self.xml.escape(filename)}</title>{self.xml.utf8_safe(text)}"

    def mail2xml(self, title: str, meta: dict[str, Any]) -> str:
        xml = self.xml
        head = [f"<swishtitle>{xml.utf8_safe(title)}</swishtitle>", "<head>"]
        for key in sorted(meta):
            if key == "parts":
                continue
            head.append(xml.element(key, meta[key]))
        head.append("</head>")
        body = ["<body>"]
        body.extend(f"<part>{part}</part>" for part in meta.get("parts", []))
        body.append("</body>")
        return "<mail>" + "".join(head) + "".join(body) + "</mail>"
