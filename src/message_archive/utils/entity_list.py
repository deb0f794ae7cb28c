"""
Inclusion/exclusion lists of conversations to export.

Entries are conversation IDs (``C123``), thread references
(``C123:1234567890.123456``) or archive links
(``https://team.slack.com/archives/C123/p1234567890123456``).  A ``^`` prefix
excludes the entry, a ``@`` prefix reads more entries from a file.  Excludes
always win over includes.
"""

import queue
import re
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional
from urllib.parse import urlparse

import structlog

from message_archive.errors import InvalidLinkError

logger = structlog.get_logger()

EXCLUDE_PREFIX = "^"
FILE_PREFIX = "@"

# Maximum number of non-empty entries read from a list file.
MAX_FILE_ENTRIES = 65536

_ID_RE = re.compile(r"^[A-Z0-9]{2,}$")
_TS_RE = re.compile(r"^\d+\.\d+$")
_PERMALINK_TS_RE = re.compile(r"^p(\d{7,})$")


@dataclass(frozen=True)
class EntityLink:
    """A conversation, or a thread within it."""

    channel: str
    thread_ts: str = ""

    def is_thread(self) -> bool:
        return self.thread_ts != ""

    def __str__(self) -> str:
        if self.thread_ts:
            return f"{self.channel}:{self.thread_ts}"
        return self.channel


def _permalink_ts(segment: str) -> str:
    """``p1234567890123456`` -> ``1234567890.123456``."""
    m = _PERMALINK_TS_RE.match(segment)
    if not m:
        return ""
    digits = m.group(1)
    return f"{digits[:-6]}.{digits[-6:]}"


def parse_link(entry: str) -> EntityLink:
    """Parse a conversation ID, thread reference or archive URL.

    Raises:
        InvalidLinkError: *entry* is none of the accepted forms.
    """
    entry = entry.strip()
    if not entry:
        raise InvalidLinkError(entry, "empty entity")

    if "://" in entry:
        url = urlparse(entry)
        parts = [p for p in url.path.split("/") if p]
        if len(parts) < 2 or parts[0] != "archives" or not _ID_RE.match(parts[1]):
            raise InvalidLinkError(entry, "not a conversation link")
        thread_ts = ""
        if len(parts) > 2:
            thread_ts = _permalink_ts(parts[2])
            if not thread_ts:
                raise InvalidLinkError(entry, "invalid message reference")
        return EntityLink(parts[1], thread_ts)

    channel, sep, thread_ts = entry.partition(":")
    if not _ID_RE.match(channel):
        raise InvalidLinkError(entry, "invalid conversation ID")
    if sep and not _TS_RE.match(thread_ts):
        raise InvalidLinkError(entry, "invalid thread timestamp")
    return EntityLink(channel, thread_ts)


class EntityIndex(dict):
    """Entity -> True when included, False when excluded."""

    def is_included(self, entity: str) -> bool:
        return self.get(entity) is True

    def is_excluded(self, entity: str) -> bool:
        return self.get(entity) is False


@dataclass
class EntityList:
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    @classmethod
    def from_entries(cls, entries: Iterable[str]) -> "EntityList":
        """Build a list from raw entries.

        Raises:
            InvalidLinkError: An entry cannot be parsed.
            OSError: A ``@file`` entry cannot be read.
        """
        return cls._from_index(_build_index(entries))

    @classmethod
    def load(cls, filename: str, max_entries: int = MAX_FILE_ENTRIES) -> "EntityList":
        """Read entries from a file, one per line.

        Blank lines and lines starting with ``#`` are ignored.
        """
        entries: List[str] = []
        with open(filename, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if len(entries) >= max_entries:
                    raise ValueError(f"{filename}: more than {max_entries} entries")
                entries.append(line)
        return cls.from_entries(entries)

    @classmethod
    def _from_index(cls, index: Dict[str, bool]) -> "EntityList":
        el = cls()
        for entity, included in index.items():
            if included:
                el.include.append(entity)
            else:
                el.exclude.append(entity)
        el.include.sort()
        el.exclude.sort()
        return el

    def index(self) -> EntityIndex:
        idx = EntityIndex()
        for entity in self.include:
            idx[entity] = True
        for entity in self.exclude:
            idx[entity] = False
        return idx

    def has_includes(self) -> bool:
        return len(self.include) > 0

    def has_excludes(self) -> bool:
        return len(self.exclude) > 0

    def is_empty(self) -> bool:
        return not self.include and not self.exclude

    def generator(self, cancel: Optional[threading.Event] = None) -> "queue.Queue[Optional[str]]":
        """Stream the included entities from a background thread.

        The thread puts each entity on the returned queue, checking *cancel*
        before every put, and finishes with a ``None`` sentinel either when
        all entities are sent or when *cancel* is set.
        """
        out: "queue.Queue[Optional[str]]" = queue.Queue()
        include = list(self.include)

        def produce() -> None:
            try:
                for entity in include:
                    if cancel is not None and cancel.is_set():
                        logger.debug("Entity generator cancelled")
                        return
                    out.put(entity)
            finally:
                out.put(None)

        threading.Thread(target=produce, name="entity-generator", daemon=True).start()
        return out


def iter_generator(q: "queue.Queue[Optional[str]]") -> Iterator[str]:
    """Yield entities from a ``EntityList.generator`` queue until it ends."""
    while True:
        entity = q.get()
        if entity is None:
            return
        yield entity


def _build_index(entries: Iterable[str]) -> Dict[str, bool]:
    index: Dict[str, bool] = {}
    excluded: List[str] = []
    files: List[str] = []

    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        if entry.startswith(EXCLUDE_PREFIX):
            trimmed = entry[len(EXCLUDE_PREFIX):]
            if trimmed:
                excluded.append(str(parse_link(trimmed)))
        elif entry.startswith(FILE_PREFIX):
            trimmed = entry[len(FILE_PREFIX):]
            if trimmed:
                files.append(trimmed)
        else:
            index[str(parse_link(entry))] = True

    for filename in files:
        for entity, included in EntityList.load(filename).index().items():
            if included:
                index[entity] = True
            else:
                excluded.append(entity)

    for entity in excluded:
        index[entity] = False
    return index
