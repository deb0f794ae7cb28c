"""
Chunk stream codec.

A chunk file is a sequence of JSON objects, one per chunk, with no
surrounding array.  The encoder writes each chunk followed by a newline; the
reader accepts any whitespace (or none) between objects.

Reading a file scans it once, front to back, and records the byte offset of
every chunk under the chunk's identity.  Payloads are not kept: lookups seek
back to the recorded offsets and decode only the chunks they need.
"""

import codecs
import json
from bisect import bisect_left
from typing import Any, BinaryIO, Dict, Iterable, Iterator, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from message_archive.errors import ChunkDecodeError, NoChannelInfoError
from message_archive.models import (
    CHANNEL_CHUNK_ID,
    USER_CHUNK_ID,
    Channel,
    Chunk,
    ChunkType,
    File as FileRecord,
    Message,
    User,
    channel_info_id,
    files_id,
    thread_id,
)

logger = structlog.get_logger()

_READ_SIZE = 64 * 1024
_JSON_WHITESPACE = " \t\n\r"
# Longest token (literal, number or escape) a read boundary can cut short.
_MAX_TOKEN_TAIL = 16


class _StreamError(Exception):
    def __init__(self, offset: int, reason: str):
        self.offset = offset
        self.reason = reason
        super().__init__(reason)


def _is_definite(exc: json.JSONDecodeError, buf: str) -> bool:
    """Whether reading more input cannot repair the error in *buf*."""
    if exc.msg.startswith("Unterminated string"):
        return False
    return exc.pos < len(buf) - _MAX_TOKEN_TAIL


def _iter_objects(stream: BinaryIO, start: int = 0) -> Iterator[Tuple[int, Any]]:
    """Yield ``(byte_offset, value)`` for each JSON value in *stream*.

    *start* is the byte offset the stream is currently positioned at.
    """
    decoder = json.JSONDecoder()
    utf8 = codecs.getincrementaldecoder("utf-8")()
    buf = ""
    offset = start  # byte offset of buf[0]
    eof = False
    want = _READ_SIZE

    while True:
        stripped = buf.lstrip(_JSON_WHITESPACE)
        offset += len(buf) - len(stripped)  # JSON whitespace is single-byte
        buf = stripped

        if buf:
            try:
                value, end = decoder.raw_decode(buf)
            except json.JSONDecodeError as exc:
                if eof or _is_definite(exc, buf):
                    raise _StreamError(offset, f"invalid JSON: {exc.msg}") from exc
            else:
                yield offset, value
                offset += len(buf[:end].encode("utf-8"))
                buf = buf[end:]
                want = _READ_SIZE
                continue
        elif eof:
            return

        # Object spans past the buffer: read more, growing the read size so
        # large chunks are not re-parsed once per block.
        data = stream.read(want)
        want *= 2
        try:
            if data:
                buf += utf8.decode(data)
            else:
                eof = True
                buf += utf8.decode(b"", final=True)
        except UnicodeDecodeError as exc:
            raise _StreamError(offset, f"invalid UTF-8: {exc.reason}") from exc


class Encoder:
    """Writes chunks to a binary stream, one JSON object per line."""

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.count = 0

    def encode(self, chunk: Chunk) -> None:
        self.stream.write(chunk.model_dump_json(by_alias=True).encode("utf-8"))
        self.stream.write(b"\n")
        self.count += 1


def write_chunks(stream: BinaryIO, chunks: Iterable[Chunk]) -> int:
    """Encode *chunks* to *stream* in the given order.

    Returns:
        Number of chunks written.
    """
    enc = Encoder(stream)
    for chunk in chunks:
        enc.encode(chunk)
    return enc.count


class File:
    """A decoded and indexed chunk stream.

    Built with ``File.from_reader``.  The stream must stay open for the
    lifetime of the File; ``close()`` closes it.
    """

    def __init__(
        self,
        stream: BinaryIO,
        offsets: List[int],
        index: Dict[str, List[int]],
        by_type: Dict[int, List[int]],
        name: Optional[str] = None,
    ):
        self._stream = stream
        self._offsets = offsets
        self._index = index
        self._by_type = by_type
        self.name = name

    @classmethod
    def from_reader(cls, stream: BinaryIO, name: Optional[str] = None) -> "File":
        """Scan *stream* from the start and index every chunk.

        Args:
            stream: Seekable binary stream positioned anywhere.
            name: Label used in error messages (usually the file path).

        Raises:
            ChunkDecodeError: The stream is corrupt or truncated.  The
                exception's ``partial`` holds the chunks read before the
                failure.
        """
        stream.seek(0)
        offsets: List[int] = []
        index: Dict[str, List[int]] = {}
        by_type: Dict[int, List[int]] = {}

        try:
            for offset, value in _iter_objects(stream):
                try:
                    chunk = Chunk.model_validate(value)
                except ValidationError as exc:
                    raise _StreamError(
                        offset, f"invalid chunk ({exc.error_count()} validation errors)"
                    ) from exc
                offsets.append(offset)
                index.setdefault(chunk.id(), []).append(offset)
                by_type.setdefault(int(chunk.type), []).append(offset)
        except _StreamError as exc:
            partial = cls(stream, offsets, index, by_type, name=name)
            raise ChunkDecodeError(
                exc.offset, len(offsets), exc.reason, partial=list(partial), path=name
            ) from exc

        logger.debug("Indexed chunk file", name=name, chunks=len(offsets), ids=len(index))
        return cls(stream, offsets, index, by_type, name=name)

    def __len__(self) -> int:
        return len(self._offsets)

    def __iter__(self) -> Iterator[Chunk]:
        """All chunks in file order."""
        for offset in self._offsets:
            yield self._read(offset)

    def __enter__(self) -> "File":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        self._stream.close()

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def _read(self, offset: int) -> Chunk:
        self._stream.seek(offset)
        position = bisect_left(self._offsets, offset)
        try:
            for _, value in _iter_objects(self._stream, offset):
                return Chunk.model_validate(value)
        except (_StreamError, ValidationError) as exc:
            raise ChunkDecodeError(offset, position, str(exc), path=self.name) from exc
        raise ChunkDecodeError(offset, position, "unexpected end of stream", path=self.name)

    # Index access

    def ids(self) -> List[str]:
        """Identities present in the file, in order of first appearance."""
        return list(self._index)

    def has(self, id: str) -> bool:
        return id in self._index

    def offsets(self, id: str) -> List[int]:
        return list(self._index.get(id, []))

    def chunks(self, id: str) -> List[Chunk]:
        """All chunks sharing identity *id*, in append order."""
        return [self._read(offset) for offset in self._index.get(id, [])]

    def chunks_of_type(self, chunk_type: ChunkType) -> List[Chunk]:
        return [self._read(offset) for offset in self._by_type.get(int(chunk_type), [])]

    def count_by_id(self) -> Dict[str, int]:
        return {id: len(offsets) for id, offsets in self._index.items()}

    # Conversations

    def all_messages(self, channel_id: str) -> List[Message]:
        """Channel history reassembled from all its Messages chunks."""
        messages: List[Message] = []
        for chunk in self.chunks(channel_id):
            messages.extend(chunk.messages)
        return messages

    def all_thread_messages(self, channel_id: str, thread_ts: str) -> List[Message]:
        messages: List[Message] = []
        for chunk in self.chunks(thread_id(channel_id, thread_ts)):
            messages.extend(chunk.messages)
        return messages

    def thread_parent(self, channel_id: str, thread_ts: str) -> Optional[Message]:
        for chunk in self.chunks(thread_id(channel_id, thread_ts)):
            if chunk.parent is not None:
                return chunk.parent
        return None

    def all_files(self, channel_id: str, message_ts: str) -> List[FileRecord]:
        files: List[FileRecord] = []
        for chunk in self.chunks(files_id(channel_id, message_ts)):
            files.extend(chunk.files)
        return files

    # Workspace-wide lists

    def all_users(self) -> List[User]:
        users: List[User] = []
        for chunk in self.chunks(USER_CHUNK_ID):
            users.extend(chunk.users)
        return users

    def all_channels(self) -> List[Channel]:
        channels: List[Channel] = []
        for chunk in self.chunks(CHANNEL_CHUNK_ID):
            channels.extend(chunk.channels)
        return channels

    def all_channel_infos(self) -> List[Channel]:
        """Channel records of every ChannelInfo chunk, in file order.

        Raises:
            NoChannelInfoError: The file holds no ChannelInfo chunks.
        """
        if not self._by_type.get(int(ChunkType.CHANNEL_INFO)):
            raise NoChannelInfoError(self.name)
        return [
            chunk.channel
            for chunk in self.chunks_of_type(ChunkType.CHANNEL_INFO)
            if chunk.channel is not None
        ]

    def channel_info(self, channel_id: str) -> Channel:
        """Channel record for *channel_id*, preferring the non-thread chunk."""
        for id in (channel_info_id(channel_id), channel_info_id(channel_id, is_thread=True)):
            for chunk in self.chunks(id):
                if chunk.channel is not None:
                    return chunk.channel
        raise NoChannelInfoError(self.name)
