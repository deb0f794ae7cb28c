"""
Exceptions raised by the archive engine.

Path validation failures use the builtin ``FileNotFoundError``,
``NotADirectoryError`` and ``IsADirectoryError``; the classes here cover the
conditions that have no builtin counterpart.
"""

from typing import Optional


class ArchiveError(Exception):
    """Base class for archive errors."""


class CorruptChunkFileError(ArchiveError):
    """A file in the archive exists but cannot be read back."""

    def __init__(self, path, reason: str = "corrupt file"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class ChunkFileEmptyError(CorruptChunkFileError):
    """A chunk file exists but has zero length."""

    def __init__(self, path):
        super().__init__(path, "chunk file is empty")


class FileNotEmptyError(ArchiveError, FileExistsError):
    """Refusing to create a chunk file over an existing non-empty file."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"file {path} exists and not empty")


class ChunkDecodeError(CorruptChunkFileError):
    """Decoding a chunk stream stopped part way through.

    Attributes:
        offset: Byte offset of the chunk that could not be decoded.
        chunk_index: Zero-based index of that chunk in the stream.
        partial: Chunks decoded before the failure, in file order.
    """

    def __init__(
        self,
        offset: int,
        chunk_index: int,
        reason: str,
        partial: Optional[list] = None,
        path=None,
    ):
        self.offset = offset
        self.chunk_index = chunk_index
        self.partial = partial if partial is not None else []
        where = f"chunk #{chunk_index} at byte offset {offset}"
        if path:
            where = f"{path}: {where}"
        super().__init__(where, reason)
        self.path = path


class NoChannelInfoError(ArchiveError, LookupError):
    """The chunk file holds no ChannelInfo chunks.

    Recoverable: the directory-wide channel scan skips such files.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        message = "no channel info"
        if path:
            message = f"{message} in {path}"
        super().__init__(message)


class InvalidLinkError(ArchiveError, ValueError):
    """An entity is neither a conversation ID nor a recognised archive link."""

    def __init__(self, link: str, reason: str = "unsupported link format"):
        self.link = link
        super().__init__(f"{reason}: {link!r}")
