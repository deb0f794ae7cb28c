"""Chunked, gzip-compressed local archive of exported workspace conversations."""

from message_archive.errors import (
    ArchiveError,
    ChunkDecodeError,
    ChunkFileEmptyError,
    CorruptChunkFileError,
    FileNotEmptyError,
    NoChannelInfoError,
)
from message_archive.models import Channel, Chunk, ChunkType, File, Message, User
from message_archive.storage import Directory, create_dir, open_dir

__all__ = [
    "ArchiveError",
    "ChunkDecodeError",
    "ChunkFileEmptyError",
    "CorruptChunkFileError",
    "FileNotEmptyError",
    "NoChannelInfoError",
    "Channel",
    "Chunk",
    "ChunkType",
    "File",
    "Message",
    "User",
    "Directory",
    "create_dir",
    "open_dir",
]
