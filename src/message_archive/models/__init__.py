from .slack import Channel, File, Message, User
from .chunks import (
    CHANNEL_CHUNK_ID,
    USER_CHUNK_ID,
    Chunk,
    ChunkType,
    channel_info_id,
    files_id,
    thread_id,
)

__all__ = [
    "Channel",
    "File",
    "Message",
    "User",
    "Chunk",
    "ChunkType",
    "USER_CHUNK_ID",
    "CHANNEL_CHUNK_ID",
    "channel_info_id",
    "files_id",
    "thread_id",
]
