"""
Chunk model: one self-describing unit of exported conversation data.

Every chunk carries a type tag and derives an identity string from its
fields.  Chunks that describe the same subject (a channel paginated over many
requests, a thread, the workspace user list) share an identity, which the
chunk file index uses to reassemble them in append order.
"""

import time
from enum import IntEnum
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, PlainValidator

from message_archive.models.slack import Channel, File, Message, User


# Identities of the workspace-wide chunks.
USER_CHUNK_ID = "lusr"
CHANNEL_CHUNK_ID = "lch"


class ChunkType(IntEnum):
    """Kind of payload a chunk carries.

    Values are part of the on-disk format and must not be renumbered.  Values
    outside the enumeration are representable as pseudo-members, so archives
    from a newer producer still load.
    """

    MESSAGES = 0
    THREAD_MESSAGES = 1
    FILES = 2
    USERS = 3
    CHANNELS = 4
    CHANNEL_INFO = 5

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, int) or isinstance(value, bool):
            return None
        member = int.__new__(cls, value)
        member._name_ = None
        member._value_ = value
        return member

    @property
    def is_known(self) -> bool:
        return self._name_ is not None

    def __str__(self) -> str:
        if self._name_ is None:
            return f"ChunkType({self._value_})"
        return self._name_

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}.{self!s}: {self._value_}>"


def _parse_chunk_type(value: Any) -> ChunkType:
    if isinstance(value, ChunkType):
        return value
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"chunk type must be an integer, got {value!r}")
    return ChunkType(value)


ChunkTypeField = Annotated[
    ChunkType,
    PlainValidator(_parse_chunk_type),
    PlainSerializer(int, return_type=int),
]


def thread_id(channel_id: str, thread_ts: str) -> str:
    """Identity of the ThreadMessages chunks of a thread."""
    return f"t{channel_id}:{thread_ts}"


def files_id(channel_id: str, message_ts: str) -> str:
    """Identity of the Files chunks attached to a message."""
    return f"f{channel_id}:{message_ts}"


def channel_info_id(channel_id: str, is_thread: bool = False) -> str:
    if is_thread:
        return "tci" + channel_id
    return "ci" + channel_id


def _now() -> int:
    return time.time_ns()


class Chunk(BaseModel):
    """A single serializable unit of an archive.

    JSON keys are kept short because a chunk file holds one object per page
    of API results.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: ChunkTypeField = Field(alias="t")
    timestamp: int = Field(default=0, alias="ts")
    is_thread: bool = Field(default=False, alias="th")
    count: int = Field(default=0, alias="n")
    channel: Optional[Channel] = Field(default=None, alias="ch")
    channel_id: str = Field(default="", alias="id")
    parent: Optional[Message] = Field(default=None, alias="p")
    messages: List[Message] = Field(default_factory=list, alias="m")
    files: List[File] = Field(default_factory=list, alias="f")
    users: List[User] = Field(default_factory=list, alias="u")
    channels: List[Channel] = Field(default_factory=list, alias="cc")

    def id(self) -> str:
        """Return the identity of the chunk.

        Never raises: a missing parent is read as an empty anchor, and an
        unknown type renders as ``<unknown:ChunkType(N)>``.
        """
        parent = self.parent if self.parent is not None else Message()
        if self.type == ChunkType.MESSAGES:
            return self.channel_id
        elif self.type == ChunkType.THREAD_MESSAGES:
            return thread_id(self.channel_id, parent.thread_timestamp)
        elif self.type == ChunkType.FILES:
            return files_id(self.channel_id, parent.timestamp)
        elif self.type == ChunkType.CHANNEL_INFO:
            return channel_info_id(self.channel_id, self.is_thread)
        elif self.type == ChunkType.USERS:
            return USER_CHUNK_ID
        elif self.type == ChunkType.CHANNELS:
            return CHANNEL_CHUNK_ID
        return f"<unknown:{self.type!s}>"

    # Constructors used by producers.  Each fills count and capture time.

    @classmethod
    def for_messages(cls, channel_id: str, messages: List[Message]) -> "Chunk":
        return cls(
            type=ChunkType.MESSAGES,
            timestamp=_now(),
            count=len(messages),
            channel_id=channel_id,
            messages=messages,
        )

    @classmethod
    def for_thread(
        cls,
        channel_id: str,
        parent: Message,
        messages: List[Message],
        only_thread: bool = False,
    ) -> "Chunk":
        """Thread replies anchored at *parent*.

        *only_thread* marks a thread exported on its own, without the
        surrounding channel history.
        """
        return cls(
            type=ChunkType.THREAD_MESSAGES,
            timestamp=_now(),
            is_thread=only_thread,
            count=len(messages),
            channel_id=channel_id,
            parent=parent,
            messages=messages,
        )

    @classmethod
    def for_files(
        cls, channel_id: str, parent: Message, files: List[File], is_thread: bool = False
    ) -> "Chunk":
        return cls(
            type=ChunkType.FILES,
            timestamp=_now(),
            is_thread=is_thread,
            count=len(files),
            channel_id=channel_id,
            parent=parent,
            files=files,
        )

    @classmethod
    def for_channel_info(cls, channel: Channel, is_thread: bool = False) -> "Chunk":
        return cls(
            type=ChunkType.CHANNEL_INFO,
            timestamp=_now(),
            is_thread=is_thread,
            count=1,
            channel=channel,
            channel_id=channel.id,
        )

    @classmethod
    def for_users(cls, users: List[User]) -> "Chunk":
        return cls(
            type=ChunkType.USERS,
            timestamp=_now(),
            count=len(users),
            users=users,
        )

    @classmethod
    def for_channels(cls, channels: List[Channel]) -> "Chunk":
        return cls(
            type=ChunkType.CHANNELS,
            timestamp=_now(),
            count=len(channels),
            channels=channels,
        )
