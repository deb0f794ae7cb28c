"""
Tests for the chunk model and its identity scheme.
"""
import json

import pytest

from message_archive.models import (
    CHANNEL_CHUNK_ID,
    USER_CHUNK_ID,
    Channel,
    Chunk,
    ChunkType,
    Message,
    channel_info_id,
    files_id,
    thread_id,
)


@pytest.mark.parametrize(
    "chunk, want",
    [
        (Chunk(type=ChunkType.MESSAGES, channel_id="C123"), "C123"),
        (
            Chunk(
                type=ChunkType.THREAD_MESSAGES,
                channel_id="C123",
                parent=Message(thread_ts="1234"),
            ),
            "tC123:1234",
        ),
        (
            Chunk(type=ChunkType.FILES, channel_id="C123", parent=Message(ts="1234")),
            "fC123:1234",
        ),
        (Chunk(type=ChunkType.CHANNEL_INFO, channel_id="C123"), "ciC123"),
        (Chunk(type=ChunkType.CHANNEL_INFO, channel_id="C123", is_thread=True), "tciC123"),
        (Chunk(type=ChunkType.USERS), USER_CHUNK_ID),
        (Chunk(type=ChunkType.CHANNELS), CHANNEL_CHUNK_ID),
        (Chunk(type=ChunkType(999)), "<unknown:ChunkType(999)>"),
    ],
    ids=["messages", "threads", "files", "channel info", "channel info (thread)",
         "users", "channels", "unknown"],
)
def test_chunk_id(chunk, want):
    assert chunk.id() == want


def test_identity_ignores_informational_fields():
    a = Chunk(type=ChunkType.MESSAGES, channel_id="C1", timestamp=1, count=10)
    b = Chunk(type=ChunkType.MESSAGES, channel_id="C1", timestamp=2, count=0, is_thread=True)
    assert a.id() == b.id() == "C1"


@pytest.mark.parametrize("chunk_type, want", [
    (ChunkType.THREAD_MESSAGES, "tC1:"),
    (ChunkType.FILES, "fC1:"),
])
def test_missing_parent_yields_empty_anchor(chunk_type, want):
    assert Chunk(type=chunk_type, channel_id="C1").id() == want


def test_id_helpers_match_chunk_identity(parent_message):
    thread = Chunk.for_thread("C1", parent_message, [])
    files = Chunk.for_files("C1", parent_message, [])
    assert thread.id() == thread_id("C1", parent_message.thread_timestamp)
    assert files.id() == files_id("C1", parent_message.timestamp)
    assert Chunk.for_channel_info(Channel(id="C1")).id() == channel_info_id("C1")
    assert channel_info_id("C1", is_thread=True) == "tciC1"


def test_unknown_chunk_type_is_representable():
    t = ChunkType(999)
    assert int(t) == 999
    assert str(t) == "ChunkType(999)"
    assert not t.is_known
    assert ChunkType(5) is ChunkType.CHANNEL_INFO
    assert str(ChunkType.USERS) == "USERS"
    assert ChunkType.USERS.is_known


def test_unknown_chunk_type_decodes():
    chunk = Chunk.model_validate({"t": 42, "id": "C9"})
    assert int(chunk.type) == 42
    assert chunk.id() == "<unknown:ChunkType(42)>"


def test_chunk_type_rejects_non_integers():
    with pytest.raises(ValueError):
        Chunk.model_validate({"t": "messages"})


def test_chunk_serializes_with_short_keys(parent_message):
    chunk = Chunk.for_thread("C1", parent_message, [Message(text="hi", ts="2.0")])
    data = json.loads(chunk.model_dump_json(by_alias=True))
    assert data["t"] == 1
    assert data["id"] == "C1"
    assert data["n"] == 1
    assert data["p"]["ts"] == parent_message.timestamp
    assert data["p"]["thread_ts"] == parent_message.thread_timestamp
    assert data["m"][0]["text"] == "hi"


def test_constructors_fill_count_and_timestamp(general, sample_users):
    users = Chunk.for_users(sample_users)
    assert users.type == ChunkType.USERS
    assert users.count == 2
    assert users.timestamp > 0
    info = Chunk.for_channel_info(general, is_thread=True)
    assert info.channel_id == "C100"
    assert info.channel == general
    assert info.id() == "tciC100"


def test_records_keep_unknown_fields():
    msg = Message.model_validate({"ts": "1.0", "text": "x", "blocks": [{"type": "rich_text"}]})
    dumped = json.loads(msg.model_dump_json(by_alias=True))
    assert dumped["blocks"] == [{"type": "rich_text"}]


def test_thread_parent_detection(parent_message):
    assert parent_message.is_thread_parent()
    assert not Message(ts="1.0", thread_ts="0.5").is_thread_parent()
