"""
Pytest configuration and shared fixtures.
"""
import gzip
import sys
from pathlib import Path

import pytest
import structlog

# Add src/ to path so the package imports without installation
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from message_archive.models import Channel, Chunk, File, Message, User  # noqa: E402
from message_archive.storage.directory import create_dir  # noqa: E402


@pytest.fixture(autouse=True)
def reset_structlog_state():
    """Reset structlog configuration between tests (the CLI reconfigures it)."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def general():
    return Channel(id="C100", name="general", is_channel=True, num_members=3)


@pytest.fixture
def random_channel():
    return Channel(id="C200", name="random", is_channel=True, num_members=2, is_archived=True)


@pytest.fixture
def parent_message():
    return Message(user="U1", text="kick-off", ts="1700000000.000100",
                   thread_ts="1700000000.000100", reply_count=2)


@pytest.fixture
def sample_chunks(general, parent_message):
    """A channel export: info, two pages of history, one thread, one file list."""
    page1 = [parent_message, Message(user="U2", text="hello", ts="1700000001.000200")]
    page2 = [Message(user="U1", text="bye", ts="1700000002.000300")]
    replies = [
        Message(user="U2", text="reply one", ts="1700000003.000400", thread_ts="1700000000.000100"),
        Message(user="U1", text="reply two", ts="1700000004.000500", thread_ts="1700000000.000100"),
    ]
    files = [File(id="F1", name="plan.pdf", mimetype="application/pdf", size=2048)]
    return [
        Chunk.for_channel_info(general),
        Chunk.for_messages("C100", page1),
        Chunk.for_thread("C100", parent_message, replies),
        Chunk.for_messages("C100", page2),
        Chunk.for_files("C100", parent_message, files),
    ]


@pytest.fixture
def sample_users():
    return [
        User(id="U1", name="alice", real_name="Alice Johnson"),
        User(id="U2", name="bob", real_name="Bob Wilson", deleted=True),
    ]


@pytest.fixture
def archive(tmp_path):
    """An empty archive directory."""
    return create_dir(tmp_path / "archive")


@pytest.fixture
def write_gzip():
    """Write raw bytes as a gzip file, bypassing the chunk writer."""
    def _write(path: Path, data: bytes) -> Path:
        with gzip.open(path, "wb") as gz:
            gz.write(data)
        return path
    return _write
