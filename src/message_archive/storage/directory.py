"""
Directory of chunk files.

A directory holds gzip-compressed chunk files named ``<name>.json.gz``.
Methods taking a logical name append the extension; the ``*_raw`` variants
take the literal filename, for files the directory did not name itself
(per-conversation archives written by the export process, for instance).

Nothing is cached between calls: every query opens, streams and closes the
files it needs.
"""

import errno
import gzip
import os
import shutil
import stat
import tempfile
import zlib
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Union

import structlog
from pydantic import TypeAdapter, ValidationError

from message_archive.errors import (
    ChunkFileEmptyError,
    CorruptChunkFileError,
    FileNotEmptyError,
    NoChannelInfoError,
)
from message_archive.models import Channel, Chunk, Message, User
from message_archive.storage.chunk_file import File, write_chunks

logger = structlog.get_logger()

CHUNK_EXT = ".json.gz"

USERS_NAME = "users"
CHANNELS_NAME = "channels"

# Decompressed files larger than this are spooled to disk instead of memory.
_SPOOL_MAX_SIZE = 8 * 1024 * 1024

_channel_list = TypeAdapter(List[Channel])

PathLike = Union[str, os.PathLike]


class ChunkWriter:
    """Gzip stream layered over an open file.

    ``close()`` closes the gzip layer first, so its trailer is flushed, then
    the file handle.  If the first close fails the second is still attempted
    and the first error is raised.
    """

    def __init__(self, raw: BinaryIO, path: Path):
        self.path = path
        self._raw = raw
        self._gz = gzip.GzipFile(fileobj=raw, mode="wb")

    def write(self, data: bytes) -> int:
        return self._gz.write(data)

    def flush(self) -> None:
        self._gz.flush()

    @property
    def closed(self) -> bool:
        return self._raw.closed

    def close(self) -> None:
        first_error: Optional[BaseException] = None
        try:
            self._gz.close()
        except Exception as exc:
            first_error = exc
        try:
            self._raw.close()
        except Exception:
            if first_error is None:
                raise
        if first_error is not None:
            raise first_error

    def __enter__(self) -> "ChunkWriter":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def _check_regular_file(path: Path) -> os.stat_result:
    st = path.stat()
    if stat.S_ISDIR(st.st_mode):
        raise IsADirectoryError(errno.EISDIR, "chunk file is a directory", str(path))
    if st.st_size == 0:
        raise ChunkFileEmptyError(path)
    return st


def _decompress(path: Path) -> BinaryIO:
    """Decompress *path* into a seekable temporary stream, removed on close."""
    _check_regular_file(path)
    spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_SIZE)
    try:
        with gzip.open(path, "rb") as gz:
            shutil.copyfileobj(gz, spool)
        spool.seek(0)
    except (OSError, EOFError, zlib.error) as exc:
        spool.close()
        raise CorruptChunkFileError(path, f"cannot decompress ({exc})") from exc
    except BaseException:
        spool.close()
        raise
    return spool


class Directory:
    """A folder of chunk files with cross-file queries.

    Use ``open_dir`` or ``create_dir`` to get one.
    """

    def __init__(self, path: PathLike, scan_subdirectories: bool = True):
        self.path = Path(path)
        self.scan_subdirectories = scan_subdirectories
        self.logger = logger.bind(component="Directory", path=str(self.path))

    def __repr__(self) -> str:
        return f"Directory({str(self.path)!r})"

    def filename(self, name: str) -> Path:
        """Full path of the chunk file with logical *name*."""
        return self.path / (name + CHUNK_EXT)

    def _resolve(self, filename: PathLike) -> Path:
        # Absolute filenames are kept as they are.
        return self.path / filename

    def remove_all(self) -> None:
        """Delete the directory and everything in it.  Succeeds if already gone."""
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            return
        self.logger.info("Removed archive directory")

    # Writing

    def create(self, name: str) -> ChunkWriter:
        """Create the chunk file *name* (extension appended) for writing.

        Example::

            cd = create_dir("archive")
            with cd.create("channels") as w:   # archive/channels.json.gz
                ...

        Raises:
            FileNotEmptyError: A non-empty file with that name exists.  It is
                left untouched.
            IsADirectoryError: The name is taken by a directory.
        """
        return self._create(self.filename(name))

    def create_raw(self, filename: PathLike) -> ChunkWriter:
        """Same as ``create`` with the literal *filename*."""
        return self._create(self._resolve(filename))

    def _create(self, path: Path) -> ChunkWriter:
        try:
            st = path.stat()
        except FileNotFoundError:
            pass
        else:
            if stat.S_ISDIR(st.st_mode):
                raise IsADirectoryError(errno.EISDIR, "not a file", str(path))
            if st.st_size > 0:
                raise FileNotEmptyError(path)
        raw = open(path, "wb")
        try:
            writer = ChunkWriter(raw, path)
        except BaseException:
            raw.close()
            raise
        self.logger.debug("Created chunk file", file=str(path))
        return writer

    def write_chunks(self, name: str, chunks: Iterable[Chunk]) -> int:
        """Create chunk file *name* and encode *chunks* into it."""
        with self.create(name) as w:
            return write_chunks(w, chunks)

    def write_channels(self, channels: List[Channel]) -> None:
        """Write the flat channel snapshot read by ``channels()``."""
        with self.create(CHANNELS_NAME) as w:
            w.write(_channel_list.dump_json(channels, by_alias=True))

    # Reading

    def open(self, name: str) -> File:
        """Open and index the chunk file *name* (extension appended).

        Raises:
            FileNotFoundError: No such file.
            IsADirectoryError: The name is taken by a directory.
            ChunkFileEmptyError: The file has zero length.
            CorruptChunkFileError: The file cannot be decompressed or decoded.
        """
        return self._open(self.filename(name))

    def open_raw(self, filename: PathLike) -> File:
        """Same as ``open`` with the literal *filename*.

        Relative filenames are resolved against the directory.
        """
        return self._open(self._resolve(filename))

    def _open(self, path: Path) -> File:
        spool = _decompress(path)
        try:
            return File.from_reader(spool, name=str(path))
        except BaseException:
            spool.close()
            raise

    def users(self) -> List[User]:
        """Users from the dedicated users file.  There is no fallback."""
        with self.open(USERS_NAME) as f:
            return f.all_users()

    def messages(self, name: str, channel_id: str) -> List[Message]:
        """History of *channel_id* stored in chunk file *name*."""
        with self.open(name) as f:
            return f.all_messages(channel_id)

    def channels(self) -> List[Channel]:
        """Collect all channels of the archive.

        The flat ``channels.json.gz`` snapshot is used when present.  Otherwise
        every chunk file is opened in turn and the channel of each ChannelInfo
        chunk is collected; files without channel info are skipped, any other
        error stops the scan.
        """
        snapshot = self.filename(CHANNELS_NAME)
        if snapshot.is_file():
            self.logger.debug("Reading channel snapshot", file=snapshot.name)
            return _load_channels_json(snapshot)

        channels: List[Channel] = []
        for filename in self.chunk_files():
            try:
                with self.open_raw(filename) as f:
                    found = f.all_channel_infos()
            except NoChannelInfoError:
                self.logger.debug("No channel info", file=str(filename))
                continue
            self.logger.debug("Collected channel info", file=str(filename), channels=len(found))
            channels.extend(found)
        return channels

    def chunk_files(self) -> Iterator[Path]:
        """Chunk files in the directory, relative to it, in lexical walk order.

        Descends into subdirectories unless ``scan_subdirectories`` is off.
        """
        yield from self._walk(self.path, Path())

    def _walk(self, dirpath: Path, relative: Path) -> Iterator[Path]:
        with os.scandir(dirpath) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if self.scan_subdirectories:
                    yield from self._walk(Path(entry.path), relative / entry.name)
            elif entry.name.endswith(CHUNK_EXT) and entry.is_file():
                yield relative / entry.name


def _load_channels_json(path: Path) -> List[Channel]:
    """Read a gzip-compressed JSON array of channels."""
    _check_regular_file(path)
    try:
        with gzip.open(path, "rb") as gz:
            data = gz.read()
        return _channel_list.validate_json(data)
    except (OSError, EOFError, zlib.error, ValidationError) as exc:
        raise CorruptChunkFileError(path, f"invalid channel snapshot ({exc})") from exc


def open_dir(path: PathLike, scan_subdirectories: bool = True) -> Directory:
    """Open an existing archive directory.

    Raises:
        FileNotFoundError: *path* does not exist.
        NotADirectoryError: *path* is not a directory.
    """
    st = os.stat(path)
    if not stat.S_ISDIR(st.st_mode):
        raise NotADirectoryError(errno.ENOTDIR, "not a directory", str(path))
    return Directory(path, scan_subdirectories=scan_subdirectories)


def create_dir(path: PathLike, scan_subdirectories: bool = True) -> Directory:
    """Create (with all missing parents) and open an archive directory."""
    Path(path).mkdir(parents=True, exist_ok=True)
    return Directory(path, scan_subdirectories=scan_subdirectories)
