from .chunk_file import Encoder, File, write_chunks
from .directory import CHUNK_EXT, ChunkWriter, Directory, create_dir, open_dir

__all__ = [
    "Encoder",
    "File",
    "write_chunks",
    "CHUNK_EXT",
    "ChunkWriter",
    "Directory",
    "create_dir",
    "open_dir",
]
