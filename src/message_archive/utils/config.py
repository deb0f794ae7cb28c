"""
Configuration for reading and writing archive directories.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ArchiveSettings(BaseSettings):
    """Settings read from MESSAGE_ARCHIVE_* environment variables or ``.env``.

    MESSAGE_ARCHIVE_DIR sets the archive directory used when a command is
    given none.
    """

    model_config = SettingsConfigDict(
        env_prefix="MESSAGE_ARCHIVE_", env_file=".env", extra="ignore"
    )

    dir: Path = Path("archive")
    log_level: str = "INFO"
    # Whether the channel fallback scan descends into subdirectories.
    scan_subdirectories: bool = True


def get_default_archive_dir() -> Path:
    """
    Get the archive directory used when a command is given none.

    Can be set via MESSAGE_ARCHIVE_DIR environment variable.

    Returns:
        Archive directory path (``archive`` in the working directory by default)
    """
    return ArchiveSettings().dir
