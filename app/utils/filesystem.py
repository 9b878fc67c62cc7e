"""Filesystem path helpers for result storage and transient media files.

This module provides standardized path construction for the two working
directories of the service:

    DATA_DIR/               (local result store)
    └── {job_id}.json
    TEMP_DIR/               (downloaded media, deleted after transcription)
    └── {job_id}.mp4

Security:
    Job identifiers are validated before they are turned into paths to
    prevent path traversal. Identifiers must be alphanumeric with optional
    underscores/dashes (UUIDs pass).

Usage:
    from app.utils.filesystem import get_temp_file_path, delete_temp_file

    video_path = get_temp_file_path(job_id, "mp4")
    ...
    await delete_temp_file(video_path)
"""

import asyncio
import re
from pathlib import Path

from app.config import get_data_dir, get_temp_dir
from app.utils.logging import get_logger

__all__ = [
    "delete_temp_file",
    "get_result_file_path",
    "get_temp_file_path",
    "is_valid_identifier",
    "setup_directories",
    "validate_identifier",
]

log = get_logger(__name__)

# Validation pattern: alphanumeric, underscores, dashes only
_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
_EXTENSION_PATTERN = re.compile(r"^[a-zA-Z0-9]{1,8}$")


def is_valid_identifier(identifier: str) -> bool:
    return bool(identifier) and bool(_ID_PATTERN.match(identifier))


def validate_identifier(identifier: str, name: str = "job_id") -> None:
    """Validate identifier to prevent path traversal attacks.

    Args:
        identifier: The identifier to validate
        name: Human-readable name for error messages

    Raises:
        ValueError: If identifier is empty or contains disallowed characters
    """
    if not identifier:
        raise ValueError(f"{name} cannot be empty")

    if not _ID_PATTERN.match(identifier):
        raise ValueError(
            f"Invalid {name}: '{identifier}'. "
            f"Only alphanumeric characters, underscores, and dashes are allowed."
        )


def setup_directories() -> None:
    """Create DATA_DIR and TEMP_DIR if they don't exist."""
    for directory in (get_data_dir(), get_temp_dir()):
        directory.mkdir(parents=True, exist_ok=True)
    log.info("directories_ready", data_dir=str(get_data_dir()), temp_dir=str(get_temp_dir()))


def get_temp_file_path(job_id: str, extension: str) -> Path:
    """Get the transient media path for a job.

    Creates TEMP_DIR if it doesn't exist.

    Args:
        job_id: Job identifier
        extension: File extension without the dot (e.g. "mp4")

    Returns:
        Path to TEMP_DIR/{job_id}.{extension}

    Raises:
        ValueError: If job_id or extension is invalid
    """
    validate_identifier(job_id)
    if not _EXTENSION_PATTERN.match(extension):
        raise ValueError(f"Invalid file extension: '{extension}'")

    temp_dir = get_temp_dir()
    temp_dir.mkdir(parents=True, exist_ok=True)
    return temp_dir / f"{job_id}.{extension}"


def get_result_file_path(data_dir: Path, job_id: str) -> Path:
    """Get the JSON result path for a job inside data_dir.

    Raises:
        ValueError: If job_id is invalid
    """
    validate_identifier(job_id)
    return data_dir / f"{job_id}.json"


async def delete_temp_file(path: Path) -> None:
    """Delete a transient file, logging (not raising) on failure."""
    try:
        await asyncio.to_thread(path.unlink)
    except FileNotFoundError:
        return
    except OSError as e:
        log.warning("temp_file_delete_failed", path=str(path), error=str(e))
