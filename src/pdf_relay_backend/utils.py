"""
Utility functions for file system operations and string sanitization.

This module provides helper functions for:
- Sanitizing uploaded filenames for safe filesystem usage
- Generating collision-resistant staged file names
- Ensuring directory creation
- Formatting byte counts and durations for API responses
"""

from __future__ import annotations

import re
import time
from pathlib import Path
from uuid import uuid4

# Characters outside this set are replaced in staged file names
# Allows: alphanumeric characters, dots and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9.-]")
UNDERSCORE_RUN = re.compile(r"_+")

# Staged names look like "<epoch-millis>-<token>-<sanitized name>"
STAGED_NAME_PATTERN = re.compile(r"^\d+-[0-9a-f]+-(?P<original>.+)$")

BYTES_PER_MB = 1024 * 1024


def sanitize_filename(filename: str, fallback: str = "document.pdf") -> str:
    """
    Generate a filesystem-safe version of an uploaded filename.

    Every character that is not alphanumeric, a dot or a hyphen becomes an
    underscore, then runs of underscores collapse into one.

    Args:
        filename: The original filename as sent by the client
        fallback: Value returned when nothing usable is left

    Returns:
        The sanitized filename or the fallback value

    Example:
        >>> sanitize_filename("Pliego técnico (v2).pdf")
        "Pliego_t_cnico_v2_.pdf"
    """
    # Drop any directory components a client may have sent
    name = Path(filename.replace("\\", "/")).name
    cleaned = UNDERSCORE_RUN.sub("_", SANITIZE_PATTERN.sub("_", name))
    if not cleaned.strip("_."):
        return fallback
    return cleaned


def generate_staged_name(original_name: str) -> str:
    """
    Build a collision-resistant file name for a staged upload.

    The millisecond timestamp orders files by arrival; the random token keeps
    names unique when the same file is uploaded concurrently.
    """
    token = uuid4().hex[:12]
    return f"{epoch_millis()}-{token}-{sanitize_filename(original_name)}"


def original_name_from_staged(staged_name: str) -> str:
    """Recover the sanitized original name from a staged file name."""
    match = STAGED_NAME_PATTERN.match(staged_name)
    return match.group("original") if match else staged_name


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_megabytes(size_bytes: int) -> str:
    """Format a byte count as mebibytes with two decimals, e.g. ``"2.00"``."""
    return f"{size_bytes / BYTES_PER_MB:.2f}"


def format_seconds(seconds: float) -> str:
    return f"{seconds:.2f}s"


def epoch_millis() -> int:
    return int(time.time() * 1000)
