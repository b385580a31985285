"""
File utilities for Undo Tools.

Checksums, filename sanitizing, formatting and logging setup shared by the
backup store, the undo manager and the CLI.
"""

import hashlib
import logging
import re
from datetime import timedelta
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

_NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
_DURATION_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(ms|w|d|h|m|s)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


# Checksum operations
def compute_checksum(file_path: Path, algorithm: str = "sha256") -> Optional[str]:
    """
    Compute cryptographic checksum of a file.

    Reads the file in chunks so large files never sit in memory.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm (sha256, md5, etc.)

    Returns:
        Hexadecimal checksum string, or None on error
    """
    try:
        hash_obj = hashlib.new(algorithm)

        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                hash_obj.update(chunk)

        return hash_obj.hexdigest()
    except OSError as e:
        logger.error(f"Error computing checksum for {file_path}: {e}")
        return None


def verify_checksum(
    file_path: Path, expected_checksum: str, algorithm: str = "sha256"
) -> bool:
    """
    Verify that a file's checksum matches expected value.

    Args:
        file_path: Path to the file
        expected_checksum: Expected checksum value
        algorithm: Hash algorithm

    Returns:
        True if checksums match, False otherwise
    """
    actual_checksum = compute_checksum(file_path, algorithm)
    if actual_checksum is None:
        return False

    return actual_checksum.lower() == expected_checksum.lower()


# Formatting utilities
def format_bytes(size_bytes: int) -> str:
    """
    Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "2.5 GB")
    """
    if size_bytes == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    return f"{size:.2f} {units[unit_index]}"


def safe_filename(name: str) -> str:
    """
    Convert a string to a safe filename.

    Args:
        name: Input string

    Returns:
        Safe filename string
    """
    unsafe_chars = '<>:"/\\|?*'
    for char in unsafe_chars:
        name = name.replace(char, "_")

    name = name.strip(". ")

    # Leave room for the backup prefix
    if len(name) > 200:
        name = name[:200]

    return name or "unnamed"


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as "24h", "7d", "1h30m" or "90s".

    A bare number is read as hours.

    Args:
        value: Duration string

    Returns:
        Parsed duration

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value.strip().lower()
    if not text:
        raise ValueError("Empty duration")

    if _NUMBER_PATTERN.fullmatch(text):
        return timedelta(hours=float(text))

    total = timedelta()
    position = 0
    for match in _DURATION_PATTERN.finditer(text):
        if match.start() != position:
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        total += float(amount) * _DURATION_UNITS[unit]
        position = match.end()

    if position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")

    return total


def format_duration(duration: timedelta) -> str:
    """Format a timedelta compactly, e.g. "1d2h" or "30m"."""
    seconds = int(duration.total_seconds())
    if seconds <= 0:
        return "0s"

    parts = []
    for suffix, unit_seconds in (("d", 86400), ("h", 3600), ("m", 60), ("s", 1)):
        amount, seconds = divmod(seconds, unit_seconds)
        if amount:
            parts.append(f"{amount}{suffix}")
    return "".join(parts)


# Logging setup
def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set logging level to DEBUG
        quiet: If True, set logging level to WARNING
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
