"""
Shared utilities for Undo Tools.

This module provides common file helpers used by the undo engine and the CLI.
"""

from .file_utils import (
    # File operations
    compute_checksum,
    verify_checksum,
    safe_filename,
    # Formatting
    format_bytes,
    format_duration,
    parse_duration,
    # Logging
    setup_logging,
)

__all__ = [
    "compute_checksum",
    "verify_checksum",
    "safe_filename",
    "format_bytes",
    "format_duration",
    "parse_duration",
    "setup_logging",
]
