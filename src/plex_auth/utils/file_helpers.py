"""Shared file utilities for plex-auth.

Provides common utilities used by the configuration and the vault:
- set_secure_permissions: Owner-only file/directory permissions
- ensure_secure_directory: Create a directory with owner-only permissions
- write_secure_file: Atomic write of an owner-only file
- require_file_exists: FileNotFoundError with a helpful message
- load_validated_json: JSON file + Pydantic validation
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

# Type variable for Pydantic models
T = TypeVar("T", bound=BaseModel)

__all__ = [
    "ensure_secure_directory",
    "load_validated_json",
    "require_file_exists",
    "set_secure_permissions",
    "write_secure_file",
]


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Set secure permissions on file or directory.

    Sets permissions to restrict access to owner only:
    - Directory: 0o700 (rwx------)
    - File: 0o600 (rw-------)

    Does nothing on Windows. Silently ignores permission errors
    (some systems don't allow permission changes).

    Args:
        path: Path to file or directory.
        is_directory: If True, use directory permissions (0o700).
    """
    if sys.platform == "win32":
        return

    try:
        mode = 0o700 if is_directory else 0o600
        path.chmod(mode)
    except OSError:
        pass  # Permission changes might fail on some systems


def ensure_secure_directory(directory: Path) -> None:
    """Create directory (and parents) if missing, owner-only permissions."""
    directory.mkdir(parents=True, exist_ok=True)
    set_secure_permissions(directory, is_directory=True)


def write_secure_file(path: Path, data: bytes) -> None:
    """Atomically write data to path with owner-only permissions.

    The data is written to a temporary file in the same directory, which is
    then renamed over the target. Readers never observe a partial file.

    Args:
        path: Destination file.
        data: Bytes to write.

    Raises:
        OSError: If the directory cannot be created or the write fails.
    """
    ensure_secure_directory(path.parent)

    # mkstemp creates the file with mode 0o600
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    set_secure_permissions(path)


def require_file_exists(file_path: Path, file_type: str = "file") -> None:
    """Raise FileNotFoundError with helpful message if file doesn't exist.

    Args:
        file_path: Path to check.
        file_type: Description for error message (e.g., "configuration").

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    if file_path.exists():
        return

    raise FileNotFoundError(f"{file_type.capitalize()} file not found at {file_path}.")


def load_validated_json(
    file_path: Path,
    model_class: type[T],
    file_type: str = "file",
    encoding: str | None = "utf-8",
) -> T:
    """Load JSON file and validate against Pydantic model.

    Combines file reading, JSON parsing, and Pydantic validation with
    consistent error messages.

    Args:
        file_path: Path to JSON file.
        model_class: Pydantic model class to validate against.
        file_type: Description for error messages (e.g., "config").
        encoding: File encoding.

    Returns:
        Validated Pydantic model instance.

    Raises:
        ValueError: If JSON is invalid or validation fails.
    """
    try:
        with open(file_path, "r", encoding=encoding) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_type} file {file_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read {file_type} file {file_path}: {e}") from e

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ValueError(f"Invalid {file_type} in {file_path}:\n" + "\n".join(errors)) from e
