"""
File system utilities for the anvs installer.

This module provides the low-level operations the store and the profile
editor are built on:
- Atomic symlink swaps (create under a temporary name, rename over the link)
- Atomic file writes (temp file + rename, keeping the file mode)
- Single-entry extraction from a streamed .tar.gz archive
- Safe recursive deletion and temporary directories
"""

import logging
import os
import secrets
import shutil
import stat
import tarfile
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

from .exceptions import ArchiveExtractionError, EntryNotFound, FilesystemError

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755


def _temporary_sibling(path: Path, suffix: str = ".tmp") -> Path:
    """Return an unused hidden path next to `path` (same filesystem)."""
    return path.parent / f".{path.name}.{os.getpid()}.{secrets.token_hex(4)}{suffix}"


# ============================================================================
# Links
# ============================================================================


def read_link(link_path: Union[str, Path]) -> Optional[str]:
    """
    Read the raw target of a symbolic link.

    Returns:
        Link target as stored (possibly relative), or None if the path is
        missing or not a symlink
    """
    try:
        return os.readlink(link_path)
    except (FileNotFoundError, OSError):
        return None


def atomic_symlink(target: Union[str, Path], link_path: Union[str, Path]) -> None:
    """
    Point `link_path` at `target` without a window where the link is absent.

    A new symlink is created under a temporary name in the same directory and
    renamed over `link_path`; rename(2) replaces the old link atomically.

    Args:
        target: Link target (stored as given, relative targets allowed)
        link_path: Path of the link to create or replace

    Raises:
        OSError: If the link cannot be created or renamed; the previous
            link (if any) is untouched in that case
    """
    link_path = Path(link_path)
    temp_link = _temporary_sibling(link_path, suffix=".link")

    os.symlink(target, temp_link)
    try:
        os.replace(temp_link, link_path)
    except OSError:
        try:
            os.unlink(temp_link)
        except OSError:
            pass
        raise

    logger.debug(f"Linked {link_path} -> {target}")


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    If the destination already exists its permission bits are carried over,
    so editing a user's file never changes its mode.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)
    """
    file_path = Path(file_path)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding, errors="surrogateescape", newline="") as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        try:
            os.chmod(temp_path, stat.S_IMODE(file_path.stat().st_mode))
        except FileNotFoundError:
            os.chmod(temp_path, 0o644)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def replace_file(source: Path, destination: Path, mode: int) -> None:
    """Copy `source` over `destination` atomically and set its mode."""
    temp_path = _temporary_sibling(destination)
    try:
        shutil.copyfile(source, temp_path)
        os.chmod(temp_path, mode)
        os.replace(temp_path, destination)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(path: Union[str, Path]) -> bool:
    """
    Remove a directory tree.

    A missing path is not an error. A symlink is unlinked rather than
    followed.

    Returns:
        True if something was removed, False if the path did not exist

    Raises:
        FilesystemError: If deletion fails
    """
    path = Path(path)

    if path.is_symlink():
        path.unlink()
        return True

    if not path.exists():
        return False  # Already gone, nothing to do

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e

    return True


@contextmanager
def temporary_directory(prefix: str = "anvs_", cleanup: bool = True):
    """
    Context manager for temporary directory with automatic cleanup.

    Args:
        prefix: Prefix for temp directory name
        cleanup: If True, remove directory on exit

    Yields:
        Path to temporary directory
    """
    try:
        temp_dir = Path(tempfile.mkdtemp(prefix=prefix))
    except OSError as e:
        raise FilesystemError(f"Failed to create temporary directory: {e}") from e

    try:
        yield temp_dir
    finally:
        if cleanup and temp_dir.exists():
            shutil.rmtree(temp_dir, ignore_errors=True)


# ============================================================================
# Archive Extraction
# ============================================================================


def _member_name(name: str) -> str:
    """Normalize a tar member name ('./anvs' and 'anvs' are the same entry)."""
    while name.startswith("./"):
        name = name[2:]
    return name


def extract_entry(
    archive_path: Union[str, Path],
    entry_name: str,
    destination: Union[str, Path],
) -> Path:
    """
    Extract exactly one named file from a gzip-compressed tar archive.

    The archive is read as a stream ('r|gz'); every other entry is read past
    and discarded. The matching entry is written to a temporary file next to
    `destination`, made executable and renamed into place.

    Args:
        archive_path: Path to the .tar.gz archive
        entry_name: Name of the entry to extract (e.g. 'anvs')
        destination: File path the entry's content is written to

    Returns:
        The destination path

    Raises:
        EntryNotFound: If no regular file named `entry_name` is in the archive
        ArchiveExtractionError: If the archive is corrupt or truncated
        FilesystemError: If the extracted file cannot be written
    """
    archive_path = Path(archive_path)
    destination = Path(destination)
    wanted = _member_name(entry_name)
    found = False

    try:
        with tarfile.open(archive_path, mode="r|gz") as tar:
            for member in tar:
                if _member_name(member.name) != wanted or not member.isfile():
                    continue
                if found:
                    logger.warning(
                        f"Archive contains '{entry_name}' more than once, "
                        "keeping the first entry"
                    )
                    continue

                source = tar.extractfile(member)
                _write_executable(source, destination)
                found = True
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveExtractionError(f"Failed to read {archive_path}: {e}") from e

    if not found:
        raise EntryNotFound(entry_name, archive_path.name)

    logger.debug(f"Extracted {entry_name} to {destination}")
    return destination


def _read_chunk(source, size: int = 65536) -> bytes:
    # Read failures mean a corrupt or truncated archive, not a local I/O problem
    try:
        return source.read(size)
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveExtractionError(f"Truncated or corrupt archive entry: {e}") from e


def _write_executable(source, destination: Path) -> None:
    temp_path = _temporary_sibling(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "wb") as out:
            while chunk := _read_chunk(source):
                out.write(chunk)
        os.chmod(temp_path, EXECUTABLE_MODE)
        os.replace(temp_path, destination)
    except ArchiveExtractionError:
        temp_path.unlink(missing_ok=True)
        raise
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise FilesystemError(f"Failed to write {destination}: {e}") from e


__all__ = [
    "EXECUTABLE_MODE",
    "read_link",
    "atomic_symlink",
    "atomic_write",
    "replace_file",
    "safe_rmtree",
    "temporary_directory",
    "extract_entry",
]
