"""
Integrity verification for downloaded release artifacts.

The published checksum file is plain text whose first whitespace-delimited
token is the lowercase hex SHA256 digest of the tarball (the format written
by `sha256sum`). Verification is an exact comparison of that token with the
locally computed digest.

Note:
    The checksum is fetched over the same channel as the artifact, so this
    guards against corrupted or truncated downloads, not against a
    compromised release host.
"""

import hashlib
import logging
import secrets
from pathlib import Path

from .exceptions import ChecksumMismatch, FilesystemError

logger = logging.getLogger(__name__)

ALGORITHM = "sha256"
_HEX_DIGITS = frozenset("0123456789abcdef")


def parse_checksum(checksum_text: str) -> str:
    """
    Extract the expected digest from checksum file text.

    Args:
        checksum_text: Checksum file content ('<digest>  <filename>')

    Returns:
        First whitespace-delimited token, or '' for empty text

    Example:
        >>> parse_checksum("ab12...ef  anvs-x86_64-apple-darwin.tar.gz\\n")
        'ab12...ef'
    """
    tokens = checksum_text.split()
    return tokens[0] if tokens else ""


def _is_valid_digest(digest: str) -> bool:
    """Check the token is a lowercase hex digest of the expected length."""
    expected_len = hashlib.new(ALGORITHM).digest_size * 2
    return len(digest) == expected_len and all(c in _HEX_DIGITS for c in digest)


def _compare(actual: str, expected: str) -> None:
    if not _is_valid_digest(expected):
        logger.error(f"Published checksum is not a {ALGORITHM} hex digest: {expected!r}")
        raise ChecksumMismatch(expected, actual)

    # Use secrets.compare_digest for constant-time comparison
    if not secrets.compare_digest(actual.encode("ascii"), expected.encode("ascii")):
        raise ChecksumMismatch(expected, actual)

    logger.debug(f"Checksum verified: {actual}")


def compute_digest(data: bytes) -> str:
    """Return the hex digest of in-memory data."""
    return hashlib.new(ALGORITHM, data).hexdigest()


def compute_file_digest(file_path: Path, chunk_size: int = 8192) -> str:
    """
    Compute the hex digest of a file, reading it in chunks.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    hasher = hashlib.new(ALGORITHM)
    with open(file_path, "rb") as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)
    return hasher.hexdigest()


def verify(artifact_bytes: bytes, checksum_text: str) -> None:
    """
    Verify artifact bytes against published checksum text.

    Raises:
        ChecksumMismatch: If the digests differ or the checksum is malformed
    """
    _compare(compute_digest(artifact_bytes), parse_checksum(checksum_text))


def verify_file(file_path: Path, checksum_text: str) -> None:
    """
    Verify a file on disk against published checksum text.

    Same contract as verify(), without loading the file into memory.

    Raises:
        ChecksumMismatch: If the digests differ or the checksum is malformed
        FilesystemError: If the file cannot be read
    """
    try:
        actual = compute_file_digest(Path(file_path))
    except OSError as e:
        raise FilesystemError(f"Failed to read {file_path}: {e}") from e
    _compare(actual, parse_checksum(checksum_text))


__all__ = [
    "ALGORITHM",
    "parse_checksum",
    "compute_digest",
    "compute_file_digest",
    "verify",
    "verify_file",
]
