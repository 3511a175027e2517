"""
Unit tests for the filesystem module.

Tests cover:
- Atomic symlink swaps
- Atomic writes preserving file mode
- Safe recursive deletion
- Single-entry extraction from .tar.gz streams
"""

import gzip
import os
import stat

import pytest
from unittest.mock import patch

from anvs_installer.core.exceptions import (
    ArchiveExtractionError,
    EntryNotFound,
    FilesystemError,
)
from anvs_installer.core.filesystem import (
    atomic_symlink,
    atomic_write,
    extract_entry,
    read_link,
    replace_file,
    safe_rmtree,
    temporary_directory,
)


class TestAtomicSymlink:
    """Tests for atomic_symlink()."""

    def test_creates_link(self, tmp_path):
        """Test creating a new link."""
        (tmp_path / "v1").mkdir()
        link = tmp_path / "current"

        atomic_symlink("v1", link)

        assert link.is_symlink()
        assert os.readlink(link) == "v1"
        assert link.resolve() == (tmp_path / "v1").resolve()

    def test_replaces_existing_link(self, tmp_path):
        """Test an existing link is retargeted in place."""
        (tmp_path / "v1").mkdir()
        (tmp_path / "v2").mkdir()
        link = tmp_path / "current"
        atomic_symlink("v1", link)

        atomic_symlink("v2", link)

        assert os.readlink(link) == "v2"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["current", "v1", "v2"]

    def test_failed_rename_keeps_old_link(self, tmp_path):
        """Test the old link survives a failed rename and no temp link is left."""
        (tmp_path / "v1").mkdir()
        link = tmp_path / "current"
        atomic_symlink("v1", link)

        with patch("os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                atomic_symlink("v2", link)

        assert os.readlink(link) == "v1"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["current", "v1"]

    def test_read_link(self, tmp_path):
        """Test read_link returns raw target or None."""
        (tmp_path / "file").write_text("x")
        os.symlink("file", tmp_path / "link")

        assert read_link(tmp_path / "link") == "file"
        assert read_link(tmp_path / "file") is None
        assert read_link(tmp_path / "missing") is None


class TestAtomicWrite:
    """Tests for atomic_write()."""

    def test_writes_text(self, tmp_path):
        """Test writing a new file."""
        target = tmp_path / "profile"
        atomic_write(target, "line\r\n")

        assert target.read_bytes() == b"line\r\n"
        assert stat.S_IMODE(target.stat().st_mode) == 0o644

    def test_preserves_mode(self, tmp_path):
        """Test an existing file's mode is kept."""
        target = tmp_path / "profile"
        target.write_text("old")
        os.chmod(target, 0o600)

        atomic_write(target, "new")

        assert target.read_text() == "new"
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_round_trips_undecodable_bytes(self, tmp_path):
        """Test surrogate-escaped text is written back as the original bytes."""
        raw = b"caf\xe9\n"
        target = tmp_path / "profile"

        atomic_write(target, raw.decode("utf-8", errors="surrogateescape"))

        assert target.read_bytes() == raw

    def test_no_temp_file_left_on_failure(self, tmp_path):
        """Test the temp file is removed when the rename fails."""
        target = tmp_path / "profile"
        target.write_text("old")

        with patch("pathlib.Path.replace", side_effect=OSError("boom")):
            with pytest.raises(OSError):
                atomic_write(target, "new")

        assert target.read_text() == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["profile"]

    def test_replace_file_sets_mode(self, tmp_path):
        """Test replace_file copies content and applies the mode."""
        source = tmp_path / "src"
        source.write_bytes(b"binary")
        dest = tmp_path / "dest"

        replace_file(source, dest, 0o755)

        assert dest.read_bytes() == b"binary"
        assert stat.S_IMODE(dest.stat().st_mode) == 0o755


class TestSafeRmtree:
    """Tests for safe_rmtree()."""

    def test_removes_tree(self, tmp_path):
        """Test recursive removal."""
        root = tmp_path / "root"
        (root / "a" / "b").mkdir(parents=True)
        (root / "a" / "b" / "file").write_text("x")

        assert safe_rmtree(root) is True
        assert not root.exists()

    def test_missing_is_noop(self, tmp_path):
        """Test a missing path is not an error."""
        assert safe_rmtree(tmp_path / "missing") is False

    def test_symlink_is_not_followed(self, tmp_path):
        """Test a symlinked directory is unlinked, its target kept."""
        target = tmp_path / "target"
        target.mkdir()
        (target / "keep").write_text("x")
        link = tmp_path / "link"
        link.symlink_to(target)

        assert safe_rmtree(link) is True
        assert not link.exists()
        assert (target / "keep").exists()

    def test_file_rejected(self, tmp_path):
        """Test a regular file raises FilesystemError."""
        path = tmp_path / "file"
        path.write_text("x")

        with pytest.raises(FilesystemError):
            safe_rmtree(path)

    def test_rmtree_failure_wrapped(self, tmp_path):
        """Test OS errors surface as FilesystemError."""
        (tmp_path / "dir").mkdir()

        with patch("shutil.rmtree", side_effect=PermissionError("denied")):
            with pytest.raises(FilesystemError, match="denied"):
                safe_rmtree(tmp_path / "dir")

    def test_temporary_directory_cleanup(self):
        """Test temporary_directory removes itself."""
        with temporary_directory() as temp:
            (temp / "file").write_text("x")
            assert temp.exists()

        assert not temp.exists()


class TestExtractEntry:
    """Tests for extract_entry()."""

    def test_extracts_only_named_entry(self, tmp_path, release_tarball, binary_content):
        """Test only the binary is written, with executable bits."""
        archive = tmp_path / "release.tar.gz"
        archive.write_bytes(release_tarball)
        out_dir = tmp_path / "out"
        dest = out_dir / "anvs"

        result = extract_entry(archive, "anvs", dest)

        assert result == dest
        assert dest.read_bytes() == binary_content
        assert os.access(dest, os.X_OK)
        assert stat.S_IMODE(dest.stat().st_mode) == 0o755
        assert [p.name for p in out_dir.iterdir()] == ["anvs"]

    def test_dot_slash_prefix(self, tmp_path, make_tarball):
        """Test './anvs' matches 'anvs'."""
        archive = tmp_path / "release.tar.gz"
        archive.write_bytes(make_tarball({"./README": b"r", "./anvs": b"bin"}))

        extract_entry(archive, "anvs", tmp_path / "anvs")

        assert (tmp_path / "anvs").read_bytes() == b"bin"

    def test_nested_name_does_not_match(self, tmp_path, make_tarball):
        """Test 'docs/anvs' is not mistaken for 'anvs'."""
        archive = tmp_path / "release.tar.gz"
        archive.write_bytes(make_tarball({"docs/anvs": b"manual"}))

        with pytest.raises(EntryNotFound):
            extract_entry(archive, "anvs", tmp_path / "anvs")

    def test_duplicate_entry_keeps_first(self, tmp_path, make_tarball, caplog):
        """Test a repeated entry keeps the first occurrence."""
        import io
        import tarfile

        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            for content in (b"first", b"second"):
                info = tarfile.TarInfo("anvs")
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))
        archive = tmp_path / "release.tar.gz"
        archive.write_bytes(buffer.getvalue())

        extract_entry(archive, "anvs", tmp_path / "anvs")

        assert (tmp_path / "anvs").read_bytes() == b"first"
        assert "more than once" in caplog.text

    def test_missing_entry_raises(self, tmp_path, make_tarball):
        """Test an archive without the entry raises EntryNotFound."""
        archive = tmp_path / "release.tar.gz"
        archive.write_bytes(make_tarball({"README": b"r", "LICENSE": b"l"}))

        with pytest.raises(EntryNotFound) as exc_info:
            extract_entry(archive, "anvs", tmp_path / "anvs")

        assert exc_info.value.entry_name == "anvs"
        assert not (tmp_path / "anvs").exists()

    def test_not_gzip(self, tmp_path):
        """Test a non-gzip file raises ArchiveExtractionError."""
        archive = tmp_path / "release.tar.gz"
        archive.write_bytes(b"<html>404</html>")

        with pytest.raises(ArchiveExtractionError):
            extract_entry(archive, "anvs", tmp_path / "anvs")

    def test_truncated_archive(self, tmp_path, make_tarball):
        """Test a truncated archive raises ArchiveExtractionError and writes nothing."""
        data = make_tarball({"anvs": os.urandom(64 * 1024)})
        archive = tmp_path / "release.tar.gz"
        archive.write_bytes(data[: len(data) // 2])
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        with pytest.raises(ArchiveExtractionError):
            extract_entry(archive, "anvs", out_dir / "anvs")

        assert list(out_dir.iterdir()) == []

    def test_gzip_of_non_tar(self, tmp_path):
        """Test gzip data that is not a tar archive is rejected."""
        archive = tmp_path / "release.tar.gz"
        archive.write_bytes(gzip.compress(b"not a tar archive" * 100))

        with pytest.raises(ArchiveExtractionError):
            extract_entry(archive, "anvs", tmp_path / "anvs")
