"""
Idempotent editing of shell profile files.

The installer owns exactly one region of a profile, delimited by a pair of
sentinel lines::

    # >>> anvs initialize >>>
    ...
    # <<< anvs initialize <<<

`install` adds the region or rewrites it in place, `remove` deletes it;
both can be repeated safely. The rest of the file is preserved byte for
byte, including its line endings.
"""

import logging
import os
import re
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..core.exceptions import FilesystemError, ProfileFormatError
from ..core.filesystem import atomic_write
from ..core.locking import LockManager

logger = logging.getLogger(__name__)


def start_marker(tool_name: str) -> str:
    return f"# >>> {tool_name} initialize >>>"


def end_marker(tool_name: str) -> str:
    return f"# <<< {tool_name} initialize <<<"


def render_block(root: Path, home: Path, tool_name: str = "anvs") -> str:
    """
    Build the integration snippet placed between the sentinels.

    The store root is written relative to $HOME when it lives under the
    home directory so the profile survives a renamed home.
    """
    try:
        root_expr = f"$HOME/{Path(root).relative_to(home).as_posix()}"
    except ValueError:
        root_expr = str(root)

    var = f"{tool_name.upper()}_DIR"
    return (
        f"# {tool_name} shell integration\n"
        f'export {var}="{root_expr}"\n'
        f'export PATH="${var}/bin:$PATH"\n'
        f"\n"
        f'if [ -s "${var}/current/lib/{tool_name}.sh" ]; then\n'
        f'  . "${var}/current/lib/{tool_name}.sh"\n'
        f"elif command -v brew >/dev/null 2>&1 && "
        f'[ -s "$(brew --prefix {tool_name} 2>/dev/null)/lib/{tool_name}.sh" ]; then\n'
        f'  . "$(brew --prefix {tool_name})/lib/{tool_name}.sh"\n'
        f"fi\n"
    )


_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")


@dataclass
class ProfileText:
    """
    A profile split into lines, each keeping its own terminator.

    Lines are only split on '\\n', so a '\\r\\n' ending stays attached to
    its line and mixed files render back exactly. Lines the editor adds use
    `newline`, the ending most lines of the file already have.
    """

    lines: List[str]
    newline: str = "\n"

    @classmethod
    def parse(cls, text: str) -> "ProfileText":
        lines = _LINE_RE.findall(text)
        crlf = sum(1 for line in lines if line.endswith("\r\n"))
        lf = sum(1 for line in lines if line.endswith("\n")) - crlf
        return cls(lines=lines, newline="\r\n" if crlf > lf else "\n")

    def terminate(self) -> None:
        """Make sure the last line ends with a newline."""
        if self.lines and not self.lines[-1].endswith("\n"):
            self.lines[-1] += self.newline

    def render(self) -> str:
        return "".join(self.lines)


class ShellIntegrationEditor:
    """Inserts, updates and removes the managed block in profile files."""

    def __init__(
        self, tool_name: str = "anvs", lock_manager: Optional[LockManager] = None
    ):
        self.tool_name = tool_name
        self.start_marker = start_marker(tool_name)
        self.end_marker = end_marker(tool_name)
        self.lock_manager = lock_manager

    def _lock(self):
        if self.lock_manager is None:
            return nullcontext()
        return self.lock_manager.exclusive()

    def install(self, profile_path: Union[str, Path], block_text: str) -> bool:
        """
        Add the managed block, or replace the existing one in place.

        A missing profile is created when its directory exists. Several
        sequential blocks left by older installers collapse into one.

        Args:
            profile_path: Profile file to edit
            block_text: Lines to place between the sentinels

        Returns:
            True if the file was changed, False if it was already up to date
            or could not be created

        Raises:
            ProfileFormatError: If the profile holds nested or unbalanced
                sentinels (the file is left untouched)
            FilesystemError: If the profile cannot be read or written
        """
        path = self._resolve(profile_path)

        with self._lock():
            if path.exists():
                original = self._read(path)
            elif path.parent.is_dir():
                original = ""
            else:
                logger.warning(f"Cannot create {path}: {path.parent} does not exist")
                return False

            doc = ProfileText.parse(original)
            blocks = self._find_blocks(doc.lines, path)
            body = [line.rstrip("\r") for line in block_text.strip("\n").split("\n")]
            new_block = [
                line + doc.newline
                for line in [self.start_marker, *body, self.end_marker]
            ]

            if blocks:
                if len(blocks) > 1:
                    logger.warning(
                        f"Found {len(blocks)} {self.tool_name} blocks in {path}, "
                        "merging into one"
                    )
                    self._drop_blocks(doc.lines, blocks[1:])
                first_start, first_end = blocks[0]
                doc.lines[first_start : first_end + 1] = new_block
            else:
                if doc.lines:
                    doc.terminate()
                    doc.lines.append(doc.newline)
                doc.lines.extend(new_block)

            updated = doc.render()
            if updated == original:
                logger.debug(f"{path} is already up to date")
                return False

            self._write(path, updated)

        logger.info(f"Updated {self.tool_name} integration in {path}")
        return True

    def remove(self, profile_path: Union[str, Path]) -> bool:
        """
        Remove the managed block from a profile.

        Returns:
            True if a block was found and removed, False if the file is
            missing or holds no block

        Raises:
            ProfileFormatError: If the profile holds nested or unbalanced
                sentinels (the file is left untouched)
            FilesystemError: If the profile cannot be read or written
        """
        path = self._resolve(profile_path)

        with self._lock():
            if not path.exists():
                return False

            original = self._read(path)
            if self.start_marker not in original:
                return False

            doc = ProfileText.parse(original)
            blocks = self._find_blocks(doc.lines, path)
            if not blocks:
                return False

            self._drop_blocks(doc.lines, blocks)
            self._write(path, doc.render())

        logger.info(f"Removed {self.tool_name} integration from {path}")
        return True

    def has_block(self, profile_path: Union[str, Path]) -> bool:
        """True if the profile currently holds a managed block."""
        path = self._resolve(profile_path)
        if not path.exists():
            return False
        return bool(self._find_blocks(ProfileText.parse(self._read(path)).lines, path))

    def _find_blocks(self, lines: List[str], path: Path) -> List[Tuple[int, int]]:
        """Locate (start, end) line indexes of every managed block."""
        blocks = []
        start = None

        for index, line in enumerate(lines):
            stripped = line.strip()
            if stripped == self.start_marker:
                if start is not None:
                    raise ProfileFormatError(
                        f"{path}: nested '{self.start_marker}' on line {index + 1}"
                    )
                start = index
            elif stripped == self.end_marker:
                if start is None:
                    raise ProfileFormatError(
                        f"{path}: '{self.end_marker}' without a start marker "
                        f"on line {index + 1}"
                    )
                blocks.append((start, index))
                start = None

        if start is not None:
            raise ProfileFormatError(
                f"{path}: '{self.start_marker}' on line {start + 1} is never closed"
            )
        return blocks

    @staticmethod
    def _drop_blocks(lines: List[str], blocks: List[Tuple[int, int]]) -> None:
        # Back to front so earlier indexes stay valid
        for start, end in reversed(blocks):
            if start > 0 and not lines[start - 1].strip():
                start -= 1  # separator line written by install()
            del lines[start : end + 1]

    @staticmethod
    def _resolve(profile_path: Union[str, Path]) -> Path:
        # Edit through symlinked dotfiles instead of replacing the link
        path = Path(profile_path)
        if path.is_symlink():
            return Path(os.path.realpath(path))
        return path

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_bytes().decode("utf-8", errors="surrogateescape")
        except OSError as e:
            raise FilesystemError(f"Failed to read profile {path}: {e}") from e

    @staticmethod
    def _write(path: Path, text: str) -> None:
        try:
            atomic_write(path, text)
        except OSError as e:
            raise FilesystemError(f"Failed to write profile {path}: {e}") from e


__all__ = [
    "ShellIntegrationEditor",
    "ProfileText",
    "render_block",
    "start_marker",
    "end_marker",
]
