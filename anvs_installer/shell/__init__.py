"""
Shell integration for the anvs installer.

Shell detection, profile discovery, the sentinel-delimited profile editor
and the packaged shell glue scripts installed into each version's lib/.
"""

from pathlib import Path
from typing import List

from ..core.exceptions import FilesystemError
from .detection import Shell, all_profile_files
from .profile import ShellIntegrationEditor, end_marker, render_block, start_marker

GLUE_SCRIPTS = ("anvs.sh", "anvs.ps1")


def write_glue_scripts(destination: Path) -> List[Path]:
    """
    Copy the packaged shell glue scripts into a directory.

    Returns:
        Paths of the written scripts, in GLUE_SCRIPTS order

    Raises:
        FilesystemError: If a script cannot be read or written
    """
    destination = Path(destination)

    # Shipped as package data beside this module: ./glue/
    glue = Path(__file__).parent / "glue"
    written = []
    try:
        destination.mkdir(parents=True, exist_ok=True)
        for name in GLUE_SCRIPTS:
            target = destination / name
            target.write_bytes((glue / name).read_bytes())
            written.append(target)
    except OSError as e:
        raise FilesystemError(f"Failed to write shell scripts to {destination}: {e}") from e
    return written


__all__ = [
    "Shell",
    "ShellIntegrationEditor",
    "GLUE_SCRIPTS",
    "all_profile_files",
    "end_marker",
    "render_block",
    "start_marker",
    "write_glue_scripts",
]
