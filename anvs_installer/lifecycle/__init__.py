"""
Install, upgrade and uninstall flows built on the core, store and shell
packages.
"""

from .install import Installer, InstallReport, install, manual_instructions
from .installations import (
    ForeignInstallation,
    InstallMethod,
    detect_installations,
)
from .uninstall import UninstallReport, uninstall

__all__ = [
    "Installer",
    "InstallReport",
    "install",
    "manual_instructions",
    "UninstallReport",
    "uninstall",
    "ForeignInstallation",
    "InstallMethod",
    "detect_installations",
]
