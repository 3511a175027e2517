"""
Version store for the anvs installer.

This module provides functionality for:
- Semantic version parsing and ordering
- Versioned install layout with atomic `current`/`bin` link swaps
- Retention pruning and full teardown
"""

from anvs_installer.store.version import Version
from anvs_installer.store.version_store import (
    DEFAULT_KEEP,
    InstallResult,
    PruneResult,
    StoreState,
    VersionRecord,
    VersionStore,
)

__all__ = [
    "Version",
    "VersionStore",
    "VersionRecord",
    "StoreState",
    "PruneResult",
    "InstallResult",
    "DEFAULT_KEEP",
]
