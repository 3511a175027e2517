"""
Uninstall command implementation.

Removes shell integration, the version store and the tool's config file.
"""

import logging

from anvs_installer.cli.utils import load_config, print_error, safe_print
from anvs_installer.lifecycle import uninstall

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the uninstall command.

    Args:
        args: Parsed command-line arguments with:
            - root: Version store root

    Returns:
        Exit code (0 for success, 1 if a profile could not be cleaned)
    """
    config = load_config(args)
    logger.debug(f"Uninstalling from {config.root}")
    report = uninstall(config)

    for profile in report.profiles_cleaned:
        safe_print(f"✓ Removed {config.tool_name} integration from {profile.name}")
    if report.store_removed:
        safe_print(f"✓ Removed {config.root}")
    if report.config_removed:
        safe_print(f"✓ Removed {config.tool_config_path}")

    if report.profile_failures:
        for failure in report.profile_failures:
            print_error("Could not clean shell profile", failure)
        return 1

    if report.removed_anything:
        safe_print(f"✅ {config.tool_name} uninstalled")
    else:
        print(f"{config.tool_name} is not installed")
    return 0
