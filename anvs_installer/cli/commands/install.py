"""
Install/upgrade command implementation.

Both commands run the same flow: an upgrade is an install of a newer
release followed by pruning.
"""

import logging

from anvs_installer.cli.utils import load_config, print_box, print_warning, safe_print
from anvs_installer.lifecycle import install, manual_instructions

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install or upgrade command.

    Args:
        args: Parsed command-line arguments with:
            - release: Release version to install
            - root: Version store root

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args)
    logger.debug(f"Installing {config.version} into {config.root}")
    report = install(config)

    if report.is_upgrade:
        safe_print(
            f"✅ Upgraded {config.tool_name} {report.previous_version} -> {report.version}"
        )
    elif report.previous_version == report.version:
        safe_print(f"✅ Reinstalled {config.tool_name} {report.version}")
    else:
        safe_print(f"✅ Installed {config.tool_name} {report.version} to {config.root}")

    if report.store.prune.removed:
        print(f"Removed old versions: {', '.join(report.store.prune.removed)}")

    if report.needs_manual_setup:
        print()
        print_box(manual_instructions(report, config.tool_name))
    elif report.profile_updated:
        print()
        print(f"Shell integration added to {report.profile}")
        print(f"Restart your shell or run: source {report.profile}")

    for conflict in report.conflicts:
        print_warning(
            f"{config.tool_name} is also installed via {conflict.method.description} "
            f"at {conflict.path}"
        )
        print(f"  Remove it with: {conflict.method.uninstall_command}")

    return 0
