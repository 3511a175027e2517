"""
Shared utilities for CLI commands.

Console output helpers and configuration loading from parsed arguments.
"""

import sys
from typing import Optional

from anvs_installer.core.config import InstallerConfig


def load_config(args, **overrides) -> InstallerConfig:
    """
    Build the installer configuration from parsed arguments.

    Command-line values win over the config file and the environment;
    options left unset on the command line do not override anything.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    for option, key in (("release", "version"), ("root", "root")):
        value = getattr(args, option, None)
        if value is not None:
            overrides[key] = value
    return InstallerConfig.load(config_file=getattr(args, "config", None), **overrides)


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def print_box(text: str, width: int = 70, char: str = "="):
    """Print text in a box for emphasis."""
    print(char * width)
    print(text)
    print(char * width)


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for limited consoles.

    Falls back to ASCII-safe characters if the symbols can't be encoded.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = (
            message.replace("⚠️", "WARNING:")
            .replace("✓", "[OK]")
            .replace("✅", "[OK]")
            .replace("❌", "[ERROR]")
        )
        print(safe_message, file=file)
