"""
anvs installer CLI argument parser.

This module implements the command-line interface for the installer using
argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from anvs_installer import __version__
from anvs_installer.core.exceptions import InstallerError

logger = logging.getLogger(__name__)


class CLI:
    """anvs installer command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="anvs-installer",
            description="Install, upgrade or remove the anvs binary under ~/.anvs",
            epilog='Use "anvs-installer COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"anvs-installer {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to YAML configuration file (default: $ANVS_INSTALLER_CONFIG)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_upgrade_command(subparsers)
        self._add_uninstall_command(subparsers)

        return parser

    def _add_release_options(self, parser):
        parser.add_argument(
            "--release",
            metavar="VERSION",
            help="Release to install (default: the installer's own version)",
        )
        parser.add_argument(
            "--root",
            type=Path,
            metavar="DIR",
            help="Version store root (default: ~/.anvs)",
        )

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Install anvs",
            description="Download, verify and activate an anvs release",
        )
        self._add_release_options(parser)

    def _add_upgrade_command(self, subparsers):
        """Add 'upgrade' subcommand."""
        parser = subparsers.add_parser(
            "upgrade",
            help="Upgrade anvs",
            description="Install a newer anvs release and prune old versions",
        )
        self._add_release_options(parser)

    def _add_uninstall_command(self, subparsers):
        """Add 'uninstall' subcommand."""
        parser = subparsers.add_parser(
            "uninstall",
            help="Remove anvs",
            description="Remove shell integration, installed versions and ~/.anvsrc",
        )
        parser.add_argument(
            "--root",
            type=Path,
            metavar="DIR",
            help="Version store root (default: ~/.anvs)",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except InstallerError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1
        except Exception:
            logger.error("Unexpected internal error (run with --verbose for details)")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

        # Keep urllib3's connection chatter out of --verbose output
        if args.verbose:
            logging.getLogger("urllib3").setLevel(logging.INFO)
        logging.getLogger("filelock").setLevel(logging.WARNING)

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        # Command module mapping
        command_map = {
            "install": "anvs_installer.cli.commands.install",
            "upgrade": "anvs_installer.cli.commands.install",
            "uninstall": "anvs_installer.cli.commands.uninstall",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main(argv: Optional[List[str]] = None):
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run(argv))


if __name__ == "__main__":
    main()
