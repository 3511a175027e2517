"""
Entry point for running the installer as a module.

Usage: python -m anvs_installer [command] [options]
"""

from anvs_installer.cli.parser import main

if __name__ == "__main__":
    main()
