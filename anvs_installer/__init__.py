"""
anvs installer.

Downloads, verifies and provisions the anvs binary into a versioned store
under ~/.anvs and wires it into the user's shell profile.
"""

# Get version from package
try:
    from importlib.metadata import version

    __version__ = version("anvs-installer")
except Exception:
    __version__ = "2.1.0"
