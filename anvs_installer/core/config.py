"""
Installer configuration.

Settings are layered, later layers winning:

1. Built-in defaults
2. Optional YAML file (``--config PATH`` or ``$ANVS_INSTALLER_CONFIG``)
3. Environment variables (``$ANVS_DIR``, ``$ANVS_VERSION``,
   ``$ANVS_RELEASE_BASE_URL``)

Example YAML file::

    version: "1.4.0"
    root: ~/.local/share/anvs
    keep_versions: 3
    timeout: 20
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .download import DEFAULT_MAX_REDIRECTS, DEFAULT_TIMEOUT
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TOOL_NAME = "anvs"
DEFAULT_RELEASE_BASE_URL = "https://github.com/cameronolivier/anvs/releases/download"
DEFAULT_KEEP_VERSIONS = 2

ENV_CONFIG_FILE = "ANVS_INSTALLER_CONFIG"
ENV_ROOT = "ANVS_DIR"
ENV_VERSION = "ANVS_VERSION"
ENV_BASE_URL = "ANVS_RELEASE_BASE_URL"


def _default_version() -> str:
    from anvs_installer import __version__

    return __version__


@dataclass
class InstallerConfig:
    """
    Resolved installer settings.

    Attributes:
        tool_name: Name of the binary and of its shell glue scripts
        version: Release version to install
        release_base_url: Download root for release artifacts
        home: Home directory holding the store, profiles and tool config
        root: Version store root (default: ~/.anvs)
        keep_versions: Number of installed versions kept after pruning
        timeout: Network timeout in seconds
        max_redirects: Redirects followed per download before giving up
        lock_timeout: Seconds to wait for another installer run
    """

    tool_name: str = TOOL_NAME
    version: str = field(default_factory=_default_version)
    release_base_url: str = DEFAULT_RELEASE_BASE_URL
    home: Path = field(default_factory=Path.home)
    root: Optional[Path] = None
    keep_versions: int = DEFAULT_KEEP_VERSIONS
    timeout: float = DEFAULT_TIMEOUT
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    lock_timeout: float = 60

    def __post_init__(self):
        self.home = Path(self.home)
        if self.root is None:
            self.root = self.home / f".{self.tool_name}"
        self.root = Path(self.root).expanduser()
        self.version = str(self.version).lstrip("v")
        self._validate()

    @property
    def tool_config_path(self) -> Path:
        """The tool's own configuration file, removed on uninstall."""
        return self.home / f".{self.tool_name}rc"

    @property
    def lock_path(self) -> Path:
        """Lock file kept beside (not inside) the store root."""
        return self.root.parent / f".{self.root.name}.lock"

    def _validate(self) -> None:
        if not isinstance(self.keep_versions, int) or self.keep_versions < 1:
            raise ConfigurationError(
                f"keep_versions must be a positive integer, got {self.keep_versions!r}"
            )
        if not isinstance(self.max_redirects, int) or self.max_redirects < 0:
            raise ConfigurationError(
                f"max_redirects must be a non-negative integer, got {self.max_redirects!r}"
            )
        if not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            raise ConfigurationError(
                f"timeout must be a positive number, got {self.timeout!r}"
            )
        if not self.version:
            raise ConfigurationError("version must not be empty")

    @classmethod
    def load(
        cls,
        config_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "InstallerConfig":
        """
        Build the configuration from file, environment and overrides.

        Args:
            config_file: YAML file (falls back to $ANVS_INSTALLER_CONFIG)
            environ: Environment mapping (default: os.environ)
            **overrides: Field values that win over every other layer

        Raises:
            ConfigurationError: If the file is unreadable or a value is invalid
        """
        environ = os.environ if environ is None else environ

        if config_file is None and environ.get(ENV_CONFIG_FILE):
            config_file = Path(environ[ENV_CONFIG_FILE])

        values: Dict[str, Any] = {}
        if config_file is not None:
            values.update(load_yaml_config(Path(config_file).expanduser()))

        if environ.get(ENV_ROOT):
            values["root"] = environ[ENV_ROOT]
        if environ.get(ENV_VERSION):
            values["version"] = environ[ENV_VERSION]
        if environ.get(ENV_BASE_URL):
            values["release_base_url"] = environ[ENV_BASE_URL]

        values.update(overrides)

        known = {f.name for f in fields(cls)}
        for key in sorted(set(values) - known):
            logger.warning(f"Ignoring unknown configuration key: {key}")
            values.pop(key)

        if "root" in values and values["root"] is not None:
            values["root"] = Path(values["root"]).expanduser()
        if "home" in values:
            values["home"] = Path(values["home"]).expanduser()

        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_yaml_config(config_file: Path) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If the file is missing, unparseable or not a mapping
    """
    if not config_file.exists():
        raise ConfigurationError(f"Configuration file not found: {config_file}")

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Configuration file {config_file} must contain a mapping"
        )
    return config


__all__ = [
    "InstallerConfig",
    "load_yaml_config",
    "TOOL_NAME",
    "DEFAULT_RELEASE_BASE_URL",
    "DEFAULT_KEEP_VERSIONS",
]
