"""Configuration for the repository storage directory and git behaviour"""

import configparser
import logging
import os
import platform
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

APP_NAME = "repomirror"

logger = logging.getLogger(__name__)

_home = os.path.expanduser("~")

xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(_home, ".config")

default_cfg = {
    "dirs": {"repositories": f".{APP_NAME}/repositories"},
    "git": {
        "clone_depth": "15",
        "fetch_depth": "1",
        "relax_safe_directory": "false",
    },
    "identity": {
        "email": "ci@repomirror.invalid",
        "name": "Repository Mirror CI",
    },
}

if platform.system() == "Darwin":
    # macOS
    config_dir = Path("~/Library/Application Support/repomirror").expanduser()
else:
    # Linux or others
    config_dir = Path(os.path.join(xdg_config_home, APP_NAME))


def get_config_file():
    return config_dir / f"{APP_NAME}.cfg"


class ConfigAccessor:
    """
    A dict-like accessor for configuration files.

    Missing sections or keys fall back to the given default instead of
    raising.

    Usage:
        config = ConfigAccessor()
        value = config.get('git', 'clone_depth', default='15')
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize a ConfigAccessor with an optional config file path.

        Args:
            config_path: Path to the configuration file. If None, uses the default path.
        """
        if config_path is None:
            self.config_path = get_config_file()
        else:
            self.config_path = Path(config_path)

        self.config = configparser.ConfigParser()
        if self.config_path.exists():
            self.config.read(self.config_path)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get a configuration value from the specified section and key.

        Args:
            section: The configuration section
            key: The configuration key
            default: Value to return if the section or key doesn't exist

        Returns:
            The configuration value if it exists, otherwise the default value
        """
        try:
            return self.config[section][key]
        except (KeyError, configparser.NoSectionError, configparser.NoOptionError):
            return default

    def set(self, section: str, key: str, value: str) -> None:
        if not self.config.has_section(section):
            self.config.add_section(section)

        self.config[section][key] = value

    def save(self) -> None:
        """
        Save the current configuration to the config file.

        Fails gracefully if the file cannot be written (e.g., read-only filesystem).
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as configfile:
                self.config.write(configfile)
        except (OSError, IOError) as e:
            logger.warning(
                f"Could not save configuration to {self.config_path}: {e}. "
                "Configuration changes will not persist."
            )

    def sections(self) -> list:
        return self.config.sections()


# Create a global config accessor instance
config = ConfigAccessor()


def _get(accessor: ConfigAccessor, section: str, key: str) -> str:
    return accessor.get(section, key, default_cfg[section][key])


def get_storage_dir(accessor: Optional[ConfigAccessor] = None) -> Path:
    """
    Get the configured directory holding the mirrored working copies.

    Returns:
        Path to the storage directory (defaults to .repomirror/repositories)
    """
    accessor = accessor or config
    return Path(_get(accessor, "dirs", "repositories")).expanduser()


class GitSettings(BaseModel):
    """Tunables for cloning, fetching and committing."""

    clone_depth: int = Field(default=15, ge=1)
    fetch_depth: int = Field(default=1, ge=1)
    relax_safe_directory: bool = False
    user_email: str = default_cfg["identity"]["email"]
    user_name: str = default_cfg["identity"]["name"]

    @classmethod
    def from_config(cls, accessor: Optional[ConfigAccessor] = None) -> "GitSettings":
        """Build settings from a config file, falling back to the defaults."""
        accessor = accessor or config
        return cls(
            clone_depth=_get(accessor, "git", "clone_depth"),
            fetch_depth=_get(accessor, "git", "fetch_depth"),
            relax_safe_directory=_get(accessor, "git", "relax_safe_directory"),
            user_email=_get(accessor, "identity", "email"),
            user_name=_get(accessor, "identity", "name"),
        )
