"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from labbcat_cli.exceptions import ConfigurationError
from labbcat_cli.models.config import DEFAULT_TIMEOUT_SECONDS, ClientConfig

log = logging.getLogger(__name__)

APP_DIR_NAME = "labbcat-cli"
CONFIG_FILE_NAME = "config.ini"

# Values written for keys missing from an older config file
INI_DEFAULTS: dict[str, Any] = {
    "base_url": "",
    "username": "",
    "password": "",
    "verbose": False,
    "timeout_seconds": DEFAULT_TIMEOUT_SECONDS,
    "fragment_dir": "",
}


def default_config_path() -> Path:
    """Returns ``$XDG_CONFIG_HOME/labbcat-cli/config.ini`` (``%APPDATA%`` on Windows)."""
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / APP_DIR_NAME / CONFIG_FILE_NAME


def _ini_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    # configparser uses % for interpolation, so it must be escaped
    return str(value).replace("%", "%%")


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser()

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ClientConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.
                None values are ignored.

        Returns:
            A validated ClientConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'labbcat-cli init' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        except (configparser.Error, ValueError) as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if cli_options:
            config_from_file.update(
                {k: v for k, v in cli_options.items() if v is not None}
            )

        try:
            config_dir = self.config_file_path.parent
            return ClientConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save. Missing keys get defaults.

        Raises:
            ConfigurationError: If the settings are invalid or the file can't be written.
        """
        try:
            ClientConfig(**{k: v for k, v in settings.items() if v is not None})
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        config = configparser.ConfigParser()
        config["DEFAULT"] = {}
        for key in sorted(ClientConfig.get_ini_keys()):
            value = settings.get(key)
            if value is None:
                value = INI_DEFAULTS.get(key)
            config["DEFAULT"][key] = _ini_value(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        return {
            "base_url": section.get("base_url", ""),
            "username": section.get("username", ""),
            "password": section.get("password", ""),
            "verbose": section.getboolean("verbose", False),
            "timeout_seconds": section.getint("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
            "fragment_dir": section.get("fragment_dir", "") or None,
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        needs_saving = False
        config_section = self._parser["DEFAULT"]

        for key in sorted(ClientConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = _ini_value(INI_DEFAULTS.get(key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
