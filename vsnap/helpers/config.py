#!/usr/bin/env python3
################################################################################
# VSNAP
#
# @file:        config.py
# @module:      vsnap.helpers.config
# @description: INI configuration with defaults and environment overrides
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Configuration management for vsnap.

Handles loading, validation, and access to configuration settings.
A missing configuration file is not an error: built-in defaults apply.
"""

from __future__ import annotations

import configparser
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constants import (
    DEFAULT_CONFIG_PATHS,
    DEFAULT_WORKER_IMAGE,
    IMAGE_PULL_TIMEOUT,
    LOG_FOLLOW_GRACE_PERIOD,
    SNAPSHOT_PREFIX,
)
from .errors import ConfigError
from .logging import get_logger

logger = get_logger(__name__)

# Environment variable -> (section, option)
ENV_OVERRIDES = {
    'VSNAP_IMAGE': ('docker', 'image'),
    'VSNAP_DOCKER_HOST': ('docker', 'base_url'),
}


class Config:
    """
    Configuration manager for vsnap.

    Loads configuration from an INI file on top of built-in defaults and
    applies environment overrides last.
    """

    def __init__(self, config_path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize configuration.

        Args:
            config_path: Optional path to config file
            environ: Environment mapping (defaults to os.environ)
        """
        self._config = configparser.ConfigParser(interpolation=None)
        self._config.read_dict(self._get_default_config())

        self.config_file = self._find_config_file(config_path)
        if self.config_file and self.config_file.exists():
            self._load_config()
        else:
            logger.debug("No configuration file found, using defaults")

        self._apply_env_overrides(os.environ if environ is None else environ)

    # --------------- Properties ---------------

    @property
    def docker_base_url(self) -> Optional[str]:
        """Docker daemon URL; empty means the SDK's environment defaults."""
        return self.get('docker', 'base_url') or None

    @property
    def worker_image(self) -> str:
        return self.get('docker', 'image', fallback=DEFAULT_WORKER_IMAGE)

    @property
    def snapshot_prefix(self) -> str:
        return self.get('snapshot', 'prefix', fallback=SNAPSHOT_PREFIX)

    @property
    def compress_by_default(self) -> bool:
        return self.getboolean('snapshot', 'compress', False)

    @property
    def log_grace_period(self) -> float:
        return self.getfloat('docker', 'log_grace_period', LOG_FOLLOW_GRACE_PERIOD)

    @property
    def pull_timeout(self) -> int:
        """Seconds an image pull may take; 0 disables the limit."""
        return self.getint('docker', 'pull_timeout', IMAGE_PULL_TIMEOUT)

    # --------------- Core Methods ---------------

    def get(self, section: str, option: str, fallback: Any = None) -> Any:
        """Get configuration value with fallback."""
        try:
            return self._config.get(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def getint(self, section: str, option: str, fallback: int = 0) -> int:
        try:
            return self._config.getint(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback
        except ValueError as e:
            raise ConfigError(f"[{section}] {option} must be an integer: {e}") from e

    def getfloat(self, section: str, option: str, fallback: float = 0.0) -> float:
        try:
            return self._config.getfloat(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback
        except ValueError as e:
            raise ConfigError(f"[{section}] {option} must be a number: {e}") from e

    def getboolean(self, section: str, option: str, fallback: bool = False) -> bool:
        try:
            return self._config.getboolean(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback
        except ValueError as e:
            raise ConfigError(f"[{section}] {option} must be a boolean: {e}") from e

    def set(self, section: str, option: str, value: Any) -> None:
        """Set configuration value."""
        if not self._config.has_section(section):
            self._config.add_section(section)
        self._config.set(section, option, str(value))

    def sections(self) -> Dict[str, Dict[str, str]]:
        return {s: dict(self._config.items(s)) for s in self._config.sections()}

    def save(self, path: Optional[Path] = None) -> Path:
        """Save configuration to file atomically with 0600 permissions."""
        target = Path(path or self.config_file or DEFAULT_CONFIG_PATHS['user']).expanduser()
        _atomic_write_config(self._config, target)
        self.config_file = target
        logger.info(f"Configuration saved to {target}")
        return target

    def validate(self) -> List[str]:
        """
        Validate configuration values.

        Returns:
            List of error messages (empty when everything is fine)
        """
        errors = []

        prefix = self.snapshot_prefix
        if not prefix or not prefix.replace('_', '').replace('.', '').isalnum():
            errors.append(f"snapshot prefix must be alphanumeric (got {prefix!r})")

        if not self.worker_image:
            errors.append("docker image must not be empty")

        for section, option in (('docker', 'pull_timeout'), ('logging', 'max_size_mb'), ('logging', 'backup_count')):
            try:
                if self.getint(section, option) < 0:
                    errors.append(f"[{section}] {option} must not be negative")
            except ConfigError as e:
                errors.append(str(e))

        level = self.get('logging', 'level', 'INFO').upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            errors.append(f"[logging] level is invalid: {level}")

        return errors

    # --------------- Private Methods ---------------

    @staticmethod
    def _get_default_config() -> Dict[str, Dict[str, Any]]:
        """Default configuration structure."""
        return {
            'docker': {
                'base_url': '',
                'image': DEFAULT_WORKER_IMAGE,
                'pull_timeout': IMAGE_PULL_TIMEOUT,
                'log_grace_period': LOG_FOLLOW_GRACE_PERIOD,
            },
            'snapshot': {
                'prefix': SNAPSHOT_PREFIX,
                'compress': 'false',
            },
            'logging': {
                'level': 'WARNING',
                'file': '',
                'max_size_mb': 100,
                'backup_count': 5,
            },
        }

    def _find_config_file(self, config_path: Optional[Path] = None) -> Optional[Path]:
        """Explicit path first, then user location, then system location."""
        if config_path:
            return Path(config_path).expanduser().resolve()

        for location in (DEFAULT_CONFIG_PATHS['user'], DEFAULT_CONFIG_PATHS['root']):
            expanded = Path(location).expanduser()
            if expanded.exists():
                if os.access(expanded, os.R_OK):
                    logger.debug(f"Using config file: {expanded}")
                    return expanded
                logger.warning(f"Config file exists but not readable: {expanded}")

        return None

    def _load_config(self) -> None:
        """Load configuration from file with UTF-8 encoding."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                self._config.read_file(f)
        except (OSError, UnicodeDecodeError, configparser.Error) as e:
            raise ConfigError(f"Failed to load configuration {self.config_file}: {e}") from e
        logger.debug(f"Configuration loaded from {self.config_file}")

    def _apply_env_overrides(self, environ) -> None:
        for variable, (section, option) in ENV_OVERRIDES.items():
            value = environ.get(variable)
            if value:
                logger.debug(f"Override [{section}] {option} from {variable}")
                self.set(section, option, value)


def _atomic_write_config(parser: configparser.ConfigParser, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix='.vsnap-config-', suffix='.tmp')
    try:
        with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
            parser.write(f)
        os.replace(temp_path, path)
        os.chmod(path, 0o600)
    except OSError:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def create_default_config(path: Optional[Path] = None, force: bool = False) -> Path:
    """
    Write the default configuration.

    Args:
        path: Target path (user or system location by default)
        force: Overwrite an existing file

    Returns:
        Path to the configuration file
    """
    if path is None:
        path = DEFAULT_CONFIG_PATHS['root'] if os.geteuid() == 0 else DEFAULT_CONFIG_PATHS['user']
    path = Path(path).expanduser()

    if path.exists() and not force:
        logger.warning(f"Configuration file already exists at {path}")
        return path

    parser = configparser.ConfigParser(interpolation=None)
    parser.read_dict(Config._get_default_config())
    _atomic_write_config(parser, path)

    logger.info(f"Configuration created at {path}")
    return path
