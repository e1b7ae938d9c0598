"""
Configuration and logging for gitcpan.

Settings come from ~/.gitcpan/config.{json,toml,yaml,yml} (or the file
named by $GITCPAN_CONFIG), layered over the defaults, then overridden
by GITCPAN_<SECTION>_<KEY> environment variables.
"""

import json
import logging
import os
import sys
import tomllib
from pathlib import Path

import yaml

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger("gitcpan")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']
ENV_PREFIX = "GITCPAN_"


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. GITCPAN_CONFIG environment variable
    2. ~/.gitcpan/config.{json,toml,yaml,yml}
    """
    if 'GITCPAN_CONFIG' in os.environ:
        path = Path(os.environ['GITCPAN_CONFIG'])
        if path.exists():
            return path

    config_dir = Path.home() / '.gitcpan'
    for filename in CONFIG_FILENAMES:
        path = config_dir / filename
        if path.exists():
            return path

    return config_dir / 'config.json'


def read_config_file(path):
    """Parse a config file by its extension; JSON unless told otherwise."""
    suffix = path.suffix.lower()
    if suffix == '.toml':
        with open(path, 'rb') as f:
            return tomllib.load(f)
    if suffix in ('.yaml', '.yml'):
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}
    with open(path, 'r') as f:
        return json.load(f)


def load_config():
    """Load configuration: defaults, then the config file, then the environment."""
    config = get_default_config()

    config_path = get_config_path()
    if config_path.exists():
        try:
            config = merge_configs(config, read_config_file(config_path))
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    return apply_env_overrides(config)


def get_default_config():
    """Get default configuration."""
    return {
        "metacpan": {
            "base_url": "https://fastapi.metacpan.org/v1",
            "timeout_seconds": 30,
        },
        "import": {
            "check_by_default": True,
            "tracking_ref": "refs/remotes/cpan/master",
            "tag_prefix": "v",
            "mirror_git_repositories": True,
        },
        "author": {
            "name": "",
            "email": "",
        },
        "logging": {
            "level": "INFO",
        },
    }


def configure_logging(config, verbose=False):
    """Apply the configured log level to the package logger."""
    if verbose:
        level = logging.DEBUG
    else:
        level_name = str(config.get('logging', {}).get('level', 'INFO')).upper()
        level = getattr(logging, level_name, logging.INFO)
    logger.setLevel(level)


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def coerce_env_value(value, current):
    """Convert an environment string to the type of the setting it replaces."""
    if isinstance(current, bool):
        if value.lower() in ('true', '1', 'yes', 'on'):
            return True
        if value.lower() in ('false', '0', 'no', 'off'):
            return False
        raise ValueError(f"expected a boolean, got {value!r}")
    if isinstance(current, int):
        return int(value)
    return value


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.

    Variables are named GITCPAN_<SECTION>_<KEY> after a known section,
    e.g. GITCPAN_IMPORT_CHECK_BY_DEFAULT=false or
    GITCPAN_METACPAN_TIMEOUT_SECONDS=5. Unknown names are ignored.
    """
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue

        name = env_key[len(ENV_PREFIX):].lower()
        for section, settings in config.items():
            if not isinstance(settings, dict) or not name.startswith(f"{section}_"):
                continue
            key = name[len(section) + 1:]
            if key not in settings:
                continue
            try:
                settings[key] = coerce_env_value(value, settings[key])
            except ValueError as e:
                logger.warning(f"Ignoring {env_key}: {e}")
            break

    return config
