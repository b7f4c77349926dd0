"""Configuration loader for sops-secrets."""
import os
import logging
from pathlib import Path
from typing import Dict, Any, Optional
import yaml

from .preferences import get_preference

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SOPS_SECRETS_CONFIG"
DEFAULT_SOPS_BINARY = "sops"


class ConfigError(Exception):
    """Configuration error exception."""
    pass


def default_config_path() -> Path:
    return Path.home() / ".config" / "sops-secrets" / "config.yml"


def _get_config_path() -> Optional[str]:
    """
    Resolve the config file path. Evaluated on every call, never cached.

    Priority order:
    1. SOPS_SECRETS_CONFIG environment variable
    2. User preference (~/.config/sops-secrets/preferences.json)
    3. Default location: ~/.config/sops-secrets/config.yml

    Returns:
        Absolute path to an existing config file, or None when no file exists

    Raises:
        ConfigError: If SOPS_SECRETS_CONFIG points to a missing file
    """
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        if not Path(env_path).is_file():
            raise ConfigError(f"{CONFIG_ENV_VAR} points to a missing file: {env_path}")
        logger.info(f"Using config from {CONFIG_ENV_VAR}: {env_path}")
        return env_path

    config_path_pref = get_preference("config_path")
    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            logger.info(f"Using config from preference: {config_path}")
            return str(config_path)
        logger.warning(f"Config path from preference doesn't exist: {config_path}")

    default_config = default_config_path()
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    return None


def _section(config: Dict[str, Any], name: str, config_path: str) -> Dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section in {config_path} must be a mapping")
    return section


def _string_value(section: Dict[str, Any], key: str, label: str) -> Optional[str]:
    value = section.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{label}' must be a non-empty string")
    return value.strip()


def load_config() -> Dict[str, Any]:
    """
    Load configuration from YAML file, applying defaults and env overrides.

    A missing config file is not an error: the Lambda runtime has no home
    directory config and relies on defaults plus environment variables.

    Returns:
        Dict with keys:
        - aws: dict with region (str or None)
        - sops: dict with binary_path (str)

    Raises:
        ConfigError: If the config file is empty, not valid YAML, or malformed
    """
    config_path = _get_config_path()
    raw: Dict[str, Any] = {}

    if config_path:
        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file at {config_path}: {e}")

        if not loaded:
            raise ConfigError(f"Config file at {config_path} is empty")
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file at {config_path} must contain a mapping")
        raw = loaded
    else:
        logger.debug("No config file found, using defaults")

    aws = _section(raw, "aws", config_path)
    sops = _section(raw, "sops", config_path)

    region = os.getenv("AWS_REGION") or _string_value(aws, "region", "aws.region")
    binary_path = (
        os.getenv("SOPS_BINARY")
        or _string_value(sops, "binary_path", "sops.binary_path")
        or DEFAULT_SOPS_BINARY
    )

    config = {
        "aws": {"region": region},
        "sops": {"binary_path": binary_path},
    }
    logger.debug(f"Using AWS region: {region or '<boto3 default>'}")
    logger.debug(f"Using sops binary: {binary_path}")
    return config
