"""Configuration file loader with validation"""

import yaml
import os
from pathlib import Path
from typing import Dict, Any, Optional

from pydantic import ValidationError

from src.models.scoring_config import ScoringConfig
from .errors import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/scoring.yaml"
REQUIRED_KEYS = ['version', 'weights', 'thresholds']


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load YAML configuration file with validation.
    The path defaults to SCORING_CONFIG_PATH, then config/scoring.yaml.

    Args:
        config_path: Path to configuration file

    Returns:
        Dictionary with configuration

    Raises:
        ConfigurationError: If file doesn't exist or invalid YAML
    """
    if config_path is None:
        config_path = os.getenv("SCORING_CONFIG_PATH", DEFAULT_CONFIG_PATH)

    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Error loading configuration: {e}")

    if not isinstance(config, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

    # Validate required keys
    missing_keys = [key for key in REQUIRED_KEYS if key not in config]
    if missing_keys:
        raise ConfigurationError(f"Missing required configuration keys: {missing_keys}")

    return config


def build_scoring_config(config: Dict[str, Any]) -> ScoringConfig:
    """
    Validate a configuration dictionary into a ScoringConfig

    Raises:
        ConfigurationError: If any section fails validation
    """
    sections = {key: value for key, value in config.items() if key != 'version'}
    try:
        return ScoringConfig.model_validate(sections)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid scoring configuration: {e}")


def load_scoring_config(config_path: Optional[str] = None) -> ScoringConfig:
    """
    Load and validate the scoring configuration.

    An explicitly requested file must exist. When no path is given and the
    default file is absent, built-in defaults are used.
    """
    explicit = config_path is not None or os.getenv("SCORING_CONFIG_PATH") is not None
    if not explicit and not Path(DEFAULT_CONFIG_PATH).exists():
        logger.warning(f"{DEFAULT_CONFIG_PATH} not found, using built-in scoring defaults")
        return ScoringConfig()

    config = load_config(config_path)
    scoring_config = build_scoring_config(config)
    logger.info("Loaded scoring configuration", version=config.get('version'))
    return scoring_config
