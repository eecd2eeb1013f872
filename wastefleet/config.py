import os

import yaml

from .errors import InvalidValueError

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')
DEFAULT_CONFIG_PATH = os.path.join(DATA_DIR, 'config.yaml')

REQUIRED_SECTIONS = ('run', 'simulation', 'expert_rules', 'routing', 'analytics', 'storage', 'defaults')


def load_config(config_path: str = None) -> dict:
    """Load configuration from YAML file."""
    if config_path is None:
        # Default to the config.yaml shipped inside the package
        config_path = DEFAULT_CONFIG_PATH

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if not isinstance(config, dict):
        raise InvalidValueError(f"Config file {config_path} does not hold a mapping", value=config_path)

    missing = [name for name in REQUIRED_SECTIONS if name not in config]
    if missing:
        raise InvalidValueError(f"Config file {config_path} is missing sections: {', '.join(missing)}",
                                value=missing)
    return config


def resolve_config_path(name: str) -> str:
    """Relative names are looked up in the package data dir, absolute paths are kept."""
    if os.path.isabs(name):
        return name
    if os.path.exists(name):
        return os.path.abspath(name)
    return os.path.join(DATA_DIR, name)


# Load config once when module is imported
CONFIG = load_config()
