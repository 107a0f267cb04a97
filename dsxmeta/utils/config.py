"""
YAML configuration loading.

Configuration files are plain YAML loaded through OmegaConf so that
interpolations resolve before values reach the extraction code.
"""

from pathlib import Path
from typing import Any, Dict

from omegaconf import OmegaConf


def load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """
    Load a YAML config file into a plain dict.

    Args:
        config_path: Path to the YAML file

    Returns:
        Resolved config as nested dicts and lists

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found at {config_path}")

    return OmegaConf.to_container(OmegaConf.load(config_path), resolve=True)
