"""
Functions for loading estimation settings from a yaml configuration file.
"""

import os
from typing import Any

import yaml


def load_config(path: str) -> dict[str, Any]:
    """
    Load a configuration mapping from a yaml file.

    Parameters
    ----------
    path : str
        Full filename (including path) of the yaml file.

    Returns
    -------
    config : dict[str, Any]
        The parsed configuration.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Configuration file: {path} not found")
    with open(path, "r") as io:
        config = yaml.safe_load(io)
    if not isinstance(config, dict):
        raise ValueError(f"Configuration file: {path} is not a mapping")
    return config


def get_recurse(config: dict, *keys, default: Any = None) -> Any:
    """
    Get a value from a nested dictionary, following a sequence of keys.

    Parameters
    ----------
    config : dict
        The nested dictionary.
    *keys
        The keys to follow, in order.
    default : Any
        Value returned if any of the keys is missing.

    Returns
    -------
    The value at the end of the keys, or the default.
    """
    value: Any = config
    for key in keys:
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value
