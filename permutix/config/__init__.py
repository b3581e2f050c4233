"""Configuration loading and validation for Permutix."""

from permutix.config.defaults import PermutationConfig, TFCEConfig
from permutix.config.loader import (
    load_config_file,
    merge_configs,
    config_from_dict,
    load_permutation_config,
    save_config,
)
from permutix.config.validator import ConfigValidator

__all__ = [
    "PermutationConfig",
    "TFCEConfig",
    "load_config_file",
    "merge_configs",
    "config_from_dict",
    "load_permutation_config",
    "save_config",
    "ConfigValidator",
]
