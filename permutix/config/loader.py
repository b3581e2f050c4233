"""Reading, merging and writing permutation test configurations."""

import copy
import json
import logging
from dataclasses import asdict, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Type, TypeVar, Union

import yaml

from permutix.config.defaults import PermutationConfig
from permutix.io.writers import make_serializable
from permutix.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ConfigType = TypeVar('ConfigType')

_PARSERS = {
    ".json": json.load,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
}


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON or YAML configuration file into a dictionary.

    An empty file gives an empty dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the suffix is not .json, .yaml or .yml, the
            file cannot be parsed, or it does not hold a mapping.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise ConfigurationError(
            f"Unsupported configuration file format: {path.suffix}. "
            f"Supported formats: {', '.join(_PARSERS)}"
        )

    logger.info(f"Loading configuration from: {path}")

    with path.open() as f:
        try:
            content = parser(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Invalid configuration file {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            f"Configuration file {path} must contain a mapping, got {type(content).__name__}"
        )
    return content


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``.

    Nested sections such as ``tfce`` are merged key by key, so overriding
    ``{"tfce": {"dh": 0.2}}`` keeps the configured exponents.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def config_from_dict(data: Dict[str, Any], config_class: Type[ConfigType]) -> ConfigType:
    """Instantiate a configuration dataclass from a dictionary.

    Unknown keys are dropped with a warning, in nested sections too: a
    dictionary given for a field whose default is itself a dataclass is
    filtered against that dataclass.

    Args:
        data: Configuration values, e.g. from ``load_config_file``.
        config_class: Dataclass to build.

    Returns:
        Instance of ``config_class``. It is not validated.
    """
    if not is_dataclass(config_class):
        raise ConfigurationError(f"{config_class} is not a dataclass")

    known = {f.name: f for f in fields(config_class)}

    unknown = sorted(set(data) - set(known))
    if unknown:
        logger.warning(f"Ignoring unknown {config_class.__name__} keys: {unknown}")

    values = {}
    for name, value in data.items():
        if name not in known:
            continue
        section = known[name].default_factory
        if isinstance(value, dict) and is_dataclass(section):
            value = config_from_dict(value, section)
        values[name] = value

    return config_class(**values)


def load_permutation_config(path: Union[str, Path], **overrides: Any) -> PermutationConfig:
    """Build a validated ``PermutationConfig`` from a file plus overrides.

    Values missing from the file keep their defaults.

    Example:
        >>> config = load_permutation_config("analysis.yaml", n_jobs=8)
    """
    data = merge_configs(asdict(PermutationConfig()), load_config_file(path))
    if overrides:
        data = merge_configs(data, overrides)

    config = config_from_dict(data, PermutationConfig)
    config.validate()
    return config


def save_config(config: Any, path: Union[str, Path]) -> None:
    """Write a configuration dataclass or dictionary as indented JSON."""
    if is_dataclass(config) and not isinstance(config, type):
        content = asdict(config)
    elif isinstance(config, dict):
        content = config
    else:
        raise TypeError(f"Expected dict or dataclass, got {type(config)}")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w') as f:
        json.dump(make_serializable(content), f, indent=2)
