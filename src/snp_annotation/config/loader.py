"""YAML configuration loading for the annotation pipeline."""

from pathlib import Path
from typing import Any

import pydantic_yaml

from .schema import AnnotationConfig


def load_config(config_path: Path | str) -> AnnotationConfig:
    """
    Load and validate annotation configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated AnnotationConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        yaml_content = f.read()

    return pydantic_yaml.parse_yaml_raw_as(AnnotationConfig, yaml_content)


def _apply_override(target: dict[str, Any], dotted_key: str, value: Any) -> None:
    """Set a value in a nested dict using a dotted key ("batch.batch_size")."""
    parts = dotted_key.split(".")
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Unknown config section: {dotted_key}")
        target = target[part]
    target[parts[-1]] = value


def load_config_with_overrides(
    config_path: Path | str,
    overrides: dict[str, Any],
) -> AnnotationConfig:
    """
    Load config from YAML and apply overrides from CLI flags.

    Overrides whose value is None are ignored, so unset click options can be
    passed through as-is.

    Args:
        config_path: Path to YAML configuration file
        overrides: Mapping of dotted keys to values, e.g. {"batch.batch_size": 25}

    Returns:
        Re-validated AnnotationConfig with overrides applied

    Raises:
        FileNotFoundError: If config file doesn't exist
        KeyError: If an override names an unknown section
        pydantic.ValidationError: If the final config is invalid
    """
    config = load_config(config_path)
    config_dict = config.model_dump()

    for key, value in overrides.items():
        if value is None:
            continue
        _apply_override(config_dict, key, value)

    return AnnotationConfig.model_validate(config_dict)
