"""Load scan configuration from YAML files."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from inline_test.config import ScanConfig


def load_config(path: Path) -> ScanConfig:
    """Load and validate a scan configuration file.

    Args:
        path: Path to a YAML configuration file

    Returns:
        Validated configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty, is not valid YAML or does not match
            the configuration schema

    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty config file: {path}")
    if not isinstance(data, dict):
        raise ValueError(f"Invalid config schema in {path}: expected a mapping")

    try:
        return ScanConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid config schema in {path}: {e}") from e
