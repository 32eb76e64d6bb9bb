"""Configuration models using Pydantic for validation."""
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
import os

Precision = Literal["n", "ns", "u", "us", "ms", "s", "m", "h"]


class ConverterConfig(BaseModel):
    """Conversion settings."""
    precision: Precision = "ns"
    output: Optional[str] = None  # None writes to stdout
    format: Literal["text", "openmetrics"] = "text"


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    converter: ConverterConfig = Field(default_factory=ConverterConfig)


def load_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Config:
    """
    Load and validate configuration.

    Args:
        config_path: Optional YAML file with 'global' and 'converter' sections
        overrides: Converter/global values from the command line; None values
            are ignored

    Returns:
        Validated configuration
    """
    import yaml

    raw_config: Dict[str, Any] = {}
    if config_path is not None:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        section = "global" if key == "log_level" else "converter"
        if not isinstance(raw_config.get(section), dict):
            raw_config[section] = {}
        raw_config[section][key] = value

    try:
        config = Config(**raw_config)
        return config
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
