"""Configuration management for cortexview.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/cortexview.yaml")
DEFAULT_STORAGE_PATH = Path.home() / "Documents" / "CortexView_Captures"


class MonitoringConfig(BaseModel):
    interval_seconds: float = Field(default=5.0, gt=0, description="Seconds between scheduled captures")
    sensitivity: float = Field(
        default=0.10, ge=0.0, le=1.0,
        description="Changed fraction at or above which a capture is analyzed",
    )


class CaptureConfig(BaseModel):
    source: Literal["screen", "file"] = Field(default="screen")
    image_path: str | None = Field(
        default=None, description="PNG file re-read on every capture when source is 'file'"
    )


class AnalysisConfig(BaseModel):
    provider: Literal["mock", "openai", "anthropic", "bedrock"] = Field(default="mock")
    model: str = Field(default="claude-sonnet-4-20250514")
    base_url: str | None = Field(default=None)
    aws_region: str = Field(default="us-east-1")
    timeout_seconds: float = Field(default=120.0, gt=0)
    mock_delay_seconds: float = Field(default=2.0, ge=0)


class StorageConfig(BaseModel):
    enabled: bool = Field(default=False)
    path: str = Field(default=str(DEFAULT_STORAGE_PATH))
    retention_days: int = Field(default=7, ge=0)


class PromptsConfig(BaseModel):
    directory: str = Field(default="Prompts", description="Directory scanned for *.md personas")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the cortexview system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "CORTEXVIEW_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    anthropic_api_key: SecretStr = Field(default=SecretStr(""))
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openrouter_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    anthropic_key = os.environ.get("ANTHROPIC_API_KEY", "")
    openai_key = os.environ.get("OPENAI_API_KEY", "")
    or_key = os.environ.get("OPENROUTER_API_KEY", "")
    aws_region = os.environ.get("AWS_REGION", "")

    if anthropic_key:
        yaml_data.setdefault("anthropic_api_key", anthropic_key)
    if openai_key:
        yaml_data.setdefault("openai_api_key", openai_key)
    if or_key:
        yaml_data.setdefault("openrouter_api_key", or_key)

    if "analysis" not in yaml_data or yaml_data["analysis"] is None:
        yaml_data["analysis"] = {}

    if aws_region and not yaml_data["analysis"].get("aws_region"):
        yaml_data["analysis"]["aws_region"] = aws_region
