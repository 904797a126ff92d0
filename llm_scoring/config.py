"""
Configuration module for LLM Scoring Suite.
Handles environment variables and application settings.
"""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Defaults
DEFAULT_DATA_DIR = Path("data")

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_EVALUATOR_MODEL = "minimax/minimax-m2.1"
PLACEHOLDER_API_KEY = "your_api_key_here"


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad values."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable, falling back on bad values."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


class ClientConfig(BaseModel):
    """Configuration for the OpenRouter API client."""

    api_key: Optional[str] = Field(default=None)
    base_url: str = Field(default=DEFAULT_BASE_URL)
    timeout: float = Field(default=300.0, gt=0)

    # Minimum spacing between consecutive requests, in seconds
    min_delay: float = Field(default=1.0, ge=0.0)
    max_retries: int = Field(default=3, ge=1)
    # Retry-After values above this are treated as fatal
    max_retry_after: float = Field(default=30.0, ge=0.0)

    referer: str = Field(default="https://github.com/atoomnetmarc/LLModelScoring")
    title: str = Field(default="LLModelScoring")

    @property
    def has_api_key(self) -> bool:
        """Whether a usable API key is configured."""
        return bool(self.api_key) and self.api_key != PLACEHOLDER_API_KEY

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load client configuration from environment variables."""
        return cls(
            api_key=os.getenv("OPENROUTER_API_KEY"),
            base_url=os.getenv("OPENROUTER_BASE_URL") or DEFAULT_BASE_URL,
            timeout=_env_float("REQUEST_TIMEOUT", 300.0),
            min_delay=_env_float("RATE_LIMIT_DELAY", 1.0),
            max_retries=max(1, _env_int("MAX_RETRIES", 3)),
        )


class StorageConfig(BaseModel):
    """Where experiment data lives on disk."""

    data_dir: Path = Field(default=DEFAULT_DATA_DIR)
    default_experiment: str = Field(default="default")

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Load storage configuration from environment variables."""
        return cls(
            data_dir=Path(os.getenv("LLM_SCORING_DATA_DIR") or DEFAULT_DATA_DIR),
        )


class EvaluatorConfig(BaseModel):
    """Configuration for the judge model."""

    model: str = Field(default=DEFAULT_EVALUATOR_MODEL)

    @classmethod
    def from_env(cls) -> "EvaluatorConfig":
        """Load evaluator configuration from environment variables."""
        return cls(model=os.getenv("EVALUATOR_MODEL") or DEFAULT_EVALUATOR_MODEL)


class AppConfig(BaseModel):
    """Main application configuration."""

    client: ClientConfig = Field(default_factory=ClientConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    evaluator: EvaluatorConfig = Field(default_factory=EvaluatorConfig)
    log_level: str = Field(default="WARNING")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load the full configuration from the environment and `.env`."""
        load_dotenv()
        return cls(
            client=ClientConfig.from_env(),
            storage=StorageConfig.from_env(),
            evaluator=EvaluatorConfig.from_env(),
            log_level=(os.getenv("LOG_LEVEL") or "WARNING").upper(),
        )


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the configuration, loading it from the environment on first use."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def update_config(**kwargs) -> AppConfig:
    """Replace the cached configuration with new values."""
    global _config
    _config = AppConfig(**kwargs)
    return _config
