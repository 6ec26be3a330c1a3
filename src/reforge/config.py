"""Configuration management and environment loading."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .types import ConfigError

DEFAULT_MODEL = "gemini/gemini-2.0-flash"


@dataclass
class ReforgeConfig:
    """Main configuration for reforge transformers and sessions."""

    # Model used by ChatSession when none is given
    default_model: str = DEFAULT_MODEL

    # Sampling defaults for ChatSession
    temperature: float | None = 0.2
    top_p: float | None = 0.95

    # Retry budget: total attempts are max_retries + 1
    max_retries: int = 3
    # Seconds before the first retry, doubled after every failure
    retry_delay: float = 1.0

    # Upper bound on characters trimmed during truncation recovery
    max_trim_attempts: int = 100

    # Logging
    log_level: str = "WARNING"

    # Default kwargs passed to every litellm call
    default_kwargs: dict[str, Any] = field(default_factory=dict)

    # Timeout in seconds for a single model call
    timeout: float = 600.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ConfigError(f"retry_delay must be >= 0, got {self.retry_delay}")
        if self.max_trim_attempts < 0:
            raise ConfigError(f"max_trim_attempts must be >= 0, got {self.max_trim_attempts}")

    @classmethod
    def from_env(cls) -> "ReforgeConfig":
        """Create config from REFORGE_ prefixed environment variables."""
        kwargs: dict[str, Any] = {}

        if model := os.getenv("REFORGE_DEFAULT_MODEL"):
            kwargs["default_model"] = model

        if temp := os.getenv("REFORGE_TEMPERATURE"):
            try:
                kwargs["temperature"] = float(temp)
            except ValueError:
                raise ConfigError(f"Invalid REFORGE_TEMPERATURE: {temp}")

        if retries := os.getenv("REFORGE_MAX_RETRIES"):
            try:
                kwargs["max_retries"] = int(retries)
            except ValueError:
                raise ConfigError(f"Invalid REFORGE_MAX_RETRIES: {retries}")

        if delay := os.getenv("REFORGE_RETRY_DELAY"):
            try:
                kwargs["retry_delay"] = float(delay)
            except ValueError:
                raise ConfigError(f"Invalid REFORGE_RETRY_DELAY: {delay}")

        if trims := os.getenv("REFORGE_MAX_TRIM_ATTEMPTS"):
            try:
                kwargs["max_trim_attempts"] = int(trims)
            except ValueError:
                raise ConfigError(f"Invalid REFORGE_MAX_TRIM_ATTEMPTS: {trims}")

        if log_level := os.getenv("REFORGE_LOG_LEVEL"):
            kwargs["log_level"] = log_level.upper()

        if timeout := os.getenv("REFORGE_TIMEOUT"):
            try:
                kwargs["timeout"] = float(timeout)
            except ValueError:
                raise ConfigError(f"Invalid REFORGE_TIMEOUT: {timeout}")

        return cls(**kwargs)


def load_env_files(
    env_file: str | Path | None = None,
    env_files: list[str | Path] | None = None,
) -> None:
    """
    Load environment variables from .env files.

    Args:
        env_file: Single env file to load
        env_files: Multiple env files to load (later files override earlier)
    """
    files_to_load: list[Path] = []

    if env_files:
        files_to_load.extend(Path(f) for f in env_files)
    elif env_file:
        files_to_load.append(Path(env_file))
    else:
        default_env = Path(".env")
        if default_env.exists():
            files_to_load.append(default_env)

    for file_path in files_to_load:
        if file_path.exists():
            load_dotenv(file_path, override=True)
