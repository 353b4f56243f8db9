"""
mlcheck - Configuration Loader

Pydantic-based configuration management with:
- Environment-based configuration (dev/prod)
- YAML file loading with inheritance
- Environment variable overrides
- Type validation via Pydantic

Usage:
    from mlcheck.shared.config import get_config

    config = get_config()  # Uses MLCHECK_ENVIRONMENT env var
    config = get_config("dev")  # Explicit environment

    # Access config values
    threshold = config.validation.outlier_zscore_threshold
    bins = config.drift.drift_bin_count
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# Configuration Models
# =============================================================================


class ProjectConfig(BaseModel):
    """Project metadata configuration."""

    name: str = "mlcheck"
    version: str = "0.1.0"
    description: str = "Fast ML dataset validation - catch data issues before training"


class ValidationConfig(BaseModel):
    """Single-dataset statistics and detector configuration."""

    # Outliers
    outlier_zscore_threshold: float = 3.0
    outlier_critical_zscore: float = 5.0
    min_rows_for_outlier_detection: int = 30
    max_outliers_per_column: int = 100

    # Class imbalance (label columns only)
    imbalance_warning_ratio: float = 10.0
    imbalance_critical_ratio: float = 100.0
    label_columns: set[str] = Field(default_factory=set)

    # Missing values
    missing_warning_ratio: float = 0.2
    missing_critical_ratio: float = 0.5

    # Duplicate rows
    detect_duplicates: bool = True
    duplicate_tracking_cap: int = 1_000_000

    # Accumulator memory bounds
    category_cardinality_cap: int = 1000
    reservoir_capacity: int = 10_000
    random_seed: int = 42

    @field_validator(
        "outlier_zscore_threshold",
        "outlier_critical_zscore",
        "imbalance_warning_ratio",
        "imbalance_critical_ratio",
    )
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        """Thresholds must be strictly positive."""
        if v <= 0:
            raise ValueError(f"Threshold must be positive, got {v}")
        return v

    @field_validator(
        "min_rows_for_outlier_detection",
        "max_outliers_per_column",
        "duplicate_tracking_cap",
        "category_cardinality_cap",
        "reservoir_capacity",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Capacities and counts must be at least 1."""
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}")
        return v

    @field_validator("missing_warning_ratio", "missing_critical_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        """Missing ratios live in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"Ratio must be between 0 and 1, got {v}")
        return v

    @model_validator(mode="after")
    def validate_threshold_order(self) -> ValidationConfig:
        """Critical thresholds may not sit below their warning counterparts."""
        if self.outlier_critical_zscore < self.outlier_zscore_threshold:
            raise ValueError("outlier_critical_zscore must be >= outlier_zscore_threshold")
        if self.imbalance_critical_ratio < self.imbalance_warning_ratio:
            raise ValueError("imbalance_critical_ratio must be >= imbalance_warning_ratio")
        if self.missing_critical_ratio < self.missing_warning_ratio:
            raise ValueError("missing_critical_ratio must be >= missing_warning_ratio")
        return self


class PSIConfig(BaseModel):
    """Population Stability Index thresholds."""

    warning: float = 0.1
    critical: float = 0.25

    @model_validator(mode="after")
    def validate_order(self) -> PSIConfig:
        """Critical PSI must not be below the warning PSI."""
        if self.warning <= 0:
            raise ValueError(f"PSI warning threshold must be positive, got {self.warning}")
        if self.critical < self.warning:
            raise ValueError("PSI critical threshold must be >= warning threshold")
        return self


class DriftConfig(BaseModel):
    """Drift comparison configuration."""

    psi: PSIConfig = Field(default_factory=PSIConfig)
    drift_bin_count: int = 10
    psi_epsilon: float = 1e-4

    @field_validator("drift_bin_count")
    @classmethod
    def validate_bin_count(cls, v: int) -> int:
        """At least two bins are needed for a distribution."""
        if v < 2:
            raise ValueError(f"drift_bin_count must be >= 2, got {v}")
        return v

    @field_validator("psi_epsilon")
    @classmethod
    def validate_epsilon(cls, v: float) -> float:
        """Epsilon floor must be a small positive proportion."""
        if not 0.0 < v < 1.0:
            raise ValueError(f"psi_epsilon must be in (0, 1), got {v}")
        return v


class EngineConfig(BaseModel):
    """Validation engine execution configuration."""

    max_workers: int = 1

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Worker pool needs at least one worker."""
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main configuration class for mlcheck.

    Loads configuration from:
    1. YAML files in mlcheck/configs/environments/
    2. Environment variables (MLCHECK_ prefix, "__" for nesting)

    YAML values win; environment variables fill in keys the YAML files leave unset.
    """

    model_config = SettingsConfigDict(
        env_prefix="MLCHECK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "prod"] = "dev"

    # Configuration sections
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    drift: DriftConfig = Field(default_factory=DriftConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        valid_envs = {"dev", "prod"}
        if v not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _get_config_dir() -> Path:
    """Get the configuration directory path."""
    # Shipped with the package
    config_dir = Path(__file__).parent.parent / "configs"
    if config_dir.exists():
        return config_dir

    # Try from current working directory
    config_dir = Path.cwd() / "configs"
    if config_dir.exists():
        return config_dir

    raise FileNotFoundError(
        "Could not find configs directory. "
        "Reinstall mlcheck or run from a directory containing configs/."
    )


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_config_for_environment(environment: str) -> dict[str, Any]:
    """Load and merge configuration for a specific environment."""
    config_dir = _get_config_dir()
    env_dir = config_dir / "environments"

    base_config = _load_yaml_file(env_dir / "base.yaml")
    env_config = _load_yaml_file(env_dir / f"{environment}.yaml")

    # Remove inheritance marker if present
    env_config.pop("_inherit", None)

    merged = _deep_merge(base_config, env_config)
    merged["environment"] = environment

    return merged


@lru_cache(maxsize=4)
def get_config(environment: str | None = None) -> Settings:
    """
    Get configuration for the specified environment.

    Args:
        environment: Environment name (dev, prod).
                    If None, uses MLCHECK_ENVIRONMENT env var, defaulting to "dev".

    Returns:
        Settings: Validated configuration object.

    Example:
        config = get_config()
        config = get_config("prod")

        cap = config.validation.reservoir_capacity
    """
    if environment is None:
        environment = os.getenv("MLCHECK_ENVIRONMENT", "dev")

    yaml_config = _load_config_for_environment(environment)

    # Create Settings object (also loads env vars)
    return Settings(**yaml_config)


def reload_config(environment: str | None = None) -> Settings:
    """
    Reload configuration, clearing the cache.

    Useful for testing or when config files have changed.
    """
    get_config.cache_clear()
    return get_config(environment)
