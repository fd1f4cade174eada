"""
Configuration loader for the Budget Forecast app.

Loads settings from forecast_config.yaml and provides typed access
to all configuration sections.
"""
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
from functools import lru_cache

import yaml


# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "forecast_config.yaml"
CONFIG_ENV_VAR = "FORECAST_CONFIG"


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


class ForecastConfig:
    """
    Configuration manager for the Budget Forecast app.

    Loads YAML configuration and provides typed access to all sections.
    Use get_config() to obtain the singleton instance.
    """

    def __init__(self, config_path: Optional[Path] = None):
        env_path = os.environ.get(CONFIG_ENV_VAR)
        self._config_path = config_path or (Path(env_path) if env_path else DEFAULT_CONFIG_PATH)
        self._config: dict = {}
        self._load()

    def _load(self) -> None:
        """Load configuration from YAML file."""
        if not self._config_path.exists():
            raise ConfigurationError(f"Config file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r') as f:
                self._config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(self._config, dict):
            raise ConfigurationError("Config file must contain a YAML mapping")

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load()
        get_config.cache_clear()

    @property
    def version(self) -> str:
        """Configuration file version."""
        return self._config.get("version", "unknown")

    # =========================================================================
    # Environment
    # =========================================================================

    @property
    def environment(self) -> str:
        """Deployment environment: 'development' or 'production'."""
        return self._config.get("environment", "production")

    @property
    def strict_invariants(self) -> bool:
        """
        Whether invariant violations are fatal.

        Defaults to True in development, False elsewhere; can be forced
        with the top-level 'strict_invariants' key.
        """
        explicit = self._config.get("strict_invariants")
        if explicit is not None:
            return bool(explicit)
        return self.environment == "development"

    # =========================================================================
    # Database
    # =========================================================================

    @property
    def database(self) -> dict:
        """Database settings."""
        return self._config.get("database", {})

    @property
    def database_url(self) -> str:
        """SQLAlchemy database URL."""
        return self.database.get("url", "sqlite:///./forecast.db")

    # =========================================================================
    # Distribution
    # =========================================================================

    @property
    def distribution(self) -> dict:
        """Distribution method configuration."""
        return self._config.get("distribution", {})

    @property
    def default_method(self) -> str:
        """Method used when a record carries no method tag."""
        return self.distribution.get("default_method", "even")

    def get_curve_params(self, method: str) -> dict:
        """
        Get curve parameters for a distribution method.

        Args:
            method: One of 'front_loaded', 'back_loaded', 'bell'

        Returns:
            Dict of curve parameters (midpoint/steepness or mean/sigma)
        """
        curves = self.distribution.get("curves", {})
        defaults = {
            "front_loaded": {"midpoint": 0.375, "steepness": 10.0},
            "back_loaded": {"midpoint": 0.625, "steepness": 10.0},
            "bell": {"mean": 0.5, "sigma": 0.15},
        }
        return {**defaults.get(method, {}), **curves.get(method, {})}

    # =========================================================================
    # Money
    # =========================================================================

    @property
    def money_quantum(self) -> Decimal:
        """Smallest currency unit allocations are rounded to."""
        return Decimal(str(self._config.get("money", {}).get("quantum", "0.01")))

    # =========================================================================
    # Logging
    # =========================================================================

    @property
    def log_level(self) -> str:
        """Root logging level name."""
        return self._config.get("logging", {}).get("level", "INFO").upper()

    @property
    def log_format(self) -> str:
        """Log record format string."""
        return self._config.get("logging", {}).get(
            "format", '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # =========================================================================
    # View Tabs
    # =========================================================================

    @property
    def tabs(self) -> list:
        """Known forecasting view tabs."""
        return self._config.get("tabs", ["gc-gr", "owner-billing"])

    # =========================================================================
    # Raw Access
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Get a top-level config value by key."""
        return self._config.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Dictionary-style access to config."""
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        """Check if key exists in config."""
        return key in self._config


@lru_cache(maxsize=1)
def get_config(config_path: Optional[str] = None) -> ForecastConfig:
    """
    Get the singleton configuration instance.

    Args:
        config_path: Optional path to config file. Only used on first call.

    Returns:
        ForecastConfig singleton instance
    """
    path = Path(config_path) if config_path else None
    return ForecastConfig(path)


def reload_config() -> ForecastConfig:
    """Reload configuration from disk and return new instance."""
    get_config.cache_clear()
    return get_config()
