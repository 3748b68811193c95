"""Configuration management - loads storefront.yaml and environment variables."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from clip_storefront.models.store_config import (
    DatabaseSettings,
    DownloadSettings,
    PollerSettings,
    StoreSettings,
    StorefrontConfig,
)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


# Environment variable -> (section, key) in storefront.yaml
ENV_OVERRIDES = {
    "APP_URL": ("store", "public_base_url"),
    "CLIP_PRICE_CENTS": ("store", "default_price_cents"),
    "DATABASE_URL": ("database", "url"),
    "DATABASE_READONLY_URL": ("database", "readonly_url"),
}


class Config:
    """Application configuration loader.

    Non-secret tunables come from storefront.yaml; deployment values and
    secrets come from the environment and take precedence:
    - STRIPE_SECRET_KEY / STRIPE_WEBHOOK_SECRET
    - APP_URL, CLIP_PRICE_CENTS
    - DATABASE_URL (service credential), DATABASE_READONLY_URL (read-only credential)
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        environ: Optional[dict[str, str]] = None,
    ):
        """Initialize configuration loader.

        Args:
            config_path: Path to storefront.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/storefront.yaml
            environ: Environment mapping (defaults to os.environ)
        """
        self._environ = dict(os.environ if environ is None else environ)
        self._config_path = self._resolve_config_path(config_path)
        self._storefront_config: Optional[StorefrontConfig] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        if config_path:
            return Path(config_path)

        env_path = self._environ.get("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/storefront.yaml")

    def _load_config(self) -> None:
        """Load storefront.yaml, apply environment overrides and validate."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/storefront.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f) or {}

            if not isinstance(raw_config, dict):
                raise ConfigurationError(
                    f"Configuration file must contain a mapping: {self._config_path}"
                )

            self._apply_env_overrides(raw_config)
            self._storefront_config = StorefrontConfig(**raw_config)

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}")

    def _apply_env_overrides(self, raw_config: dict[str, Any]) -> None:
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = self._environ.get(env_name)
            if value:
                raw_config.setdefault(section, {})
                if raw_config[section] is None:
                    raw_config[section] = {}
                raw_config[section][key] = value

    @property
    def settings(self) -> StorefrontConfig:
        """Get validated storefront configuration."""
        if self._storefront_config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._storefront_config

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def store(self) -> StoreSettings:
        return self.settings.store

    @property
    def downloads(self) -> DownloadSettings:
        return self.settings.downloads

    @property
    def database(self) -> DatabaseSettings:
        return self.settings.database

    @property
    def poller(self) -> PollerSettings:
        return self.settings.poller

    @property
    def default_price_cents(self) -> int:
        """Process-wide fallback price for clips without their own price."""
        return self.store.default_price_cents

    @property
    def public_base_url(self) -> str:
        return self.store.public_base_url

    @property
    def stripe_secret_key(self) -> Optional[str]:
        return self._environ.get("STRIPE_SECRET_KEY") or None

    @property
    def stripe_webhook_secret(self) -> Optional[str]:
        return self._environ.get("STRIPE_WEBHOOK_SECRET") or None

    def require_payment_secrets(self) -> tuple[str, str]:
        """Return (secret_key, webhook_secret), failing fast if either is missing.

        Raises:
            ConfigurationError: If a payment secret is not configured
        """
        missing = [
            name
            for name, value in (
                ("STRIPE_SECRET_KEY", self.stripe_secret_key),
                ("STRIPE_WEBHOOK_SECRET", self.stripe_webhook_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Payment gateway is not configured, missing: {', '.join(missing)}"
            )
        return self.stripe_secret_key, self.stripe_webhook_secret

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reload_config() -> None:
    """Reload global configuration from disk."""
    global _config_instance
    if _config_instance:
        _config_instance.reload()
    else:
        _config_instance = Config()


def reset_config() -> None:
    """Drop the global configuration instance (useful for testing)."""
    global _config_instance
    _config_instance = None
