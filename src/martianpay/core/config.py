"""Configuration types with environment variable support.

All settings can be configured via environment variables with the MARTIANPAY_ prefix.
Example: MARTIANPAY_WEBHOOK_TOLERANCE=600 accepts events signed up to 10 minutes ago.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://api.martianpay.com"

LogLevel = Literal["debug", "info", "warning", "error"]


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


class WebhookSettings(BaseSettings):
    """Webhook receiver configuration.

    All settings can be overridden via environment variables:
    - MARTIANPAY_WEBHOOK_SECRET: Endpoint signing secret (whsec_...)
    - MARTIANPAY_WEBHOOK_TOLERANCE: Maximum event age in seconds
    - MARTIANPAY_WEBHOOK_PORT: Port the receiver listens on
    - etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="MARTIANPAY_WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    secret: str = Field(
        default="",
        repr=False,
        description="Endpoint signing secret used as the HMAC key.",
    )
    tolerance: float = Field(
        default=300.0,
        gt=0,
        description="Events signed longer ago than this (seconds) are rejected.",
    )
    host: str = Field(
        default="0.0.0.0",
        description="Address the receiver binds to.",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the receiver listens on.",
    )
    path: str = Field(
        default="/v1/webhook_test",
        description="Route that accepts webhook POSTs.",
    )
    signature_header: str = Field(
        default="Martian-Pay-Signature",
        description="Request header carrying the signature.",
    )
    legacy_status_codes: bool = Field(
        default=False,
        description="Answer every failure with HTTP 500 instead of 400/401.",
    )
    max_body_size: int = Field(
        default=1024 * 1024,
        description="Maximum accepted request body (bytes). Default 1MB.",
    )

    @field_validator("path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("path must start with '/'")
        return value


class APISettings(BaseSettings):
    """API client configuration.

    - MARTIANPAY_API_KEY: Secret API key (sk_test_... / sk_live_...)
    - MARTIANPAY_API_BASE_URL: API endpoint
    - MARTIANPAY_API_TIMEOUT: Request timeout in seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="MARTIANPAY_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    key: str = Field(default="", repr=False, description="Secret API key.")
    base_url: str = Field(default=DEFAULT_API_URL, description="API endpoint.")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout (seconds).")


class MartianPayConfig(BaseSettings):
    """Master configuration combining all settings.

    Use get_config() to get a cached instance.

    Example:
        config = get_config()
        print(config.webhook.tolerance)
        print(config.api.base_url)
    """

    model_config = SettingsConfigDict(
        env_prefix="MARTIANPAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: LogLevel = Field(
        default="info",
        description="Log level (debug, info, warning, error).",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _lowercase_level(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @property
    def webhook(self) -> WebhookSettings:
        """Get webhook receiver configuration."""
        return WebhookSettings()

    @property
    def api(self) -> APISettings:
        """Get API client configuration."""
        return APISettings()

    def to_display_dict(self) -> dict[str, Any]:
        """Export current configuration for display, secrets masked."""
        webhook = self.webhook
        api = self.api
        return {
            "log_level": self.log_level,
            "webhook": {
                "secret": "***" if webhook.secret else "",
                "tolerance": webhook.tolerance,
                "host": webhook.host,
                "port": webhook.port,
                "path": webhook.path,
                "signature_header": webhook.signature_header,
                "legacy_status_codes": webhook.legacy_status_codes,
                "max_body_size": webhook.max_body_size,
            },
            "api": {
                "key": "***" if api.key else "",
                "base_url": api.base_url,
                "timeout": api.timeout,
            },
        }


def webhook_settings_from_file(path: str | Path, **overrides: Any) -> WebhookSettings:
    """Build WebhookSettings from the ``webhook`` section of a config file.

    Keys given in ``overrides`` with a non-None value win over the file,
    and the file wins over environment variables.
    """
    data = load_config_from_file(path)
    section = data.get("webhook", {})
    values = flatten_config(section) if isinstance(section, dict) else {}
    values.update({k: v for k, v in overrides.items() if v is not None})
    return WebhookSettings(**values)


_config: MartianPayConfig | None = None


def get_config() -> MartianPayConfig:
    """Get the global configuration instance.

    Returns a cached instance of MartianPayConfig that reads from environment variables.
    To reload config (e.g., in tests), call clear_config() first.
    """
    global _config
    if _config is None:
        _config = MartianPayConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Call this to force reloading of environment variables on next get_config() call.
    Useful for testing.
    """
    global _config
    _config = None
