"""Core."""

from .config import (
    APISettings,
    MartianPayConfig,
    WebhookSettings,
    clear_config,
    get_config,
    load_config_from_file,
    webhook_settings_from_file,
)

__all__ = [
    "APISettings",
    "MartianPayConfig",
    "WebhookSettings",
    "clear_config",
    "get_config",
    "load_config_from_file",
    "webhook_settings_from_file",
]
