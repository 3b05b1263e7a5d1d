"""Configuration management for the chat stream backend."""

from __future__ import annotations

import logging
import os
from typing import Any, cast

import yaml
from dotenv import load_dotenv

from aether_chat.store.models import ChatSettings

FALLBACK_BASE_URL = "https://api.blackboxaudio.tech/v1"
FALLBACK_APP_ID = "aether-os-web"
FALLBACK_MODEL_NAME = "kimi-vl-thinking"


def normalize_base_url(url: str | None) -> str:
    """Prefix a scheme when missing and strip trailing slashes."""
    trimmed = (url or "").strip()
    if not trimmed:
        return FALLBACK_BASE_URL

    if not trimmed.startswith(("http://", "https://")):
        trimmed = f"https://{trimmed}"

    return trimmed.rstrip("/")


class Configuration:
    """YAML-backed configuration with environment overrides for secrets."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self._default_config = self._load_yaml_config()

        override_path = config_path or os.getenv("AETHER_CHAT_CONFIG")
        self._override_path = override_path
        override: dict[str, Any] = {}
        if override_path:
            override = self.load_config(override_path)
            logging.info(f"Loaded configuration overrides from {override_path}")

        self._current_config = self._deep_merge(self._default_config, override)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load the packaged default configuration."""
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")
        return self.load_config(config_path)

    @staticmethod
    def load_config(file_path: str) -> dict[str, Any]:
        """Load a configuration dictionary from a YAML file.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            ValueError: If the file does not contain a mapping.
        """
        with open(file_path) as file:
            config = yaml.safe_load(file)
            if config is None:
                return {}
            if not isinstance(config, dict):
                raise ValueError("Configuration file must contain a dictionary")
            return cast(dict[str, Any], config)

    def _deep_merge(
        self, base: dict[str, Any], override: dict[str, Any]
    ) -> dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(
                    cast(dict[str, Any], result[key]), cast(dict[str, Any], value)
                )
            else:
                result[key] = value

        return result

    def _get_config_value(self, path: list[str], default: Any = None) -> Any:
        """Get a configuration value by path, falling back to ``default``."""
        current: Any = self._current_config
        for key in path:
            if isinstance(current, dict) and key in current:
                current = current[key]  # type: ignore[assignment]
            else:
                return default
        return current  # type: ignore[return-value]

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full merged configuration dictionary."""
        return self._current_config

    @property
    def gateway_api_key(self) -> str:
        """Get the API key for the completion gateway.

        Raises:
            ValueError: If no key is configured in the environment or YAML.
        """
        env_key = self._get_config_value(["gateway", "api_key_env"], "LITELLM_API_KEY")
        api_key = os.getenv(env_key) or self._get_config_value(["gateway", "api_key"])
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables "
                "or gateway configuration"
            )
        return str(api_key)

    def get_gateway_config(self) -> dict[str, Any]:
        """Get gateway connection configuration with validated defaults."""
        gateway = self._get_config_value(["gateway"], {})
        connection = gateway.get("connection", {})

        timeout = connection.get("request_timeout_seconds", 600.0)
        max_connections = connection.get("max_connections", 20)
        max_keepalive = connection.get("max_keepalive_connections", 10)
        keepalive_expiry = connection.get("keepalive_expiry_seconds", 30.0)

        if timeout <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        if max_connections < 1:
            raise ValueError("max_connections must be at least 1")
        if max_keepalive < 0:
            raise ValueError("max_keepalive_connections must not be negative")

        return {
            "base_url": normalize_base_url(gateway.get("base_url")),
            "app_id": gateway.get("app_id") or FALLBACK_APP_ID,
            "model": gateway.get("model") or FALLBACK_MODEL_NAME,
            "request_timeout_seconds": timeout,
            "max_connections": max_connections,
            "max_keepalive_connections": max_keepalive,
            "keepalive_expiry_seconds": keepalive_expiry,
        }

    def get_chat_settings(self) -> ChatSettings:
        """Get default chat settings; the model defaults to the gateway model."""
        settings = dict(self._get_config_value(["chat", "settings"], {}))
        settings.setdefault("model", self.get_gateway_config()["model"])
        return ChatSettings.model_validate(settings)

    def get_activity_config(self) -> dict[str, Any]:
        """Get activity timeline configuration.

        Returns:
            Dictionary with ``max_events`` (default: 300).
        """
        max_events = self._get_config_value(["chat", "activity", "max_events"], 300)
        if not isinstance(max_events, int) or max_events < 1:
            raise ValueError("activity max_events must be a positive integer")
        return {"max_events": max_events}

    def get_search_config(self) -> dict[str, Any]:
        """Get web search pre-step configuration."""
        search = self._get_config_value(["chat", "search"], {})
        return {
            "enabled": bool(search.get("enabled", False)),
            "url": search.get("url", ""),
            "timeout_seconds": float(search.get("timeout_seconds", 15.0)),
        }

    def get_chat_logging_config(self) -> dict[str, Any]:
        """Get chat logging settings (reply truncation length)."""
        return self._get_config_value(["chat", "logging"], {})

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._get_config_value(["logging"], {})
