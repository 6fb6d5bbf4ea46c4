"""Configuration management for the Astra answer client."""

import codecs
import logging
import os
from typing import Any
from urllib.parse import urlsplit

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")
ENDPOINT_ENV = "ASTRA_BACKEND_ENDPOINT"


class Configuration:
    """Manages configuration and environment variables for the answer client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables.

        Args:
            config_path: YAML file to load; defaults to the packaged config.yaml.
        """
        self.load_env()  # Load .env for the backend key
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config(self.config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary.

        Returns:
            The complete configuration dictionary.
        """
        return self._config

    @property
    def backend_api_key(self) -> str:
        """Get the API key for the answer backend.

        Returns:
            The API key as a string.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        backend_config = self._config.get("backend", {})
        env_key = backend_config.get("api_key_env")
        if not env_key:
            raise ValueError(
                "backend.api_key_env must be explicitly configured in config.yaml"
            )

        api_key = os.getenv(env_key)
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables"
            )

        return api_key

    def get_backend_config(self) -> dict[str, Any]:
        """Get answer backend configuration from YAML.

        The endpoint may be overridden with the ASTRA_BACKEND_ENDPOINT
        environment variable.

        Returns:
            Backend configuration dictionary with validated values.

        Raises:
            ValueError: If the endpoint or timeouts are missing or invalid.
        """
        backend_config = self._config.get("backend", {})
        endpoint = os.getenv(ENDPOINT_ENV) or backend_config.get("endpoint")
        if not endpoint:
            raise ValueError(
                "backend.endpoint must be explicitly configured in config.yaml "
                f"or through {ENDPOINT_ENV}"
            )

        parts = urlsplit(endpoint)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"backend.endpoint must be an http(s) URL, got '{endpoint}'")

        http_config = backend_config.get("http_client", {})

        # Required configuration keys
        required_keys = ["connect_timeout", "read_timeout", "write_timeout"]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"backend.http_client.{key} must be explicitly configured "
                    "in config.yaml"
                )

        for key in required_keys:
            value = http_config[key]
            # read_timeout may be null: the protocol itself has no timeout
            if value is None and key == "read_timeout":
                continue
            if not isinstance(value, int | float) or value <= 0:
                raise ValueError(f"backend.http_client.{key} must be positive")

        return {
            "endpoint": endpoint,
            "connect_timeout": http_config["connect_timeout"],
            "read_timeout": http_config["read_timeout"],
            "write_timeout": http_config["write_timeout"],
        }

    def get_streaming_config(self) -> dict[str, Any]:
        """Get stream framing configuration from YAML.

        Returns:
            Streaming configuration dictionary with validated values.

        Raises:
            ValueError: If a streaming parameter is missing or invalid.
        """
        streaming_config = self._config.get("streaming", {})

        required_keys = ["event_prefix", "done_sentinel", "encoding"]
        for key in required_keys:
            if key not in streaming_config:
                raise ValueError(
                    f"streaming.{key} must be explicitly configured in config.yaml"
                )

        event_prefix = streaming_config["event_prefix"]
        done_sentinel = streaming_config["done_sentinel"]
        encoding = streaming_config["encoding"]
        chunk_size = streaming_config.get("chunk_size")

        if not isinstance(event_prefix, str) or not event_prefix.strip():
            raise ValueError("streaming.event_prefix must be a non-empty string")
        if not isinstance(done_sentinel, str) or not done_sentinel.strip():
            raise ValueError("streaming.done_sentinel must be a non-empty string")
        try:
            codecs.getincrementaldecoder(encoding)
        except (LookupError, TypeError) as e:
            raise ValueError(f"streaming.encoding '{encoding}' is not supported") from e
        if chunk_size is not None and (
            not isinstance(chunk_size, int) or chunk_size < 1
        ):
            raise ValueError("streaming.chunk_size must be a positive integer or null")

        return {
            "event_prefix": event_prefix.strip(),
            "done_sentinel": done_sentinel.strip(),
            "encoding": encoding,
            "chunk_size": chunk_size,
        }

    def get_citation_config(self) -> dict[str, Any]:
        """Get citation configuration from YAML.

        Returns:
            Citation configuration; `source_labels` is None when the built-in
            host table should be used.
        """
        citation_config = self._config.get("citations", {})
        labels = citation_config.get("source_labels")
        if labels is None:
            return {"source_labels": None}

        if not isinstance(labels, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in labels.items()
        ):
            raise ValueError(
                "citations.source_labels must map host fragments to display names"
            )

        return {"source_labels": {k.lower(): v for k, v in labels.items()}}

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        logging_config = self._config.get("logging", {})
        level = str(logging_config.get("level", "INFO")).upper()
        fmt = logging_config.get("format", "console")

        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"logging.level '{level}' is not a valid level")
        if fmt not in ("console", "json"):
            raise ValueError("logging.format must be 'console' or 'json'")

        return {"level": level, "format": fmt}

    def get_client_config(self) -> dict[str, Any]:
        """Get the merged configuration dictionary for StreamClient.

        Returns:
            Backend and streaming settings in one flat dictionary.
        """
        return {**self.get_backend_config(), **self.get_streaming_config()}
