"""Configuration management for the development proxy.

Interceptor options come either from the ``feo_interceptor`` block of a YAML
file named by ``CONFIG_PATH`` or from ``FEO_*`` environment variables.
Server settings always come from the environment.
"""

import os
from typing import Any, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from devproxy.core.exceptions import ConfigError
from devproxy.models.config import AppConfig, InterceptorConfig, ServerConfig

load_dotenv()

INTERCEPTOR_SECTION = "feo_interceptor"


def _str_to_bool(value: str) -> bool:
    """Convert string to boolean. Accepts: 'true', '1', 'yes', 'on' (case-insensitive)"""
    return value.lower() in ("true", "1", "yes", "on")


def _describe_error(error: Mapping[str, Any]) -> str:
    field = ".".join(str(part) for part in error.get("loc", ())) or "options"
    kind = error.get("type")
    if kind == "extra_forbidden":
        return f"unknown option: {field}"
    if kind == "missing" or (field == "crd_path" and kind == "string_too_short"):
        return f"{field} is required"
    message = str(error.get("msg", "invalid value"))
    if kind == "value_error":
        # pydantic prefixes messages raised from validators
        return message.removeprefix("Value error, ")
    return f"{field}: {message}"


def load_interceptor_config(options: Optional[Mapping[str, Any]]) -> InterceptorConfig:
    """Validate a directive option block into an InterceptorConfig.

    Raises:
        ConfigError: on a missing required option, an unknown option or an
            unparseable value.
    """
    if options is None:
        options = {}
    if not isinstance(options, Mapping):
        raise ConfigError(
            f"{INTERCEPTOR_SECTION} options must be a mapping, got {type(options).__name__}"
        )
    try:
        return InterceptorConfig(**options)
    except ValidationError as e:
        raise ConfigError(
            "; ".join(_describe_error(err) for err in e.errors())
        ) from e


def load_interceptor_config_file(path: str) -> InterceptorConfig:
    """Load the interceptor block from a YAML config file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e

    if not isinstance(document, dict) or INTERCEPTOR_SECTION not in document:
        raise ConfigError(f"{path} has no {INTERCEPTOR_SECTION} section")
    return load_interceptor_config(document[INTERCEPTOR_SECTION])


class EnvConfig:
    """Server configuration from environment variables."""

    def __init__(self):
        self.host: str = os.environ.get("HOST", "0.0.0.0")
        self.port: int = int(os.environ.get("PORT", "1337"))
        self.upstream_url: str = os.environ.get(
            "UPSTREAM_URL", "https://console.stage.redhat.com"
        )
        self.verify_ssl: bool = _str_to_bool(os.environ.get("VERIFY_SSL", "true"))
        self.request_timeout_secs: int = int(
            os.environ.get("REQUEST_TIMEOUT_SECS", "60")
        )
        self.log_level: str = os.environ.get("LOG_LEVEL", "INFO")
        self.log_file: Optional[str] = os.environ.get("LOG_FILE", "logs/proxy.log") or None
        self.config_path: Optional[str] = os.environ.get("CONFIG_PATH")

    @classmethod
    def from_env(cls) -> "EnvConfig":
        """Load configuration from environment variables"""
        return cls()

    def interceptor_options(self) -> dict[str, Any]:
        """Collect interceptor options from FEO_* variables, omitting unset ones."""
        options: dict[str, Any] = {}
        for option, var in (
            ("crd_path", "FEO_CRD_PATH"),
            ("enabled", "FEO_ENABLED"),
            ("script_timeout_secs", "FEO_SCRIPT_TIMEOUT_SECS"),
        ):
            value = os.environ.get(var)
            if value is not None:
                options[option] = value
        return options


_cached_config: Optional[AppConfig] = None


def set_config(config: AppConfig) -> None:
    """Set the runtime configuration"""
    global _cached_config
    _cached_config = config


def clear_config_cache() -> None:
    """Clear the configuration cache"""
    global _cached_config
    _cached_config = None


def get_config() -> AppConfig:
    """Get current runtime configuration, loading it on first use.

    Raises:
        ConfigError: if the interceptor options are invalid.
    """
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    env = EnvConfig.from_env()
    if env.config_path:
        interceptor = load_interceptor_config_file(env.config_path)
    else:
        interceptor = load_interceptor_config(env.interceptor_options())

    _cached_config = AppConfig(
        interceptor=interceptor,
        server=ServerConfig(host=env.host, port=env.port),
        upstream_url=env.upstream_url,
        verify_ssl=env.verify_ssl,
        request_timeout_secs=env.request_timeout_secs,
    )
    return _cached_config


def get_env_config() -> EnvConfig:
    """Get environment configuration"""
    return EnvConfig.from_env()
