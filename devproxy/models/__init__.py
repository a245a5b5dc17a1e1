"""Data models"""

from .config import AppConfig, InterceptorConfig, ServerConfig, parse_bool_literal

__all__ = [
    "AppConfig",
    "InterceptorConfig",
    "ServerConfig",
    "parse_bool_literal",
]
