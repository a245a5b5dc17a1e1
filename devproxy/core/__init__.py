"""Core functionality"""

from .config import get_config, set_config, clear_config_cache, get_env_config
from .matcher import match_resource, should_intercept

__all__ = [
    "get_config",
    "set_config",
    "clear_config_cache",
    "get_env_config",
    "match_resource",
    "should_intercept",
]
