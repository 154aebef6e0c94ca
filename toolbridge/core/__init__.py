"""Configuration and result caching for toolbridge."""

from toolbridge.core.configs import ClientConfig, get_client_config, load_raw_config
from toolbridge.core.result_cache import ResultCache

__all__ = [
    "ClientConfig",
    "ResultCache",
    "get_client_config",
    "load_raw_config",
]
