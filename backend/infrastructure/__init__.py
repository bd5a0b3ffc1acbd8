"""
Token Metadata API Infrastructure Module
Configuration, typed errors and the JSON-RPC transport
"""

from .errors import (
    TokenApiError,
    ValidationError,
    NotFoundError,
    UnsupportedNetworkError,
    InvalidAddressError,
    ContractReadError,
    RegistryUnavailableError,
    ErrorCode,
    ErrorTracker,
    retry,
    register_exception_handlers,
)

from .config import (
    TokenApiConfig,
    Environment,
    RegistryMode,
    config,
    get_config,
    reload_config,
)

from .rpc import JsonRpcClient, RpcError

__all__ = [
    # Errors
    "TokenApiError",
    "ValidationError",
    "NotFoundError",
    "UnsupportedNetworkError",
    "InvalidAddressError",
    "ContractReadError",
    "RegistryUnavailableError",
    "ErrorCode",
    "ErrorTracker",
    "retry",
    "register_exception_handlers",

    # Config
    "TokenApiConfig",
    "Environment",
    "RegistryMode",
    "config",
    "get_config",
    "reload_config",

    # Transport
    "JsonRpcClient",
    "RpcError",
]
